import heapq


class _Task:
	__slots__ = ("task_id", "due_ms", "callback", "interval_ms", "cancelled")

	def __init__(self, task_id, due_ms, callback, interval_ms=None):
		self.task_id = task_id
		self.due_ms = due_ms
		self.callback = callback
		self.interval_ms = interval_ms
		self.cancelled = False


class Scheduler:
	"""Millisecond clock with one-shot and recurring callbacks.

	Driven by the frame loop through advance(dt_ms). Pausing freezes the clock,
	so pending timers resume where they left off.
	"""

	def __init__(self):
		self._now_ms = 0
		self._next_task_id = 1
		self._tasks = {}
		self._queue = []
		self._paused = False

	@property
	def now_ms(self):
		return self._now_ms

	@property
	def paused(self) -> bool:
		return self._paused

	@property
	def queued_task_count(self) -> int:
		return sum(1 for task in self._tasks.values() if not task.cancelled)

	def call_later(self, delay_ms, callback) -> int:
		if delay_ms < 0:
			raise ValueError("delay_ms must be >= 0")
		return self._schedule(self._now_ms + delay_ms, callback, None)

	def call_every(self, interval_ms, callback) -> int:
		if interval_ms <= 0:
			raise ValueError("interval_ms must be > 0")
		return self._schedule(self._now_ms + interval_ms, callback, interval_ms)

	def cancel(self, task_id) -> None:
		task = self._tasks.get(task_id)
		if task is not None:
			task.cancelled = True

	def pause(self) -> None:
		self._paused = True

	def resume(self) -> None:
		self._paused = False

	def advance(self, delta_ms) -> int:
		"""Move the clock forward and run every callback that came due."""
		if delta_ms < 0:
			raise ValueError("delta_ms must be >= 0")
		if self._paused:
			return 0
		target = self._now_ms + delta_ms
		executed = 0
		while self._queue and self._queue[0][0] <= target:
			due_ms, task_id = heapq.heappop(self._queue)
			task = self._tasks.get(task_id)
			if task is None or task.cancelled:
				self._tasks.pop(task_id, None)
				continue
			# Callbacks see the clock at their own due time
			self._now_ms = due_ms
			task.callback()
			executed += 1
			if task.cancelled or task.interval_ms is None:
				self._tasks.pop(task_id, None)
			else:
				task.due_ms += task.interval_ms
				heapq.heappush(self._queue, (task.due_ms, task.task_id))
			# A callback may have paused us (game over); stop dispatching
			if self._paused:
				return executed
		if not self._paused:
			self._now_ms = target
		return executed

	def _schedule(self, due_ms, callback, interval_ms) -> int:
		task_id = self._next_task_id
		self._next_task_id += 1
		self._tasks[task_id] = _Task(task_id, due_ms, callback, interval_ms)
		heapq.heappush(self._queue, (due_ms, task_id))
		return task_id
