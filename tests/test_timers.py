from __future__ import annotations

import pytest

from pursuit_timers import Scheduler


def test_call_later_runs_when_due() -> None:
	scheduler = Scheduler()
	calls: list[str] = []
	scheduler.call_later(200, lambda: calls.append("once"))

	assert scheduler.advance(100) == 0
	assert calls == []
	assert scheduler.advance(100) == 1
	assert calls == ["once"]
	assert scheduler.advance(1000) == 0


def test_call_every_fires_once_per_interval_even_in_one_big_advance() -> None:
	scheduler = Scheduler()
	seen: list[int] = []
	scheduler.call_every(100, lambda: seen.append(scheduler.now_ms))

	assert scheduler.advance(350) == 3
	assert seen == [100, 200, 300]
	assert scheduler.now_ms == 350
	assert scheduler.advance(50) == 1
	assert seen[-1] == 400


def test_cancel_prevents_execution() -> None:
	scheduler = Scheduler()
	calls: list[str] = []
	task_id = scheduler.call_later(100, lambda: calls.append("never"))
	scheduler.cancel(task_id)

	assert scheduler.advance(200) == 0
	assert calls == []


def test_recurring_task_can_cancel_itself() -> None:
	scheduler = Scheduler()
	calls: list[int] = []

	def tick() -> None:
		calls.append(1)
		if len(calls) == 2:
			scheduler.cancel(task_id)

	task_id = scheduler.call_every(100, tick)
	scheduler.advance(1000)
	assert len(calls) == 2
	assert scheduler.queued_task_count == 0


def test_pause_freezes_clock_and_resume_continues() -> None:
	scheduler = Scheduler()
	calls: list[str] = []
	scheduler.call_later(100, lambda: calls.append("late"))
	scheduler.advance(50)
	scheduler.pause()

	assert scheduler.paused
	assert scheduler.advance(500) == 0
	assert scheduler.now_ms == 50
	assert calls == []

	scheduler.resume()
	assert scheduler.advance(50) == 1
	assert calls == ["late"]


def test_callback_that_pauses_stops_the_rest_of_the_advance() -> None:
	scheduler = Scheduler()
	calls: list[str] = []
	scheduler.call_later(100, lambda: (calls.append("first"), scheduler.pause()))
	scheduler.call_later(200, lambda: calls.append("second"))

	assert scheduler.advance(500) == 1
	assert calls == ["first"]
	assert scheduler.now_ms == 100


def test_validates_time_arguments() -> None:
	scheduler = Scheduler()
	with pytest.raises(ValueError):
		scheduler.call_later(-1, lambda: None)
	with pytest.raises(ValueError):
		scheduler.call_every(0, lambda: None)
	with pytest.raises(ValueError):
		scheduler.advance(-1)


def test_queued_task_count_tracks_active_tasks() -> None:
	scheduler = Scheduler()
	one_shot = scheduler.call_later(1000, lambda: None)
	repeating = scheduler.call_every(1000, lambda: None)
	assert scheduler.queued_task_count == 2

	scheduler.cancel(one_shot)
	assert scheduler.queued_task_count == 1

	scheduler.advance(1000)
	assert scheduler.queued_task_count == 1

	scheduler.cancel(repeating)
	assert scheduler.queued_task_count == 0
