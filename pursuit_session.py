import logging
import math
import random
from collections import namedtuple
from functools import partial

from pursuit_timers import Scheduler

logger = logging.getLogger(__name__)


# Entity kinds (also the sprite group names on the engine side)
PLAYER = "player"
PEDESTRIAN = "pedestrian"
POLICE = "police"
BULLET = "bullet"
POLICE_BULLET = "police_bullet"

# Scoring and escalation
HEAT_THRESHOLD = 5  # police start appearing after this many eliminations
SCORE_SHOT_PEDESTRIAN = 10
SCORE_RUN_OVER = 5
SCORE_POLICE_DOWN = 50

# Health and damage
PLAYER_START_HEALTH = 100
POLICE_START_HEALTH = 3
POLICE_BULLET_DAMAGE = 20
POLICE_CRASH_DAMAGE = 50

# Speeds in px/s (y grows downward)
PLAYER_SPEED = 300
PEDESTRIAN_SPEED = 100
POLICE_SPEED = 150
BULLET_SPEED = -400
POLICE_BULLET_SPEED = 300

# Timings in ms
PEDESTRIAN_SPAWN_MS = 2000
POLICE_FIRE_MS = 2000
BULLET_TTL_MS = 3000
POLICE_BULLET_TTL_MS = 5000

SPAWN_MARGIN = 20  # keep spawns this far inside the track edges
SPAWN_Y = -50  # just above the visible area
MUZZLE_OFFSET = 20  # player bullets leave from the car's nose

REASON_OFF_TRACK = "You drove off the track!"
REASON_SHOT_DOWN = "You were taken out by the police!"
REASON_CRASHED = "You crashed into the police!"


Controls = namedtuple("Controls", ["left", "right", "fire"], defaults=[False, False, False])


class Entity:
	def __init__(self, kind, x, y, vx=0.0, vy=0.0, health=None):
		self.kind = kind
		self.x = x
		self.y = y
		self.vx = vx
		self.vy = vy
		self.health = health
		self.alive = True
		# Scheduler task ids owned by this entity, cancelled on destroy
		self.timers = []

	def __repr__(self):
		return f"Entity({self.kind!r}, x={self.x:.0f}, y={self.y:.0f}, alive={self.alive})"


class SessionHooks:
	"""What the session asks of the engine. The default does nothing."""

	def on_spawn(self, entity):
		pass

	def on_destroy(self, entity):
		pass

	def on_hud(self, score, heat_level, player_health):
		pass

	def on_game_over(self, reason):
		pass


class GameSession:
	"""Score, heat and health state machine for one run.

	The engine reports timer ticks and overlaps to the session; the session
	mutates its state and reports spawns, destroys and HUD changes back through
	its hooks. Once the game is over every operation is a no-op.
	"""

	def __init__(self, track_left, track_right, player_x, player_y, scheduler=None, hooks=None, rng=None):
		self.track_left = track_left
		self.track_right = track_right
		self.scheduler = scheduler if scheduler is not None else Scheduler()
		self.hooks = hooks if hooks is not None else SessionHooks()
		self.rng = rng if rng is not None else random.Random()

		self.score = 0
		self.heat_level = 0
		self.heat_threshold = HEAT_THRESHOLD
		self.player_health = PLAYER_START_HEALTH
		self.can_fire = True
		self.game_over = False
		self.game_over_reason = ""

		self._active = {kind: [] for kind in (PLAYER, PEDESTRIAN, POLICE, BULLET, POLICE_BULLET)}

		self.player = self._spawn(PLAYER, player_x, player_y)
		self.scheduler.call_every(PEDESTRIAN_SPAWN_MS, self.on_pedestrian_spawn_timer)
		self._update_hud()

	@property
	def heat_threshold_reached(self) -> bool:
		return self.heat_level >= self.heat_threshold

	def active(self, kind):
		return list(self._active[kind])

	def count(self, kind) -> int:
		return len(self._active[kind])

	def update(self, controls):
		if self.game_over:
			return
		if controls.left:
			self.player.vx = -PLAYER_SPEED
		elif controls.right:
			self.player.vx = PLAYER_SPEED
		else:
			self.player.vx = 0

		# One bullet per press; held fire does not repeat
		if controls.fire and self.can_fire:
			self.fire_bullet()
			self.can_fire = False
		elif not controls.fire:
			self.can_fire = True

		self.tick()

	def tick(self):
		if self.game_over:
			return
		if self.player.x < self.track_left or self.player.x > self.track_right:
			self.end_game(REASON_OFF_TRACK)

	def on_pedestrian_spawn_timer(self):
		if self.game_over:
			return
		self._spawn(PEDESTRIAN, self._random_track_x(), SPAWN_Y, vy=PEDESTRIAN_SPEED)

	def spawn_police(self):
		if self.game_over:
			return None
		unit = self._spawn(POLICE, self._random_track_x(), SPAWN_Y, vy=POLICE_SPEED, health=POLICE_START_HEALTH)
		unit.timers.append(self.scheduler.call_every(POLICE_FIRE_MS, partial(self._police_fire, unit)))
		logger.info("police_spawned heat=%d active_police=%d", self.heat_level, self.count(POLICE))
		return unit

	def fire_bullet(self):
		if self.game_over:
			return None
		bullet = self._spawn(BULLET, self.player.x, self.player.y - MUZZLE_OFFSET, vy=BULLET_SPEED)
		bullet.timers.append(self.scheduler.call_later(BULLET_TTL_MS, partial(self.destroy, bullet)))
		return bullet

	def fire_police_bullet(self, x, y):
		if self.game_over:
			return None
		bullet = self._spawn(POLICE_BULLET, x, y, vy=POLICE_BULLET_SPEED)
		bullet.timers.append(self.scheduler.call_later(POLICE_BULLET_TTL_MS, partial(self.destroy, bullet)))
		return bullet

	def _police_fire(self, unit):
		if unit.alive:
			self.fire_police_bullet(unit.x, unit.y)

	def overlap_handlers(self):
		"""(kind_a, kind_b, handler) bindings; handler is called as handler(a, b)."""
		return (
			(BULLET, PEDESTRIAN, self.hit_pedestrian),
			(BULLET, POLICE, self.hit_police),
			(PLAYER, POLICE_BULLET, self._on_player_police_bullet),
			(PLAYER, PEDESTRIAN, self._on_player_pedestrian),
			(PLAYER, POLICE, self._on_player_police),
		)

	def hit_pedestrian(self, bullet, pedestrian):
		if self.game_over or not (bullet.alive and pedestrian.alive):
			return
		self.destroy(bullet)
		self.destroy(pedestrian)
		self.score += SCORE_SHOT_PEDESTRIAN
		self._add_heat()

	def run_over_pedestrian(self, pedestrian):
		if self.game_over or not pedestrian.alive:
			return
		self.destroy(pedestrian)
		self.score += SCORE_RUN_OVER
		self._add_heat()

	def hit_police(self, bullet, unit):
		if self.game_over or not (bullet.alive and unit.alive):
			return
		self.destroy(bullet)
		unit.health -= 1
		if unit.health <= 0:
			self.destroy(unit)
			self.score += SCORE_POLICE_DOWN
			self._update_hud()

	def player_hit(self, police_bullet):
		if self.game_over or not police_bullet.alive:
			return
		self.destroy(police_bullet)
		self.player_health -= POLICE_BULLET_DAMAGE
		self._update_hud()
		if self.player_health <= 0:
			self.end_game(REASON_SHOT_DOWN)

	def player_collide_police(self, unit):
		if self.game_over or not unit.alive:
			return
		self.destroy(unit)
		self.player_health -= POLICE_CRASH_DAMAGE
		self._update_hud()
		if self.player_health <= 0:
			self.end_game(REASON_CRASHED)

	def _on_player_police_bullet(self, player, police_bullet):
		self.player_hit(police_bullet)

	def _on_player_pedestrian(self, player, pedestrian):
		self.run_over_pedestrian(pedestrian)

	def _on_player_police(self, player, unit):
		self.player_collide_police(unit)

	def destroy(self, entity):
		if not entity.alive:
			return
		entity.alive = False
		for task_id in entity.timers:
			self.scheduler.cancel(task_id)
		entity.timers.clear()
		self._active[entity.kind].remove(entity)
		logger.debug("destroyed %r", entity)
		self.hooks.on_destroy(entity)

	def end_game(self, reason):
		if self.game_over:
			return
		self.game_over = True
		self.game_over_reason = reason
		self.player.vx = 0
		self.scheduler.pause()
		logger.info("game_over reason=%r score=%d heat=%d", reason, self.score, self.heat_level)
		self.hooks.on_game_over(reason)

	def _spawn(self, kind, x, y, vy=0.0, health=None):
		entity = Entity(kind, x, y, vy=vy, health=health)
		self._active[kind].append(entity)
		logger.debug("spawned %r", entity)
		self.hooks.on_spawn(entity)
		return entity

	def _add_heat(self):
		self.heat_level += 1
		self._update_hud()
		# Re-checked on every elimination: each kill past the threshold brings another unit
		if self.heat_threshold_reached:
			self.spawn_police()

	def _random_track_x(self):
		low = math.ceil(self.track_left + SPAWN_MARGIN)
		high = math.floor(self.track_right - SPAWN_MARGIN)
		return self.rng.randint(low, high)

	def _update_hud(self):
		self.hooks.on_hud(self.score, self.heat_level, self.player_health)
