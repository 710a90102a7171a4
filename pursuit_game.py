import logging
import os
import random
import sys
from dataclasses import dataclass

import pygame

from pursuit_session import (
	BULLET,
	PEDESTRIAN,
	PLAYER,
	POLICE,
	POLICE_BULLET,
	SPAWN_MARGIN,
	Controls,
	GameSession,
	SessionHooks,
)
from pursuit_timers import Scheduler

logger = logging.getLogger(__name__)


WIDTH, HEIGHT = 800, 600
FPS = 60
TRACK_WIDTH = 400
PLAYER_START_OFFSET = 100  # player car sits this far above the bottom edge
CULL_MARGIN = 100  # entities this far past the screen edge are dropped


WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
RED = (220, 30, 30)
DK_GREEN = (0, 80, 0)
YELLOW = (255, 215, 0)
BLUE = (40, 120, 255)
ORANGE = (255, 140, 0)
GRAY = (200, 200, 200)
BACKGROUND = (51, 51, 51)
ROAD = (40, 40, 48)

# Collision boxes (w, h) per entity kind
SPRITE_SIZES = {
	PLAYER: (50, 50),
	PEDESTRIAN: (40, 40),
	POLICE: (50, 50),
	BULLET: (8, 20),
	POLICE_BULLET: (20, 20),
}

# Optional PNG sprites, looked up in the asset dir
ASSET_FILES = {
	"track": "track.png",
	PLAYER: "car.png",
	PEDESTRIAN: "pedestrian.png",
	POLICE: "police.png",
	BULLET: "bullet.png",
	POLICE_BULLET: "police_bullet.png",
}

# Simple cache for scaled PNGs keyed by (image_id, w, h)
_IMG_SCALE_CACHE = {}


@dataclass(frozen=True)
class GameConfig:
	width: int = WIDTH
	height: int = HEIGHT
	fps: int = FPS
	track_width: int = TRACK_WIDTH
	fullscreen: bool = False
	seed: int | None = None
	asset_dir: str = os.path.join(os.path.dirname(os.path.abspath(__file__)), "assets")

	@property
	def track_left(self):
		return self.width / 2 - self.track_width / 2

	@property
	def track_right(self):
		return self.width / 2 + self.track_width / 2


def _env_int(environ, name, default):
	raw = environ.get(name, "").strip()
	if not raw:
		return default
	try:
		return int(raw)
	except ValueError:
		raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(environ, name, default):
	raw = environ.get(name, "").strip().lower()
	if not raw:
		return default
	return raw in ("1", "true", "yes", "on")


def config_from_env(environ=None):
	"""Build the game config from PURSUIT_* environment variables."""
	if environ is None:
		environ = os.environ
	defaults = GameConfig()
	config = GameConfig(
		width=_env_int(environ, "PURSUIT_WIDTH", defaults.width),
		height=_env_int(environ, "PURSUIT_HEIGHT", defaults.height),
		fps=_env_int(environ, "PURSUIT_FPS", defaults.fps),
		track_width=_env_int(environ, "PURSUIT_TRACK_WIDTH", defaults.track_width),
		fullscreen=_env_bool(environ, "PURSUIT_FULLSCREEN", defaults.fullscreen),
		seed=_env_int(environ, "PURSUIT_SEED", None),
		asset_dir=environ.get("PURSUIT_ASSET_DIR", "").strip() or defaults.asset_dir,
	)
	if config.width <= 0 or config.height <= 0 or config.fps <= 0:
		raise ValueError("PURSUIT_WIDTH, PURSUIT_HEIGHT and PURSUIT_FPS must be positive")
	# Pedestrians need room to spawn between the margins
	if not 2 * SPAWN_MARGIN < config.track_width <= config.width:
		raise ValueError(f"PURSUIT_TRACK_WIDTH must be in ({2 * SPAWN_MARGIN}, {config.width}]")
	return config


def setup_logging():
	level_name = os.getenv("PURSUIT_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper()
	logging.basicConfig(
		level=getattr(logging, level_name, logging.INFO),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)


def load_optional_image(path: str):
	if not os.path.isfile(path):
		return None
	try:
		return pygame.image.load(path).convert_alpha()
	except (pygame.error, OSError) as exc:
		logger.warning("Falling back to vector sprite for %s: %s", path, exc)
		return None


def load_images(asset_dir):
	images = {}
	for key, filename in ASSET_FILES.items():
		img = load_optional_image(os.path.join(asset_dir, filename))
		if img is not None:
			images[key] = img
	logger.info("sprites_loaded count=%d dir=%s", len(images), asset_dir)
	return images


class EntitySprite(pygame.sprite.Sprite):
	def __init__(self, entity):
		super().__init__()
		self.entity = entity
		w, h = SPRITE_SIZES[entity.kind]
		self.rect = pygame.Rect(0, 0, w, h)
		self.sync()

	def sync(self):
		self.rect.center = (round(self.entity.x), round(self.entity.y))


class PygameEngine(SessionHooks):
	"""Sprite groups, movement and overlap detection for a GameSession."""

	def __init__(self, config):
		self.config = config
		self.groups = {kind: pygame.sprite.Group() for kind in SPRITE_SIZES}
		self._sprites = {}
		self.hud_lines = []
		self.game_over_reason = ""

	def on_spawn(self, entity):
		sprite = EntitySprite(entity)
		self._sprites[entity] = sprite
		self.groups[entity.kind].add(sprite)

	def on_destroy(self, entity):
		sprite = self._sprites.pop(entity, None)
		if sprite is not None:
			sprite.kill()

	def on_hud(self, score, heat_level, player_health):
		self.hud_lines = [f"Score: {score}", f"Heat: {heat_level}", f"Health: {player_health}"]

	def on_game_over(self, reason):
		self.game_over_reason = reason

	def sprite_for(self, entity):
		return self._sprites.get(entity)

	def step(self, session, dt_ms):
		"""Move every entity by its velocity and drop the ones far off screen."""
		if session.game_over:
			return
		dt = dt_ms / 1000.0
		for sprite in list(self._sprites.values()):
			entity = sprite.entity
			entity.x += entity.vx * dt
			entity.y += entity.vy * dt
			sprite.sync()
			if entity.kind != PLAYER and self._off_screen(entity):
				session.destroy(entity)

	def resolve_overlaps(self, session):
		for kind_a, kind_b, handler in session.overlap_handlers():
			if session.game_over:
				return
			if kind_a == PLAYER:
				player_sprite = self._sprites.get(session.player)
				if player_sprite is None:
					continue
				for hit in pygame.sprite.spritecollide(player_sprite, self.groups[kind_b], False):
					handler(session.player, hit.entity)
			else:
				collided = pygame.sprite.groupcollide(self.groups[kind_a], self.groups[kind_b], False, False)
				for sprite_a, hits in collided.items():
					for sprite_b in hits:
						handler(sprite_a.entity, sprite_b.entity)

	def _off_screen(self, entity):
		return entity.y > self.config.height + CULL_MARGIN or entity.y < -CULL_MARGIN


def read_controls(keys):
	return Controls(
		left=bool(keys[pygame.K_LEFT]),
		right=bool(keys[pygame.K_RIGHT]),
		fire=bool(keys[pygame.K_SPACE]),
	)


def new_game(config):
	scheduler = Scheduler()
	engine = PygameEngine(config)
	rng = random.Random(config.seed)
	session = GameSession(
		config.track_left,
		config.track_right,
		config.width / 2,
		config.height - PLAYER_START_OFFSET,
		scheduler=scheduler,
		hooks=engine,
		rng=rng,
	)
	logger.info("new_game track=(%.0f, %.0f) seed=%s", config.track_left, config.track_right, config.seed)
	return engine, session


def _scaled(img, w, h):
	cache_key = (id(img), int(w), int(h))
	scaled = _IMG_SCALE_CACHE.get(cache_key)
	if scaled is None:
		scaled = pygame.transform.smoothscale(img, (int(w), int(h)))
		_IMG_SCALE_CACHE[cache_key] = scaled
		if len(_IMG_SCALE_CACHE) > 128:
			_IMG_SCALE_CACHE.clear()
	return scaled


def draw_track(surface, config, scroll, img=None):
	surface.fill(BACKGROUND)
	left = int(config.track_left)
	width = int(config.track_width)
	if img is not None:
		surface.blit(_scaled(img, width, config.height), (left, 0))
		return
	# Grass verges either side of the road
	verge = 24
	pygame.draw.rect(surface, DK_GREEN, (left - verge, 0, verge, config.height))
	pygame.draw.rect(surface, DK_GREEN, (left + width, 0, verge, config.height))
	pygame.draw.rect(surface, ROAD, (left, 0, width, config.height))
	# Edge lines
	pygame.draw.line(surface, WHITE, (left + 4, 0), (left + 4, config.height), width=3)
	pygame.draw.line(surface, WHITE, (left + width - 5, 0), (left + width - 5, config.height), width=3)
	# Dashed lane markings, scrolling toward the player
	dash_h = 40
	gap = 30
	period = dash_h + gap
	offset = int(scroll) % period
	for lane in (1, 2):
		x = left + width * lane // 3
		for y in range(-period + offset, config.height, period):
			pygame.draw.rect(surface, (230, 230, 230), (x - 3, y, 6, dash_h), border_radius=3)


def draw_car(surface, rect, color_body, img=None, siren=False):
	if img is not None:
		surface.blit(_scaled(img, rect.width, rect.height), rect.topleft)
		return
	# Shadow
	shadow = rect.move(3, 4)
	pygame.draw.rect(surface, (20, 20, 24), shadow, border_radius=8)
	pygame.draw.rect(surface, color_body, rect, border_radius=8)
	# Windshield highlight
	w = rect.inflate(-int(rect.width * 0.4), -int(rect.height * 0.6))
	if w.height > 0 and w.width > 0:
		pygame.draw.rect(surface, (230, 230, 230), w, border_radius=4)
	if siren:
		bar = pygame.Rect(rect.x + 6, rect.centery - 3, rect.width - 12, 6)
		pygame.draw.rect(surface, RED, bar.inflate(-bar.width // 2, 0).move(-bar.width // 4, 0))
		pygame.draw.rect(surface, BLUE, bar.inflate(-bar.width // 2, 0).move(bar.width // 4, 0))


def draw_pedestrian(surface, rect, img=None):
	if img is not None:
		surface.blit(_scaled(img, rect.width, rect.height), rect.topleft)
		return
	head_r = max(4, rect.width // 6)
	head = (rect.centerx, rect.top + head_r + 2)
	pygame.draw.circle(surface, (240, 200, 160), head, head_r)
	body = pygame.Rect(0, 0, rect.width // 3, rect.height // 2)
	body.midtop = (rect.centerx, head[1] + head_r)
	pygame.draw.rect(surface, ORANGE, body, border_radius=4)
	# Legs
	pygame.draw.line(surface, BLACK, (body.left + 3, body.bottom), (body.left, rect.bottom), width=3)
	pygame.draw.line(surface, BLACK, (body.right - 3, body.bottom), (body.right, rect.bottom), width=3)


def draw_bullet(surface, rect, color, img=None):
	if img is not None:
		surface.blit(_scaled(img, rect.width, rect.height), rect.topleft)
		return
	pygame.draw.ellipse(surface, color, rect)


def draw_hud(surface, lines, font):
	for i, line in enumerate(lines):
		surface.blit(font.render(line, True, WHITE), (20, 20 + 30 * i))


def show_center_text(screen, text, color, font, offset_y=0):
	msg = font.render(text, True, color)
	rect = msg.get_rect(center=(screen.get_width() // 2, screen.get_height() // 2 + offset_y))
	screen.blit(msg, rect)


def draw_world(screen, engine, session, images, fonts, scroll):
	font_big, font_small = fonts
	draw_track(screen, engine.config, scroll, images.get("track"))

	for sprite in engine.groups[PEDESTRIAN]:
		draw_pedestrian(screen, sprite.rect, images.get(PEDESTRIAN))
	for sprite in engine.groups[POLICE]:
		draw_car(screen, sprite.rect, (30, 30, 60), images.get(POLICE), siren=True)
	for sprite in engine.groups[BULLET]:
		draw_bullet(screen, sprite.rect, YELLOW, images.get(BULLET))
	for sprite in engine.groups[POLICE_BULLET]:
		draw_bullet(screen, sprite.rect, RED, images.get(POLICE_BULLET))
	for sprite in engine.groups[PLAYER]:
		draw_car(screen, sprite.rect, (180, 30, 30), images.get(PLAYER))

	draw_hud(screen, engine.hud_lines, font_small)
	controls_text = "Arrows: steer  Space: fire  X: restart  ESC: quit"
	screen.blit(font_small.render(controls_text, True, GRAY), (20, screen.get_height() - 34))

	if session.game_over:
		show_center_text(screen, "GAME OVER", RED, font_big, offset_y=-28)
		show_center_text(screen, engine.game_over_reason, RED, font_big, offset_y=28)
		show_center_text(screen, "Press X to restart", WHITE, font_small, offset_y=80)


def main():
	setup_logging()
	config = config_from_env()

	pygame.init()
	if config.fullscreen:
		screen = pygame.display.set_mode((config.width, config.height), pygame.FULLSCREEN | pygame.SCALED)
	else:
		screen = pygame.display.set_mode((config.width, config.height))
	pygame.display.set_caption("Heat Pursuit")
	clock = pygame.time.Clock()

	font_big = pygame.font.SysFont(None, 48)
	font_small = pygame.font.SysFont(None, 28)
	images = load_images(config.asset_dir)

	engine, session = new_game(config)
	road_scroll = 0.0

	running = True
	while running:
		dt = clock.tick(config.fps)

		for event in pygame.event.get():
			if event.type == pygame.QUIT:
				running = False
			elif event.type == pygame.KEYDOWN:
				if event.key == pygame.K_ESCAPE:
					running = False
				elif event.key == pygame.K_x:
					_IMG_SCALE_CACHE.clear()
					engine, session = new_game(config)
					road_scroll = 0.0

		# Input, then movement, timers and overlaps; all stop once the game is over
		session.update(read_controls(pygame.key.get_pressed()))
		engine.step(session, dt)
		session.scheduler.advance(dt)
		engine.resolve_overlaps(session)

		if not session.game_over:
			road_scroll += 120 * (dt / 1000.0)

		draw_world(screen, engine, session, images, (font_big, font_small), road_scroll)
		pygame.display.flip()

	pygame.quit()
	sys.exit(0)


if __name__ == "__main__":
	main()
