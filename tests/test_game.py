from __future__ import annotations

from collections import defaultdict

import pygame
import pytest

from pursuit_game import CULL_MARGIN, GameConfig, config_from_env, new_game, read_controls
from pursuit_session import BULLET, PEDESTRIAN, PLAYER, POLICE, REASON_CRASHED


def _game():
	return new_game(GameConfig(seed=3))


def _place(engine, session, entity, x, y) -> None:
	entity.x = x
	entity.y = y
	engine.step(session, 0)


def test_config_defaults_without_environment() -> None:
	config = config_from_env({})
	assert (config.width, config.height, config.fps) == (800, 600, 60)
	assert (config.track_left, config.track_right) == (200, 600)
	assert not config.fullscreen
	assert config.seed is None
	assert config.asset_dir.endswith("assets")


def test_config_reads_overrides() -> None:
	config = config_from_env(
		{
			"PURSUIT_WIDTH": "1024",
			"PURSUIT_HEIGHT": "768",
			"PURSUIT_TRACK_WIDTH": "512",
			"PURSUIT_FULLSCREEN": "yes",
			"PURSUIT_SEED": "42",
			"PURSUIT_ASSET_DIR": "/tmp/sprites",
		}
	)
	assert (config.width, config.height) == (1024, 768)
	assert (config.track_left, config.track_right) == (256, 768)
	assert config.fullscreen
	assert config.seed == 42
	assert config.asset_dir == "/tmp/sprites"


@pytest.mark.parametrize(
	"environ",
	[
		{"PURSUIT_WIDTH": "wide"},
		{"PURSUIT_FPS": "0"},
		{"PURSUIT_TRACK_WIDTH": "30"},
		{"PURSUIT_TRACK_WIDTH": "900"},
	],
)
def test_config_rejects_bad_values(environ) -> None:
	with pytest.raises(ValueError):
		config_from_env(environ)


def test_read_controls_maps_arrows_and_space() -> None:
	keys = defaultdict(bool, {pygame.K_LEFT: True, pygame.K_SPACE: True})
	controls = read_controls(keys)
	assert controls.left
	assert not controls.right
	assert controls.fire


def test_new_game_places_player_car_near_the_bottom() -> None:
	engine, session = _game()
	assert (session.player.x, session.player.y) == (400, 500)
	assert len(engine.groups[PLAYER]) == 1
	assert engine.hud_lines == ["Score: 0", "Heat: 0", "Health: 100"]


def test_sprites_follow_spawns_and_destroys() -> None:
	engine, session = _game()
	session.on_pedestrian_spawn_timer()
	pedestrian = session.active(PEDESTRIAN)[0]
	sprite = engine.sprite_for(pedestrian)
	assert sprite in engine.groups[PEDESTRIAN]

	session.destroy(pedestrian)
	assert engine.sprite_for(pedestrian) is None
	assert len(engine.groups[PEDESTRIAN]) == 0
	assert not sprite.alive()


def test_step_moves_entities_by_velocity() -> None:
	engine, session = _game()
	session.player.vx = 300
	session.on_pedestrian_spawn_timer()
	pedestrian = session.active(PEDESTRIAN)[0]

	engine.step(session, 100)
	assert session.player.x == pytest.approx(430)
	assert pedestrian.y == pytest.approx(-40)
	assert engine.sprite_for(session.player).rect.center == (430, 500)


def test_step_culls_entities_far_off_screen() -> None:
	engine, session = _game()
	bullet = session.fire_bullet()
	_place(engine, session, bullet, 400, -CULL_MARGIN - 1)

	assert not bullet.alive
	assert len(engine.groups[BULLET]) == 0
	assert session.player.alive


def test_bullet_overlapping_pedestrian_scores_a_kill() -> None:
	engine, session = _game()
	session.on_pedestrian_spawn_timer()
	pedestrian = session.active(PEDESTRIAN)[0]
	bullet = session.fire_bullet()
	_place(engine, session, pedestrian, 300, 200)
	_place(engine, session, bullet, 300, 205)

	engine.resolve_overlaps(session)
	assert session.score == 10
	assert session.heat_level == 1
	assert len(engine.groups[PEDESTRIAN]) == 0
	assert len(engine.groups[BULLET]) == 0
	assert engine.hud_lines[0] == "Score: 10"


def test_player_overlapping_pedestrian_runs_it_over() -> None:
	engine, session = _game()
	session.on_pedestrian_spawn_timer()
	pedestrian = session.active(PEDESTRIAN)[0]
	_place(engine, session, pedestrian, session.player.x + 10, session.player.y)

	engine.resolve_overlaps(session)
	assert session.score == 5
	assert not pedestrian.alive


def test_crashing_into_two_police_units_ends_the_game() -> None:
	engine, session = _game()
	for unit in (session.spawn_police(), session.spawn_police()):
		_place(engine, session, unit, session.player.x, session.player.y - 5)

	engine.resolve_overlaps(session)
	assert session.game_over
	assert engine.game_over_reason == REASON_CRASHED
	assert len(engine.groups[POLICE]) == 0


def test_step_does_nothing_after_game_over() -> None:
	engine, session = _game()
	session.on_pedestrian_spawn_timer()
	pedestrian = session.active(PEDESTRIAN)[0]
	session.end_game("stopped")

	engine.step(session, 1000)
	assert pedestrian.y == -50
