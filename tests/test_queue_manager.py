from __future__ import annotations

import random

import pytest

from unitstack.api.models import Direction
from unitstack.catalog import UnitCatalog, default_units
from unitstack.config import GameConfig
from unitstack.queue_manager import UnitQueueManager


def _manager(config: GameConfig, seed: int = 7, catalog: UnitCatalog | None = None) -> UnitQueueManager:
    return UnitQueueManager(catalog=catalog or UnitCatalog.default(), config=config, rng=random.Random(seed))


def test_startings_fills_members_and_window_to_starting_count(config: GameConfig) -> None:
    qm = _manager(config)
    admitted = qm.startings()
    window = qm.window

    assert admitted == qm.members
    assert len(qm.members) == config.starting_count
    assert len(window) == config.starting_count
    # Already full: a second call admits nobody.
    assert qm.startings() == ()
    assert qm.head == window[0]

    # Every window entry is drawn from a member and carries that member's side.
    member_sides = {m.unit.id: m.direction for m in qm.members}
    for q in window:
        assert member_sides[q.unit.id] == q.direction


def test_members_are_distinct_kinds_with_contiguous_orders_per_side(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()

    kinds = [m.unit.kind for m in qm.members]
    assert len(set(kinds)) == len(kinds)

    for direction in Direction:
        orders = [m.order for m in qm.side(direction)]
        assert orders == list(range(len(orders)))


def test_new_member_is_noop_at_capacity(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()

    assert qm.new_member() is None
    assert len(qm.members) == config.starting_count


def test_is_move_action_correct_is_a_pure_predicate(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()
    head = qm.head
    assert head is not None
    before = qm.window

    assert qm.is_move_action_correct(head.direction) is True
    other = Direction.left if head.direction == Direction.right else Direction.right
    assert qm.is_move_action_correct(other) is False
    assert qm.window == before


def test_remove_and_refilled_keeps_window_size(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()

    for _ in range(25):
        second = qm.window[1]
        window = qm.remove_and_refilled()
        assert len(window) == config.starting_count
        # The old second unit is now the head.
        assert window[0] == second


def test_level_up_is_edge_triggered(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()

    results = []
    for _ in range(config.level_up_threshold * 2):
        qm.raise_answer_count()
        results.append(qm.is_time_to_level_up())

    assert results.count(True) == 2
    assert results[config.level_up_threshold - 1] is True
    assert results[-1] is True
    assert qm.capacity == config.starting_count + 2


def test_level_up_grows_window_by_exactly_one(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()

    for _ in range(config.level_up_threshold):
        qm.raise_answer_count()
    assert qm.is_time_to_level_up() is True
    assert qm.new_member() is not None

    window = qm.remove_and_refilled()
    assert len(window) == config.starting_count + 1
    assert len(qm.members) == config.starting_count + 1


def test_level_up_stops_at_max_count() -> None:
    cfg = GameConfig(starting_count=2, max_count=3, level_up_threshold=1, fever_streak=0)
    qm = _manager(cfg)
    qm.startings()

    qm.raise_answer_count()
    assert qm.is_time_to_level_up() is True
    qm.raise_answer_count()
    assert qm.is_time_to_level_up() is False
    assert qm.capacity == 3


def test_level_up_stops_when_catalog_is_used_up() -> None:
    cfg = GameConfig(starting_count=3, max_count=6, level_up_threshold=1, fever_streak=0)
    small = UnitCatalog.from_units(default_units()[:4])
    qm = _manager(cfg, catalog=small)
    qm.startings()

    grown = 0
    for _ in range(3):
        qm.raise_answer_count()
        if qm.is_time_to_level_up():
            assert qm.new_member() is not None
            grown += 1
        qm.remove_and_refilled()

    assert grown == 1
    assert qm.capacity == 4
    assert len(qm.window) == len(qm.members) == 4


def test_catalog_smaller_than_starting_count_is_rejected() -> None:
    cfg = GameConfig(starting_count=3, fever_streak=0)
    with pytest.raises(ValueError, match="starting_count"):
        _manager(cfg, catalog=UnitCatalog.from_units(default_units()[:2]))


def test_head_score_uses_unit_level(config: GameConfig) -> None:
    leveled = [u.leveled_up().leveled_up() for u in default_units()]
    qm = _manager(config, catalog=UnitCatalog.from_units(leveled))
    qm.startings()

    assert qm.current_head_unit_score() == config.base_points + 2 * config.level_points


def test_empty_window_has_no_head_score(config: GameConfig) -> None:
    qm = _manager(config)

    assert qm.current_head_unit_score() is None
    assert qm.is_move_action_correct(Direction.left) is False
    assert qm.remove_and_refilled() == ()


def test_reset_all_is_idempotent(config: GameConfig) -> None:
    qm = _manager(config)
    qm.startings()
    qm.raise_answer_count()

    qm.reset_all()
    qm.reset_all()

    assert qm.window == ()
    assert qm.members == ()
    assert qm.capacity == config.starting_count


def test_same_seed_gives_same_window(config: GameConfig) -> None:
    a = _manager(config, seed=99)
    b = _manager(config, seed=99)
    assert a.startings() == b.startings()
    assert a.window == b.window


def test_catalog_requires_two_units() -> None:
    with pytest.raises(ValueError):
        UnitCatalog.from_units(default_units()[:1])
