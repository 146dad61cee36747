from __future__ import annotations

import random

import pytest

from unitstack.api.models import Direction, OutcomeKind, SessionState
from unitstack.catalog import UnitCatalog, default_units
from unitstack.config import GameConfig
from unitstack.core.events import SessionEvent
from unitstack.fsm import InvalidTransition
from unitstack.session import GameSession


def _right(session: GameSession) -> Direction:
    head = session.queue.head
    assert head is not None
    return head.direction


def _wrong(session: GameSession) -> Direction:
    return Direction.left if _right(session) == Direction.right else Direction.right


def test_start_resets_clock_score_and_fills_window(catalog: UnitCatalog, config: GameConfig) -> None:
    session = GameSession(catalog=catalog, config=config, seed=1)
    assert session.state == SessionState.ready

    updates = session.start()

    assert session.state == SessionState.running
    assert session.remaining == config.total_ticks
    assert session.score == 0
    assert len(session.queue.window) == config.starting_count
    channels = [u.channel for u in updates]
    assert channels[0] == "state"
    assert channels.count("member") == config.starting_count
    assert "window" in channels and "clock" in channels


def test_five_correct_answers_one_tick_apart_levels_up(started: GameSession) -> None:
    for _ in range(5):
        started.answer(_right(started))
        started.tick()

    assert started.remaining == 25
    assert started.queue.capacity == 4
    assert len(started.queue.window) == 4
    assert started.state == SessionState.running


def test_wrong_answer_after_tick_ends_session_in_same_step(catalog: UnitCatalog) -> None:
    cfg = GameConfig(total_ticks=2, wrong_penalty=3, fever_streak=0)
    session = GameSession(catalog=catalog, config=cfg, seed=3)
    session.start()
    session.answer(_right(session))
    score_before = session.score

    session.tick()
    assert session.remaining == 1

    updates = session.answer(_wrong(session))

    assert session.remaining == 0
    assert session.state == SessionState.ended
    assert session.score == score_before
    assert [u.channel for u in updates][-2:] == ["state", "ended"]
    assert session.result is not None
    assert session.result.final_score == score_before


def test_wrong_answer_keeps_head_and_direction(started: GameSession) -> None:
    head = started.queue.head
    window = started.queue.window

    updates = started.answer(_wrong(started))

    assert started.queue.head == head
    assert started.queue.window == window
    assert started.remaining == started.total - started.config.wrong_penalty
    assert started.correct_streak == 0
    window_update = next(u for u in updates if u.channel == "window")
    assert window_update.window is not None
    assert window_update.window.outcome is not None
    assert window_update.window.outcome.kind == OutcomeKind.wrong


def test_correct_answer_scores_head_value_and_advances(started: GameSession) -> None:
    second = started.queue.window[1]
    expected = started.queue.current_head_unit_score()
    direction = _right(started)

    started.answer(direction)

    assert started.score == expected
    assert started.correct_streak == 1
    assert started.queue.head == second
    assert started.last_outcome is not None
    assert started.last_outcome.kind == OutcomeKind.correct
    assert started.last_outcome.direction == direction


def test_ticks_run_clock_down_to_end(started: GameSession) -> None:
    updates = started.tick(started.total + 10)

    assert started.remaining == 0
    assert started.state == SessionState.ended
    # One clock update per applied tick; extra ticks past zero are not applied.
    assert sum(1 for u in updates if u.channel == "clock") == started.total


def test_pause_then_resume_changes_nothing(started: GameSession) -> None:
    started.answer(_right(started))
    started.tick(3)
    before = (started.remaining, started.score, started.queue.window, started.queue.members)

    started.pause()
    assert started.state == SessionState.paused
    started.resume()

    assert started.state == SessionState.running
    assert (started.remaining, started.score, started.queue.window, started.queue.members) == before


def test_actions_while_paused_are_invalid(started: GameSession) -> None:
    started.pause()

    with pytest.raises(InvalidTransition):
        started.answer(Direction.left)
    with pytest.raises(InvalidTransition):
        started.tick()
    with pytest.raises(InvalidTransition):
        started.pause()


def test_apply_ignores_invalid_transitions(catalog: UnitCatalog, config: GameConfig) -> None:
    session = GameSession(catalog=catalog, config=config, seed=5)

    applied = session.apply(SessionEvent.now(type="PAUSE"))

    assert applied.rejected is True
    assert applied.updates == []
    assert session.state == SessionState.ready


def test_ended_session_rejects_everything(started: GameSession) -> None:
    started.tick(started.total)
    assert started.state == SessionState.ended
    frozen = started.to_view()

    for event in (
        SessionEvent.now(type="START"),
        SessionEvent.now(type="RESUME"),
        SessionEvent.now(type="PAUSE"),
        SessionEvent.now(type="TICK", payload={"count": 1}),
        SessionEvent.now(type="ANSWER", payload={"direction": "left"}),
    ):
        assert started.apply(event).rejected is True

    assert started.to_view() == frozen


def test_reward_is_score_divided_by_divisor(started: GameSession) -> None:
    for _ in range(3):
        started.answer(_right(started))
    started.tick(started.total)

    assert started.result is not None
    assert started.result.reward == started.score // started.config.reward_divisor


@pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
def test_random_play_keeps_invariants(catalog: UnitCatalog, config: GameConfig, seed: int) -> None:
    session = GameSession(catalog=catalog, config=config, seed=seed)
    session.start()
    rng = random.Random(seed)

    last_score = 0
    while session.state == SessionState.running:
        roll = rng.random()
        if roll < 0.3:
            session.tick()
        elif roll < 0.8:
            session.answer(_right(session))
        else:
            session.answer(_wrong(session))

        assert 0 <= session.remaining <= session.total
        assert session.score >= last_score
        last_score = session.score
        if session.state == SessionState.running:
            assert len(session.queue.window) == len(session.queue.members)

    assert session.state == SessionState.ended
    assert session.remaining == 0


def test_session_needs_enough_units_for_starting_window() -> None:
    small = UnitCatalog.from_units(default_units()[:2])

    with pytest.raises(ValueError, match="starting_count"):
        GameSession(catalog=small, config=GameConfig(starting_count=3, fever_streak=0), seed=1)


def test_start_reports_each_admitted_member_once(catalog: UnitCatalog, config: GameConfig) -> None:
    session = GameSession(catalog=catalog, config=config, seed=8)

    updates = session.start()

    announced = [u.member for u in updates if u.channel == "member"]
    assert tuple(announced) == session.queue.members
