from __future__ import annotations

import os
from dataclasses import dataclass, fields


@dataclass(frozen=True, slots=True)
class GameConfig:
    """Tunable game constants. Durations are whole ticks, never floats."""

    total_ticks: int = 60
    # Wall-clock length of one tick (only the session loop's timer uses it).
    tick_seconds: float = 1.0

    starting_count: int = 3
    max_count: int = 8

    wrong_penalty: int = 3
    level_up_threshold: int = 10

    base_points: int = 10
    level_points: int = 5
    reward_divisor: int = 10

    # 0 disables fever mode.
    fever_streak: int = 20
    fever_ticks: int = 5
    fever_multiplier: int = 2

    def __post_init__(self) -> None:
        if self.total_ticks <= 0:
            raise ValueError("total_ticks must be > 0")
        if self.tick_seconds <= 0:
            raise ValueError("tick_seconds must be > 0")
        if self.starting_count < 1:
            raise ValueError("starting_count must be >= 1")
        if self.max_count < self.starting_count:
            raise ValueError("max_count must be >= starting_count")
        if self.wrong_penalty < 0:
            raise ValueError("wrong_penalty must be >= 0")
        if self.level_up_threshold < 1:
            raise ValueError("level_up_threshold must be >= 1")
        if self.base_points < 0 or self.level_points < 0:
            raise ValueError("points must be >= 0")
        if self.reward_divisor < 1:
            raise ValueError("reward_divisor must be >= 1")
        if self.fever_streak < 0:
            raise ValueError("fever_streak must be >= 0")
        if self.fever_streak and (self.fever_ticks < 1 or self.fever_multiplier < 1):
            raise ValueError("fever_ticks and fever_multiplier must be >= 1 when fever is enabled")

    @property
    def fever_enabled(self) -> bool:
        return self.fever_streak > 0


ENV_PREFIX = "UNITSTACK_"


def config_from_env(*, environ: dict[str, str] | None = None) -> GameConfig:
    """Build a GameConfig, letting `UNITSTACK_<FIELD>` variables override defaults.

    e.g. UNITSTACK_TOTAL_TICKS=30 UNITSTACK_WRONG_PENALTY=5
    """

    env = os.environ if environ is None else environ
    overrides: dict[str, object] = {}
    for f in fields(GameConfig):
        raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
        if raw is None or raw == "":
            continue
        try:
            overrides[f.name] = float(raw) if f.name == "tick_seconds" else int(raw)
        except ValueError as e:
            raise ValueError(f"{ENV_PREFIX}{f.name.upper()} must be a number, got {raw!r}") from e
    return GameConfig(**overrides)  # type: ignore[arg-type]
