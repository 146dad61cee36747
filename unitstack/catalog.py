from __future__ import annotations

import random
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import NAMESPACE_URL, UUID, uuid5

from unitstack.core.units import Unit

DEFAULT_KINDS: tuple[str, ...] = (
    "swift",
    "kotlin",
    "java",
    "python",
    "javascript",
    "typescript",
    "go",
    "rust",
    "ruby",
    "c",
    "cpp",
    "csharp",
)


def unit_id_for(kind: str) -> UUID:
    # Stable ids so a freshly seeded profile always exposes the same units.
    return uuid5(NAMESPACE_URL, f"unitstack:unit:{kind}")


def default_units() -> list[Unit]:
    return [Unit(id=unit_id_for(k), kind=k, level=0) for k in DEFAULT_KINDS]


@dataclass(frozen=True, slots=True)
class UnitCatalog:
    """Immutable set of units a session may draw from."""

    units: tuple[Unit, ...]

    def __post_init__(self) -> None:
        if len(self.units) < 2:
            raise ValueError("A catalog needs at least two units")
        ids = [u.id for u in self.units]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate unit id in catalog")

    @staticmethod
    def from_units(units: Iterable[Unit]) -> "UnitCatalog":
        return UnitCatalog(units=tuple(units))

    @staticmethod
    def default() -> "UnitCatalog":
        return UnitCatalog.from_units(default_units())

    def __len__(self) -> int:
        return len(self.units)

    def choose(self, rng: random.Random, *, exclude: set[UUID] | None = None) -> Unit | None:
        """Pick a unit uniformly, skipping ids in `exclude`. None when nothing is left."""

        excluded = exclude or set()
        candidates = [u for u in self.units if u.id not in excluded]
        if not candidates:
            return None
        return rng.choice(candidates)
