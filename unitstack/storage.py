from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import UUID

import redis

from unitstack.catalog import default_units
from unitstack.core.units import SessionResult, Unit
from unitstack.lock import profile_lock

PROFILE_KEY_PREFIX = "unitstack:profile:"  # + {profile_id}:{field}
PROFILES_SET_KEY = "unitstack:profiles"


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _key(profile_id: str, name: str) -> str:
    return f"{PROFILE_KEY_PREFIX}{profile_id}:{name}"


def level_up_cost(unit: Unit) -> int:
    return (unit.level + 1) * 100


def _unit_to_json(unit: Unit) -> str:
    return json.dumps({"id": str(unit.id), "kind": unit.kind, "level": unit.level})


def _unit_from_json(raw: str) -> Unit:
    data = json.loads(raw)
    return Unit(id=UUID(data["id"]), kind=str(data["kind"]), level=int(data["level"]))


class RedisProfileStore:
    """Redis-backed storage collaborator for one player profile.

    Keys:
      - `...:{profile}:money`       integer
      - `...:{profile}:high_score`  integer
      - `...:{profile}:units`       hash of unit id -> unit JSON
      - `...:{profile}:unit_order`  list of unit ids (catalog order)
      - `...:{profile}:results`     stream of finished sessions
    """

    def __init__(self, *, r: redis.Redis, profile_id: str) -> None:
        if not profile_id:
            raise ValueError("profile_id is required")
        self.r = r
        self.profile_id = profile_id

    # -- session-end capability ---------------------------------------------

    def record_reward(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("reward must be >= 0")
        total = self.r.incrby(_key(self.profile_id, "money"), amount)
        self.r.sadd(PROFILES_SET_KEY, self.profile_id)
        return int(total)

    def record_high_score(self, candidate: int) -> bool:
        """Raise the stored high score to `candidate` if it is higher.

        Optimistic WATCH/MULTI max-set, retried on concurrent writes. Does not
        take `profile_lock`.
        """

        key = _key(self.profile_id, "high_score")

        def _max_set(pipe: redis.client.Pipeline) -> bool:
            raw = pipe.get(key)
            current = int(raw) if raw else 0
            pipe.multi()
            if candidate <= current:
                return False
            pipe.set(key, candidate)
            return True

        return bool(self.r.transaction(_max_set, key, value_from_callable=True))

    def current_catalog(self) -> list[Unit]:
        """Units owned by the profile, seeding the stock catalog on first use."""

        self._ensure_seeded()
        order = self.r.lrange(_key(self.profile_id, "unit_order"), 0, -1)
        raw = self.r.hgetall(_key(self.profile_id, "units"))
        return [_unit_from_json(raw[uid]) for uid in order if uid in raw]

    # -- profile -------------------------------------------------------------

    def available_money(self) -> int:
        raw = self.r.get(_key(self.profile_id, "money"))
        return int(raw) if raw else 0

    def high_score(self) -> int:
        raw = self.r.get(_key(self.profile_id, "high_score"))
        return int(raw) if raw else 0

    def raise_level(self, unit_id: UUID) -> Unit:
        """Spend money to upgrade a unit; the stored Unit is replaced by a new value."""

        self._ensure_seeded()
        with profile_lock(r=self.r, profile_id=self.profile_id):
            units_key = _key(self.profile_id, "units")
            raw = self.r.hget(units_key, str(unit_id))
            if not raw:
                raise ValueError("Unit not found")
            unit = _unit_from_json(raw)

            cost = level_up_cost(unit)
            money = self.available_money()
            if money < cost:
                raise ValueError(f"Not enough money: need {cost}, have {money}")

            upgraded = unit.leveled_up()
            self.r.hset(units_key, str(unit_id), _unit_to_json(upgraded))
            self.r.decrby(_key(self.profile_id, "money"), cost)
            return upgraded

    def record_result(self, *, session_id: UUID, result: SessionResult, is_new_high_score: bool | None) -> str:
        stream_id = self.r.xadd(
            _key(self.profile_id, "results"),
            {
                "session_id": str(session_id),
                "final_score": str(result.final_score),
                "reward": str(result.reward),
                "seed": str(result.seed),
                "new_high_score": "1" if is_new_high_score else "0",
                "ts": _now().isoformat(),
            },
        )
        return str(stream_id)

    def recent_results(self, *, count: int = 20) -> list[dict[str, str]]:
        entries = self.r.xrevrange(_key(self.profile_id, "results"), count=count)
        return [dict(fields) for _, fields in entries]

    def _ensure_seeded(self) -> None:
        order_key = _key(self.profile_id, "unit_order")
        if self.r.exists(order_key):
            return
        units = default_units()
        pipe = self.r.pipeline()
        pipe.hset(_key(self.profile_id, "units"), mapping={str(u.id): _unit_to_json(u) for u in units})
        pipe.rpush(order_key, *[str(u.id) for u in units])
        pipe.sadd(PROFILES_SET_KEY, self.profile_id)
        pipe.execute()


def list_profiles(*, r: redis.Redis) -> list[str]:
    return sorted(r.smembers(PROFILES_SET_KEY))
