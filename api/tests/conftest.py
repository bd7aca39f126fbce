import os
import random
import uuid
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")

from matchcore.config import DEFAULT_MATCH_CONFIG
from matchcore.domain import FEMALE, MALE, MatchConfig, MatchResult, MatchSet, User
from matchcore.errors import CompatibilityServiceError
from matchcore.services.compatibility import CompatibilityScore, MatchCompatibilityResult
from matchcore.services.context import MatchingContext
from matchcore.services.seeding import dummy_profile
from matchcore.stores.memory import MemoryDatabase, MemoryStore


class FrozenClock:
    def __init__(self, now: datetime | None = None):
        self.current = now or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeCompatibility:
    def __init__(self, total_score: float = 82.5, fail: bool = False):
        self.total_score = total_score
        self.fail = fail
        self.calls = []

    def qualify(self, request):
        self.calls.append(request)
        if self.fail:
            raise CompatibilityServiceError("compatibility service returned 503: unavailable")
        return MatchCompatibilityResult(
            personality_compatibility_score=CompatibilityScore(score=80, explanation="similar energy"),
            lifestyle_compatibility_score=CompatibilityScore(score=85, explanation="shared routines"),
            values_compatibility_score=CompatibilityScore(score=82.5, explanation="aligned goals"),
            total_score=self.total_score,
        )


def make_user(**overrides) -> User:
    values = {
        "id": str(uuid.uuid4()),
        "age": 30,
        "gender": MALE,
        "height": 178.0,
        "latitude": 1.3521,
        "longitude": 103.8198,
        "first_name": "Test",
        "is_active": True,
        "dating_preferences": [FEMALE],
    }
    values.update(overrides)
    return User(**values)


def make_config(**overrides) -> MatchConfig:
    values = {**DEFAULT_MATCH_CONFIG, "id": str(uuid.uuid4())}
    values.update(overrides)
    return MatchConfig.from_dict(values)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def memdb():
    return MemoryDatabase(lock_timeout=5)


@pytest.fixture
def compat():
    return FakeCompatibility()


@pytest.fixture
def ctx(clock, compat):
    return MatchingContext.from_store(MemoryStore(), compatibility=compat, clock=clock, batch_workers=4)


@pytest.fixture
def seed_config(ctx, memdb):
    def _seed(**overrides) -> MatchConfig:
        config = make_config(**overrides)
        with memdb() as db:
            ctx.configs.insert_config(db, config)
            db.commit()
        return config

    return _seed


@pytest.fixture
def add_users(ctx, memdb):
    def _add(*users: User, with_profiles: bool = True) -> list[User]:
        rng = random.Random(7)
        with memdb() as db:
            for user in users:
                ctx.users.insert_user(db, user)
                if with_profiles:
                    ctx.profiles.upsert_profile(db, user.id, dummy_profile(rng))
            db.commit()
        return list(users)

    return _add


@pytest.fixture
def visible_match(ctx, memdb, clock):
    """A MatchResult already approved and dropped between two new users."""

    def _create(**overrides) -> MatchResult:
        a = make_user(gender=MALE)
        b = make_user(gender=FEMALE, dating_preferences=[MALE])
        ms = MatchSet(id=str(uuid.uuid4()), name="test", number_of_participants=2, created_at=clock(), updated_at=clock())
        values = {
            "id": str(uuid.uuid4()),
            "match_set_id": ms.id,
            "initiator_user_id": min(a.id, b.id),
            "receiver_user_id": max(a.id, b.id),
            "is_approved": True,
            "is_dropped": True,
            "dropped_at": clock(),
            "created_at": clock(),
            "updated_at": clock(),
        }
        values.update(overrides)
        mr = MatchResult(**values)
        with memdb() as db:
            ctx.users.insert_user(db, a)
            ctx.users.insert_user(db, b)
            ctx.match_sets.insert_match_set(db, ms)
            ctx.match_results.insert_match_results(db, [mr])
            db.commit()
        return mr

    return _create
