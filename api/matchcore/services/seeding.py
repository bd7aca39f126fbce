import logging
import random
import uuid
from typing import Any

from ..config import DEFAULT_MATCH_CONFIG
from ..domain import FEMALE, MALE, NON_BINARY, MatchConfig, User
from ..errors import ConfigNotFoundError
from .context import MatchingContext

logger = logging.getLogger(__name__)

FIRST_NAMES = ["Alex", "Sam", "Jamie", "Riley", "Jordan", "Casey", "Morgan", "Avery", "Quinn", "Rowan"]
LAST_NAMES = ["Tan", "Lim", "Ng", "Cruz", "Santos", "Reyes", "Lee", "Wong", "Garcia", "Chua"]

# seeded users cluster around this point
SEED_CENTER = (1.3521, 103.8198)

QUALITATIVE_KEYS = [
    "Self Portrait",
    "Interests",
    "Wellbeing Habits",
    "Self Care Habits",
    "Money Management",
    "Self Reflection Capabilities",
    "Moral Frameworks",
    "Life Goals",
    "Partnership Values",
    "Mutual Commitment",
    "Spirituality Growth Mindset",
    "Cultural Values",
    "Family Planning",
    "Ideal Date",
    "Red/Green Flags",
]
QUANTITATIVE_KEYS = [
    "Extroversion Social Energy",
    "Routine vs Spontaneity",
    "Agreeableness",
    "Conscientiousness",
    "Neuroticism",
    "Dominance Level",
    "Emotional Expressiveness",
    "Sex Drive",
    "Geographical Mobility",
]
CONFLICT_STYLES = ["validating", "volatile", "avoidant"]
SEXUALITY_PREFERENCES = ["monogamy", "open"]
RELIGIONS = ["christian", "buddhist", "muslim", "hindu", "none"]


def _gender_and_preferences(index: int, rng: random.Random) -> tuple[str, list[str]]:
    # mostly reciprocal male/female rows so seeded pools produce matches
    if index % 5 != 0:
        if index % 2 == 0:
            return MALE, [FEMALE]
        return FEMALE, [MALE]
    gender = rng.choice([MALE, FEMALE, NON_BINARY])
    return gender, rng.choice([[MALE], [FEMALE], [MALE, FEMALE], [MALE, FEMALE, NON_BINARY]])


def dummy_profile(rng: random.Random) -> dict[str, Any]:
    return {
        "Qualitative": {key: f"{key.lower()} answer {rng.randint(1, 999)}" for key in QUALITATIVE_KEYS},
        "Quantitative": {key: rng.randint(1, 10) for key in QUANTITATIVE_KEYS},
        "Categorical": {
            "Conflict Resolution Style": rng.choice(CONFLICT_STYLES),
            "Sexuality Preferences": rng.choice(SEXUALITY_PREFERENCES),
            "Religion": rng.choice(RELIGIONS),
        },
    }


def dummy_user(index: int, rng: random.Random, is_test_user: bool = True) -> User:
    gender, prefs = _gender_and_preferences(index, rng)
    base_height = 176 if gender == MALE else 163
    return User(
        id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
        email=f"seed_{index:05d}@example.com",
        age=rng.randint(22, 38),
        gender=gender,
        height=float(base_height + rng.randint(-8, 8)),
        latitude=round(SEED_CENTER[0] + rng.uniform(-0.15, 0.15), 6),
        longitude=round(SEED_CENTER[1] + rng.uniform(-0.15, 0.15), 6),
        first_name=rng.choice(FIRST_NAMES),
        last_name=rng.choice(LAST_NAMES),
        user_type="Regular User",
        is_test_user=is_test_user,
        is_active=True,
        dating_preferences=prefs,
    )


def seed_match_config(ctx: MatchingContext, db) -> MatchConfig:
    try:
        return ctx.configs.config(db)
    except ConfigNotFoundError:
        pass
    config = MatchConfig.from_dict({**DEFAULT_MATCH_CONFIG, "id": str(uuid.uuid4())})
    ctx.configs.insert_config(db, config)
    logger.info("[seed] created match configuration %s", config.id)
    return config


def seed_dummy_users(
    ctx: MatchingContext,
    db,
    n_users: int = 20,
    seed: int = 42,
    is_test_user: bool = True,
    with_profiles: bool = True,
) -> dict[str, Any]:
    rng = random.Random(seed)
    config = seed_match_config(ctx, db)

    created = []
    for idx in range(n_users):
        user = dummy_user(idx, rng, is_test_user=is_test_user)
        ctx.users.insert_user(db, user)
        if with_profiles:
            ctx.profiles.upsert_profile(db, user.id, dummy_profile(rng))
        created.append(user.id)

    db.commit()
    logger.info("[seed] users=%s profiles=%s", len(created), with_profiles)
    return {"config_id": config.id, "users_created": len(created), "user_ids": created}
