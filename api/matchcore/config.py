import json
import os
from typing import Any

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/matchcore")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "40"))

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MATCH_BATCH_WORKERS = int(os.getenv("MATCH_BATCH_WORKERS", "50"))
MATCH_BATCH_TIMEOUT_SECONDS = float(os.getenv("MATCH_BATCH_TIMEOUT_SECONDS", "3600"))
DEFAULT_DECISION_WINDOW_HOURS = int(os.getenv("DEFAULT_DECISION_WINDOW_HOURS", "72"))
ROW_LOCK_TIMEOUT_SECONDS = float(os.getenv("ROW_LOCK_TIMEOUT_SECONDS", "30"))

COMPATIBILITY_API_URL = os.getenv("COMPATIBILITY_API_URL", "http://localhost:8081/matchmaking_v2")
COMPATIBILITY_API_KEY = os.getenv("COMPATIBILITY_API_KEY", "")
COMPATIBILITY_TIMEOUT_SECONDS = float(os.getenv("COMPATIBILITY_TIMEOUT_SECONDS", "120"))
COMPATIBILITY_MAX_RETRIES = int(os.getenv("COMPATIBILITY_MAX_RETRIES", "3"))
COMPATIBILITY_RETRY_BACKOFF_SECONDS = float(os.getenv("COMPATIBILITY_RETRY_BACKOFF_SECONDS", "0.06"))

DEFAULT_MATCH_CONFIG: dict[str, Any] = {
    "age_range_start": int(os.getenv("AGE_RANGE_START", "18")),
    "age_range_end": int(os.getenv("AGE_RANGE_END", "10")),
    "age_range_woman_older_by": int(os.getenv("AGE_RANGE_WOMAN_OLDER_BY", "5")),
    "age_range_man_older_by": int(os.getenv("AGE_RANGE_MAN_OLDER_BY", "10")),
    "height_male_greater_by_cm": float(os.getenv("HEIGHT_MALE_GREATER_BY_CM", "0")),
    "location_radius_km": float(os.getenv("LOCATION_RADIUS_KM", "50")),
    "location_adaptive_expansion": [100, 200, 350],
    "drop_hours": ["19:00"],
    "drop_hours_utc": ["GMT+8"],
    "stale_chat_nudge": 24,
    "stale_chat_agent_setup": 48,
    "match_expiration_hours": int(os.getenv("MATCH_EXPIRATION_HOURS", "72")),
    "match_block_declined": 30,
    "match_block_ignored": 14,
    "match_block_closed": 60,
    "score_range_start": 0.0,
    "score_range_end": 100.0,
}

if os.getenv("MATCH_CONFIG_JSON"):
    try:
        DEFAULT_MATCH_CONFIG.update(json.loads(os.getenv("MATCH_CONFIG_JSON", "{}")))
    except json.JSONDecodeError:
        pass
