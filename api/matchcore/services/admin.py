import logging
import re
from dataclasses import replace
from typing import Any

from ..domain import ConfigFilter, MatchConfig, MatchResult, MatchResultUpdate
from ..errors import ConfigValidationError
from .context import MatchingContext

logger = logging.getLogger(__name__)

DROP_HOUR_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
DROP_ZONE_RE = re.compile(r"^(GMT|UTC)[+-]([0-9]{1,2})$")

NON_NEGATIVE_FIELDS = (
    "age_range_start",
    "age_range_end",
    "age_range_woman_older_by",
    "age_range_man_older_by",
    "score_range_start",
    "score_range_end",
    "stale_chat_nudge",
    "stale_chat_agent_setup",
    "match_expiration_hours",
    "match_block_declined",
    "match_block_ignored",
    "match_block_closed",
    "location_radius_km",
    "height_male_greater_by_cm",
)

CONFIG_FIELDS = frozenset(f for f in MatchConfig.__dataclass_fields__ if f != "id")


def _set_flag(ctx: MatchingContext, db, match_id: str, **flags: bool) -> MatchResult:
    mr = ctx.match_results.update_match_result(db, MatchResultUpdate(id=match_id, updated_at=ctx.now(), **flags))
    logger.info("[admin] match=%s set %s", match_id, flags)
    return mr


def set_approved(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return _set_flag(ctx, db, match_id, is_approved=True)


def set_unapproved(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return _set_flag(ctx, db, match_id, is_approved=False)


def set_dropped(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return _set_flag(ctx, db, match_id, is_dropped=True)


def set_undropped(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return _set_flag(ctx, db, match_id, is_dropped=False)


def set_expired(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return _set_flag(ctx, db, match_id, is_expired=True)


def set_unexpired(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return _set_flag(ctx, db, match_id, is_expired=False)


def is_valid_drop_hour(value: str) -> bool:
    return bool(DROP_HOUR_RE.match(value or ""))


def is_valid_drop_zone(value: str) -> bool:
    m = DROP_ZONE_RE.match(value or "")
    return bool(m) and int(m.group(2)) <= 14


def validate_config_update(changes: dict[str, Any]) -> None:
    unknown = sorted(set(changes) - CONFIG_FIELDS)
    if unknown:
        raise ConfigValidationError(f"unknown configuration fields: {', '.join(unknown)}")

    expansion = changes.get("location_adaptive_expansion")
    if expansion is not None and any(b <= a for a, b in zip(expansion, expansion[1:])):
        raise ConfigValidationError(
            "location_adaptive_expansion must be a strictly incrementing array (e.g., [10, 20, 30])"
        )

    if changes.get("age_range_start") is not None and changes.get("age_range_end") is not None:
        if changes["age_range_start"] > changes["age_range_end"]:
            raise ConfigValidationError("age_range_start must be less than or equal to age_range_end")

    if changes.get("score_range_start") is not None and changes.get("score_range_end") is not None:
        if changes["score_range_start"] > changes["score_range_end"]:
            raise ConfigValidationError("score_range_start must be less than or equal to score_range_end")

    if changes.get("drop_hours") is not None and not all(is_valid_drop_hour(h) for h in changes["drop_hours"]):
        raise ConfigValidationError('drop_hours must contain valid time strings in HH:MM format (e.g., "19:00")')

    if changes.get("drop_hours_utc") is not None and not all(is_valid_drop_zone(z) for z in changes["drop_hours_utc"]):
        raise ConfigValidationError('drop_hours_utc must contain valid timezone strings (e.g., "GMT+3")')

    for name in NON_NEGATIVE_FIELDS:
        value = changes.get(name)
        if value is not None and value < 0:
            raise ConfigValidationError("numeric configuration values must be non-negative")
    if any(radius < 0 for radius in changes.get("location_adaptive_expansion") or ()):
        raise ConfigValidationError("numeric configuration values must be non-negative")


def update_config(ctx: MatchingContext, db, changes: dict[str, Any], config_id: str | None = None) -> MatchConfig:
    """Apply a partial update to the active configuration. None values are ignored."""
    changes = {k: v for k, v in changes.items() if v is not None}
    validate_config_update(changes)

    current = ctx.configs.config(db, ConfigFilter(id=config_id) if config_id else None)
    updated = replace(current, **changes)
    ctx.configs.update_config(db, updated)
    logger.info("[admin] match configuration %s updated fields=%s", updated.id, sorted(changes))
    return updated
