from typing import Any

from ..domain import (
    ACTION_PROPOSED,
    MatchResult,
    MatchResultFilter,
    Paginated,
    Pagination,
    UserMatch,
)
from ..errors import MatchNotFoundError, UserNotFoundError
from .context import MatchingContext


def _telemetry(mr: MatchResult, key: str, field: str) -> Any:
    entry = (mr.qualifier_results or {}).get(key) or {}
    return (entry.get("telemetry") or {}).get(field)


def to_user_match(ctx: MatchingContext, db, mr: MatchResult, user_id: str) -> UserMatch:
    if mr.initiator_user_id == user_id:
        partner_id, yours, partners, seen_at = mr.receiver_user_id, mr.initiator_action, mr.receiver_action, mr.initiator_seen_at
    else:
        partner_id, yours, partners, seen_at = mr.initiator_user_id, mr.receiver_action, mr.initiator_action, mr.receiver_seen_at

    try:
        partner = ctx.users.user(db, partner_id)
    except UserNotFoundError:
        partner = None

    return UserMatch(
        id=mr.id,
        user_id=user_id,
        partner_id=partner_id,
        your_action=yours,
        partner_action=partners,
        partner_name=partner.first_name if partner else None,
        partner_age=partner.age if partner else None,
        partner_gender=partner.gender if partner else None,
        distance_km=_telemetry(mr, "distance", "distance_km"),
        match_score=_telemetry(mr, "qualitative", "total_score"),
        mutual_proposal=yours == ACTION_PROPOSED and partners == ACTION_PROPOSED,
        date_instance_id=mr.current_date_instance_id,
        seen_at=seen_at,
        dropped_at=mr.dropped_at,
    )


def _visible_filter(user_id: str, pagination: Pagination | None = None) -> MatchResultFilter:
    return MatchResultFilter(
        user_id=user_id,
        is_approved=True,
        is_dropped=True,
        is_expired=False,
        order_by="dropped_at",
        sort="-",
        pagination=pagination,
    )


def user_matches(ctx: MatchingContext, db, user_id: str, pagination: Pagination | None = None) -> Paginated:
    page = ctx.match_results.match_results(db, _visible_filter(user_id, pagination))
    return Paginated(data=[to_user_match(ctx, db, mr, user_id) for mr in page.data], pagination=page.pagination)


def user_match(ctx: MatchingContext, db, user_id: str, match_id: str) -> UserMatch:
    mr = ctx.match_results.match_result(db, match_id)
    if not mr.has_participant(user_id) or not mr.is_visible():
        raise MatchNotFoundError(f"match {match_id} not found for user {user_id}")
    return to_user_match(ctx, db, mr, user_id)


def mark_matches_seen(ctx: MatchingContext, db, user_id: str, match_ids: list[str]) -> int:
    return ctx.actions.mark_seen(db, user_id, list(match_ids), ctx.now())


def unseen_match_count(ctx: MatchingContext, db, user_id: str) -> int:
    page = ctx.match_results.match_results(db, _visible_filter(user_id))
    count = 0
    for mr in page.data:
        seen_at = mr.initiator_seen_at if mr.initiator_user_id == user_id else mr.receiver_seen_at
        if seen_at is None:
            count += 1
    return count
