import logging

from ..domain import MatchResult, MatchResultFilter, MatchResultUpdate, Paginated, Pagination
from .context import MatchingContext

logger = logging.getLogger(__name__)


def match_results_not_dropped(ctx: MatchingContext, db) -> list[MatchResult]:
    page = ctx.match_results.match_results(
        db,
        MatchResultFilter(is_approved=True, is_dropped=False, order_by="created_at", sort="+"),
    )
    return page.data


def drop_one_match_per_user(ctx: MatchingContext, db) -> list[str]:
    """Drop the oldest approved match of each user, at most one per user.

    A user who receives a drop in this pass is skipped for the rest of it.
    Returns the dropped MatchResult ids.
    """
    dropped_users: set[str] = set()
    dropped: list[str] = []
    now = ctx.now()

    for mr in match_results_not_dropped(ctx, db):
        if mr.initiator_user_id in dropped_users or mr.receiver_user_id in dropped_users:
            continue
        ctx.match_results.update_match_result(
            db,
            MatchResultUpdate(id=mr.id, is_dropped=True, dropped_at=now, updated_at=now),
        )
        dropped_users.add(mr.initiator_user_id)
        dropped_users.add(mr.receiver_user_id)
        dropped.append(mr.id)

    db.commit()
    logger.info("[drops] dropped=%s users=%s", len(dropped), len(dropped_users))
    return dropped


def match_results_for_drop(ctx: MatchingContext, db, pagination: Pagination | None = None) -> Paginated:
    return ctx.match_results.match_results(
        db,
        MatchResultFilter(
            is_approved=True,
            is_possible_match=True,
            is_expired=False,
            order_by="created_at",
            sort="+",
            pagination=pagination,
        ),
    )
