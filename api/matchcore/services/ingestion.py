import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from ..domain import (
    ACTION_PENDING,
    MatchResult,
    MatchResultFilter,
    MatchSet,
    User,
    UserFilter,
)
from .context import MatchingContext
from .pairing import unique_user_pairs
from .processor import process_match_result

logger = logging.getLogger(__name__)


@dataclass
class BatchRunSummary:
    match_set_id: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    unfinished: int = 0

    @property
    def timed_out(self) -> bool:
        return self.cancelled > 0 or self.unfinished > 0


def create_match_set_for_users(ctx: MatchingContext, db, users: list[User]) -> MatchSet:
    config = ctx.configs.config(db)
    now = ctx.now()
    match_set = MatchSet(
        id=str(uuid.uuid4()),
        name=now.isoformat(timespec="seconds"),
        number_of_participants=len(users),
        match_configuration=config.as_dict(),
        time_start=now,
        created_at=now,
        updated_at=now,
    )
    ctx.match_sets.insert_match_set(db, match_set)

    results = [
        MatchResult(
            id=str(uuid.uuid4()),
            match_set_id=match_set.id,
            initiator_user_id=pair.user_a.id,
            receiver_user_id=pair.user_b.id,
            initiator_action=ACTION_PENDING,
            receiver_action=ACTION_PENDING,
            created_at=now,
            updated_at=now,
        )
        for pair in unique_user_pairs(users)
    ]
    ctx.match_results.insert_match_results(db, results)
    db.commit()
    logger.info(
        "[ingestion] match_set=%s participants=%s pairs=%s",
        match_set.id,
        match_set.number_of_participants,
        len(results),
    )
    return match_set


def ingest(ctx: MatchingContext, db, user_filter: UserFilter | None = None) -> MatchSet:
    users = ctx.users.users(db, user_filter)
    return create_match_set_for_users(ctx, db, users)


def ingest_all(ctx: MatchingContext, db) -> MatchSet:
    return ingest(ctx, db, UserFilter(is_active=True))


def ingest_with_options(ctx: MatchingContext, db, is_test_user: bool | None = None) -> MatchSet:
    return ingest(ctx, db, UserFilter(is_active=True, is_test_user=is_test_user))


def users_without_live_matches(ctx: MatchingContext, db) -> list[User]:
    busy = ctx.match_results.user_ids_with_live_match(db)
    return ctx.users.users(db, UserFilter(is_active=True, exclude_ids=busy))


def run_match_for_unmatched_users(ctx: MatchingContext, db) -> MatchSet | None:
    """New match set over active users with no approved, undropped match.

    Returns None without writing anything when fewer than two such users exist.
    """
    users = users_without_live_matches(ctx, db)
    if len(users) < 2:
        logger.warning("[ingestion] only %s unmatched users, skipping match set creation", len(users))
        return None
    return create_match_set_for_users(ctx, db, users)


def _process_pair(ctx: MatchingContext, session_factory: Callable, match_result: MatchResult) -> bool:
    with session_factory() as db:
        try:
            process_match_result(ctx, db, match_result)
        except Exception:
            db.rollback()
            logger.exception(
                "[ingestion] match=%s pair=%s/%s failed",
                match_result.id,
                match_result.initiator_user_id,
                match_result.receiver_user_id,
            )
            return False
    return True


def run_ingestion_set(ctx: MatchingContext, session_factory: Callable, match_set_id: str) -> BatchRunSummary:
    """Process every MatchResult of a set on a bounded worker pool.

    ``session_factory`` must open a fresh session per call (``SessionLocal``
    or a ``MemoryDatabase``); each worker runs its pair in its own session.
    Blocks until every pair finishes or ``ctx.batch_timeout_seconds`` passes,
    at which point queued pairs are cancelled. Pairs already running cannot be
    stopped; they are reported as ``unfinished`` and still write their result
    when they complete.
    """
    if isinstance(session_factory, Session):
        raise TypeError("run_ingestion_set needs a session factory, not a session")

    with session_factory() as db:
        ctx.match_sets.match_set(db, match_set_id)
        results = ctx.match_results.match_results(db, MatchResultFilter(match_set_id=match_set_id)).data

    summary = BatchRunSummary(match_set_id=str(match_set_id), total=len(results))
    if not results:
        return summary

    workers = max(1, min(ctx.batch_workers, len(results)))
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="match-worker")
    futures = [executor.submit(_process_pair, ctx, session_factory, r) for r in results]
    done, pending = wait(futures, timeout=ctx.batch_timeout_seconds)

    finished = list(done)
    if pending:
        for future in pending:
            if future.cancel():
                summary.cancelled += 1
            elif future.done():
                finished.append(future)
            else:
                summary.unfinished += 1
        executor.shutdown(wait=False)
        logger.error(
            "[ingestion] match_set=%s deadline of %ss reached, %s pairs cancelled, %s still running",
            match_set_id,
            ctx.batch_timeout_seconds,
            summary.cancelled,
            summary.unfinished,
        )
    else:
        executor.shutdown(wait=True)

    for future in finished:
        if future.result():
            summary.succeeded += 1
        else:
            summary.failed += 1

    logger.info(
        "[ingestion] match_set=%s total=%s succeeded=%s failed=%s cancelled=%s unfinished=%s",
        match_set_id,
        summary.total,
        summary.succeeded,
        summary.failed,
        summary.cancelled,
        summary.unfinished,
    )
    return summary
