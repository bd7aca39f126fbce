import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from ..domain import (
    ACTION_PASSED,
    ACTION_PENDING,
    ACTION_PROPOSED,
    DATE_INSTANCE_EVENT_CREATED,
    DATE_INSTANCE_STATUS_PROPOSED,
    LIFECYCLE_SCHEDULING,
    DateInstance,
    DateInstanceLog,
    MatchResult,
)
from ..errors import ConfigNotFoundError, InvalidMatchActionError, MatchNotFoundError
from .context import MatchingContext

logger = logging.getLogger(__name__)

PROPOSE = "propose"
PASS = "pass"


@dataclass
class ProposeMatchResult:
    success: bool
    mutual_proposal: bool
    date_instance_id: str | None = None


def transition_action(current: str, action: str, partner_action: str) -> str:
    if action == PROPOSE:
        if current in {ACTION_PENDING, ACTION_PROPOSED}:
            return ACTION_PROPOSED
        raise InvalidMatchActionError("cannot propose on a match you have passed")

    if action == PASS:
        if current in {ACTION_PENDING, ACTION_PASSED}:
            return ACTION_PASSED
        if current == ACTION_PROPOSED and partner_action != ACTION_PROPOSED:
            return ACTION_PASSED
        raise InvalidMatchActionError("cannot pass on a mutually proposed match")

    raise InvalidMatchActionError(f"unknown action {action}")


def actions_for(mr: MatchResult, user_id: str) -> tuple[str, str]:
    """(your action, partner action) for a participant."""
    if mr.initiator_user_id == user_id:
        return mr.initiator_action, mr.receiver_action
    if mr.receiver_user_id == user_id:
        return mr.receiver_action, mr.initiator_action
    raise MatchNotFoundError(f"match {mr.id} not found for user {user_id}")


def locked_match_for_user(ctx: MatchingContext, db, match_id: str, user_id: str) -> MatchResult:
    mr = ctx.match_results.match_result(db, match_id, for_update=True)
    if not mr.has_participant(user_id) or not mr.is_visible():
        raise MatchNotFoundError(f"match {match_id} not found for user {user_id}")
    return mr


def decision_window_hours(ctx: MatchingContext, db) -> int:
    try:
        hours = ctx.configs.config(db).match_expiration_hours
    except ConfigNotFoundError:
        logger.warning("[proposals] no match configuration, using %sh decision window", ctx.default_decision_window_hours)
        return ctx.default_decision_window_hours
    return hours if hours and hours > 0 else ctx.default_decision_window_hours


def create_date_instance(ctx: MatchingContext, db, match_id: str, user_id: str) -> str:
    """Create the DateInstance for a mutual proposal, once.

    The caller must hold the MatchResult row lock.
    """
    mr = ctx.match_results.match_result(db, match_id)
    if mr.current_date_instance_id:
        return mr.current_date_instance_id

    now = ctx.now()
    instance = DateInstance(
        id=str(uuid.uuid4()),
        match_result_id=mr.id,
        status=DATE_INSTANCE_STATUS_PROPOSED,
        decision_window_end=now + timedelta(hours=decision_window_hours(ctx, db)),
        created_at=now,
    )
    ctx.date_instances.insert_date_instance(db, instance)
    ctx.date_instances.insert_date_instance_log(
        db,
        DateInstanceLog(
            id=str(uuid.uuid4()),
            date_instance_id=instance.id,
            event_type=DATE_INSTANCE_EVENT_CREATED,
            user_id=user_id,
            new_value={
                "status": instance.status,
                "decision_window_end": instance.decision_window_end.isoformat(),
            },
            details="Date instance auto-created on mutual proposal",
            created_at=now,
        ),
    )
    ctx.date_instances.update_match_for_date_instance(db, mr.id, instance.id, LIFECYCLE_SCHEDULING, now)
    logger.info("[proposals] match=%s date_instance=%s created", mr.id, instance.id)
    return instance.id


def propose_match(ctx: MatchingContext, db, match_id: str, user_id: str) -> ProposeMatchResult:
    """Record a proposal; on mutual proposal create the DateInstance.

    Runs in the caller's transaction under a row lock on the MatchResult, so
    of two racing proposers only the second sees the first's proposal. The
    caller commits; any failure rolls the transaction back.
    """
    try:
        mr = locked_match_for_user(ctx, db, match_id, user_id)
        yours, partners = actions_for(mr, user_id)
        new_action = transition_action(yours, PROPOSE, partners)
        mutual = partners == ACTION_PROPOSED

        if new_action != yours:
            mr = ctx.actions.set_user_action(db, mr.id, user_id, new_action, ctx.now())

        if not mutual:
            mr = ctx.match_results.match_result(db, mr.id)
            yours, partners = actions_for(mr, user_id)
            mutual = yours == ACTION_PROPOSED and partners == ACTION_PROPOSED

        date_instance_id = None
        if mutual:
            date_instance_id = create_date_instance(ctx, db, mr.id, user_id)
    except Exception:
        db.rollback()
        raise

    logger.info("[proposals] match=%s user=%s proposed mutual=%s", match_id, user_id, mutual)
    return ProposeMatchResult(success=True, mutual_proposal=mutual, date_instance_id=date_instance_id)


def pass_match(ctx: MatchingContext, db, match_id: str, user_id: str) -> MatchResult:
    try:
        mr = locked_match_for_user(ctx, db, match_id, user_id)
        yours, partners = actions_for(mr, user_id)
        new_action = transition_action(yours, PASS, partners)
        if new_action != yours:
            mr = ctx.actions.set_user_action(db, mr.id, user_id, new_action, ctx.now())
    except Exception:
        db.rollback()
        raise

    logger.info("[proposals] match=%s user=%s passed", match_id, user_id)
    return mr
