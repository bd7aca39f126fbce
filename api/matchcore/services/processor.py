import logging

from ..domain import MatchResult, MatchResultUpdate, User
from ..errors import CompatibilityServiceError, UserValidationError
from .compatibility import QualitativeMatchRequest, parse_profile
from .context import MatchingContext
from .qualifiers import QualifierReport, run_hard_qualifiers

logger = logging.getLogger(__name__)

REQUIRED_USER_FIELDS = ("id",)


def validate_user(user: User) -> User:
    missing = {name: "required" for name in REQUIRED_USER_FIELDS if not getattr(user, name, None)}
    if missing:
        raise UserValidationError(user.id, missing)
    return user


def load_matching_user(ctx: MatchingContext, db, user_id: str) -> User:
    return validate_user(ctx.users.user(db, user_id))


def process_match_result(ctx: MatchingContext, db, match_result: MatchResult | str) -> QualifierReport:
    """Qualify one pair and, when every hard qualifier passes, score it.

    The qualifier report is committed before the external call, so a pair
    that fails scoring still keeps its hard-qualifier outcome. Raises on
    data-load or scoring failures; a failed qualifier is not an error.
    """
    if isinstance(match_result, str):
        match_result = ctx.match_results.match_result(db, match_result)

    user_a = load_matching_user(ctx, db, match_result.initiator_user_id)
    user_b = load_matching_user(ctx, db, match_result.receiver_user_id)
    config = ctx.configs.config(db)

    report = run_hard_qualifiers(config, user_a, user_b)
    ctx.match_results.update_match_result(
        db,
        MatchResultUpdate(
            id=match_result.id,
            qualifier_results=report.as_dict(),
            matched_qualitatively=False,
            updated_at=ctx.now(),
        ),
    )
    db.commit()

    if report.has_errors():
        logger.info(
            "[processor] match=%s failed hard qualifiers: %s",
            match_result.id,
            ",".join(report.error_codes()),
        )
        return report

    romeo = parse_profile(user_a.id, ctx.profiles.profile(db, user_a.id))
    juliet = parse_profile(user_b.id, ctx.profiles.profile(db, user_b.id))

    qualitative = report.attach("qualitative")
    try:
        if ctx.compatibility is None:
            raise CompatibilityServiceError("no compatibility client configured")
        result = ctx.compatibility.qualify(QualitativeMatchRequest(romeo=romeo, juliet=juliet))
    except CompatibilityServiceError as e:
        qualitative.error_code = "compatibility_unavailable"
        qualitative.error_msg = str(e)
        ctx.match_results.update_match_result(
            db,
            MatchResultUpdate(id=match_result.id, qualifier_results=report.as_dict(), updated_at=ctx.now()),
        )
        db.commit()
        raise

    qualitative.telemetry = result.model_dump()
    ctx.match_results.update_match_result(
        db,
        MatchResultUpdate(
            id=match_result.id,
            qualifier_results=report.as_dict(),
            matched_qualitatively=True,
            is_possible_match=True,
            updated_at=ctx.now(),
        ),
    )
    db.commit()
    logger.info("[processor] match=%s qualified total_score=%s", match_result.id, result.total_score)
    return report
