from ..domain import (
    ConfigFilter,
    MatchConfig,
    MatchResult,
    MatchResultFilter,
    MatchSet,
    MatchSetFilter,
    Paginated,
)
from .context import MatchingContext


def match_sets(ctx: MatchingContext, db, filter: MatchSetFilter | None = None) -> Paginated:
    return ctx.match_sets.match_sets(db, filter)


def match_set(ctx: MatchingContext, db, match_set_id: str) -> MatchSet:
    return ctx.match_sets.match_set(db, match_set_id)


def match_results(ctx: MatchingContext, db, filter: MatchResultFilter | None = None) -> Paginated:
    return ctx.match_results.match_results(db, filter)


def match_result(ctx: MatchingContext, db, match_id: str) -> MatchResult:
    return ctx.match_results.match_result(db, match_id)


def match_configs(ctx: MatchingContext, db, filter: ConfigFilter | None = None) -> list[MatchConfig]:
    return ctx.configs.configs(db, filter)


def match_config(ctx: MatchingContext, db, config_id: str | None = None) -> MatchConfig:
    return ctx.configs.config(db, ConfigFilter(id=config_id) if config_id else None)
