from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Protocol

from ..config import (
    DEFAULT_DECISION_WINDOW_HOURS,
    MATCH_BATCH_TIMEOUT_SECONDS,
    MATCH_BATCH_WORKERS,
)
from ..stores.base import (
    ConfigStore,
    DateInstanceStore,
    MatchResultStore,
    MatchSetStore,
    MatchingStore,
    ProfileStore,
    UserMatchActionStore,
    UserStore,
)
from .compatibility import MatchCompatibilityResult, QualitativeMatchRequest


class Qualifier(Protocol):
    def qualify(self, request: QualitativeMatchRequest) -> MatchCompatibilityResult: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MatchingContext:
    """Collaborators shared by every matching operation."""

    users: UserStore
    configs: ConfigStore
    match_sets: MatchSetStore
    match_results: MatchResultStore
    actions: UserMatchActionStore
    date_instances: DateInstanceStore
    profiles: ProfileStore
    compatibility: Qualifier | None = None
    clock: Callable[[], datetime] = field(default=utc_now)
    batch_workers: int = MATCH_BATCH_WORKERS
    batch_timeout_seconds: float = MATCH_BATCH_TIMEOUT_SECONDS
    default_decision_window_hours: int = DEFAULT_DECISION_WINDOW_HOURS

    @classmethod
    def from_store(cls, store: MatchingStore, **kwargs) -> "MatchingContext":
        return cls(
            users=store,
            configs=store,
            match_sets=store,
            match_results=store,
            actions=store,
            date_instances=store,
            profiles=store,
            **kwargs,
        )

    def now(self) -> datetime:
        return self.clock()
