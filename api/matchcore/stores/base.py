"""Capability interfaces the matching core depends on.

Every method takes the executor (``db``) first: a SQLAlchemy ``Session`` for
the SQL backend, a ``MemoryTransaction`` for the in-memory one. Stores never
commit; the caller owns the transaction.
"""
from datetime import datetime
from typing import Any, Protocol

from ..domain import (
    ConfigFilter,
    DateInstance,
    DateInstanceLog,
    MatchConfig,
    MatchResult,
    MatchResultFilter,
    MatchResultUpdate,
    MatchSet,
    MatchSetFilter,
    Paginated,
    User,
    UserFilter,
)


class UserStore(Protocol):
    def users(self, db, filter: UserFilter | None = None) -> list[User]: ...

    def user(self, db, user_id: str) -> User: ...

    def insert_user(self, db, user: User) -> User: ...


class ConfigStore(Protocol):
    def configs(self, db, filter: ConfigFilter | None = None) -> list[MatchConfig]: ...

    def config(self, db, filter: ConfigFilter | None = None) -> MatchConfig: ...

    def insert_config(self, db, config: MatchConfig) -> MatchConfig: ...

    def update_config(self, db, config: MatchConfig) -> MatchConfig: ...


class MatchSetStore(Protocol):
    def insert_match_set(self, db, match_set: MatchSet) -> MatchSet: ...

    def match_set(self, db, match_set_id: str) -> MatchSet: ...

    def match_sets(self, db, filter: MatchSetFilter | None = None) -> Paginated: ...


class MatchResultStore(Protocol):
    def insert_match_results(self, db, results: list[MatchResult]) -> None: ...

    def match_result(self, db, match_id: str, *, for_update: bool = False) -> MatchResult: ...

    def match_results(self, db, filter: MatchResultFilter | None = None) -> Paginated: ...

    def update_match_result(self, db, update: MatchResultUpdate) -> MatchResult: ...

    def user_ids_with_live_match(self, db) -> set[str]: ...


class UserMatchActionStore(Protocol):
    def set_user_action(self, db, match_id: str, user_id: str, action: str, now: datetime) -> MatchResult: ...

    def mark_seen(self, db, user_id: str, match_ids: list[str], now: datetime) -> int: ...


class DateInstanceStore(Protocol):
    def insert_date_instance(self, db, instance: DateInstance) -> DateInstance: ...

    def insert_date_instance_log(self, db, log: DateInstanceLog) -> DateInstanceLog: ...

    def update_match_for_date_instance(
        self, db, match_id: str, date_instance_id: str, lifecycle_status: str, now: datetime
    ) -> None: ...

    def date_instances(self, db, match_id: str) -> list[DateInstance]: ...

    def date_instance_logs(self, db, date_instance_id: str) -> list[DateInstanceLog]: ...


class ProfileStore(Protocol):
    def profile(self, db, user_id: str) -> dict[str, Any]: ...

    def upsert_profile(self, db, user_id: str, data: dict[str, Any]) -> None: ...


class MatchingStore(
    UserStore,
    ConfigStore,
    MatchSetStore,
    MatchResultStore,
    UserMatchActionStore,
    DateInstanceStore,
    ProfileStore,
    Protocol,
):
    """A backend implementing every capability."""
