"""In-process backend used by tests and local runs.

``MemoryDatabase`` is a session factory: calling it opens a
``MemoryTransaction``. Writes go straight to the shared tables (read
uncommitted) and are recorded in an undo journal, so ``rollback()`` restores
the rows the transaction touched. ``lock()`` is the ``SELECT ... FOR UPDATE``
equivalent: a per-row lock held until commit, rollback or close. Every write
takes the row lock first, so an undo only ever restores rows no other
transaction has written since.
"""
import copy
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..config import ROW_LOCK_TIMEOUT_SECONDS
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
    Pagination,
    User,
    UserFilter,
)
from ..errors import (
    AmbiguousConfigError,
    ConfigNotFoundError,
    MatchNotFoundError,
    MatchSetNotFoundError,
    ProfileNotFoundError,
    RowLockTimeoutError,
    UserNotFoundError,
)
from .ordering import MATCH_RESULT_ORDER_COLUMNS, MATCH_SET_ORDER_COLUMNS, resolve_order

TABLES = ("users", "profile", "match_config", "match_set", "match_result", "date_instance", "date_instance_log")

_MISSING = object()


class MemoryDatabase:
    def __init__(self, lock_timeout: float = ROW_LOCK_TIMEOUT_SECONDS):
        self.lock_timeout = lock_timeout
        self.tables: dict[str, dict[str, Any]] = {name: {} for name in TABLES}
        self._mutex = threading.RLock()
        self._row_locks: dict[tuple[str, str], threading.Lock] = {}

    def __call__(self) -> "MemoryTransaction":
        return MemoryTransaction(self)

    def row_lock(self, table: str, row_id: str) -> threading.Lock:
        with self._mutex:
            return self._row_locks.setdefault((table, row_id), threading.Lock())


class MemoryTransaction:
    def __init__(self, database: MemoryDatabase):
        self.database = database
        self._undo: list[tuple[str, str, Any]] = []
        self._held: dict[tuple[str, str], threading.Lock] = {}

    def __enter__(self) -> "MemoryTransaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def _mutex(self) -> threading.RLock:
        return self.database._mutex

    def get(self, table: str, row_id: str) -> Any:
        with self._mutex:
            row = self.database.tables[table].get(str(row_id))
            return copy.deepcopy(row)

    def rows(self, table: str) -> list[Any]:
        with self._mutex:
            return [copy.deepcopy(row) for row in self.database.tables[table].values()]

    def put(self, table: str, row_id: str, row: Any) -> None:
        key = str(row_id)
        self.lock(table, key)
        with self._mutex:
            previous = self.database.tables[table].get(key, _MISSING)
            self._undo.append((table, key, copy.deepcopy(previous) if previous is not _MISSING else _MISSING))
            self.database.tables[table][key] = copy.deepcopy(row)

    def lock(self, table: str, row_id: str) -> None:
        key = (table, str(row_id))
        if key in self._held:
            return
        row_lock = self.database.row_lock(*key)
        if not row_lock.acquire(timeout=self.database.lock_timeout):
            raise RowLockTimeoutError(f"timed out waiting for lock on {table} {row_id}")
        self._held[key] = row_lock

    def commit(self) -> None:
        self._undo.clear()
        self._release()

    def rollback(self) -> None:
        with self._mutex:
            for table, key, previous in reversed(self._undo):
                if previous is _MISSING:
                    self.database.tables[table].pop(key, None)
                else:
                    self.database.tables[table][key] = previous
            self._undo.clear()
        self._release()

    def close(self) -> None:
        if self._undo:
            self.rollback()
        else:
            self._release()

    def _release(self) -> None:
        held = list(self._held.values())
        self._held.clear()
        for row_lock in held:
            row_lock.release()


def _sorted(rows: list[Any], column: str, descending: bool) -> list[Any]:
    present = [r for r in rows if getattr(r, column, None) is not None]
    missing = [r for r in rows if getattr(r, column, None) is None]
    present.sort(key=lambda r: (getattr(r, column), r.id), reverse=descending)
    missing.sort(key=lambda r: r.id)
    return present + missing


def _paginate(rows: list[Any], pagination: Pagination | None) -> Paginated:
    pagination = replace(pagination) if pagination else Pagination()
    return Paginated(data=pagination.apply(rows), pagination=pagination)


def _user_matches(user: User, f: UserFilter) -> bool:
    if f.id is not None and user.id != str(f.id):
        return False
    if f.is_active is not None and user.is_active != f.is_active:
        return False
    if f.is_test_user is not None and user.is_test_user != f.is_test_user:
        return False
    if f.user_type is not None and user.user_type != f.user_type:
        return False
    if f.exclude_ids and user.id in f.exclude_ids:
        return False
    return True


def _match_set_matches(ms: MatchSet, f: MatchSetFilter) -> bool:
    if f.id is not None and ms.id != str(f.id):
        return False
    if f.name is not None and ms.name != f.name:
        return False
    if f.number_of_participants_min is not None and ms.number_of_participants < f.number_of_participants_min:
        return False
    if f.number_of_participants_max is not None and ms.number_of_participants > f.number_of_participants_max:
        return False
    if f.created_after is not None and (ms.created_at is None or ms.created_at < f.created_after):
        return False
    if f.created_before is not None and (ms.created_at is None or ms.created_at > f.created_before):
        return False
    return True


RESULT_FLAGS = ("matched_qualitatively", "is_verified", "is_expired", "is_approved", "is_dropped", "is_possible_match")


def _result_matches(r: MatchResult, f: MatchResultFilter) -> bool:
    if f.id is not None and r.id != str(f.id):
        return False
    if f.match_set_id is not None and r.match_set_id != str(f.match_set_id):
        return False
    if f.user_id is not None and not r.has_participant(str(f.user_id)):
        return False
    if f.initiator_user_id is not None and r.initiator_user_id != str(f.initiator_user_id):
        return False
    if f.receiver_user_id is not None and r.receiver_user_id != str(f.receiver_user_id):
        return False
    if f.lifecycle_status is not None and r.lifecycle_status != f.lifecycle_status:
        return False
    for flag in RESULT_FLAGS:
        want = getattr(f, flag)
        if want is not None and bool(getattr(r, flag)) != want:
            return False
    return True


class MemoryStore:
    """Implements every store capability over a ``MemoryTransaction``."""

    # users

    def users(self, db: MemoryTransaction, filter: UserFilter | None = None) -> list[User]:
        f = filter or UserFilter()
        rows = [u for u in db.rows("users") if _user_matches(u, f)]
        return sorted(rows, key=lambda u: u.id)

    def user(self, db: MemoryTransaction, user_id: str) -> User:
        user = db.get("users", user_id)
        if user is None:
            raise UserNotFoundError(f"user {user_id} not found")
        return user

    def insert_user(self, db: MemoryTransaction, user: User) -> User:
        db.put("users", user.id, user)
        return user

    # config

    def configs(self, db: MemoryTransaction, filter: ConfigFilter | None = None) -> list[MatchConfig]:
        f = filter or ConfigFilter()
        rows = db.rows("match_config")
        if f.id is not None:
            rows = [c for c in rows if c.id == str(f.id)]
        return sorted(rows, key=lambda c: c.id or "")

    def config(self, db: MemoryTransaction, filter: ConfigFilter | None = None) -> MatchConfig:
        rows = self.configs(db, filter)
        if not rows:
            raise ConfigNotFoundError()
        if len(rows) > 1:
            raise AmbiguousConfigError(len(rows))
        return rows[0]

    def insert_config(self, db: MemoryTransaction, config: MatchConfig) -> MatchConfig:
        db.put("match_config", config.id, config)
        return config

    def update_config(self, db: MemoryTransaction, config: MatchConfig) -> MatchConfig:
        db.lock("match_config", config.id)
        if db.get("match_config", config.id) is None:
            raise ConfigNotFoundError(f"match configuration {config.id} not found")
        db.put("match_config", config.id, config)
        return config

    # match sets

    def insert_match_set(self, db: MemoryTransaction, match_set: MatchSet) -> MatchSet:
        db.put("match_set", match_set.id, match_set)
        return match_set

    def match_set(self, db: MemoryTransaction, match_set_id: str) -> MatchSet:
        ms = db.get("match_set", match_set_id)
        if ms is None:
            raise MatchSetNotFoundError(f"match set {match_set_id} not found")
        return ms

    def match_sets(self, db: MemoryTransaction, filter: MatchSetFilter | None = None) -> Paginated:
        f = filter or MatchSetFilter()
        rows = [ms for ms in db.rows("match_set") if _match_set_matches(ms, f)]
        column, descending = resolve_order(f.order_by, f.sort, MATCH_SET_ORDER_COLUMNS)
        return _paginate(_sorted(rows, column, descending), f.pagination)

    # match results

    def insert_match_results(self, db: MemoryTransaction, results: list[MatchResult]) -> None:
        for r in results:
            db.put("match_result", r.id, r)

    def match_result(self, db: MemoryTransaction, match_id: str, *, for_update: bool = False) -> MatchResult:
        if for_update:
            db.lock("match_result", match_id)
        r = db.get("match_result", match_id)
        if r is None:
            raise MatchNotFoundError(f"match {match_id} not found")
        return r

    def match_results(self, db: MemoryTransaction, filter: MatchResultFilter | None = None) -> Paginated:
        f = filter or MatchResultFilter()
        rows = [r for r in db.rows("match_result") if _result_matches(r, f)]
        column, descending = resolve_order(f.order_by, f.sort, MATCH_RESULT_ORDER_COLUMNS)
        return _paginate(_sorted(rows, column, descending), f.pagination)

    def update_match_result(self, db: MemoryTransaction, update: MatchResultUpdate) -> MatchResult:
        r = self.match_result(db, update.id, for_update=True)
        r = replace(r, **update.changes())
        db.put("match_result", r.id, r)
        return r

    def user_ids_with_live_match(self, db: MemoryTransaction) -> set[str]:
        ids: set[str] = set()
        for r in db.rows("match_result"):
            if r.is_approved and not r.is_dropped:
                ids.update(r.participants())
        return ids

    # user actions

    def set_user_action(self, db: MemoryTransaction, match_id: str, user_id: str, action: str, now: datetime) -> MatchResult:
        r = self.match_result(db, match_id, for_update=True)
        if r.initiator_user_id == user_id:
            r.initiator_action = action
        elif r.receiver_user_id == user_id:
            r.receiver_action = action
        else:
            raise MatchNotFoundError(f"match {match_id} not found for user {user_id}")
        r.updated_at = now
        db.put("match_result", r.id, r)
        return r

    def mark_seen(self, db: MemoryTransaction, user_id: str, match_ids: list[str], now: datetime) -> int:
        updated = 0
        for match_id in match_ids:
            db.lock("match_result", match_id)
            r = db.get("match_result", match_id)
            if r is None or not r.is_visible():
                continue
            if r.initiator_user_id == user_id and r.initiator_seen_at is None:
                r.initiator_seen_at = now
            elif r.receiver_user_id == user_id and r.receiver_seen_at is None:
                r.receiver_seen_at = now
            else:
                continue
            db.put("match_result", r.id, r)
            updated += 1
        return updated

    # date instances

    def insert_date_instance(self, db: MemoryTransaction, instance: DateInstance) -> DateInstance:
        if self.date_instances(db, instance.match_result_id):
            raise ValueError(f"date instance already exists for match {instance.match_result_id}")
        db.put("date_instance", instance.id, instance)
        return instance

    def insert_date_instance_log(self, db: MemoryTransaction, log: DateInstanceLog) -> DateInstanceLog:
        db.put("date_instance_log", log.id, log)
        return log

    def update_match_for_date_instance(
        self, db: MemoryTransaction, match_id: str, date_instance_id: str, lifecycle_status: str, now: datetime
    ) -> None:
        r = self.match_result(db, match_id, for_update=True)
        r.current_date_instance_id = date_instance_id
        r.lifecycle_status = lifecycle_status
        r.updated_at = now
        db.put("match_result", r.id, r)

    def date_instances(self, db: MemoryTransaction, match_id: str) -> list[DateInstance]:
        return [d for d in db.rows("date_instance") if d.match_result_id == str(match_id)]

    def date_instance_logs(self, db: MemoryTransaction, date_instance_id: str) -> list[DateInstanceLog]:
        return [log for log in db.rows("date_instance_log") if log.date_instance_id == str(date_instance_id)]

    # profiles

    def profile(self, db: MemoryTransaction, user_id: str) -> dict[str, Any]:
        data = db.get("profile", user_id)
        if data is None:
            raise ProfileNotFoundError(f"profile for user {user_id} not found")
        return data

    def upsert_profile(self, db: MemoryTransaction, user_id: str, data: dict[str, Any]) -> None:
        db.put("profile", user_id, data)
