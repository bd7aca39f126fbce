import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

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
    UserNotFoundError,
)
from ..models import (
    DateInstanceLogRow,
    DateInstanceRow,
    MatchConfigRow,
    MatchResultRow,
    MatchSetRow,
    ProfileRow,
    UserDatingPreferenceRow,
    UserRow,
)
from .ordering import MATCH_RESULT_ORDER_COLUMNS, MATCH_SET_ORDER_COLUMNS, resolve_order

CONFIG_FIELDS = tuple(f for f in MatchConfig.__dataclass_fields__ if f != "id")


def _aware(value: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user(row: UserRow, prefs: list[str]) -> User:
    return User(
        id=row.id,
        email=row.email,
        age=row.age,
        gender=row.gender,
        height=row.height,
        latitude=row.latitude,
        longitude=row.longitude,
        first_name=row.firstname,
        last_name=row.lastname,
        user_type=row.user_type,
        is_test_user=bool(row.is_test_user),
        is_active=bool(row.is_active),
        dating_preferences=sorted(prefs),
    )


def _config(row: MatchConfigRow) -> MatchConfig:
    values = {name: getattr(row, name) for name in CONFIG_FIELDS}
    values["location_adaptive_expansion"] = list(values["location_adaptive_expansion"] or [])
    values["drop_hours"] = list(values["drop_hours"] or [])
    values["drop_hours_utc"] = list(values["drop_hours_utc"] or [])
    return MatchConfig(id=row.id, **values)


def _match_set(row: MatchSetRow) -> MatchSet:
    return MatchSet(
        id=row.id,
        name=row.name,
        number_of_participants=row.number_of_participants,
        match_configuration=row.match_configuration,
        time_start=_aware(row.time_start),
        time_end=_aware(row.time_end),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _match_result(row: MatchResultRow) -> MatchResult:
    return MatchResult(
        id=row.id,
        match_set_id=row.match_set_id,
        initiator_user_id=row.initiator_user_id,
        receiver_user_id=row.receiver_user_id,
        qualifier_results=row.qualifier_results,
        matched_qualitatively=row.matched_qualitatively,
        is_possible_match=bool(row.is_possible_match),
        is_approved=bool(row.is_approved),
        is_verified=bool(row.is_verified),
        is_expired=bool(row.is_expired),
        is_dropped=bool(row.is_dropped),
        dropped_at=_aware(row.dropped_at),
        initiator_action=row.initiator_action,
        receiver_action=row.receiver_action,
        initiator_seen_at=_aware(row.initiator_seen_at),
        receiver_seen_at=_aware(row.receiver_seen_at),
        lifecycle_status=row.user_lifecycle_status,
        current_date_instance_id=row.current_date_instance_id,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _date_instance(row: DateInstanceRow) -> DateInstance:
    return DateInstance(
        id=row.id,
        match_result_id=row.match_result_id,
        status=row.status,
        decision_window_end=_aware(row.decision_window_end),
        date_type_core=row.date_type_core,
        scheduled_time_utc=_aware(row.scheduled_time_utc),
        duration_minutes=row.duration_minutes,
        created_at=_aware(row.created_at),
    )


def _date_instance_log(row: DateInstanceLogRow) -> DateInstanceLog:
    return DateInstanceLog(
        id=row.id,
        date_instance_id=row.date_instance_id,
        event_type=row.event_type,
        user_id=row.user_id,
        old_value=row.old_value,
        new_value=row.new_value,
        details=row.details,
        created_at=_aware(row.created_at),
    )


def _ordered(stmt, model, column: str, descending: bool):
    col = getattr(model, column)
    if descending:
        return stmt.order_by(col.is_(None), col.desc(), model.id.desc())
    return stmt.order_by(col.is_(None), col.asc(), model.id.asc())


def _paginate(db: Session, stmt, pagination: Pagination | None, convert) -> Paginated:
    pagination = Pagination(page=pagination.page, rows=pagination.rows) if pagination else Pagination()
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    pagination.total_rows = total
    if pagination.rows > 0:
        page = max(1, pagination.page)
        pagination.total_pages = math.ceil(total / pagination.rows)
        stmt = stmt.offset((page - 1) * pagination.rows).limit(pagination.rows)
    else:
        pagination.total_pages = 1 if total else 0
    rows = db.execute(stmt).scalars().all()
    return Paginated(data=[convert(r) for r in rows], pagination=pagination)


class SqlStore:
    """Implements every store capability over a SQLAlchemy ``Session``."""

    # users

    def _preferences(self, db: Session, user_ids: list[str]) -> dict[str, list[str]]:
        prefs: dict[str, list[str]] = {uid: [] for uid in user_ids}
        if not user_ids:
            return prefs
        rows = db.execute(
            select(UserDatingPreferenceRow).where(UserDatingPreferenceRow.user_id.in_(user_ids))
        ).scalars()
        for row in rows:
            prefs.setdefault(row.user_id, []).append(row.dating_preference)
        return prefs

    def users(self, db: Session, filter: UserFilter | None = None) -> list[User]:
        f = filter or UserFilter()
        stmt = select(UserRow)
        if f.id is not None:
            stmt = stmt.where(UserRow.id == str(f.id))
        if f.is_active is not None:
            stmt = stmt.where(UserRow.is_active == f.is_active)
        if f.is_test_user is not None:
            stmt = stmt.where(UserRow.is_test_user == f.is_test_user)
        if f.user_type is not None:
            stmt = stmt.where(UserRow.user_type == f.user_type)
        if f.exclude_ids:
            stmt = stmt.where(UserRow.id.not_in(sorted(f.exclude_ids)))
        rows = db.execute(stmt.order_by(UserRow.id)).scalars().all()
        prefs = self._preferences(db, [r.id for r in rows])
        return [_user(r, prefs.get(r.id, [])) for r in rows]

    def user(self, db: Session, user_id: str) -> User:
        row = db.get(UserRow, str(user_id))
        if row is None:
            raise UserNotFoundError(f"user {user_id} not found")
        return _user(row, self._preferences(db, [row.id])[row.id])

    def insert_user(self, db: Session, user: User) -> User:
        db.add(
            UserRow(
                id=user.id,
                email=user.email,
                age=user.age,
                gender=user.gender,
                height=user.height,
                latitude=user.latitude,
                longitude=user.longitude,
                firstname=user.first_name,
                lastname=user.last_name,
                user_type=user.user_type,
                is_test_user=user.is_test_user,
                is_active=user.is_active,
            )
        )
        db.flush()
        db.execute(delete(UserDatingPreferenceRow).where(UserDatingPreferenceRow.user_id == user.id))
        for pref in sorted(set(user.dating_preferences)):
            db.add(UserDatingPreferenceRow(user_id=user.id, dating_preference=pref))
        db.flush()
        return user

    # config

    def configs(self, db: Session, filter: ConfigFilter | None = None) -> list[MatchConfig]:
        f = filter or ConfigFilter()
        stmt = select(MatchConfigRow)
        if f.id is not None:
            stmt = stmt.where(MatchConfigRow.id == str(f.id))
        return [_config(r) for r in db.execute(stmt.order_by(MatchConfigRow.id)).scalars()]

    def config(self, db: Session, filter: ConfigFilter | None = None) -> MatchConfig:
        rows = self.configs(db, filter)
        if not rows:
            raise ConfigNotFoundError()
        if len(rows) > 1:
            raise AmbiguousConfigError(len(rows))
        return rows[0]

    def insert_config(self, db: Session, config: MatchConfig) -> MatchConfig:
        values = {name: getattr(config, name) for name in CONFIG_FIELDS}
        db.add(MatchConfigRow(id=config.id, **values))
        db.flush()
        return config

    def update_config(self, db: Session, config: MatchConfig) -> MatchConfig:
        row = db.get(MatchConfigRow, str(config.id))
        if row is None:
            raise ConfigNotFoundError(f"match configuration {config.id} not found")
        for name in CONFIG_FIELDS:
            setattr(row, name, getattr(config, name))
        row.updated_at = func.now()
        db.flush()
        return config

    # match sets

    def insert_match_set(self, db: Session, match_set: MatchSet) -> MatchSet:
        db.add(
            MatchSetRow(
                id=match_set.id,
                name=match_set.name,
                number_of_participants=match_set.number_of_participants,
                match_configuration=match_set.match_configuration,
                time_start=match_set.time_start,
                time_end=match_set.time_end,
                created_at=match_set.created_at,
                updated_at=match_set.updated_at,
            )
        )
        db.flush()
        return match_set

    def match_set(self, db: Session, match_set_id: str) -> MatchSet:
        row = db.get(MatchSetRow, str(match_set_id))
        if row is None:
            raise MatchSetNotFoundError(f"match set {match_set_id} not found")
        return _match_set(row)

    def match_sets(self, db: Session, filter: MatchSetFilter | None = None) -> Paginated:
        f = filter or MatchSetFilter()
        stmt = select(MatchSetRow)
        if f.id is not None:
            stmt = stmt.where(MatchSetRow.id == str(f.id))
        if f.name is not None:
            stmt = stmt.where(MatchSetRow.name == f.name)
        if f.number_of_participants_min is not None:
            stmt = stmt.where(MatchSetRow.number_of_participants >= f.number_of_participants_min)
        if f.number_of_participants_max is not None:
            stmt = stmt.where(MatchSetRow.number_of_participants <= f.number_of_participants_max)
        if f.created_after is not None:
            stmt = stmt.where(MatchSetRow.created_at >= f.created_after)
        if f.created_before is not None:
            stmt = stmt.where(MatchSetRow.created_at <= f.created_before)
        column, descending = resolve_order(f.order_by, f.sort, MATCH_SET_ORDER_COLUMNS)
        return _paginate(db, _ordered(stmt, MatchSetRow, column, descending), f.pagination, _match_set)

    # match results

    def insert_match_results(self, db: Session, results: list[MatchResult]) -> None:
        db.add_all(
            [
                MatchResultRow(
                    id=r.id,
                    match_set_id=r.match_set_id,
                    initiator_user_id=r.initiator_user_id,
                    receiver_user_id=r.receiver_user_id,
                    qualifier_results=r.qualifier_results,
                    matched_qualitatively=r.matched_qualitatively,
                    is_possible_match=r.is_possible_match,
                    is_approved=r.is_approved,
                    is_verified=r.is_verified,
                    is_expired=r.is_expired,
                    is_dropped=r.is_dropped,
                    dropped_at=r.dropped_at,
                    initiator_action=r.initiator_action,
                    receiver_action=r.receiver_action,
                    user_lifecycle_status=r.lifecycle_status,
                    current_date_instance_id=r.current_date_instance_id,
                    created_at=r.created_at,
                    updated_at=r.updated_at,
                )
                for r in results
            ]
        )
        db.flush()

    def _result_row(self, db: Session, match_id: str, for_update: bool = False) -> MatchResultRow:
        stmt = select(MatchResultRow).where(MatchResultRow.id == str(match_id))
        if for_update:
            stmt = stmt.with_for_update()
        row = db.execute(stmt).scalar_one_or_none()
        if row is None:
            raise MatchNotFoundError(f"match {match_id} not found")
        return row

    def match_result(self, db: Session, match_id: str, *, for_update: bool = False) -> MatchResult:
        return _match_result(self._result_row(db, match_id, for_update))

    def match_results(self, db: Session, filter: MatchResultFilter | None = None) -> Paginated:
        f = filter or MatchResultFilter()
        stmt = select(MatchResultRow)
        if f.id is not None:
            stmt = stmt.where(MatchResultRow.id == str(f.id))
        if f.match_set_id is not None:
            stmt = stmt.where(MatchResultRow.match_set_id == str(f.match_set_id))
        if f.user_id is not None:
            uid = str(f.user_id)
            stmt = stmt.where(or_(MatchResultRow.initiator_user_id == uid, MatchResultRow.receiver_user_id == uid))
        if f.initiator_user_id is not None:
            stmt = stmt.where(MatchResultRow.initiator_user_id == str(f.initiator_user_id))
        if f.receiver_user_id is not None:
            stmt = stmt.where(MatchResultRow.receiver_user_id == str(f.receiver_user_id))
        if f.lifecycle_status is not None:
            stmt = stmt.where(MatchResultRow.user_lifecycle_status == f.lifecycle_status)
        if f.matched_qualitatively is not None:
            if f.matched_qualitatively:
                stmt = stmt.where(MatchResultRow.matched_qualitatively.is_(True))
            else:
                stmt = stmt.where(or_(MatchResultRow.matched_qualitatively.is_(False), MatchResultRow.matched_qualitatively.is_(None)))
        for flag in ("is_verified", "is_expired", "is_approved", "is_dropped", "is_possible_match"):
            want = getattr(f, flag)
            if want is not None:
                stmt = stmt.where(getattr(MatchResultRow, flag) == want)
        column, descending = resolve_order(f.order_by, f.sort, MATCH_RESULT_ORDER_COLUMNS)
        return _paginate(db, _ordered(stmt, MatchResultRow, column, descending), f.pagination, _match_result)

    def update_match_result(self, db: Session, update: MatchResultUpdate) -> MatchResult:
        row = self._result_row(db, update.id)
        for name, value in update.changes().items():
            setattr(row, name, value)
        db.flush()
        return _match_result(row)

    def user_ids_with_live_match(self, db: Session) -> set[str]:
        rows = db.execute(
            select(MatchResultRow.initiator_user_id, MatchResultRow.receiver_user_id).where(
                MatchResultRow.is_approved.is_(True), MatchResultRow.is_dropped.is_(False)
            )
        ).all()
        ids: set[str] = set()
        for initiator, receiver in rows:
            ids.add(initiator)
            ids.add(receiver)
        return ids

    # user actions

    def set_user_action(self, db: Session, match_id: str, user_id: str, action: str, now: datetime) -> MatchResult:
        row = self._result_row(db, match_id)
        if row.initiator_user_id == user_id:
            row.initiator_action = action
        elif row.receiver_user_id == user_id:
            row.receiver_action = action
        else:
            raise MatchNotFoundError(f"match {match_id} not found for user {user_id}")
        row.updated_at = now
        db.flush()
        return _match_result(row)

    def mark_seen(self, db: Session, user_id: str, match_ids: list[str], now: datetime) -> int:
        if not match_ids:
            return 0
        rows = db.execute(
            select(MatchResultRow).where(
                MatchResultRow.id.in_([str(m) for m in match_ids]),
                MatchResultRow.is_approved.is_(True),
                MatchResultRow.is_dropped.is_(True),
                MatchResultRow.is_expired.is_(False),
            )
        ).scalars()
        updated = 0
        for row in rows:
            if row.initiator_user_id == user_id and row.initiator_seen_at is None:
                row.initiator_seen_at = now
            elif row.receiver_user_id == user_id and row.receiver_seen_at is None:
                row.receiver_seen_at = now
            else:
                continue
            updated += 1
        db.flush()
        return updated

    # date instances

    def insert_date_instance(self, db: Session, instance: DateInstance) -> DateInstance:
        db.add(
            DateInstanceRow(
                id=instance.id,
                match_result_id=instance.match_result_id,
                status=instance.status,
                decision_window_end=instance.decision_window_end,
                date_type_core=instance.date_type_core,
                scheduled_time_utc=instance.scheduled_time_utc,
                duration_minutes=instance.duration_minutes,
                created_at=instance.created_at,
            )
        )
        db.flush()
        return instance

    def insert_date_instance_log(self, db: Session, log: DateInstanceLog) -> DateInstanceLog:
        db.add(
            DateInstanceLogRow(
                id=log.id,
                date_instance_id=log.date_instance_id,
                event_type=log.event_type,
                user_id=log.user_id,
                old_value=log.old_value,
                new_value=log.new_value,
                details=log.details,
                created_at=log.created_at,
            )
        )
        db.flush()
        return log

    def update_match_for_date_instance(
        self, db: Session, match_id: str, date_instance_id: str, lifecycle_status: str, now: datetime
    ) -> None:
        row = self._result_row(db, match_id)
        row.current_date_instance_id = date_instance_id
        row.user_lifecycle_status = lifecycle_status
        row.updated_at = now
        db.flush()

    def date_instances(self, db: Session, match_id: str) -> list[DateInstance]:
        rows = db.execute(select(DateInstanceRow).where(DateInstanceRow.match_result_id == str(match_id))).scalars()
        return [_date_instance(r) for r in rows]

    def date_instance_logs(self, db: Session, date_instance_id: str) -> list[DateInstanceLog]:
        rows = db.execute(
            select(DateInstanceLogRow)
            .where(DateInstanceLogRow.date_instance_id == str(date_instance_id))
            .order_by(DateInstanceLogRow.created_at)
        ).scalars()
        return [_date_instance_log(r) for r in rows]

    # profiles

    def profile(self, db: Session, user_id: str) -> dict[str, Any]:
        row = db.get(ProfileRow, str(user_id))
        if row is None:
            raise ProfileNotFoundError(f"profile for user {user_id} not found")
        return dict(row.data)

    def upsert_profile(self, db: Session, user_id: str, data: dict[str, Any]) -> None:
        row = db.get(ProfileRow, str(user_id))
        if row is None:
            db.add(ProfileRow(user_id=str(user_id), data=data))
        else:
            row.data = data
            row.updated_at = func.now()
        db.flush()
