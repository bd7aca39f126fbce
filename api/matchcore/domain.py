from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

MALE = "Male"
FEMALE = "Female"
NON_BINARY = "Non-Binary"

ACTION_PENDING = "Pending"
ACTION_PROPOSED = "Proposed"
ACTION_PASSED = "Passed"
USER_ACTIONS = (ACTION_PENDING, ACTION_PROPOSED, ACTION_PASSED)

DATE_INSTANCE_STATUS_PROPOSED = "Proposed"
DATE_INSTANCE_EVENT_CREATED = "created"

LIFECYCLE_CONFIRMED = "Confirmed"
LIFECYCLE_SCHEDULING = "Scheduling"
LIFECYCLE_DATE_SET = "Date Set"
LIFECYCLE_DATE_COMPLETE_PENDING_FEEDBACK = "Date Complete Pending Feedback"
LIFECYCLE_DECISION_PENDING_WINDOW = "Decision Pending Window"
LIFECYCLE_QUEUED = "Queued"
LIFECYCLE_CLOSED = "Closed"

AGE_WINDOW_QUALIFIER = "age_window_qualifier"
DATE_PREFS_QUALIFIER = "date_prefs_qualifier"
HEIGHT_QUALIFIER = "height_qualifier"
DISTANCE_QUALIFIER = "distance_qualifier"
QUALITATIVE_QUALIFIER = "qualitative_qualifier"


@dataclass
class User:
    id: str
    email: str | None = None
    age: int | None = None
    gender: str | None = None
    height: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    first_name: str | None = None
    last_name: str | None = None
    user_type: str | None = None
    is_test_user: bool = False
    is_active: bool = True
    dating_preferences: list[str] = field(default_factory=list)


@dataclass
class MatchConfig:
    id: str | None = None
    age_range_start: int = 18
    age_range_end: int = 10
    age_range_woman_older_by: int = 5
    age_range_man_older_by: int = 10
    height_male_greater_by_cm: float = 0.0
    location_radius_km: float = 50.0
    location_adaptive_expansion: list[int] = field(default_factory=list)
    drop_hours: list[str] = field(default_factory=list)
    drop_hours_utc: list[str] = field(default_factory=list)
    stale_chat_nudge: int = 0
    stale_chat_agent_setup: int = 0
    match_expiration_hours: int = 72
    match_block_declined: int = 0
    match_block_ignored: int = 0
    match_block_closed: int = 0
    score_range_start: float = 0.0
    score_range_end: float = 100.0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatchConfig:
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class MatchSet:
    id: str
    name: str
    number_of_participants: int
    match_configuration: dict[str, Any] | None = None
    time_start: datetime | None = None
    time_end: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class MatchResult:
    id: str
    match_set_id: str
    initiator_user_id: str
    receiver_user_id: str
    qualifier_results: dict[str, Any] | None = None
    matched_qualitatively: bool | None = None
    is_possible_match: bool = False
    is_approved: bool = False
    is_verified: bool = False
    is_expired: bool = False
    is_dropped: bool = False
    dropped_at: datetime | None = None
    initiator_action: str = ACTION_PENDING
    receiver_action: str = ACTION_PENDING
    initiator_seen_at: datetime | None = None
    receiver_seen_at: datetime | None = None
    lifecycle_status: str | None = None
    current_date_instance_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def participants(self) -> tuple[str, str]:
        return self.initiator_user_id, self.receiver_user_id

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.initiator_user_id, self.receiver_user_id)

    def is_visible(self) -> bool:
        return self.is_approved and self.is_dropped and not self.is_expired


@dataclass
class UserMatch:
    """A MatchResult seen from one participant's side."""

    id: str
    user_id: str
    partner_id: str
    your_action: str
    partner_action: str
    partner_name: str | None = None
    partner_age: int | None = None
    partner_gender: str | None = None
    distance_km: float | None = None
    match_score: float | None = None
    mutual_proposal: bool = False
    date_instance_id: str | None = None
    seen_at: datetime | None = None
    dropped_at: datetime | None = None


@dataclass
class DateInstance:
    id: str
    match_result_id: str
    status: str
    decision_window_end: datetime
    date_type_core: str | None = None
    scheduled_time_utc: datetime | None = None
    duration_minutes: int | None = None
    created_at: datetime | None = None


@dataclass
class DateInstanceLog:
    id: str
    date_instance_id: str
    event_type: str
    user_id: str | None = None
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    details: str | None = None
    created_at: datetime | None = None


@dataclass
class Pagination:
    page: int = 1
    rows: int = 0
    total_rows: int = 0
    total_pages: int = 0

    def apply(self, items: list[Any]) -> list[Any]:
        """Fill totals from the full result list and return the requested page."""
        self.total_rows = len(items)
        if self.rows <= 0:
            self.total_pages = 1 if items else 0
            return list(items)
        page = max(1, self.page)
        self.total_pages = math.ceil(self.total_rows / self.rows)
        start = (page - 1) * self.rows
        return list(items[start:start + self.rows])


@dataclass
class Paginated:
    data: list[Any]
    pagination: Pagination


@dataclass
class UserFilter:
    id: str | None = None
    is_active: bool | None = None
    is_test_user: bool | None = None
    user_type: str | None = None
    exclude_ids: set[str] | None = None


@dataclass
class MatchSetFilter:
    id: str | None = None
    name: str | None = None
    number_of_participants_min: int | None = None
    number_of_participants_max: int | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    order_by: str | None = None
    sort: str | None = None
    pagination: Pagination | None = None


@dataclass
class MatchResultFilter:
    id: str | None = None
    match_set_id: str | None = None
    user_id: str | None = None
    initiator_user_id: str | None = None
    receiver_user_id: str | None = None
    lifecycle_status: str | None = None
    matched_qualitatively: bool | None = None
    is_verified: bool | None = None
    is_expired: bool | None = None
    is_approved: bool | None = None
    is_dropped: bool | None = None
    is_possible_match: bool | None = None
    order_by: str | None = None
    sort: str | None = None
    pagination: Pagination | None = None


@dataclass
class ConfigFilter:
    id: str | None = None


@dataclass
class MatchResultUpdate:
    """Partial update; None means leave the column alone."""

    id: str
    matched_qualitatively: bool | None = None
    qualifier_results: dict[str, Any] | None = None
    is_verified: bool | None = None
    is_approved: bool | None = None
    is_dropped: bool | None = None
    dropped_at: datetime | None = None
    is_possible_match: bool | None = None
    is_expired: bool | None = None
    updated_at: datetime | None = None

    def changes(self) -> dict[str, Any]:
        values = asdict(self)
        values.pop("id")
        return {k: v for k, v in values.items() if v is not None}


@dataclass
class UserPair:
    user_a: User
    user_b: User

    def key(self) -> tuple[str, str]:
        return self.user_a.id, self.user_b.id
