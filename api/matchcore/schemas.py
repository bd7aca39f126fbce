from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PaginationOut(_FromDomain):
    page: int
    rows: int
    total_rows: int
    total_pages: int


class MatchConfigResponse(_FromDomain):
    id: str | None = None
    age_range_start: int
    age_range_end: int
    age_range_woman_older_by: int
    age_range_man_older_by: int
    height_male_greater_by_cm: float
    location_radius_km: float
    location_adaptive_expansion: list[int]
    drop_hours: list[str]
    drop_hours_utc: list[str]
    stale_chat_nudge: int
    stale_chat_agent_setup: int
    match_expiration_hours: int
    match_block_declined: int
    match_block_ignored: int
    match_block_closed: int
    score_range_start: float
    score_range_end: float


class MatchConfigUpdateRequest(BaseModel):
    age_range_start: int | None = None
    age_range_end: int | None = None
    age_range_woman_older_by: int | None = None
    age_range_man_older_by: int | None = None
    height_male_greater_by_cm: float | None = None
    location_radius_km: float | None = None
    location_adaptive_expansion: list[int] | None = None
    drop_hours: list[str] | None = None
    drop_hours_utc: list[str] | None = None
    stale_chat_nudge: int | None = None
    stale_chat_agent_setup: int | None = None
    match_expiration_hours: int | None = None
    match_block_declined: int | None = None
    match_block_ignored: int | None = None
    match_block_closed: int | None = None
    score_range_start: float | None = None
    score_range_end: float | None = None


class MatchSetResponse(_FromDomain):
    id: str
    name: str
    number_of_participants: int
    match_configuration: dict[str, Any] | None = None
    time_start: datetime | None = None
    time_end: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MatchSetsResponse(BaseModel):
    data: list[MatchSetResponse]
    pagination: PaginationOut


class MatchResultResponse(_FromDomain):
    id: str
    match_set_id: str
    initiator_user_id: str
    receiver_user_id: str
    qualifier_results: dict[str, Any] | None = None
    matched_qualitatively: bool | None = None
    is_possible_match: bool
    is_approved: bool
    is_verified: bool
    is_expired: bool
    is_dropped: bool
    dropped_at: datetime | None = None
    initiator_action: str
    receiver_action: str
    lifecycle_status: str | None = None
    current_date_instance_id: str | None = None
    created_at: datetime | None = None


class MatchResultsResponse(BaseModel):
    data: list[MatchResultResponse]
    pagination: PaginationOut


class IngestRequest(BaseModel):
    is_test_user: bool | None = None


class BatchRunResponse(_FromDomain):
    match_set_id: str
    total: int
    succeeded: int
    failed: int
    cancelled: int
    unfinished: int = 0


class DropResponse(BaseModel):
    dropped: list[str] = Field(default_factory=list)


class UserMatchResponse(_FromDomain):
    id: str
    partner_id: str
    partner_name: str | None = None
    partner_age: int | None = None
    partner_gender: str | None = None
    distance_km: float | None = None
    match_score: float | None = None
    your_action: str
    partner_action: str
    mutual_proposal: bool
    date_instance_id: str | None = None
    seen_at: datetime | None = None
    dropped_at: datetime | None = None


class UserMatchesResponse(BaseModel):
    data: list[UserMatchResponse]
    pagination: PaginationOut


class ProposeMatchResponse(_FromDomain):
    success: bool
    mutual_proposal: bool
    date_instance_id: str | None = None


class MarkSeenRequest(BaseModel):
    match_ids: list[str] = Field(default_factory=list)


class MarkSeenResponse(BaseModel):
    updated: int


class UnseenCountResponse(BaseModel):
    count: int
