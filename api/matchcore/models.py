import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from .database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, nullable=True, unique=True)
    age = Column(Integer, nullable=True)
    gender = Column(String, nullable=True)
    height = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    firstname = Column(String, nullable=True)
    lastname = Column(String, nullable=True)
    user_type = Column(String, nullable=True)
    is_test_user = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserDatingPreferenceRow(Base):
    __tablename__ = "user_dating_preference"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    dating_preference = Column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "dating_preference", name="uq_user_dating_preference"),
        Index("idx_user_dating_preference_user_id", "user_id"),
    )


class ProfileRow(Base):
    __tablename__ = "profile"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    data = Column(JSONType, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MatchConfigRow(Base):
    __tablename__ = "match_config"

    id = Column(String(36), primary_key=True, default=_uuid)
    age_range_start = Column(Integer, nullable=False)
    age_range_end = Column(Integer, nullable=False)
    age_range_woman_older_by = Column(Integer, nullable=False)
    age_range_man_older_by = Column(Integer, nullable=False)
    height_male_greater_by_cm = Column(Float, nullable=False)
    location_radius_km = Column(Float, nullable=False)
    location_adaptive_expansion = Column(JSONType, nullable=False, default=list)
    drop_hours = Column(JSONType, nullable=False, default=list)
    drop_hours_utc = Column(JSONType, nullable=False, default=list)
    stale_chat_nudge = Column(Integer, nullable=False, default=0)
    stale_chat_agent_setup = Column(Integer, nullable=False, default=0)
    match_expiration_hours = Column(Integer, nullable=False, default=72)
    match_block_declined = Column(Integer, nullable=False, default=0)
    match_block_ignored = Column(Integer, nullable=False, default=0)
    match_block_closed = Column(Integer, nullable=False, default=0)
    score_range_start = Column(Float, nullable=False, default=0)
    score_range_end = Column(Float, nullable=False, default=100)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MatchSetRow(Base):
    __tablename__ = "match_set"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    number_of_participants = Column(Integer, nullable=False)
    match_configuration = Column(JSONType, nullable=True)
    time_start = Column(DateTime(timezone=True), nullable=True)
    time_end = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class MatchResultRow(Base):
    __tablename__ = "match_result"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_set_id = Column(String(36), ForeignKey("match_set.id"), nullable=False)
    initiator_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    receiver_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    qualifier_results = Column(JSONType, nullable=True)
    matched_qualitatively = Column(Boolean, nullable=True)
    is_possible_match = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_expired = Column(Boolean, nullable=False, default=False)
    is_dropped = Column(Boolean, nullable=False, default=False)
    dropped_at = Column(DateTime(timezone=True), nullable=True)
    initiator_action = Column(String, nullable=False, default="Pending")
    receiver_action = Column(String, nullable=False, default="Pending")
    initiator_seen_at = Column(DateTime(timezone=True), nullable=True)
    receiver_seen_at = Column(DateTime(timezone=True), nullable=True)
    user_lifecycle_status = Column(String, nullable=True)
    current_date_instance_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("match_set_id", "initiator_user_id", "receiver_user_id", name="uq_match_result_pair"),
        Index("idx_match_result_set", "match_set_id"),
        Index("idx_match_result_initiator", "initiator_user_id"),
        Index("idx_match_result_receiver", "receiver_user_id"),
        Index("idx_match_result_drop", "is_approved", "is_dropped", "created_at"),
    )


class DateInstanceRow(Base):
    __tablename__ = "date_instance"

    id = Column(String(36), primary_key=True, default=_uuid)
    match_result_id = Column(String(36), ForeignKey("match_result.id"), nullable=False, unique=True)
    status = Column(String, nullable=False)
    decision_window_end = Column(DateTime(timezone=True), nullable=False)
    date_type_core = Column(String, nullable=True)
    scheduled_time_utc = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class DateInstanceLogRow(Base):
    __tablename__ = "date_instance_log"

    id = Column(String(36), primary_key=True, default=_uuid)
    date_instance_id = Column(String(36), ForeignKey("date_instance.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String, nullable=False)
    user_id = Column(String(36), nullable=True)
    old_value = Column(JSONType, nullable=True)
    new_value = Column(JSONType, nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_date_instance_log_instance", "date_instance_id"),)
