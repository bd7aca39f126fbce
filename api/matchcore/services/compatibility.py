import logging
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import (
    COMPATIBILITY_API_KEY,
    COMPATIBILITY_API_URL,
    COMPATIBILITY_MAX_RETRIES,
    COMPATIBILITY_RETRY_BACKOFF_SECONDS,
    COMPATIBILITY_TIMEOUT_SECONDS,
)
from ..errors import CompatibilityServiceError, ProfileValidationError

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class _ProfileSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QualitativeSection(_ProfileSection):
    self_portrait: str = Field(alias="Self Portrait", min_length=1)
    interests: str = Field(alias="Interests", min_length=1)
    wellbeing_habits: str = Field(alias="Wellbeing Habits", min_length=1)
    self_care_habits: str = Field(alias="Self Care Habits", min_length=1)
    money_management: str = Field(alias="Money Management", min_length=1)
    self_reflection_capabilities: str = Field(alias="Self Reflection Capabilities", min_length=1)
    moral_frameworks: str = Field(alias="Moral Frameworks", min_length=1)
    life_goals: str = Field(alias="Life Goals", min_length=1)
    partnership_values: str = Field(alias="Partnership Values", min_length=1)
    mutual_commitment: str = Field(alias="Mutual Commitment", min_length=1)
    spirituality_growth_mindset: str = Field(alias="Spirituality Growth Mindset", min_length=1)
    cultural_values: str = Field(alias="Cultural Values", min_length=1)
    family_planning: str = Field(alias="Family Planning", min_length=1)
    ideal_date: str = Field(alias="Ideal Date", min_length=1)
    red_green_flags: str = Field(alias="Red/Green Flags", min_length=1)


class QuantitativeSection(_ProfileSection):
    extroversion_social_energy: float = Field(alias="Extroversion Social Energy")
    routine_vs_spontaneity: float = Field(alias="Routine vs Spontaneity")
    agreeableness: float = Field(alias="Agreeableness")
    conscientiousness: float = Field(alias="Conscientiousness")
    neuroticism: float = Field(alias="Neuroticism")
    dominance_level: float = Field(alias="Dominance Level")
    emotional_expressiveness: float = Field(alias="Emotional Expressiveness")
    sex_drive: float = Field(alias="Sex Drive")
    geographical_mobility: float = Field(alias="Geographical Mobility")


class CategoricalSection(_ProfileSection):
    conflict_resolution_style: str = Field(alias="Conflict Resolution Style", min_length=1)
    sexuality_preferences: str = Field(alias="Sexuality Preferences", min_length=1)
    religion: str = Field(alias="Religion", min_length=1)


class PersonProfile(_ProfileSection):
    qualitative: QualitativeSection = Field(alias="Qualitative")
    quantitative: QuantitativeSection = Field(alias="Quantitative")
    categorical: CategoricalSection = Field(alias="Categorical")


class QualitativeMatchRequest(BaseModel):
    romeo: PersonProfile
    juliet: PersonProfile

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class CompatibilityScore(BaseModel):
    score: float = 0.0
    explanation: str = ""


class MatchCompatibilityResult(BaseModel):
    personality_compatibility_score: CompatibilityScore = Field(default_factory=CompatibilityScore)
    lifestyle_compatibility_score: CompatibilityScore = Field(default_factory=CompatibilityScore)
    values_compatibility_score: CompatibilityScore = Field(default_factory=CompatibilityScore)
    total_score: float = 0.0


def parse_profile(user_id: str, raw: dict[str, Any] | PersonProfile) -> PersonProfile:
    if isinstance(raw, PersonProfile):
        return raw
    try:
        return PersonProfile.model_validate(raw)
    except ValidationError as e:
        raise ProfileValidationError(f"profile for user {user_id} is incomplete: {e.error_count()} invalid fields") from e


def build_session(max_retries: int, backoff_seconds: float) -> requests.Session:
    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=backoff_seconds,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset(["POST"]),
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class CompatibilityClient:
    """HTTP client for the external compatibility scorer."""

    def __init__(
        self,
        url: str = COMPATIBILITY_API_URL,
        api_key: str = COMPATIBILITY_API_KEY,
        timeout: float = COMPATIBILITY_TIMEOUT_SECONDS,
        max_retries: int = COMPATIBILITY_MAX_RETRIES,
        backoff_seconds: float = COMPATIBILITY_RETRY_BACKOFF_SECONDS,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or build_session(max_retries, backoff_seconds)

    def qualify(self, request: QualitativeMatchRequest) -> MatchCompatibilityResult:
        body = request.payload()
        logger.debug("[compat] request body=%s", body)
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        try:
            resp = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise CompatibilityServiceError(f"compatibility request failed: {e}") from e

        if resp.status_code >= 400:
            raise CompatibilityServiceError(
                f"compatibility service returned {resp.status_code}: {resp.text[:200]}"
            )

        try:
            result = MatchCompatibilityResult.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise CompatibilityServiceError(f"unreadable compatibility response: {e}") from e

        logger.debug("[compat] total_score=%s", result.total_score)
        return result
