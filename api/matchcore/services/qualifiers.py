from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable

from ..domain import (
    AGE_WINDOW_QUALIFIER,
    DATE_PREFS_QUALIFIER,
    DISTANCE_QUALIFIER,
    FEMALE,
    HEIGHT_QUALIFIER,
    MALE,
    NON_BINARY,
    QUALITATIVE_QUALIFIER,
    MatchConfig,
    User,
)
from ..errors import (
    AgeGapFemaleExceeds,
    AgeGapMaleExceeds,
    AgeGapSameSexExceeds,
    AgeNotSet,
    DatingPreferencesNotSet,
    DistanceExceeds,
    GenderNotSet,
    HardQualifierFailure,
    HeightGapExists,
    HeightNotSet,
    LocationNotSet,
    NoFemaleUser,
    NoMaleUser,
    NotInDatingPreferences,
)

EARTH_RADIUS_KM = 6371.0

# report key -> qualifier name, in evaluation order
REPORT_KEYS: dict[str, str] = {
    "age_window": AGE_WINDOW_QUALIFIER,
    "dating_preferences": DATE_PREFS_QUALIFIER,
    "height": HEIGHT_QUALIFIER,
    "distance": DISTANCE_QUALIFIER,
    "qualitative": QUALITATIVE_QUALIFIER,
}


@dataclass
class Qualifier:
    name: str
    telemetry: dict[str, Any] = field(default_factory=dict)
    error_code: str = ""
    error_msg: str = ""

    def set_error(self, failure: HardQualifierFailure) -> Qualifier:
        self.error_code = failure.code
        self.error_msg = str(failure)
        return self

    @property
    def passed(self) -> bool:
        return not self.error_msg

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "telemetry": self.telemetry,
            "error_code": self.error_code,
            "error_msg": self.error_msg,
        }


class QualifierReport:
    """Per-pair audit of every qualifier that ran.

    Serialized as a JSON object keyed by report key. Unknown keys read back
    from storage are preserved so newer qualifiers never break older rows.
    """

    def __init__(self) -> None:
        self.qualifiers: dict[str, Qualifier] = {}
        self._extra: dict[str, Any] = {}

    def attach(self, key: str) -> Qualifier:
        if key in self.qualifiers:
            raise ValueError(f"{REPORT_KEYS.get(key, key)} already set")
        q = Qualifier(name=REPORT_KEYS.get(key, key))
        self.qualifiers[key] = q
        return q

    def get(self, key: str) -> Qualifier | None:
        return self.qualifiers.get(key)

    def errors(self) -> list[str]:
        return [q.error_msg for q in self.qualifiers.values() if q.error_msg]

    def error_codes(self) -> list[str]:
        return [q.error_code for q in self.qualifiers.values() if q.error_code]

    def has_errors(self) -> bool:
        return bool(self.errors())

    def as_dict(self) -> dict[str, Any]:
        out = dict(self._extra)
        for key, q in self.qualifiers.items():
            out[key] = q.as_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QualifierReport:
        report = cls()
        for key, value in (data or {}).items():
            if isinstance(value, dict) and "name" in value:
                report.qualifiers[key] = Qualifier(
                    name=str(value.get("name") or key),
                    telemetry=dict(value.get("telemetry") or {}),
                    error_code=str(value.get("error_code") or ""),
                    error_msg=str(value.get("error_msg") or ""),
                )
            else:
                report._extra[key] = value
        return report


def users_are_hetero(user_a: User, user_b: User) -> bool:
    if not user_a.gender or not user_b.gender:
        return False
    genders = {user_a.gender, user_b.gender}
    return genders == {MALE, FEMALE}


def one_is_non_binary(user_a: User, user_b: User) -> bool:
    return NON_BINARY in (user_a.gender, user_b.gender)


def is_same_sex(user_a: User, user_b: User) -> bool:
    if not user_a.gender or not user_b.gender:
        return False
    return user_a.gender == user_b.gender


def male_and_female(user_a: User, user_b: User) -> tuple[User, User]:
    male = next((u for u in (user_a, user_b) if u.gender == MALE), None)
    if male is None:
        raise NoMaleUser()
    female = next((u for u in (user_a, user_b) if u.gender == FEMALE), None)
    if female is None:
        raise NoFemaleUser()
    return male, female


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def age_window_qualifier(config: MatchConfig, user_a: User, user_b: User, report: QualifierReport) -> Qualifier:
    q = report.attach("age_window")

    if user_a.age is None or user_b.age is None:
        return q.set_error(AgeNotSet())
    if not user_a.gender or not user_b.gender:
        return q.set_error(GenderNotSet())

    if user_a.age == user_b.age:
        return q

    hetero = users_are_hetero(user_a, user_b)
    age_gap = abs(user_a.age - user_b.age)
    q.telemetry["is_hetero_match"] = hetero
    q.telemetry["age_gap"] = age_gap

    if hetero:
        male, female = male_and_female(user_a, user_b)
        q.telemetry["male_user_age"] = male.age
        q.telemetry["female_user_age"] = female.age

        if male.age > female.age and age_gap > config.age_range_man_older_by:
            return q.set_error(
                AgeGapMaleExceeds(
                    f"m age: {male.age}, f age: {female.age}, max allowed gap: {config.age_range_man_older_by}"
                )
            )
        if female.age > male.age and age_gap > config.age_range_woman_older_by:
            return q.set_error(
                AgeGapFemaleExceeds(
                    f"m age: {male.age}, f age: {female.age}, max allowed gap: {config.age_range_woman_older_by}"
                )
            )
        return q

    if age_gap > config.age_range_end:
        return q.set_error(
            AgeGapSameSexExceeds(
                f"user-a age: {user_a.age}, user-b age: {user_b.age}, max allowed gap: {config.age_range_end}"
            )
        )
    return q


def dating_preferences_qualifier(config: MatchConfig, user_a: User, user_b: User, report: QualifierReport) -> Qualifier:
    q = report.attach("dating_preferences")

    if not user_a.gender or not user_b.gender:
        return q.set_error(GenderNotSet())
    if not user_a.dating_preferences or not user_b.dating_preferences:
        return q.set_error(DatingPreferencesNotSet())

    q.telemetry["userA_gender"] = user_a.gender
    q.telemetry["userB_gender"] = user_b.gender
    q.telemetry["userA_date_prefs"] = sorted(user_a.dating_preferences)
    q.telemetry["userB_date_prefs"] = sorted(user_b.dating_preferences)

    a_accepts_b = user_b.gender in set(user_a.dating_preferences)
    b_accepts_a = user_a.gender in set(user_b.dating_preferences)
    q.telemetry["userA_accepts_userB"] = a_accepts_b
    q.telemetry["userB_accepts_userA"] = b_accepts_a

    details = []
    if not a_accepts_b:
        details.append(f"user A dating prefs do not include user B gender: {user_b.gender}")
    if not b_accepts_a:
        details.append(f"user B dating prefs do not include user A gender: {user_a.gender}")
    if details:
        return q.set_error(NotInDatingPreferences(*details))
    return q


def height_qualifier(config: MatchConfig, user_a: User, user_b: User, report: QualifierReport) -> Qualifier:
    q = report.attach("height")

    if user_a.height is None or user_b.height is None:
        return q.set_error(HeightNotSet())
    if not user_a.gender or not user_b.gender:
        return q.set_error(GenderNotSet())

    has_non_binary = one_is_non_binary(user_a, user_b)
    same_sex = is_same_sex(user_a, user_b)
    q.telemetry["userA_height_cm"] = user_a.height
    q.telemetry["userB_height_cm"] = user_b.height
    q.telemetry["has_non_binary"] = has_non_binary
    q.telemetry["same_sex"] = same_sex
    q.telemetry["height_difference_cm"] = abs(user_b.height - user_a.height)

    if has_non_binary or same_sex:
        q.telemetry["relaxed_height_preference"] = "relaxing due to same sex, or non-binary user"
        return q

    male, female = male_and_female(user_a, user_b)
    required = female.height + config.height_male_greater_by_cm
    q.telemetry["male_user_height"] = male.height
    q.telemetry["female_user_height"] = female.height
    q.telemetry["female_user_height_with_allowance"] = required

    if male.height >= required:
        return q
    return q.set_error(
        HeightGapExists(
            f"male height {male.height}, female height {female.height}, "
            f"required gap {config.height_male_greater_by_cm} cm"
        )
    )


def distance_qualifier(config: MatchConfig, user_a: User, user_b: User, report: QualifierReport) -> Qualifier:
    q = report.attach("distance")

    coords = (user_a.latitude, user_a.longitude, user_b.latitude, user_b.longitude)
    if any(c is None for c in coords):
        return q.set_error(LocationNotSet())

    dist_km = haversine_km(*coords)
    q.telemetry["distance_km"] = round(dist_km, 3)

    if dist_km <= config.location_radius_km:
        return q

    tiers = sorted(config.location_adaptive_expansion or [])
    attempted = []
    for radius in tiers:
        attempted.append(radius)
        q.telemetry["attempt_adaptive_expansion"] = attempted
        if dist_km <= radius:
            q.telemetry["adaptive_expansion_passed"] = radius
            return q

    return q.set_error(
        DistanceExceeds(
            f"distance {dist_km:.2f} km exceeds max allowed radius {config.location_radius_km} km",
            f"adaptive radius considered: {tiers}",
        )
    )


QualifierFunc = Callable[[MatchConfig, User, User, QualifierReport], Qualifier]

HARD_QUALIFIERS: tuple[QualifierFunc, ...] = (
    age_window_qualifier,
    dating_preferences_qualifier,
    height_qualifier,
    distance_qualifier,
)


def run_hard_qualifiers(
    config: MatchConfig,
    user_a: User,
    user_b: User,
    qualifiers: tuple[QualifierFunc, ...] = HARD_QUALIFIERS,
) -> QualifierReport:
    """Run every qualifier against the pair; a failure never skips the rest."""
    report = QualifierReport()
    for qualifier in qualifiers:
        try:
            qualifier(config, user_a, user_b, report)
        except HardQualifierFailure as failure:
            # male_and_female() raises for pairs that are neither same-sex nor male/female
            q = next(reversed(report.qualifiers.values()))
            q.set_error(failure)
    return report
