from typing import Any


class MatchingError(Exception):
    """Base class for errors raised by the matching engine."""


class UserValidationError(MatchingError):
    def __init__(self, user_id: Any, fields: dict[str, str]):
        self.user_id = user_id
        self.fields = dict(fields)
        joined = "; ".join(f"{name}: {msg}" for name, msg in sorted(self.fields.items()))
        super().__init__(f"user {user_id} failed validation ({joined})")


class UserNotFoundError(MatchingError):
    pass


class ConfigNotFoundError(MatchingError):
    def __init__(self, message: str = "match configuration not found"):
        super().__init__(message)


class AmbiguousConfigError(MatchingError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"config count mismatch, have {count}, want 1")


class ConfigValidationError(MatchingError):
    pass


class MatchSetNotFoundError(MatchingError):
    pass


class MatchNotFoundError(MatchingError):
    pass


class ProfileNotFoundError(MatchingError):
    pass


class ProfileValidationError(MatchingError):
    pass


class InvalidMatchActionError(MatchingError):
    pass


class CompatibilityServiceError(MatchingError):
    pass


class RowLockTimeoutError(MatchingError):
    pass


# Hard-qualifier outcomes. These are recorded into the qualifier report and
# never raised out of the qualifier chain.


class HardQualifierFailure(Exception):
    code = "hard_qualifier_failed"
    message = "hard qualifier failed"

    def __init__(self, *details: str):
        self.details = [d for d in details if d]
        text = "\n".join([self.message, *self.details])
        super().__init__(text)


class AgeGapMaleExceeds(HardQualifierFailure):
    code = "age_gap_male_exceeds"
    message = "male age gap exceeds limit"


class AgeGapFemaleExceeds(HardQualifierFailure):
    code = "age_gap_female_exceeds"
    message = "female age gap exceeds limit"


class AgeGapSameSexExceeds(HardQualifierFailure):
    code = "age_gap_same_sex_exceeds"
    message = "same sex age gap exceeds limit"


class DistanceExceeds(HardQualifierFailure):
    code = "distance_exceeds"
    message = "distance exceeds limit"


class NotInDatingPreferences(HardQualifierFailure):
    code = "not_in_date_prefs"
    message = "not in date preferences"


class HeightGapExists(HardQualifierFailure):
    code = "height_gap_exists"
    message = "height gap exists"


class NoMaleUser(HardQualifierFailure):
    code = "no_male_user"
    message = "no male user"


class NoFemaleUser(HardQualifierFailure):
    code = "no_female_user"
    message = "no female user"


class AgeNotSet(HardQualifierFailure):
    code = "age_not_set"
    message = "age not set for one or both users"


class GenderNotSet(HardQualifierFailure):
    code = "gender_not_set"
    message = "gender not set for one or both users"


class HeightNotSet(HardQualifierFailure):
    code = "height_not_set"
    message = "height not set for one or both users"


class LocationNotSet(HardQualifierFailure):
    code = "location_not_set"
    message = "location not set for one or both users"


class DatingPreferencesNotSet(HardQualifierFailure):
    code = "date_prefs_not_set"
    message = "dating preferences not set for one or both users"
