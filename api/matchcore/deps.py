from functools import lru_cache

from fastapi import Header, HTTPException

from .config import ADMIN_TOKEN
from .errors import (
    AmbiguousConfigError,
    CompatibilityServiceError,
    ConfigNotFoundError,
    ConfigValidationError,
    InvalidMatchActionError,
    MatchingError,
    MatchNotFoundError,
    MatchSetNotFoundError,
    ProfileNotFoundError,
    ProfileValidationError,
    RowLockTimeoutError,
    UserNotFoundError,
    UserValidationError,
)
from .services.compatibility import CompatibilityClient
from .services.context import MatchingContext
from .stores.sql import SqlStore

NOT_FOUND_ERRORS = (
    ConfigNotFoundError,
    MatchNotFoundError,
    MatchSetNotFoundError,
    ProfileNotFoundError,
    UserNotFoundError,
)
VALIDATION_ERRORS = (ConfigValidationError, ProfileValidationError, UserValidationError)


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)


def require_user_id(x_user_id: str | None = Header(default=None)) -> str:
    value = (x_user_id or "").strip()
    if not value:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return value


@lru_cache(maxsize=1)
def get_matching_context() -> MatchingContext:
    return MatchingContext.from_store(SqlStore(), compatibility=CompatibilityClient())


def http_error(e: MatchingError) -> HTTPException:
    if isinstance(e, NOT_FOUND_ERRORS):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidMatchActionError, AmbiguousConfigError, RowLockTimeoutError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, VALIDATION_ERRORS):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, CompatibilityServiceError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
