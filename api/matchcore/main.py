import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from . import models  # noqa: F401  registers tables on Base.metadata
from .config import LOG_LEVEL
from .database import Base, SessionLocal, engine
from .deps import get_matching_context, http_error
from .errors import MatchingError
from .routes import include_modular_routers
from .services.seeding import seed_match_config

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Matchcore API")
include_modular_routers(app)


@app.exception_handler(MatchingError)
def matching_error_handler(request: Request, exc: MatchingError) -> JSONResponse:
    err = http_error(exc)
    if err.status_code >= 500:
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=err.status_code, content={"detail": err.detail})


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


def init_schema() -> None:
    Base.metadata.create_all(bind=engine)


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    init_schema()
    with SessionLocal() as db:
        seed_match_config(get_matching_context(), db)
        db.commit()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
