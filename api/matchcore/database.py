from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL, DB_MAX_OVERFLOW, DB_POOL_SIZE

_engine_kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
if not DATABASE_URL.startswith("sqlite"):
    # batch workers each check out their own connection
    _engine_kwargs.update(pool_size=DB_POOL_SIZE, max_overflow=DB_MAX_OVERFLOW)

engine = create_engine(DATABASE_URL, **_engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()
