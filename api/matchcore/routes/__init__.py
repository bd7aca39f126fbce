from fastapi import APIRouter, FastAPI

from .admin import router as admin_router
from .match import router as match_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(match_router, tags=["matches"])
    app.include_router(admin_router, tags=["admin"])


__all__ = ["include_modular_routers", "APIRouter"]
