import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ..database import SessionLocal
from ..deps import get_matching_context, require_admin
from ..domain import MatchResultFilter, MatchSetFilter, Pagination
from ..schemas import (
    BatchRunResponse,
    DropResponse,
    IngestRequest,
    MatchConfigResponse,
    MatchConfigUpdateRequest,
    MatchResultResponse,
    MatchResultsResponse,
    MatchSetResponse,
    MatchSetsResponse,
    PaginationOut,
)
from ..services import admin as admin_service
from ..services import queries
from ..services.context import MatchingContext
from ..services.drops import drop_one_match_per_user, match_results_for_drop
from ..services.ingestion import ingest_with_options, run_ingestion_set, run_match_for_unmatched_users
from ..services.processor import process_match_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])

FLAG_SETTERS = {
    "approve": admin_service.set_approved,
    "unapprove": admin_service.set_unapproved,
    "drop": admin_service.set_dropped,
    "undrop": admin_service.set_undropped,
    "expire": admin_service.set_expired,
    "unexpire": admin_service.set_unexpired,
}


def _results_response(page) -> MatchResultsResponse:
    return MatchResultsResponse(
        data=[MatchResultResponse.model_validate(r) for r in page.data],
        pagination=PaginationOut.model_validate(page.pagination),
    )


@router.post("/match-sets/ingest", response_model=MatchSetResponse)
def admin_ingest(payload: IngestRequest | None = None, ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        match_set = ingest_with_options(ctx, db, is_test_user=(payload or IngestRequest()).is_test_user)
    return MatchSetResponse.model_validate(match_set)


@router.post("/match-sets/unmatched")
def admin_run_unmatched(ctx: MatchingContext = Depends(get_matching_context)) -> dict[str, Any]:
    with SessionLocal() as db:
        match_set = run_match_for_unmatched_users(ctx, db)
    if match_set is None:
        return {"match_set": None}
    return {"match_set": MatchSetResponse.model_validate(match_set).model_dump(mode="json")}


@router.post("/match-sets/{match_set_id}/run", response_model=BatchRunResponse)
def admin_run_set(match_set_id: str, ctx: MatchingContext = Depends(get_matching_context)):
    summary = run_ingestion_set(ctx, SessionLocal, match_set_id)
    return BatchRunResponse.model_validate(summary)


@router.get("/match-sets", response_model=MatchSetsResponse)
def admin_match_sets(
    page: int = Query(default=1, ge=1),
    rows: int = Query(default=20, ge=0),
    order_by: str | None = None,
    sort: str | None = None,
    ctx: MatchingContext = Depends(get_matching_context),
):
    with SessionLocal() as db:
        result = queries.match_sets(
            ctx, db, MatchSetFilter(order_by=order_by, sort=sort, pagination=Pagination(page=page, rows=rows))
        )
    return MatchSetsResponse(
        data=[MatchSetResponse.model_validate(ms) for ms in result.data],
        pagination=PaginationOut.model_validate(result.pagination),
    )


@router.get("/match-sets/{match_set_id}", response_model=MatchSetResponse)
def admin_match_set(match_set_id: str, ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        return MatchSetResponse.model_validate(queries.match_set(ctx, db, match_set_id))


@router.get("/match-results", response_model=MatchResultsResponse)
def admin_match_results(
    match_set_id: str | None = None,
    user_id: str | None = None,
    is_approved: bool | None = None,
    is_dropped: bool | None = None,
    is_expired: bool | None = None,
    is_possible_match: bool | None = None,
    matched_qualitatively: bool | None = None,
    order_by: str | None = None,
    sort: str | None = None,
    page: int = Query(default=1, ge=1),
    rows: int = Query(default=50, ge=0),
    ctx: MatchingContext = Depends(get_matching_context),
):
    f = MatchResultFilter(
        match_set_id=match_set_id,
        user_id=user_id,
        is_approved=is_approved,
        is_dropped=is_dropped,
        is_expired=is_expired,
        is_possible_match=is_possible_match,
        matched_qualitatively=matched_qualitatively,
        order_by=order_by,
        sort=sort,
        pagination=Pagination(page=page, rows=rows),
    )
    with SessionLocal() as db:
        return _results_response(queries.match_results(ctx, db, f))


@router.get("/match-results/{match_id}", response_model=MatchResultResponse)
def admin_match_result(match_id: str, ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        return MatchResultResponse.model_validate(queries.match_result(ctx, db, match_id))


@router.post("/match-results/{match_id}/process")
def admin_process_match_result(match_id: str, ctx: MatchingContext = Depends(get_matching_context)) -> dict[str, Any]:
    with SessionLocal() as db:
        report = process_match_result(ctx, db, match_id)
    return {"match_id": match_id, "passed": not report.has_errors(), "qualifier_results": report.as_dict()}


@router.post("/match-results/{match_id}/{flag}", response_model=MatchResultResponse)
def admin_set_flag(match_id: str, flag: str, ctx: MatchingContext = Depends(get_matching_context)):
    setter = FLAG_SETTERS.get(flag)
    if setter is None:
        raise HTTPException(status_code=404, detail=f"Unknown flag action {flag}")
    with SessionLocal() as db:
        mr = setter(ctx, db, match_id)
        db.commit()
    return MatchResultResponse.model_validate(mr)


@router.post("/drops", response_model=DropResponse)
def admin_drop(ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        dropped = drop_one_match_per_user(ctx, db)
    return DropResponse(dropped=dropped)


@router.get("/drops/candidates", response_model=MatchResultsResponse)
def admin_drop_candidates(
    page: int = Query(default=1, ge=1),
    rows: int = Query(default=50, ge=0),
    ctx: MatchingContext = Depends(get_matching_context),
):
    with SessionLocal() as db:
        return _results_response(match_results_for_drop(ctx, db, Pagination(page=page, rows=rows)))


@router.get("/configs", response_model=list[MatchConfigResponse])
def admin_configs(ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        return [MatchConfigResponse.model_validate(c) for c in queries.match_configs(ctx, db)]


@router.get("/config", response_model=MatchConfigResponse)
def admin_config(ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        return MatchConfigResponse.model_validate(queries.match_config(ctx, db))


@router.patch("/config", response_model=MatchConfigResponse)
def admin_update_config(payload: MatchConfigUpdateRequest, ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        updated = admin_service.update_config(ctx, db, payload.model_dump(exclude_unset=True))
        db.commit()
    logger.info("[admin] config updated via api")
    return MatchConfigResponse.model_validate(updated)
