from fastapi import APIRouter, Depends, Query

from ..database import SessionLocal
from ..deps import get_matching_context, require_user_id
from ..domain import Pagination
from ..schemas import (
    MarkSeenRequest,
    MarkSeenResponse,
    ProposeMatchResponse,
    UnseenCountResponse,
    UserMatchesResponse,
    UserMatchResponse,
    PaginationOut,
)
from ..services.context import MatchingContext
from ..services.proposals import pass_match, propose_match
from ..services.user_matches import mark_matches_seen, unseen_match_count, user_match, user_matches

router = APIRouter(prefix="/matches")


@router.get("", response_model=UserMatchesResponse)
def list_matches(
    page: int = Query(default=1, ge=1),
    rows: int = Query(default=20, ge=0),
    user_id: str = Depends(require_user_id),
    ctx: MatchingContext = Depends(get_matching_context),
):
    with SessionLocal() as db:
        result = user_matches(ctx, db, user_id, Pagination(page=page, rows=rows))
    return UserMatchesResponse(
        data=[UserMatchResponse.model_validate(m) for m in result.data],
        pagination=PaginationOut.model_validate(result.pagination),
    )


@router.get("/unseen-count", response_model=UnseenCountResponse)
def get_unseen_count(user_id: str = Depends(require_user_id), ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        return UnseenCountResponse(count=unseen_match_count(ctx, db, user_id))


@router.post("/seen", response_model=MarkSeenResponse)
def post_seen(
    payload: MarkSeenRequest,
    user_id: str = Depends(require_user_id),
    ctx: MatchingContext = Depends(get_matching_context),
):
    with SessionLocal() as db:
        updated = mark_matches_seen(ctx, db, user_id, payload.match_ids)
        db.commit()
    return MarkSeenResponse(updated=updated)


@router.get("/{match_id}", response_model=UserMatchResponse)
def get_match(match_id: str, user_id: str = Depends(require_user_id), ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        return UserMatchResponse.model_validate(user_match(ctx, db, user_id, match_id))


@router.post("/{match_id}/propose", response_model=ProposeMatchResponse)
def post_propose(match_id: str, user_id: str = Depends(require_user_id), ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        result = propose_match(ctx, db, match_id, user_id)
        db.commit()
    return ProposeMatchResponse.model_validate(result)


@router.post("/{match_id}/pass", response_model=UserMatchResponse)
def post_pass(match_id: str, user_id: str = Depends(require_user_id), ctx: MatchingContext = Depends(get_matching_context)):
    with SessionLocal() as db:
        pass_match(ctx, db, match_id, user_id)
        db.commit()
        return UserMatchResponse.model_validate(user_match(ctx, db, user_id, match_id))
