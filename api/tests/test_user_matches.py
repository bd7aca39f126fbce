from datetime import timedelta

import pytest

from matchcore.domain import Pagination
from matchcore.errors import MatchNotFoundError
from matchcore.services.user_matches import mark_matches_seen, unseen_match_count, user_match, user_matches


def test_match_seen_from_each_side(ctx, memdb, visible_match):
    mr = visible_match(
        qualifier_results={
            "distance": {"name": "distance_qualifier", "telemetry": {"distance_km": 4.2}, "error_code": "", "error_msg": ""},
            "qualitative": {"name": "qualitative_qualifier", "telemetry": {"total_score": 77.0}, "error_code": "", "error_msg": ""},
        },
        initiator_action="Proposed",
    )

    with memdb() as db:
        mine = user_match(ctx, db, mr.initiator_user_id, mr.id)
        theirs = user_match(ctx, db, mr.receiver_user_id, mr.id)

    assert mine.partner_id == mr.receiver_user_id
    assert (mine.your_action, mine.partner_action) == ("Proposed", "Pending")
    assert (theirs.your_action, theirs.partner_action) == ("Pending", "Proposed")
    assert mine.distance_km == 4.2
    assert theirs.match_score == 77.0
    assert not mine.mutual_proposal


def test_listing_newest_drop_first(ctx, memdb, clock, visible_match):
    older = visible_match()
    newer = visible_match(
        initiator_user_id=older.initiator_user_id,
        receiver_user_id="zzz-partner",
        dropped_at=clock() + timedelta(hours=1),
    )
    visible_match(initiator_user_id=older.initiator_user_id, receiver_user_id="zzz-hidden", is_expired=True)

    with memdb() as db:
        page = user_matches(ctx, db, older.initiator_user_id, Pagination(page=1, rows=10))

    assert [m.id for m in page.data] == [newer.id, older.id]
    assert page.pagination.total_rows == 2
    assert page.data[0].partner_name is None


def test_hidden_or_foreign_match_not_found(ctx, memdb, visible_match):
    hidden = visible_match(is_approved=False)
    shown = visible_match()

    with memdb() as db:
        with pytest.raises(MatchNotFoundError):
            user_match(ctx, db, hidden.initiator_user_id, hidden.id)
        with pytest.raises(MatchNotFoundError):
            user_match(ctx, db, "stranger", shown.id)


def test_unseen_count_tracks_mark_seen(ctx, memdb, visible_match):
    first = visible_match()
    second = visible_match(initiator_user_id=first.initiator_user_id, receiver_user_id="zzz-other")
    user_id = first.initiator_user_id

    with memdb() as db:
        assert unseen_match_count(ctx, db, user_id) == 2
        assert mark_matches_seen(ctx, db, user_id, [first.id, "missing"]) == 1
        db.commit()

    with memdb() as db:
        assert unseen_match_count(ctx, db, user_id) == 1
        assert unseen_match_count(ctx, db, first.receiver_user_id) == 1
        assert user_match(ctx, db, user_id, second.id).seen_at is None
