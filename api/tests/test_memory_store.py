import threading
import uuid
from datetime import timedelta

import pytest

from matchcore.domain import MatchResultFilter, MatchSet, MatchSetFilter, Pagination
from matchcore.errors import AmbiguousConfigError, ConfigNotFoundError, RowLockTimeoutError
from matchcore.stores.memory import MemoryDatabase, MemoryStore

from conftest import make_config, make_user


@pytest.fixture
def store():
    return MemoryStore()


def test_rollback_restores_touched_rows(store, memdb):
    user = make_user(first_name="Before")
    with memdb() as db:
        store.insert_user(db, user)
        db.commit()

    with memdb() as db:
        changed = store.user(db, user.id)
        changed.first_name = "After"
        store.insert_user(db, changed)
        store.insert_user(db, make_user(id="new-user"))
        db.rollback()

    with memdb() as db:
        assert store.user(db, user.id).first_name == "Before"
        assert [u.id for u in store.users(db)] == [user.id]


def test_close_without_commit_rolls_back(store, memdb):
    with memdb() as db:
        store.insert_user(db, make_user(id="temp"))

    with memdb() as db:
        assert store.users(db) == []


def test_reads_are_copies(store, memdb):
    user = make_user()
    with memdb() as db:
        store.insert_user(db, user)
        db.commit()
        loaded = store.user(db, user.id)
        loaded.age = 99
        assert store.user(db, user.id).age == user.age


def test_row_lock_times_out_and_releases_on_commit():
    database = MemoryDatabase(lock_timeout=0.05)
    holder = database()
    holder.lock("match_result", "m1")

    waiter = database()
    with pytest.raises(RowLockTimeoutError):
        waiter.lock("match_result", "m1")

    holder.commit()
    waiter.lock("match_result", "m1")
    waiter.close()


def test_row_lock_is_reentrant_within_a_transaction(memdb):
    with memdb() as db:
        db.lock("match_result", "m1")
        db.lock("match_result", "m1")


def test_lock_blocks_until_holder_finishes(memdb):
    order = []
    holder = memdb()
    holder.lock("match_result", "m1")

    def contender():
        with memdb() as db:
            db.lock("match_result", "m1")
            order.append("contender")

    t = threading.Thread(target=contender)
    t.start()
    order.append("holder")
    holder.commit()
    t.join()

    assert order == ["holder", "contender"]


def test_config_requires_exactly_one(store, memdb):
    with memdb() as db:
        with pytest.raises(ConfigNotFoundError):
            store.config(db)
        store.insert_config(db, make_config())
        store.insert_config(db, make_config())
        with pytest.raises(AmbiguousConfigError) as exc:
            store.config(db)
    assert "have 2, want 1" in str(exc.value)


def test_match_sets_sorting_and_paging(store, memdb, clock):
    with memdb() as db:
        for i in range(5):
            store.insert_match_set(
                db,
                MatchSet(
                    id=str(uuid.uuid4()),
                    name=f"set-{i}",
                    number_of_participants=i,
                    created_at=clock() + timedelta(minutes=i),
                ),
            )
        db.commit()

        newest = store.match_sets(db, MatchSetFilter(order_by="created_at", sort="-", pagination=Pagination(page=1, rows=2)))
        oldest = store.match_sets(db, MatchSetFilter(order_by="bogus", pagination=Pagination(page=3, rows=2)))
        big = store.match_sets(db, MatchSetFilter(number_of_participants_min=3))

    assert [ms.name for ms in newest.data] == ["set-4", "set-3"]
    assert newest.pagination.total_rows == 5
    assert newest.pagination.total_pages == 3
    assert [ms.name for ms in oldest.data] == ["set-4"]
    assert sorted(ms.name for ms in big.data) == ["set-3", "set-4"]


def test_mark_seen_only_touches_visible_unseen(ctx, memdb, clock, visible_match):
    visible = visible_match()
    hidden = visible_match(is_dropped=False, dropped_at=None)
    user_id = visible.initiator_user_id

    with memdb() as db:
        assert ctx.actions.mark_seen(db, user_id, [visible.id, hidden.id], clock()) == 1
        assert ctx.actions.mark_seen(db, user_id, [visible.id], clock()) == 0
        stored = ctx.match_results.match_result(db, visible.id)
        db.commit()

    assert stored.initiator_seen_at == clock()
    assert stored.receiver_seen_at is None


def test_live_match_users(ctx, memdb, visible_match):
    dropped = visible_match()
    live = visible_match(is_dropped=False, dropped_at=None)

    with memdb() as db:
        ids = ctx.match_results.user_ids_with_live_match(db)
        results = ctx.match_results.match_results(db, MatchResultFilter(is_dropped=False)).data

    assert ids == set(live.participants())
    assert not ids & set(dropped.participants())
    assert [r.id for r in results] == [live.id]


def test_write_waits_for_row_lock_held_by_writer(store):
    database = MemoryDatabase(lock_timeout=0.05)
    user = make_user(first_name="Before")
    with database() as db:
        store.insert_user(db, user)
        db.commit()

    writer = database()
    store.insert_user(writer, make_user(id=user.id, first_name="Writer"))

    with database() as db:
        with pytest.raises(RowLockTimeoutError):
            store.insert_user(db, make_user(id=user.id, first_name="Other"))

    writer.rollback()
    with database() as db:
        store.insert_user(db, make_user(id=user.id, first_name="Other"))
        db.commit()
        assert store.user(db, user.id).first_name == "Other"
