import threading
from datetime import timedelta

import pytest

from matchcore.domain import ACTION_PASSED, ACTION_PENDING, ACTION_PROPOSED
from matchcore.errors import InvalidMatchActionError, MatchNotFoundError, RowLockTimeoutError
from matchcore.services.proposals import PASS, PROPOSE, pass_match, propose_match, transition_action


def _propose(ctx, memdb, match_id, user_id):
    with memdb() as db:
        result = propose_match(ctx, db, match_id, user_id)
        db.commit()
    return result


def _stored(ctx, memdb, match_id):
    with memdb() as db:
        mr = ctx.match_results.match_result(db, match_id)
        instances = ctx.date_instances.date_instances(db, match_id)
        logs = [log for di in instances for log in ctx.date_instances.date_instance_logs(db, di.id)]
    return mr, instances, logs


class TestTransitions:
    @pytest.mark.parametrize(
        "current,action,partner,expected",
        [
            (ACTION_PENDING, PROPOSE, ACTION_PENDING, ACTION_PROPOSED),
            (ACTION_PROPOSED, PROPOSE, ACTION_PENDING, ACTION_PROPOSED),
            (ACTION_PENDING, PASS, ACTION_PROPOSED, ACTION_PASSED),
            (ACTION_PASSED, PASS, ACTION_PENDING, ACTION_PASSED),
            (ACTION_PROPOSED, PASS, ACTION_PENDING, ACTION_PASSED),
        ],
    )
    def test_allowed(self, current, action, partner, expected):
        assert transition_action(current, action, partner) == expected

    @pytest.mark.parametrize(
        "current,action,partner",
        [
            (ACTION_PASSED, PROPOSE, ACTION_PENDING),
            (ACTION_PROPOSED, PASS, ACTION_PROPOSED),
            (ACTION_PENDING, "maybe", ACTION_PENDING),
        ],
    )
    def test_rejected(self, current, action, partner):
        with pytest.raises(InvalidMatchActionError):
            transition_action(current, action, partner)


def test_single_proposal_is_not_mutual(ctx, memdb, visible_match):
    mr = visible_match()

    result = _propose(ctx, memdb, mr.id, mr.initiator_user_id)

    assert result.success and not result.mutual_proposal
    assert result.date_instance_id is None
    stored, instances, _ = _stored(ctx, memdb, mr.id)
    assert stored.initiator_action == ACTION_PROPOSED
    assert stored.receiver_action == ACTION_PENDING
    assert instances == []


def test_mutual_proposal_creates_one_date_instance(ctx, memdb, clock, seed_config, visible_match):
    seed_config(match_expiration_hours=48)
    mr = visible_match()

    _propose(ctx, memdb, mr.id, mr.initiator_user_id)
    result = _propose(ctx, memdb, mr.id, mr.receiver_user_id)

    assert result.mutual_proposal
    stored, instances, logs = _stored(ctx, memdb, mr.id)
    assert len(instances) == 1
    instance = instances[0]
    assert result.date_instance_id == instance.id
    assert instance.status == "Proposed"
    assert instance.decision_window_end == clock() + timedelta(hours=48)
    assert stored.current_date_instance_id == instance.id
    assert stored.lifecycle_status == "Scheduling"

    assert len(logs) == 1
    assert logs[0].event_type == "created"
    assert logs[0].user_id == mr.receiver_user_id
    assert logs[0].new_value["status"] == "Proposed"


def test_decision_window_defaults_without_config(ctx, memdb, clock, visible_match):
    mr = visible_match()
    _propose(ctx, memdb, mr.id, mr.receiver_user_id)
    _propose(ctx, memdb, mr.id, mr.initiator_user_id)

    _, instances, _ = _stored(ctx, memdb, mr.id)
    assert instances[0].decision_window_end == clock() + timedelta(hours=72)


def test_repeat_proposals_are_idempotent(ctx, memdb, visible_match):
    mr = visible_match()
    _propose(ctx, memdb, mr.id, mr.initiator_user_id)
    first = _propose(ctx, memdb, mr.id, mr.receiver_user_id)

    again = _propose(ctx, memdb, mr.id, mr.initiator_user_id)
    again_partner = _propose(ctx, memdb, mr.id, mr.receiver_user_id)

    assert again.mutual_proposal and again_partner.mutual_proposal
    assert again.date_instance_id == again_partner.date_instance_id == first.date_instance_id
    _, instances, logs = _stored(ctx, memdb, mr.id)
    assert len(instances) == 1
    assert len(logs) == 1


def test_concurrent_proposals_create_exactly_one_date_instance(ctx, memdb, visible_match):
    mr = visible_match()

    barrier = threading.Barrier(2)
    results = {}
    errors = []

    def propose(user_id):
        try:
            barrier.wait()
            results[user_id] = _propose(ctx, memdb, mr.id, user_id)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=propose, args=(uid,)) for uid in mr.participants()]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    mutual = [r for r in results.values() if r.mutual_proposal]
    assert len(mutual) == 1
    _, instances, _ = _stored(ctx, memdb, mr.id)
    assert len(instances) == 1
    assert mutual[0].date_instance_id == instances[0].id


def test_failure_after_action_rolls_back(ctx, memdb, visible_match, monkeypatch):
    mr = visible_match()
    _propose(ctx, memdb, mr.id, mr.initiator_user_id)

    def broken_insert(db, instance):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(ctx.date_instances, "insert_date_instance", broken_insert)

    with memdb() as db:
        with pytest.raises(RuntimeError):
            propose_match(ctx, db, mr.id, mr.receiver_user_id)

    stored, instances, _ = _stored(ctx, memdb, mr.id)
    assert stored.receiver_action == ACTION_PENDING
    assert stored.current_date_instance_id is None
    assert instances == []


def test_locked_row_times_out(ctx, visible_match, memdb):
    memdb.lock_timeout = 0.05
    mr = visible_match()

    holder = memdb()
    ctx.match_results.match_result(holder, mr.id, for_update=True)
    try:
        with memdb() as db:
            with pytest.raises(RowLockTimeoutError):
                propose_match(ctx, db, mr.id, mr.initiator_user_id)
    finally:
        holder.close()

    assert _propose(ctx, memdb, mr.id, mr.initiator_user_id).success


@pytest.mark.parametrize(
    "overrides",
    [{"is_approved": False}, {"is_dropped": False}, {"is_expired": True}],
)
def test_invisible_match_is_not_found(ctx, memdb, visible_match, overrides):
    mr = visible_match(**overrides)
    with memdb() as db:
        with pytest.raises(MatchNotFoundError):
            propose_match(ctx, db, mr.id, mr.initiator_user_id)


def test_non_participant_is_not_found(ctx, memdb, visible_match):
    mr = visible_match()
    with memdb() as db:
        with pytest.raises(MatchNotFoundError):
            propose_match(ctx, db, mr.id, "someone-else")


def test_pass_then_propose_is_rejected(ctx, memdb, visible_match):
    mr = visible_match()
    with memdb() as db:
        passed = pass_match(ctx, db, mr.id, mr.receiver_user_id)
        db.commit()
    assert passed.receiver_action == ACTION_PASSED

    with memdb() as db:
        with pytest.raises(InvalidMatchActionError):
            propose_match(ctx, db, mr.id, mr.receiver_user_id)


def test_cannot_pass_after_mutual_proposal(ctx, memdb, visible_match):
    mr = visible_match()
    _propose(ctx, memdb, mr.id, mr.initiator_user_id)
    _propose(ctx, memdb, mr.id, mr.receiver_user_id)

    with memdb() as db:
        with pytest.raises(InvalidMatchActionError):
            pass_match(ctx, db, mr.id, mr.initiator_user_id)

    stored, _, _ = _stored(ctx, memdb, mr.id)
    assert stored.initiator_action == ACTION_PROPOSED


def test_rollback_keeps_other_transactions_commits(ctx, memdb, clock, visible_match, monkeypatch):
    mr = visible_match()
    _propose(ctx, memdb, mr.id, mr.initiator_user_id)

    entered = threading.Event()
    release = threading.Event()
    errors = []

    def slow_broken_insert(db, instance):
        entered.set()
        release.wait(5)
        raise RuntimeError("insert failed")

    monkeypatch.setattr(ctx.date_instances, "insert_date_instance", slow_broken_insert)

    def failing_proposal():
        try:
            with memdb() as db:
                propose_match(ctx, db, mr.id, mr.receiver_user_id)
        except RuntimeError as e:
            errors.append(e)

    def mark_seen():
        with memdb() as db:
            ctx.actions.mark_seen(db, mr.initiator_user_id, [mr.id], clock())
            db.commit()

    proposer = threading.Thread(target=failing_proposal)
    proposer.start()
    assert entered.wait(5)
    viewer = threading.Thread(target=mark_seen)
    viewer.start()
    release.set()
    proposer.join()
    viewer.join()

    assert len(errors) == 1
    stored, instances, _ = _stored(ctx, memdb, mr.id)
    assert stored.initiator_seen_at == clock()
    assert stored.receiver_action == ACTION_PENDING
    assert instances == []
