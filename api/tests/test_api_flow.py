import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

import matchcore.main as m
from matchcore import deps
from matchcore.deps import get_matching_context
from matchcore.domain import FEMALE, MALE
from matchcore.routes import admin as admin_routes
from matchcore.routes import match as match_routes

from conftest import FakeCompatibility, make_user

ADMIN = {"X-Admin-Token": "test-admin"}


@pytest.fixture
def client(monkeypatch, ctx, memdb):
    monkeypatch.setattr(deps, "ADMIN_TOKEN", "test-admin")
    monkeypatch.setattr(m, "SessionLocal", memdb)
    monkeypatch.setattr(admin_routes, "SessionLocal", memdb)
    monkeypatch.setattr(match_routes, "SessionLocal", memdb)
    m.app.dependency_overrides[get_matching_context] = lambda: ctx
    yield TestClient(m.app)
    m.app.dependency_overrides.clear()


def _as(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


def test_admin_routes_require_token(client):
    assert client.get("/admin/match-sets").status_code == 401
    assert client.get("/admin/match-sets", headers={"X-Admin-Token": "wrong"}).status_code == 401


def test_user_routes_require_user_header(client):
    assert client.get("/matches").status_code == 401


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_ingest_run_drop_and_mutual_proposal_flow(client, seed_config, add_users):
    seed_config()
    man, woman = add_users(
        make_user(gender=MALE, age=31, height=180.0),
        make_user(gender=FEMALE, age=29, height=165.0, dating_preferences=[MALE]),
    )

    r = client.post("/admin/match-sets/ingest", headers=ADMIN)
    assert r.status_code == 200
    match_set_id = r.json()["id"]
    assert r.json()["number_of_participants"] == 2

    r = client.post(f"/admin/match-sets/{match_set_id}/run", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["succeeded"] == 1

    r = client.get("/admin/match-results", params={"match_set_id": match_set_id, "is_possible_match": True}, headers=ADMIN)
    body = r.json()
    assert body["pagination"]["total_rows"] == 1
    match_id = body["data"][0]["id"]
    assert body["data"][0]["qualifier_results"]["qualitative"]["telemetry"]["total_score"] == 82.5

    # nothing visible before approval and drop
    assert client.get("/matches", headers=_as(man.id)).json()["data"] == []
    assert client.post(f"/matches/{match_id}/propose", headers=_as(man.id)).status_code == 404

    assert client.post(f"/admin/match-results/{match_id}/approve", headers=ADMIN).json()["is_approved"] is True
    r = client.post("/admin/drops", headers=ADMIN)
    assert r.json() == {"dropped": [match_id]}

    listed = client.get("/matches", headers=_as(woman.id)).json()
    assert [item["id"] for item in listed["data"]] == [match_id]
    assert listed["data"][0]["partner_id"] == man.id
    assert listed["data"][0]["match_score"] == 82.5
    assert client.get("/matches/unseen-count", headers=_as(woman.id)).json() == {"count": 1}

    assert client.post("/matches/seen", json={"match_ids": [match_id]}, headers=_as(woman.id)).json() == {"updated": 1}
    assert client.get("/matches/unseen-count", headers=_as(woman.id)).json() == {"count": 0}

    first = client.post(f"/matches/{match_id}/propose", headers=_as(man.id)).json()
    assert first == {"success": True, "mutual_proposal": False, "date_instance_id": None}

    second = client.post(f"/matches/{match_id}/propose", headers=_as(woman.id)).json()
    assert second["mutual_proposal"] is True
    assert second["date_instance_id"]

    detail = client.get(f"/matches/{match_id}", headers=_as(man.id)).json()
    assert detail["mutual_proposal"] is True
    assert detail["date_instance_id"] == second["date_instance_id"]

    r = client.post(f"/matches/{match_id}/pass", headers=_as(man.id))
    assert r.status_code == 409


def test_pass_returns_updated_match(client, visible_match):
    mr = visible_match()
    r = client.post(f"/matches/{mr.id}/pass", headers=_as(mr.receiver_user_id))
    assert r.status_code == 200
    assert r.json()["your_action"] == "Passed"
    assert r.json()["partner_action"] == "Pending"

    r = client.post(f"/matches/{mr.id}/propose", headers=_as(mr.receiver_user_id))
    assert r.status_code == 409


def test_unknown_match_and_set_are_404(client):
    assert client.get("/admin/match-sets/missing", headers=ADMIN).status_code == 404
    assert client.get("/admin/match-results/missing", headers=ADMIN).status_code == 404
    assert client.post("/admin/match-results/missing/approve", headers=ADMIN).status_code == 404
    assert client.get("/matches/missing", headers=_as("someone")).status_code == 404


def test_config_read_and_patch(client, seed_config):
    seed_config()

    r = client.patch("/admin/config", json={"location_adaptive_expansion": [100, 50]}, headers=ADMIN)
    assert r.status_code == 422
    assert "strictly incrementing" in r.json()["detail"]

    r = client.patch("/admin/config", json={"location_radius_km": 75, "drop_hours": ["21:00"]}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["location_radius_km"] == 75

    config = client.get("/admin/config", headers=ADMIN).json()
    assert config["drop_hours"] == ["21:00"]
    assert len(client.get("/admin/configs", headers=ADMIN).json()) == 1


def test_missing_config_is_404(client):
    assert client.get("/admin/config", headers=ADMIN).status_code == 404


def test_scoring_outage_is_502(client, ctx, seed_config, add_users):
    ctx.compatibility = FakeCompatibility(fail=True)
    seed_config()
    add_users(
        make_user(gender=MALE),
        make_user(gender=FEMALE, dating_preferences=[MALE]),
    )
    match_set_id = client.post("/admin/match-sets/ingest", headers=ADMIN).json()["id"]
    match_id = client.get("/admin/match-results", params={"match_set_id": match_set_id}, headers=ADMIN).json()["data"][0]["id"]

    r = client.post(f"/admin/match-results/{match_id}/process", headers=ADMIN)
    assert r.status_code == 502


def test_unmatched_run_with_too_few_users(client, seed_config, add_users):
    seed_config()
    add_users(make_user())
    assert client.post("/admin/match-sets/unmatched", headers=ADMIN).json() == {"match_set": None}
