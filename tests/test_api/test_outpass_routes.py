"""HTTP surface: auth rules, error mapping, scoping."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from campuspass.models.user import User


@pytest.fixture
def create(client, auth, clock):
    def create(who: str = "student", *, start_in=timedelta(hours=1), length=timedelta(hours=4)) -> dict:
        start = clock() + start_in
        resp = client.post(
            "/outpasses",
            json={
                "type": "local",
                "reason": "Library",
                "destination": "Central library",
                "from_date": start.isoformat(),
                "to_date": (start + length).isoformat(),
            },
            headers=auth(who),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return create


def test_health_is_public(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["online_sessions"] == 0


def test_me_returns_stored_user(client, auth, users):
    body = client.get("/me", headers=auth("warden")).json()
    assert body["id"] == users["warden"].id
    assert body["role"] == "warden"
    assert body["hostel"] == "H1"


def test_missing_token_is_401(client):
    assert client.get("/outpasses/mine").status_code == 401


def test_malformed_header_is_400(client):
    assert client.get("/outpasses/mine", headers={"Authorization": "Token abc"}).status_code == 400


def test_invalid_and_expired_tokens_are_401(client, app, users):
    assert client.get("/me", headers={"Authorization": "Bearer nope"}).status_code == 401

    user = users["student"]
    old = app.state.tokens.issue(user.id, user.role.value, now=datetime(2020, 1, 1, tzinfo=timezone.utc))
    resp = client.get("/me", headers={"Authorization": f"Bearer {old}"})
    assert resp.status_code == 401
    assert "expired" in resp.json()["detail"].lower()


def test_role_rule_blocks_wrong_role(client, auth, clock):
    start = clock() + timedelta(hours=1)
    resp = client.post(
        "/outpasses",
        json={"reason": "r", "destination": "d", "from_date": start.isoformat(), "to_date": (start + timedelta(hours=1)).isoformat()},
        headers=auth("warden"),
    )
    assert resp.status_code == 403


def test_bad_window_is_422_with_error_kind(client, auth, clock):
    start = clock() + timedelta(hours=2)
    resp = client.post(
        "/outpasses",
        json={"reason": "r", "destination": "d", "from_date": start.isoformat(), "to_date": start.isoformat()},
        headers=auth("student"),
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


def test_warden_of_other_hostel_gets_403(client, auth, create):
    outpass = create()
    resp = client.post(f"/outpasses/{outpass['id']}/approve", json={}, headers=auth("warden_h2"))
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


def test_second_decision_is_409_with_current_status(client, auth, create):
    outpass = create()
    assert client.post(f"/outpasses/{outpass['id']}/approve", headers=auth("warden")).status_code == 200
    resp = client.post(f"/outpasses/{outpass['id']}/reject", json={"reason": "no"}, headers=auth("warden"))
    assert resp.status_code == 409
    assert resp.json() == {
        "detail": "Outpass has already been decided",
        "error": "conflict",
        "status": "approved",
    }


def test_empty_rejection_reason_leaves_pending(client, auth, create):
    outpass = create()
    resp = client.post(f"/outpasses/{outpass['id']}/reject", json={"reason": ""}, headers=auth("warden"))
    assert resp.status_code == 422
    detail = client.get(f"/outpasses/{outpass['id']}", headers=auth("warden")).json()
    assert detail["status"] == "pending"


def test_unknown_outpass_is_404(client, auth):
    resp = client.post("/outpasses/4242/approve", headers=auth("warden"))
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_cancel_rules(client, auth, create):
    mine = create("student")
    assert client.post(f"/outpasses/{mine['id']}/cancel", headers=auth("student2")).status_code == 403
    resp = client.post(f"/outpasses/{mine['id']}/cancel", headers=auth("student"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"


def test_detail_visibility_and_pass_code(client, auth, create):
    outpass = create()
    client.post(f"/outpasses/{outpass['id']}/approve", headers=auth("warden"))

    own = client.get(f"/outpasses/{outpass['id']}", headers=auth("student")).json()
    assert own["qr_code"]
    assert own["student"]["name"] == "Asha Rao"
    assert own["warden"]["hostel"] == "H1"

    as_warden = client.get(f"/outpasses/{outpass['id']}", headers=auth("warden")).json()
    assert as_warden["qr_code"] is None

    assert client.get(f"/outpasses/{outpass['id']}", headers=auth("admin")).status_code == 200
    assert client.get(f"/outpasses/{outpass['id']}", headers=auth("student2")).status_code == 404
    assert client.get(f"/outpasses/{outpass['id']}", headers=auth("warden_h2")).status_code == 404


def test_mine_lists_only_own_outpasses(client, auth, create):
    create("student")
    create("student2")
    body = client.get("/outpasses/mine", headers=auth("student")).json()
    assert body["total"] == 1
    assert {i["hostel"] for i in body["items"]} == {"H1"}

    stats = client.get("/outpasses/stats/student", headers=auth("student")).json()
    assert stats["total"] == 1
    assert stats["pending"] == 1


def test_warden_queue_is_scoped_to_hostel(client, auth, create, users):
    create("student", start_in=timedelta(hours=1))
    create("student2", start_in=timedelta(hours=2))
    create("student_h2")

    queue = client.get("/warden/outpasses/pending", headers=auth("warden")).json()
    assert queue["total"] == 2
    assert [i["student_id"] for i in queue["items"]] == [users["student"].id, users["student2"].id]
    assert {i["hostel"] for i in queue["items"]} == {"H1"}

    assert client.get("/warden/outpasses/pending", headers=auth("warden_h2")).json()["total"] == 1
    assert client.get("/warden/outpasses", headers=auth("warden_h2")).json()["total"] == 1
    # Admin holds view_all_hostels.
    assert client.get("/warden/outpasses", headers=auth("admin")).json()["total"] == 3

    stats = client.get("/warden/stats", headers=auth("warden")).json()
    assert stats["pending"] == 2
    assert stats["total"] == 2


def test_security_desk_flow(client, auth, create):
    outpass = create()
    client.post(f"/outpasses/{outpass['id']}/approve", headers=auth("warden"))
    code = client.get(f"/outpasses/{outpass['id']}", headers=auth("student")).json()["qr_code"]

    scan = client.post("/security/scan", json={"qr_code": code}, headers=auth("security"))
    assert scan.status_code == 200
    assert scan.json()["usable_for"] == "check_out"
    assert scan.json()["outpass"]["id"] == outpass["id"]

    # Decorator role requirement on the scan endpoint.
    assert client.post("/security/scan", json={"qr_code": code}, headers=auth("warden")).status_code == 403

    wrong = client.post(f"/outpasses/{outpass['id']}/check-out", json={"qr_code": "garbage"}, headers=auth("security"))
    assert wrong.status_code == 422

    resp = client.post(f"/outpasses/{outpass['id']}/check-out", json={"qr_code": code, "remarks": "gate 1"}, headers=auth("security"))
    assert resp.status_code == 200

    active = client.get("/security/outpasses/active", headers=auth("security")).json()
    assert [a["id"] for a in active] == [outpass["id"]]
    assert active[0]["check_out_officer"]["role"] == "security"

    assert client.post("/security/scan", json={"qr_code": code}, headers=auth("security")).json()["usable_for"] == "check_in"

    resp = client.post(f"/outpasses/{outpass['id']}/check-in", headers=auth("security"))
    assert resp.status_code == 200
    assert resp.json()["is_overdue"] is False

    assert client.post("/security/scan", json={"qr_code": code}, headers=auth("security")).json()["usable_for"] is None

    stats = client.get("/security/stats", headers=auth("security")).json()
    assert stats == {"active": 0, "overdue": 0, "check_outs_today": 1, "check_ins_today": 1, "total_check_ins": 1}


def test_inactive_user_is_rejected(client, auth, session_factory, users):
    header = auth("student2")
    with session_factory() as db:
        db.get(User, users["student2"].id).is_active = False
        db.commit()
    assert client.get("/me", headers=header).status_code == 401
