"""
A full outpass day over HTTP and WebSocket.

Student (H1) asks to leave 09:00-18:00; the H1 warden approves; security
checks the student out at 10:00 and back in at 19:00.
"""
from __future__ import annotations

from datetime import datetime


def _ws_url(app, user) -> str:
    token = app.state.tokens.issue(user.id, user.role.value, hostel=user.hostel)
    return f"/ws?token={token}"


def test_outpass_day(client, app, auth, users, clock):
    clock.now = datetime(2025, 1, 10, 8, 0)

    with client.websocket_connect(_ws_url(app, users["student"])) as student_ws, client.websocket_connect(
        _ws_url(app, users["warden_h2"])
    ) as h2_ws:
        assert student_ws.receive_json()["event"] == "connected"
        assert h2_ws.receive_json()["event"] == "connected"

        resp = client.post(
            "/outpasses",
            json={
                "type": "local",
                "reason": "Bank visit",
                "destination": "Town",
                "from_date": "2025-01-10T09:00:00Z",
                "to_date": "2025-01-10T18:00:00Z",
            },
            headers=auth("student"),
        )
        assert resp.status_code == 201, resp.text
        outpass = resp.json()
        assert outpass["status"] == "pending"
        assert outpass["hostel"] == "H1"
        assert outpass["outpass_number"].startswith("OP-20250110-")

        resp = client.post(f"/outpasses/{outpass['id']}/approve", json={"remarks": "ok"}, headers=auth("warden"))
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "approved"
        assert resp.json()["warden_remarks"] == "ok"

        app.state.dispatcher.wait_idle()

        message = student_ws.receive_json()
        assert message["event"] == "outpass:approved"
        assert message["data"]["outpass_id"] == outpass["id"]
        assert message["data"]["outpass"]["status"] == "approved"
        assert message["data"]["actor_id"] == users["warden"].id

        note = student_ws.receive_json()
        assert note["event"] == "notification:new"
        assert note["data"]["type"] == "outpass_approved"
        assert note["data"]["user_id"] == users["student"].id

        # Nothing for the other hostel's warden: the next frame is the pong.
        h2_ws.send_json({"event": "ping"})
        assert h2_ws.receive_json()["event"] == "pong"

    notes = client.get("/notifications", headers=auth("student")).json()
    assert [n["type"] for n in notes["items"]] == ["outpass_approved"]
    assert notes["unread_count"] == 1
    assert client.get("/notifications", headers=auth("warden_h2")).json()["total"] == 0
    assert [n["type"] for n in client.get("/notifications", headers=auth("warden")).json()["items"]] == ["outpass_created"]

    qr_code = client.get(f"/outpasses/{outpass['id']}", headers=auth("student")).json()["qr_code"]
    assert qr_code

    clock.now = datetime(2025, 1, 10, 10, 0)
    resp = client.post(f"/outpasses/{outpass['id']}/check-out", json={"qr_code": qr_code}, headers=auth("security"))
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "checked_out"

    clock.now = datetime(2025, 1, 10, 19, 0)
    resp = client.post(f"/outpasses/{outpass['id']}/check-in", json={"remarks": "late bus"}, headers=auth("security"))
    assert resp.status_code == 200, resp.text
    final = resp.json()
    assert final["status"] == "checked_in"
    assert final["is_overdue"] is True
    assert final["check_in_time"] == "2025-01-10T19:00:00"

    app.state.dispatcher.wait_idle()
    types = [n["type"] for n in client.get("/notifications", headers=auth("student")).json()["items"]]
    assert types == ["outpass_checked_in", "outpass_checked_out", "outpass_approved"]
