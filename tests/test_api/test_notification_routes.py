from __future__ import annotations

from datetime import timedelta

import pytest


@pytest.fixture
def three_notifications(client, app, auth, clock):
    """Create, approve and cancel an outpass: the H1 warden ends up with two notifications, the student one."""
    start = clock() + timedelta(hours=1)
    body = {"reason": "r", "destination": "d", "from_date": start.isoformat(), "to_date": (start + timedelta(hours=1)).isoformat()}
    outpass = client.post("/outpasses", json=body, headers=auth("student")).json()
    client.post(f"/outpasses/{outpass['id']}/approve", headers=auth("warden"))
    client.post(f"/outpasses/{outpass['id']}/cancel", headers=auth("student"))
    app.state.dispatcher.wait_idle()
    return outpass


def test_list_and_unread_count(client, auth, three_notifications):
    warden = client.get("/notifications", headers=auth("warden")).json()
    # Same timestamp: newest id first.
    assert [n["type"] for n in warden["items"]] == ["outpass_cancelled", "outpass_created"]
    assert warden["total"] == 2
    assert client.get("/notifications/unread-count", headers=auth("warden")).json() == {"unread_count": 2}
    assert client.get("/notifications/unread-count", headers=auth("student")).json() == {"unread_count": 1}


def test_mark_read_read_all_and_delete(client, auth, three_notifications):
    items = client.get("/notifications", headers=auth("warden")).json()["items"]
    first = items[0]["id"]

    resp = client.post(f"/notifications/{first}/read", headers=auth("warden"))
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    # Someone else's notification.
    assert client.post(f"/notifications/{first}/read", headers=auth("student")).status_code == 404

    assert client.post("/notifications/read-all", headers=auth("warden")).json() == {"affected": 1}
    assert client.delete("/notifications/read", headers=auth("warden")).json() == {"affected": 2}
    assert client.get("/notifications", headers=auth("warden")).json()["total"] == 0

    student_note = client.get("/notifications", headers=auth("student")).json()["items"][0]["id"]
    assert client.delete(f"/notifications/{student_note}", headers=auth("student")).status_code == 204
    assert client.get("/notifications", headers=auth("student")).json()["total"] == 0


def test_unread_only_filter(client, auth, three_notifications):
    items = client.get("/notifications", headers=auth("warden")).json()["items"]
    client.post(f"/notifications/{items[0]['id']}/read", headers=auth("warden"))
    unread = client.get("/notifications", params={"unread_only": True}, headers=auth("warden")).json()
    assert unread["total"] == 1
    assert unread["unread_count"] == 1
