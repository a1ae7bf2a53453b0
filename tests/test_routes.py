"""
Testes das rotas HTTP.
"""
from datetime import timedelta

from onair.core.clock import utcnow
from onair.models.broadcast_slot import BroadcastType, SlotStatus


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["workers"] == {"reconciliation": False}


def test_validate_token(client, make_slot):
    now = utcnow()
    slot = make_slot(start=now + timedelta(minutes=30), end=now + timedelta(minutes=90))

    response = client.get("/broadcast/validate-token", params={"token": slot.broadcast_token})

    assert response.status_code == 200
    body = response.json()
    assert body["schedule_status"] == "early"
    assert body["slot"]["id"] == str(slot.id)
    assert body["broadcast_url"].endswith(slot.broadcast_token)


def test_validate_unknown_token(client, db):
    response = client.get("/broadcast/validate-token", params={"token": "missing"})

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "invalid_token"


def test_go_live_too_early_returns_boundary(client, make_slot):
    now = utcnow()
    slot = make_slot(start=now + timedelta(minutes=30), end=now + timedelta(minutes=90))

    response = client.post("/broadcast/go-live", json={"token": slot.broadcast_token})

    assert response.status_code == 425
    detail = response.json()["detail"]
    assert detail["code"] == "not_yet_open"
    assert detail["opens_at"].startswith((slot.start_time - timedelta(seconds=60)).isoformat()[:16])


def test_go_live_pause_resume_end(client, make_slot, transport):
    now = utcnow()
    slot = make_slot(start=now - timedelta(minutes=5), end=now + timedelta(minutes=55))
    token = slot.broadcast_token

    response = client.post("/broadcast/go-live", json={"token": token, "dj_user_id": "user-1"})
    assert response.status_code == 200
    body = response.json()
    assert body["slot"]["status"] == "live"
    assert body["session"]["token"] == "join-user-1"
    assert body["recording"]["status"] == "recording"

    assert client.post("/broadcast/pause", json={"token": token}).json()["status"] == "paused"
    assert client.post("/broadcast/resume", json={"token": token}).json()["slot"]["status"] == "live"

    status_view = client.get("/broadcast/status", params={"token": token}).json()
    assert status_view["status"] == "live"
    assert status_view["message"] == "Está live"

    response = client.post("/broadcast/end", json={"token": token})
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert transport.removed[-1][1] == "user-1"


def test_go_live_transport_failure_is_generic(client, make_slot, transport):
    now = utcnow()
    slot = make_slot(start=now, end=now + timedelta(hours=1))
    transport.fail_admit = True

    response = client.post("/broadcast/go-live", json={"token": slot.broadcast_token})

    assert response.status_code == 503
    assert response.json()["detail"] == {
        "code": "transport_unavailable",
        "message": "Erro temporário no servidor de áudio. Tente novamente."
    }


def test_promo_validation_and_noop(client, make_slot):
    now = utcnow()
    slot = make_slot(start=now, end=now + timedelta(hours=1))

    invalid = client.post("/broadcast/promo", json={"token": slot.broadcast_token, "promo_text": "x" * 201})
    assert invalid.status_code == 422

    response = client.post("/broadcast/promo", json={
        "token": slot.broadcast_token, "promo_text": "Hello", "promo_hyperlink": "example.com"
    })
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "applied": False,
        "promo_text": "Hello",
        "promo_hyperlink": "https://example.com"
    }


def test_admin_creates_and_lists_slots(client, admin_headers, dj_headers):
    now = utcnow()
    payload = {
        "show_name": "Club Night",
        "broadcast_type": "venue",
        "venue_slug": "club-one",
        "start_time": (now + timedelta(hours=1)).isoformat(),
        "end_time": (now + timedelta(hours=3)).isoformat(),
        "dj_slots": [
            {
                "dj_name": "DJ A",
                "start_time": (now + timedelta(hours=1)).isoformat(),
                "end_time": (now + timedelta(hours=2)).isoformat()
            },
            {
                "dj_name": "DJ B",
                "start_time": (now + timedelta(hours=2)).isoformat(),
                "end_time": (now + timedelta(hours=3)).isoformat()
            }
        ]
    }

    assert client.post("/slots", json=payload, headers=dj_headers).status_code == 403

    response = client.post("/slots", json=payload, headers=admin_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["broadcast_url"].endswith("/broadcast/club-one")
    assert [dj["dj_name"] for dj in body["slot"]["dj_slots"]] == ["DJ A", "DJ B"]

    listing = client.get("/slots", headers=admin_headers).json()
    assert listing["total"] == 1
    assert listing["items"][0]["show_name"] == "Club Night"


def test_create_slot_requires_exactly_one_lineup(client, admin_headers):
    now = utcnow()
    response = client.post("/slots", json={
        "show_name": "Nobody",
        "start_time": now.isoformat(),
        "end_time": (now + timedelta(hours=1)).isoformat()
    }, headers=admin_headers)

    assert response.status_code == 422


def test_slots_require_authentication(client):
    assert client.get("/slots").status_code in (401, 403)


def test_delete_slot(client, admin_headers, make_slot):
    slot = make_slot()

    assert client.delete(f"/slots/{slot.id}", headers=admin_headers).status_code == 204
    assert client.get(f"/slots/{slot.id}", headers=admin_headers).status_code == 404


def test_manual_reconcile_with_cron_secret(client, make_slot, monkeypatch):
    from onair.core.config import settings

    monkeypatch.setattr(settings, "cron_secret", "cron-123")
    now = utcnow()
    slot = make_slot(start=now - timedelta(hours=2), end=now - timedelta(hours=1))

    response = client.post("/slots/reconcile", headers={"Authorization": "Bearer cron-123"})

    assert response.status_code == 200
    assert response.json()["missed"] == 1
    assert client.post("/slots/reconcile", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_venue_slots_and_go_live(client, make_slot, dj_headers):
    now = utcnow()
    slot = make_slot(start=now - timedelta(minutes=1), end=now + timedelta(hours=1),
                     broadcast_type=BroadcastType.VENUE, venue_slug="club-one")

    listing = client.get("/venues/club-one/slots").json()
    assert listing["current"]["id"] == str(slot.id)
    assert listing["next"] is None

    response = client.post("/venues/club-one/go-live", json={}, headers=dj_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["identity"] == "user-dj"
    assert body["slot"]["live_dj_username"] == "djvenue"


def test_venue_listing_hides_broadcast_token(client, make_slot):
    now = utcnow()
    make_slot(start=now - timedelta(minutes=1), end=now + timedelta(hours=1),
              broadcast_type=BroadcastType.VENUE, venue_slug="club-one")
    make_slot(start=now + timedelta(hours=2), end=now + timedelta(hours=3),
              broadcast_type=BroadcastType.VENUE, venue_slug="club-one")

    listing = client.get("/venues/club-one/slots").json()

    for key in ("current", "next"):
        assert "broadcast_token" not in listing[key]
        assert "token_expires_at" not in listing[key]


def test_slot_listing_is_admin_only(client, make_slot, admin_headers, dj_headers):
    slot = make_slot()

    assert client.get("/slots", headers=dj_headers).status_code == 403
    assert client.get(f"/slots/{slot.id}", headers=dj_headers).status_code == 403

    listing = client.get("/slots", headers=admin_headers).json()
    assert listing["items"][0]["broadcast_token"] == slot.broadcast_token


def test_venue_go_live_without_current_slot(client, db, dj_headers):
    response = client.post("/venues/empty-club/go-live", json={}, headers=dj_headers)
    assert response.status_code == 404


def test_list_recordings(client, make_slot, admin_headers):
    now = utcnow()
    slot = make_slot(start=now, end=now + timedelta(hours=1))
    client.post("/broadcast/go-live", json={"token": slot.broadcast_token})

    response = client.get(f"/slots/{slot.id}/recordings", headers=admin_headers)

    assert response.status_code == 200
    assert len(response.json()) == 1
    assert response.json()[0]["status"] == "recording"
