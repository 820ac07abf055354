from datetime import datetime
import pytest

from rebound.crud import notifications as crud
from rebound.db.models.notifications import Notification
from tests.helpers import auth_headers


@pytest.fixture
def inbox(db, alice, bob):
    """Three notifications for Alice, oldest first, plus one for Bob."""
    rows = [
        Notification(recipient_id=alice.id, type="post_like", actor_id=bob.id,
                     message="liked your post", created_at=datetime(2025, 1, 1)),
        Notification(recipient_id=alice.id, type="post_comment", actor_id=bob.id,
                     entity_type="comment", entity_id=7, message="commented", created_at=datetime(2025, 1, 2)),
        Notification(recipient_id=alice.id, type="job_application", actor_id=bob.id,
                     message="applied", read=True, created_at=datetime(2025, 1, 3)),
        Notification(recipient_id=bob.id, type="mention", actor_id=alice.id,
                     message="mentioned you", created_at=datetime(2025, 1, 4)),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.mark.asyncio
async def test_list_newest_first_with_unread_count(client, inbox, alice):
    response = await client.get("/api/notifications", headers=auth_headers(alice))

    assert response.status_code == 200
    payload = response.json()
    assert [n["type"] for n in payload["data"]] == ["job_application", "post_comment", "post_like"]
    assert payload["unread_count"] == 2
    assert payload["pagination"]["total_items"] == 3
    assert payload["data"][1]["related_entity"] == {"entity_type": "comment", "entity_id": 7}
    assert payload["data"][0]["related_entity"] is None


@pytest.mark.asyncio
async def test_unread_only_and_paging(client, inbox, alice):
    unread = await client.get("/api/notifications?unread_only=true", headers=auth_headers(alice))
    assert [n["type"] for n in unread.json()["data"]] == ["post_comment", "post_like"]

    page_two = await client.get("/api/notifications?page=2&limit=2", headers=auth_headers(alice))
    payload = page_two.json()
    assert [n["type"] for n in payload["data"]] == ["post_like"]
    assert payload["pagination"] == {
        "current_page": 2,
        "total_pages": 2,
        "total_items": 3,
        "has_next_page": False,
    }


@pytest.mark.asyncio
async def test_mark_read_checks_recipient(client, db, inbox, alice, bob):
    target = inbox[0]

    denied = await client.put(f"/api/notifications/{target.id}/read", headers=auth_headers(bob))
    assert denied.status_code == 403

    missing = await client.put("/api/notifications/999/read", headers=auth_headers(alice))
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"

    response = await client.put(f"/api/notifications/{target.id}/read", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["data"]["read"] is True

    count = await client.get("/api/notifications/unread-count", headers=auth_headers(alice))
    assert count.json()["data"] == {"count": 1}


@pytest.mark.asyncio
async def test_mark_all_read_only_touches_caller(client, db, inbox, alice, bob):
    response = await client.put("/api/notifications/read-all", headers=auth_headers(alice))

    assert response.status_code == 200
    assert response.json()["data"] == {"count": 2}
    db.expire_all()
    assert crud.unread_count(db, alice.id) == 0
    assert crud.unread_count(db, bob.id) == 1


@pytest.mark.asyncio
async def test_delete_notification(client, db, inbox, alice, bob):
    target = inbox[3]

    denied = await client.delete(f"/api/notifications/{target.id}", headers=auth_headers(alice))
    assert denied.status_code == 403

    response = await client.delete(f"/api/notifications/{target.id}", headers=auth_headers(bob))
    assert response.status_code == 200
    assert db.query(Notification).filter(Notification.recipient_id == bob.id).count() == 0


def test_notify_safely_swallows_store_errors(db, monkeypatch, alice, bob, caplog):
    from sqlalchemy.exc import OperationalError

    def failing_notify(*args, **kwargs):
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk full"))

    monkeypatch.setattr(crud, "notify", failing_notify)

    result = crud.notify_safely(db, bob.id, "mention", actor_id=alice.id, message="hi")

    assert result is None
    assert "Failed to write mention notification" in caplog.text


def test_notify_writes_related_entity(db, alice, bob):
    note = crud.notify(db, bob.id, "pitch_status", actor_id=alice.id,
                       entity_type="pitch", entity_id=3, message="reviewed your pitch")

    assert note.id is not None
    assert note.read is False
    assert note.related_entity == {"entity_type": "pitch", "entity_id": 3}
