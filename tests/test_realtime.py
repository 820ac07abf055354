import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from main import app
from rebound.db.session import SessionLocal, get_db
from rebound.routers import realtime
from rebound.realtime.registry import ConnectionRegistry, push_safely
from tests.helpers import auth_headers
from rebound.core.security import create_access_token


class FakeSession:
    def __init__(self, fail=False):
        self.frames = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(data)


@pytest.mark.asyncio
async def test_publish_reaches_every_session_of_the_user():
    registry = ConnectionRegistry()
    laptop, phone, other = FakeSession(), FakeSession(), FakeSession()
    await registry.join(1, laptop)
    await registry.join(1, phone)
    await registry.join(2, other)

    await registry.publish(1, "new_message", {"conversation_id": 5})

    expected = [{"event": "new_message", "data": {"conversation_id": 5}}]
    assert laptop.frames == expected
    assert phone.frames == expected
    assert other.frames == []


@pytest.mark.asyncio
async def test_publish_to_offline_user_is_dropped():
    registry = ConnectionRegistry()

    await registry.publish(42, "new_message", {})

    assert registry.connected_count(42) == 0


@pytest.mark.asyncio
async def test_broken_session_is_removed():
    registry = ConnectionRegistry()
    healthy, broken = FakeSession(), FakeSession(fail=True)
    await registry.join(1, healthy)
    await registry.join(1, broken)

    await registry.publish(1, "new_message", {"n": 1})

    assert registry.connected_count(1) == 1
    assert healthy.frames == [{"event": "new_message", "data": {"n": 1}}]


@pytest.mark.asyncio
async def test_leave_empties_room():
    registry = ConnectionRegistry()
    session = FakeSession()
    await registry.join(1, session)

    await registry.leave(1, session)
    await registry.leave(1, session)

    assert registry.connected_count(1) == 0


@pytest.mark.asyncio
async def test_push_safely_never_raises():
    class ExplodingRegistry(ConnectionRegistry):
        async def publish(self, user_id, event, payload):
            raise ConnectionError("bus down")

    await push_safely(ExplodingRegistry(), 1, "new_message", {})


# =============================================================================
# WebSocket endpoint
# =============================================================================

@pytest.fixture
def ws_client(db):
    def override_get_db():
        yield db

    original = app.state.registry
    app.state.registry = ConnectionRegistry()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.registry = original


def test_joined_user_receives_new_message(ws_client, alice, bob):
    token = create_access_token({"sub": bob.email})
    conversation_id = ws_client.post(
        "/api/messages/conversations",
        json={"participant_id": bob.id},
        headers=auth_headers(alice),
    ).json()["data"]["id"]

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"event": "join", "user_id": bob.id})
        assert ws.receive_json() == {"event": "joined", "data": {"user_id": bob.id}}

        response = ws_client.post(
            f"/api/messages/conversations/{conversation_id}",
            json={"content": "Hi!"},
            headers=auth_headers(alice),
        )
        assert response.status_code == 201

        frame = ws.receive_json()
        assert frame["event"] == "new_message"
        assert frame["data"]["conversation_id"] == conversation_id
        assert frame["data"]["message"]["content"] == "Hi!"
        assert frame["data"]["message"]["sender_id"] == alice.id

    assert app.state.registry.connected_count(bob.id) == 0


def test_cannot_join_someone_elses_room(ws_client, alice, bob):
    token = create_access_token({"sub": alice.email})

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"event": "join", "user_id": bob.id})
        frame = ws.receive_json()

    assert frame["event"] == "error"
    assert app.state.registry.connected_count(bob.id) == 0


def test_invalid_token_is_refused(ws_client):
    with ws_client.websocket_connect("/ws?token=garbage") as ws:
        frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Invalid token"}}
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_idle_socket_holds_no_database_session(ws_client, monkeypatch, db, bob):
    opened = []
    requests_open = []

    def tracking_session():
        session = SessionLocal()
        opened.append(session)
        return session

    def counting_get_db():
        requests_open.append(1)
        try:
            yield db
        finally:
            requests_open.pop()

    monkeypatch.setattr(realtime, "SessionLocal", tracking_session)
    app.dependency_overrides[get_db] = counting_get_db
    token = create_access_token({"sub": bob.email})

    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"event": "join", "user_id": bob.id})
        assert ws.receive_json()["event"] == "joined"

        assert len(opened) == 1
        assert not opened[0].in_transaction()
        assert requests_open == []
