"""
Tests for the HTTP/WebSocket layer.

Tests:
- Connection hub fan-out, ordering and dead-connection cleanup
- Logging configuration from the app factory
- REST snapshot endpoints
- WebSocket envelope (connected, ack, error, pong)
"""

import asyncio
import logging

import pytest
from fastapi.testclient import TestClient

from ..api import app as app_module
from ..api.app import create_app
from ..api.connections import ConnectionHub
from ..api.service import APIService, Audience, Emission


class FakeWebSocket:
    """Records what was sent; optionally fails like a closed socket."""

    def __init__(self, broken=False, first_send_delay=0.0):
        self.sent = []
        self.broken = broken
        self.first_send_delay = first_send_delay

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        if self.first_send_delay:
            delay, self.first_send_delay = self.first_send_delay, 0.0
            await asyncio.sleep(delay)
        self.sent.append(message)


class TestConnectionHub:

    def test_deliver_to_recipients_only(self):
        async def scenario():
            hub = ConnectionHub()
            presenter, alice, bob = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
            hub.register("presenter", presenter)
            hub.register("alice", alice)
            hub.register("bob", bob)

            queued = hub.deliver([
                Emission("quiz-feedback", {"is_correct": True}, Audience.PARTICIPANT, ["alice"]),
                Emission("quiz-results", {"total_answers": 1}, Audience.PRESENTER, ["presenter"]),
            ])
            await hub.flush()
            return queued, presenter, alice, bob

        queued, presenter, alice, bob = asyncio.run(scenario())

        assert queued == 2
        assert alice.sent == [{"event": "quiz-feedback", "data": {"is_correct": True}}]
        assert presenter.sent == [{"event": "quiz-results", "data": {"total_answers": 1}}]
        assert bob.sent == []

    def test_dead_connection_is_dropped(self):
        async def scenario():
            hub = ConnectionHub()
            good, dead = FakeWebSocket(), FakeWebSocket(broken=True)
            hub.register("good", good)
            hub.register("dead", dead)

            hub.deliver([Emission("poll-results", {}, Audience.ROOM, ["dead", "good"])])
            hub.deliver([Emission("poll-results", {}, Audience.ROOM, ["dead", "good"])])
            await hub.flush()
            return hub, good

        hub, good = asyncio.run(scenario())

        assert "dead" not in hub
        assert len(good.sent) == 2

    def test_unknown_identity_is_skipped(self):
        assert ConnectionHub().send("ghost", {"event": "x"}) is False

    def test_slow_socket_still_receives_results_in_order(self):
        """A socket stalled on an older projection ends on the newest one."""
        async def scenario():
            service = APIService()
            code = service.handle("presenter", "create-session", {}).ack["session"]["code"]
            poll_id = service.handle(
                "presenter", "add-activity", {"code": code, "type": "poll", "options": ["A", "B"]}
            ).ack["activity"]["id"]
            service.handle("alice", "join-session", {"code": code, "name": "Alice"})
            service.handle("bob", "join-session", {"code": code, "name": "Bob"})

            hub = ConnectionHub()
            slow_presenter = FakeWebSocket(first_send_delay=0.05)
            sockets = {"presenter": slow_presenter, "alice": FakeWebSocket(), "bob": FakeWebSocket()}
            for identity, ws in sockets.items():
                hub.register(identity, ws)

            async def vote(identity, delay):
                await asyncio.sleep(delay)
                dispatch = service.handle(
                    identity, "submit-vote", {"code": code, "activity_id": poll_id, "option_index": 0}
                )
                hub.deliver(dispatch.emissions)

            await asyncio.gather(vote("alice", 0), vote("bob", 0.01))
            await hub.flush()
            return sockets

        sockets = asyncio.run(scenario())

        for ws in sockets.values():
            totals = [m["data"]["total_votes"] for m in ws.sent if m["event"] == "poll-results"]
            assert totals == [1, 2]


class TestLoggingConfiguration:

    @pytest.fixture(autouse=True)
    def restore_level(self):
        logger = logging.getLogger("livepoll")
        level = logger.level
        yield
        logger.setLevel(level)

    def test_factory_applies_env_level(self, monkeypatch):
        monkeypatch.setattr(app_module, "LIVEPOLL_LOG_LEVEL", "DEBUG")
        create_app(APIService())

        assert logging.getLogger("livepoll").level == logging.DEBUG

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setattr(app_module, "LIVEPOLL_LOG_LEVEL", "DEBUG")
        create_app(APIService(), log_level="WARNING")

        assert logging.getLogger("livepoll").level == logging.WARNING


class TestRestEndpoints:

    @pytest.fixture
    def service(self):
        return APIService()

    @pytest.fixture
    def client(self, service):
        return TestClient(create_app(service))

    def test_health(self, client, service):
        service.handle("p", "create-session", {})
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["active_sessions"] == 1

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/api/docs"

    @pytest.mark.parametrize("path", [
        "/api/session/000000",
        "/api/session/000000/results",
        "/api/session/000000/info",
    ])
    def test_unknown_code_is_404(self, client, path):
        response = client.get(path)

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_session_snapshots(self, client, service):
        code = service.handle("p", "create-session", {"name": "Town Hall"}).ack["session"]["code"]
        poll_id = service.handle(
            "p", "add-activity", {"code": code, "type": "poll", "question": "Q?", "options": ["A", "B"]}
        ).ack["activity"]["id"]
        service.handle("alice", "join-session", {"code": code, "name": "Alice"})

        lookup = client.get(f"/api/session/{code}").json()
        assert lookup == {
            "exists": True,
            "name": "Town Hall",
            "code": code,
            "participant_count": 1,
            "is_active": True,
        }
        assert client.get(f"/api/session/{code}/results").json()["has_activity"] is False

        service.handle("p", "launch-activity", {"code": code, "index": 0})
        service.handle("alice", "submit-vote", {"code": code, "activity_id": poll_id, "option_index": 1})

        results = client.get(f"/api/session/{code}/results").json()
        assert results["has_activity"] is True
        assert results["activity"]["type"] == "poll"
        assert results["activity"]["total_votes"] == 1
        assert results["activity"]["results"][1]["voter_names"] == ["Alice"]

        info = client.get(f"/api/session/{code}/info").json()
        assert info["current_activity_index"] == 0
        assert info["activities"][0]["response_count"] == 1


class TestWebSocket:

    @pytest.fixture
    def client(self):
        return TestClient(create_app(APIService()))

    def test_presenter_flow(self, client):
        with client.websocket_connect("/ws") as ws:
            connected = ws.receive_json()
            assert connected["event"] == "connected"
            assert connected["data"]["identity"]

            ws.send_json({"event": "create-session", "data": {"name": "Live"}, "ref": 1})
            ack = ws.receive_json()
            assert ack["event"] == "ack"
            assert ack["ref"] == 1
            assert ack["for"] == "create-session"
            code = ack["data"]["session"]["code"]

            ws.send_json({
                "event": "add-activity",
                "data": {"code": code, "type": "wordcloud", "question": "Mood?"},
                "ref": 2,
            })
            assert ws.receive_json()["data"]["success"] is True

            ws.send_json({"event": "launch-activity", "data": {"code": code, "index": 0}, "ref": 3})
            launched = ws.receive_json()
            assert launched["data"]["activity"]["type"] == "wordcloud"

            info = client.get(f"/api/session/{code}/info").json()
            assert info["current_activity_index"] == 0
            assert info["activities"][0]["is_open"] is True

    def test_failure_is_acked(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"event": "next-activity", "data": {"code": "000000"}, "ref": "a"})
            ack = ws.receive_json()

            assert ack["ref"] == "a"
            assert ack["data"]["success"] is False
            assert ack["data"]["error_code"] == "NOT_FOUND"

    def test_invalid_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("not json")
            error = ws.receive_json()

            assert error["event"] == "error"
            assert error["data"]["error_code"] == "VALIDATION_ERROR"

    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"event": "ping", "ref": 7})
            assert ws.receive_json() == {"event": "pong", "ref": 7}
