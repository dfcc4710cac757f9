"""Tests for the HTTP and WebSocket surface."""

import pytest
from fastapi.testclient import TestClient

from prefetch_oracle.config import Settings
from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.main import create_app, engine_factory_from

from tests.test_interaction import _valid_event


_WALK = ["A", "B", "Y", "A", "C", "Z", "A", "B", "Y", "Z", "A"]


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app(Settings()))


def _record_walk(client: TestClient, session_id: str) -> None:
    for cid in _WALK:
        response = client.post(
            f"/api/sessions/{session_id}/interactions", json=_valid_event(component_id=cid)
        )
        assert response.status_code == 200


class TestSessionEndpoints:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["active_sessions"] == 0

    def test_record_interaction(self, client: TestClient) -> None:
        response = client.post("/api/sessions/s1/interactions", json=_valid_event())
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "accepted"
        assert body["record"]["component_id"] == "product-grid"
        assert body["record"]["base_weight"] == 0.9

    def test_invalid_interaction_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/sessions/s1/interactions", json=_valid_event(viewport_coverage=3.0)
        )
        assert response.status_code == 422

    def test_patterns_and_navigation(self, client: TestClient) -> None:
        _record_walk(client, "s1")
        patterns = client.get("/api/sessions/s1/patterns").json()
        assert patterns["recent_interactions"][0]["component_id"] == "A"
        assert len(patterns["recent_interactions"]) == 10

        navigation = client.get("/api/sessions/s1/navigation").json()
        assert navigation["dominant"] in {"linear", "branching", "cyclic", "mixed"}

    def test_predict_and_report_outcome(self, client: TestClient) -> None:
        _record_walk(client, "s1")
        predictions = client.post(
            "/api/sessions/s1/predictions", json={"candidates": ["B", "C"]}
        ).json()
        assert [p["component_id"] for p in predictions["predictions"]] == ["B"]
        assert predictions["predictions"][0]["priority"] == "high"
        assert predictions["strategy"] == "probabilistic"

        report = client.post("/api/sessions/s1/outcomes", json={"component_id": "B"}).json()
        assert report["total_predictions"] == 1
        assert report["correct_predictions"] == 1

        metrics = client.get("/api/sessions/s1/metrics").json()
        assert metrics["phase"] == "cold"

    def test_predict_with_named_strategy(self, client: TestClient) -> None:
        _record_walk(client, "s1")
        response = client.post(
            "/api/sessions/s1/predictions",
            json={"candidates": ["B"], "strategy": "amplified"},
        )
        assert response.json()["strategy"] == "amplified"

    def test_unknown_strategy_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/sessions/s1/predictions",
            json={"candidates": ["B"], "strategy": "crystal-ball"},
        )
        assert response.status_code == 422

    def test_empty_candidates_ok(self, client: TestClient) -> None:
        response = client.post("/api/sessions/s1/predictions", json={"candidates": []})
        assert response.status_code == 200
        assert response.json()["predictions"] == []

    def test_blank_outcome_component_rejected(self, client: TestClient) -> None:
        response = client.post("/api/sessions/s1/outcomes", json={"component_id": "   "})
        assert response.status_code == 422

    def test_metrics_unknown_session_404(self, client: TestClient) -> None:
        assert client.get("/api/sessions/ghost/metrics").status_code == 404

    def test_reset_session(self, client: TestClient) -> None:
        _record_walk(client, "s1")
        assert client.delete("/api/sessions/s1").json()["status"] == "reset"
        patterns = client.get("/api/sessions/s1/patterns").json()
        assert patterns["recent_interactions"] == []
        assert client.delete("/api/sessions/ghost").status_code == 404

    def test_list_sessions(self, client: TestClient) -> None:
        client.post("/api/sessions/s1/interactions", json=_valid_event())
        client.post("/api/sessions/s2/interactions", json=_valid_event())
        body = client.get("/api/sessions").json()
        assert body["count"] == 2
        assert {s["session_id"] for s in body["sessions"]} == {"s1", "s2"}


class TestInteractionStream:
    def test_accepts_and_acknowledges(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/interactions/s1") as ws:
            ws.send_json(_valid_event(component_id="cart"))
            ack = ws.receive_json()
        assert ack["status"] == "accepted"
        assert ack["component_id"] == "cart"
        assert 0.0 < ack["interaction_score"] <= 0.9

    def test_malformed_event_keeps_stream_open(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/interactions/s1") as ws:
            ws.send_json(_valid_event(duration_ms=-10))
            error = ws.receive_json()
            ws.send_json(["not", "an", "object"])
            not_object = ws.receive_json()
            ws.send_json(_valid_event(component_id="search"))
            ack = ws.receive_json()

        assert error["status"] == "error"
        assert error["field"] == "duration_ms"
        assert not_object["field"] == "event"
        assert ack["status"] == "accepted"

        patterns = client.get("/api/sessions/s1/patterns").json()
        assert [r["component_id"] for r in patterns["recent_interactions"]] == ["search"]


class TestAppConfiguration:
    def test_unknown_default_strategy_fails_at_startup(self) -> None:
        with pytest.raises(InputValidationError):
            create_app(Settings(default_strategy="crystal-ball"))

    def test_factory_uses_configured_strategy(self) -> None:
        engine = engine_factory_from(Settings(default_strategy="amplified"))()
        assert engine.predict(None, []).strategy.value == "amplified"
