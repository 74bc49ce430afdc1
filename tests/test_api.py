"""
Tests for the HTTP routes and the /ws endpoint.

Run tests:
    pytest tests/test_api.py -v
"""

import json
from unittest.mock import MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect


def _start(client, **overrides):
    body = {
        "name": "Reef fish classifier",
        "type": "CNN",
        "architecture": "resnet",
        "epochs": 5,
        "batchSize": 16,
        "learningRate": 0.001,
        "datasetSize": 640,
    }
    body.update(overrides)
    return client.post("/api/training/start", json=body)


class TestSystemRoutes:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ws_stats_without_clients(self, client):
        stats = client.get("/api/ws/stats").json()
        assert stats["total_connections"] == 0
        assert stats["active_training_jobs"] == 0
        assert stats["heartbeat_running"] is True


class TestTrainingRoutes:
    def test_start_returns_progress(self, client):
        response = _start(client)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "training"
        assert data["totalEpochs"] == 5
        assert data["totalBatches"] == 40
        assert data["epoch"] == 0

        progress = client.get(f"/api/training/{data['modelId']}")
        assert progress.status_code == 200
        assert progress.json()["modelId"] == data["modelId"]

    def test_start_validates_config(self, client):
        assert _start(client, epochs=0).status_code == 422
        assert _start(client, type="GAN").status_code == 422
        assert _start(client, learningRate=-1).status_code == 422

    def test_stop_and_active_list(self, client):
        job_id = _start(client).json()["modelId"]
        other_id = _start(client, name="Plankton").json()["modelId"]

        active = client.get("/api/training/active").json()
        assert active["total"] == 2

        response = client.post(f"/api/training/{job_id}/stop")
        assert response.status_code == 200
        assert response.json()["status"] == "failed"

        again = client.post(f"/api/training/{job_id}/stop")
        assert again.status_code == 400

        active = client.get("/api/training/active").json()
        assert [j["modelId"] for j in active["jobs"]] == [other_id]

    def test_unknown_job(self, client):
        assert client.get("/api/training/missing").status_code == 404
        assert client.post("/api/training/missing/stop").status_code == 404
        assert client.get("/api/training/missing/metrics").status_code == 404

    def test_metrics_report(self, client):
        job_id = _start(client).json()["modelId"]
        response = client.get(f"/api/training/{job_id}/metrics")
        assert response.status_code == 200
        report = response.json()
        assert len(report["trainingHistory"]) == 5
        assert len(report["confusionMatrix"]) == 10
        assert set(report["learningCurves"]) == {"epochs", "trainLoss", "valLoss", "trainAcc", "valAcc"}


class TestModelRoutes:
    def test_started_job_creates_pending_model(self, client):
        job_id = _start(client).json()["modelId"]

        model = client.get(f"/api/models/{job_id}")
        assert model.status_code == 200
        record = model.json()
        assert record["isActive"] is False
        assert record["type"] == "CNN"
        assert record["parameters"]["batchSize"] == 16

        listing = client.get("/api/models").json()
        assert listing["total"] == 1

    def test_unknown_model(self, client):
        assert client.get("/api/models/missing").status_code == 404


class TestWebSocketEndpoint:
    def test_websocket_welcome_and_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            welcome = ws.receive_json()
            assert welcome["type"] == "connection"
            assert welcome["data"]["clientId"].startswith("client_")

            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json()["type"] == "pong"

            assert client.get("/api/ws/stats").json()["total_connections"] == 1

    def test_websocket_malformed_frame_keeps_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("this is not json")
            ws.send_text(json.dumps({"type": "request_data", "data": {"type": "vessel_position"}}))
            event = ws.receive_json()
            assert event["type"] == "vessel_update"

    def test_websocket_binary_frame_is_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01not json")
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json()["type"] == "pong"

    def test_heartbeat_eviction_is_not_logged_as_error(self, client, monkeypatch):
        services = client.app.state.services
        endpoint_logger = MagicMock()
        monkeypatch.setattr("main.logger", endpoint_logger)

        with client.websocket_connect("/ws") as ws:
            client_id = ws.receive_json()["data"]["clientId"]
            services.registry.get(client_id).last_seen -= 10_000

            assert client.portal.call(services.heartbeat.sweep) == 1
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_text()
            assert excinfo.value.code == 1001

        assert services.registry.count() == 0
        endpoint_logger.error.assert_not_called()

    def test_websocket_alert_reaches_subscriber(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "subscribe", "channels": ["alerts"]}))
            confirmed = ws.receive_json()
            assert confirmed["type"] == "subscription_confirmed"
            assert confirmed["data"]["channels"] == ["alerts"]

            response = client.post("/api/notifications/alert", json={"msg": "Algal bloom risk"})
            assert response.json() == {"kind": "alert", "channel": "alerts", "delivered": 1}

            alert = ws.receive_json()
            assert alert["type"] == "alert"
            assert alert["data"] == {"msg": "Algal bloom risk"}

    def test_websocket_training_updates(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "subscribe", "channels": ["training"]}))
            ws.receive_json()

            # A single batch per epoch keeps the next tick far away
            job_id = _start(client, datasetSize=16).json()["modelId"]
            update = ws.receive_json()
            assert update["type"] == "training_update"
            assert update["data"]["modelId"] == job_id

            client.post(f"/api/training/{job_id}/stop")
            stopped = ws.receive_json()
            assert stopped["type"] == "training_stopped"


class TestNotificationRoutes:
    def test_unknown_kind(self, client):
        response = client.post("/api/notifications/fireworks", json={})
        assert response.status_code == 404

    def test_publish_without_subscribers(self, client):
        response = client.post("/api/notifications/system_status", json={"load": 0.2})
        assert response.json()["delivered"] == 0
