"""Web 接口：上传、分析、编辑、错误映射、WebSocket 推送"""
import base64

import pytest
from fastapi.testclient import TestClient

from web.app import create_app
from web.bridge import SessionBridge
from workflow.analysis_gateway import AnalysisGateway

from conftest import GOOD_PAYLOAD, FakeModelClient


def _client(*responses):
    model_client = FakeModelClient(*responses)
    bridge = SessionBridge(gateway=AnalysisGateway(model_client))
    return TestClient(create_app(bridge)), bridge, model_client


def _upload_both(client, png_bytes, jpeg_bytes):
    r = client.post("/api/images/design", files={"file": ("design.png", png_bytes, "image/png")})
    assert r.status_code == 200
    r = client.post("/api/images/live", files={"file": ("live.jpg", jpeg_bytes, "image/jpeg")})
    assert r.status_code == 200
    return r.json()


class TestImages:

    def test_upload_and_clear(self, png_bytes, jpeg_bytes):
        client, _bridge, _model = _client()
        snapshot = _upload_both(client, png_bytes, jpeg_bytes)
        assert snapshot["phase"] == "images_ready"
        assert snapshot["inputs_complete"] is True
        assert snapshot["images"]["live"]["filename"] == "live.jpg"

        r = client.get("/api/images/design")
        assert r.status_code == 200
        assert r.content == png_bytes
        assert r.headers["content-type"] == "image/png"

        r = client.delete("/api/images/design")
        assert r.json()["inputs_complete"] is False
        assert client.get("/api/images/design").status_code == 404

    def test_data_url_upload(self, png_bytes):
        client, _bridge, _model = _client()
        data_url = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        r = client.post("/api/images/live/data-url", json={"data_url": data_url, "filename": "paste.png"})
        assert r.status_code == 200
        assert r.json()["images"]["live"]["filename"] == "paste.png"

    def test_unsupported_media_type(self):
        client, _bridge, _model = _client()
        r = client.post("/api/images/design", files={"file": ("a.txt", b"hello", "text/plain")})
        assert r.status_code == 415
        assert r.json()["error"] == "UnsupportedMediaType"
        assert client.get("/api/session").json()["phase"] == "idle"

    def test_unknown_slot(self, png_bytes):
        client, _bridge, _model = _client()
        r = client.post("/api/images/other", files={"file": ("a.png", png_bytes, "image/png")})
        assert r.status_code == 422


class TestAnalysisRoutes:

    def test_missing_input(self):
        client, _bridge, model = _client()
        r = client.post("/api/analysis")
        assert r.status_code == 409
        assert r.json()["error"] == "MissingInput"
        assert model.calls == []

    def test_analysis_success(self, png_bytes, jpeg_bytes, good_response):
        client, _bridge, _model = _client(good_response)
        _upload_both(client, png_bytes, jpeg_bytes)
        r = client.post("/api/analysis")
        assert r.status_code == 200
        body = r.json()
        assert body["phase"] == "reviewing"
        assert body["report"] == GOOD_PAYLOAD
        assert client.get("/api/report").json() == GOOD_PAYLOAD

    def test_analysis_failure_is_reported_in_snapshot(self, png_bytes, jpeg_bytes):
        client, _bridge, _model = _client(ConnectionError("down"))
        _upload_both(client, png_bytes, jpeg_bytes)
        body = client.post("/api/analysis").json()
        assert body["phase"] == "images_ready"
        assert body["report"] is None
        assert body["error"]
        assert client.delete("/api/error").json()["error"] is None

    def test_analysis_without_gateway(self, png_bytes, jpeg_bytes):
        client = TestClient(create_app())
        _upload_both(client, png_bytes, jpeg_bytes)
        r = client.post("/api/analysis")
        assert r.status_code == 503
        assert r.json()["phase"] == "images_ready"

    def test_missing_input_without_gateway(self, png_bytes):
        client = TestClient(create_app())
        r = client.post("/api/analysis")
        assert r.status_code == 409
        assert r.json()["error"] == "MissingInput"

        client.post("/api/images/design", files={"file": ("design.png", png_bytes, "image/png")})
        r = client.post("/api/analysis")
        assert r.status_code == 409
        assert r.json()["phase"] == "images_ready"

    def test_manual_report_discard_and_reset(self, png_bytes, jpeg_bytes):
        client, _bridge, model = _client()
        _upload_both(client, png_bytes, jpeg_bytes)
        body = client.post("/api/report/manual").json()
        assert body["report"] == {"score": 100, "generalIssues": [], "specificIssues": []}
        assert model.calls == []

        assert client.delete("/api/images/live").status_code == 409

        body = client.delete("/api/report").json()
        assert body["phase"] == "images_ready"
        assert body["inputs_complete"] is True

        body = client.post("/api/session/reset").json()
        assert body["phase"] == "idle"
        assert body["images"] == {"design": None, "live": None}


class TestReportEditing:

    @pytest.fixture
    def client(self, png_bytes, jpeg_bytes):
        client, _bridge, _model = _client()
        _upload_both(client, png_bytes, jpeg_bytes)
        client.post("/api/report/manual")
        return client

    def test_edit_requires_report(self):
        client, _bridge, _model = _client()
        r = client.post("/api/report/general", json={"text": "x"})
        assert r.status_code == 409

    def test_general_issue_routes(self, client):
        client.post("/api/report/general", json={"text": "Spacing differs"})
        client.put("/api/report/general/0", json={"text": "Spacing differs in header"})
        report = client.get("/api/report").json()
        assert report["generalIssues"] == ["Spacing differs in header"]

        assert client.delete("/api/report/general/3").status_code == 404
        client.delete("/api/report/general/0")
        assert client.get("/api/report").json()["generalIssues"] == []

    def test_specific_issue_routes(self, client):
        r = client.post(
            "/api/report/specific",
            json={"description": "Logo size", "anchor": {"x": 0.1, "y": 0.1, "width": 0.2, "height": 0.1}},
        )
        assert r.status_code == 200
        r = client.post(
            "/api/report/specific",
            json={
                "description": "Footer color",
                "pixels": {"left": 0, "top": 90, "width": 200, "height": 10, "rendered_width": 200, "rendered_height": 100},
            },
        )
        issues = r.json()["report"]["specificIssues"]
        assert issues[1]["anchor"] == {"x": 0.0, "y": 0.9, "width": 1.0, "height": pytest.approx(0.1)}

        client.put("/api/report/specific/0", json={"description": "Logo too large"})
        assert client.get("/api/report").json()["specificIssues"][0]["description"] == "Logo too large"

        r = client.post("/api/report/specific", json={"description": "No region"})
        assert r.status_code == 422

        render = client.get("/api/report/render", params={"width": 400, "height": 200}).json()
        assert render["overlays"][0]["rect"]["left"] == pytest.approx(40)
        assert render["overlays"][1]["rect"]["top"] == pytest.approx(180)

        overlay = client.get("/api/report/overlay.png")
        assert overlay.status_code == 200
        assert overlay.headers["content-type"] == "image/png"

        client.delete("/api/report/specific/0")
        assert len(client.get("/api/report").json()["specificIssues"]) == 1

    def test_score_routes(self, client):
        assert client.put("/api/report/score", json={"score": 250}).json()["report"]["score"] == 100
        assert client.post("/api/report/score/adjust", json={"delta": -30}).json()["report"]["score"] == 70


class TestWebSocket:

    def test_replays_history_and_pushes_events(self, png_bytes, jpeg_bytes):
        client, _bridge, _model = _client()
        _upload_both(client, png_bytes, jpeg_bytes)

        with client.websocket_connect("/ws") as ws:
            first = ws.receive_json()
            second = ws.receive_json()
            status = ws.receive_json()
            assert [first["event"], second["event"]] == ["upload", "upload"]
            assert status["msg_type"] == "status"
            assert status["phase"] == "images_ready"

            ws.send_json({"type": "reset"})
            pushed = ws.receive_json()
            assert pushed["event"] == "reset"
            assert pushed["phase"] == "idle"

            ws.send_json({"type": "unknown"})
            assert ws.receive_json()["msg_type"] == "error"

    def test_history_endpoint(self, png_bytes, jpeg_bytes):
        client, _bridge, _model = _client()
        _upload_both(client, png_bytes, jpeg_bytes)
        history = client.get("/api/history").json()["messages"]
        assert [m["event"] for m in history] == ["upload", "upload"]

    def test_history_is_capped(self, png_bytes):
        bridge = SessionBridge(history_limit=3)
        client = TestClient(create_app(bridge))
        for _ in range(5):
            client.post("/api/images/design", files={"file": ("design.png", png_bytes, "image/png")})
            client.delete("/api/images/design")
        history = client.get("/api/history").json()["messages"]
        assert len(history) == 3
        assert [m["event"] for m in history] == ["clear", "upload", "clear"]

        client.post("/api/session/reset")
        assert [m["event"] for m in client.get("/api/history").json()["messages"]] == ["reset"]
