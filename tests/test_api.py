"""
HTTP tests for the webhook server built from a routes document.
"""

import json
import logging
from datetime import date

import pytest
from fastapi.testclient import TestClient

from tests.helpers import FakeClock, FakeToday, ms, write_log
from webhook_server.api.handlers import default_registry
from webhook_server.core import rate_limit
from webhook_server.core.routes_config import RoutesDocument
from webhook_server.core.setting import Settings, settings
from webhook_server.main import create_app
from webhook_server.services.factory import build_services

ROUTES = {
    "routes": {
        "webhook": {"path": "/webhook", "method": ["POST", "GET"], "handler": "listen.js"},
        "health": {"path": "/health", "method": ["GET"], "handler": "health.js"},
        "docHook": {"path": "/doc-hook", "method": ["POST"], "handler": "doc-hook.js"},
        "docStatus": {"path": "/doc/:docId/status", "method": ["GET"], "handler": "doc-status.js"},
        "docRecent": {"path": "/doc/:docId/recent", "method": ["GET"], "handler": "doc-status-window"},
        "custom": {"path": "/custom/:thing", "method": ["PUT"], "handler": "not-implemented.js"},
    }
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(test_settings, clock):
    services = build_services(test_settings, today=FakeToday(date(2024, 5, 2)), clock=clock)
    app = create_app(
        settings=test_settings,
        routes_document=RoutesDocument.model_validate(ROUTES),
        services=services,
    )
    return TestClient(app)


class TestGenericRoutes:

    def test_listen_acknowledges(self, client):
        response = client.post("/webhook", json={"hello": "world"})

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 0
        assert body["status"] == "ok"
        assert body["requestInfo"]["method"] == "POST"
        assert body["requestInfo"]["path"] == "/webhook"
        assert body["requestInfo"]["body"] == {"hello": "world"}

    def test_listen_accepts_form_and_text(self, client):
        form = client.post("/webhook", data={"a": "1"})
        assert form.json()["requestInfo"]["body"] == {"a": "1"}

        text = client.post("/webhook", content=b"plain", headers={"Content-Type": "text/plain"})
        assert text.json()["requestInfo"]["body"] == "plain"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["memory"]["rss"].endswith("MB")
        assert body["uptime"]["readable"].endswith("s")

    def test_unknown_handler_echoes(self, client):
        response = client.put("/custom/abc?x=1", json={"k": "v"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["handler"] == "not-implemented.js"
        assert body["params"] == {"thing": "abc"}
        assert body["query"] == {"x": "1"}
        assert body["body"] == {"k": "v"}

    def test_unknown_route(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "message": "Route not found",
            "path": "/nowhere",
            "method": "GET",
        }

    def test_undeclared_method_is_an_unknown_route(self, client):
        response = client.get("/doc-hook")

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "message": "Route not found",
            "path": "/doc-hook",
            "method": "GET",
        }

    def test_default_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["x-frame-options"] == "SAMEORIGIN"
        assert "frame-ancestors 'self'" in response.headers["content-security-policy"]
        assert response.headers["x-content-type-options"] == "nosniff"
        assert "x-process-time" in response.headers

    def test_access_log_line(self, client, caplog):
        caplog.set_level(logging.INFO, logger="webhook_server.access")

        response = client.get(
            "/health?token=secret",
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Request-ID": "req-1"},
        )

        assert response.headers["x-request-id"] == "req-1"
        assert float(response.headers["x-process-time"]) >= 0
        lines = [r.getMessage() for r in caplog.records if r.name == "webhook_server.access"]
        assert len(lines) == 1
        assert lines[0].startswith("req-1 GET /health -> 200 ")
        assert lines[0].endswith("from 203.0.113.7")
        assert "secret" not in lines[0]

    def test_real_ip_header_used_without_forwarded_for(self, client, caplog):
        caplog.set_level(logging.INFO, logger="webhook_server.access")

        response = client.get("/health", headers={"X-Real-IP": "198.51.100.2"})

        assert len(response.headers["x-request-id"]) == 12
        lines = [r.getMessage() for r in caplog.records if r.name == "webhook_server.access"]
        assert lines[-1].endswith("from 198.51.100.2")


class TestDocStatus:

    def test_missing_log_json(self, client):
        response = client.get("/doc/42/status?format=json")

        assert response.status_code == 200
        assert response.json() == {"days": [], "pvSeries": [], "uvSeries": [], "totalPv": 0, "totalUv": 0}

    def test_oversized_timestamp_in_log_is_skipped(self, client, storage):
        write_log(storage, "Doc_42.md.json", [
            {"name": "a", "lastTs": int("9" * 400)},
            {"name": "b", "lastTs": ms(2024, 5, 1)},
        ])
        response = client.get("/doc/42/status?format=json")

        assert response.status_code == 200
        assert response.json()["totalPv"] == 1

    def test_html_is_embeddable(self, client, storage):
        write_log(storage, "Doc_42.md.json", [{"name": "a", "lastTs": ms(2024, 5, 1)}])
        response = client.get("/doc/42/status")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "x-frame-options" not in response.headers
        assert "frame-ancestors http: https:" in response.headers["content-security-policy"]
        assert "文档 42" in response.text

    def test_invalid_document_id(self, client):
        response = client.get("/doc/..%2Fsecret/status?format=json")
        assert response.status_code in (400, 404)

        response = client.get("/doc/bad.id/status?format=json")
        assert response.status_code == 400

    def test_refresh_cooldown_over_http(self, client, storage, clock):
        write_log(storage, "Doc_42.md.json", [{"name": "a", "lastTs": ms(2024, 5, 1)}])
        assert client.get("/doc/42/status?format=json").json()["totalPv"] == 1

        write_log(storage, "Doc_42.md.json", [{"name": "a", "lastTs": ms(2024, 5, 1)}] * 2)
        assert client.get("/doc/42/status?format=json").json()["totalPv"] == 1
        assert client.get("/doc/42/status?format=json&refresh=1").json()["totalPv"] == 2

        write_log(storage, "Doc_42.md.json", [{"name": "a", "lastTs": ms(2024, 5, 1)}] * 3)
        clock.advance(10)
        assert client.get("/doc/42/status?format=json&refresh=1").json()["totalPv"] == 2

    def test_window_variant(self, client, storage):
        write_log(storage, "Doc_42.md.json", [{"name": "a", "lastTs": ms(2024, 5, 1)}])
        body = client.get("/doc/42/recent?format=json").json()

        assert len(body["days"]) == 10
        assert body["yesterdayDau"] == 1
        assert body["wau"] == 1

        html = client.get("/doc/42/recent").text
        assert 'id="wau"' in html


class TestDocHook:

    def test_missing_fields(self, client, storage):
        response = client.post("/doc-hook", json={"docName": "Doc", "docId": "42"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == 1
        assert body["message"] == "Missing required fields"
        assert body["missing"] == ["docType", "ts"]
        assert list(storage.iterdir()) == []

    def test_read_event_then_stats(self, client, storage):
        for name in ["a", "a", "b"]:
            response = client.post("/doc-hook", json={
                "docName": "Doc",
                "docId": 42,
                "docType": "md",
                "ts": ms(2024, 5, 2),
                "user": {"name": name, "nickname": name.upper()},
            })
            assert response.status_code == 200
            assert response.json()["code"] == 0

        records = json.loads((storage / "Doc_42.md.json").read_text())
        assert [r["name"] for r in records] == ["a", "a", "b"]

        stats = client.get("/doc/42/status?format=json").json()
        assert stats["totalPv"] == 3
        assert stats["totalUv"] == 2

    def test_document_saved(self, client, storage):
        response = client.post("/doc-hook", json={
            "docName": "Guide",
            "docId": "7",
            "docType": "md",
            "ts": ms(2024, 5, 2),
            "doc": {"id": 7, "title": "Guide", "author": "a@x", "nickname": "A", "content": "Hello", "createTime": 1},
            "comments": [{"author": "B", "authorEmail": "b@x", "content": "Nice", "createdAt": "2024-05-02"}],
        })

        assert response.status_code == 200
        text = (storage / "Guide_7.md").read_text()
        assert "title: Guide" in text
        assert "# Hello" in text
        assert "B(b@x)：\nNice\n2024-05-02" in text
        assert not (storage / "Guide_7.md.json").exists()

    def test_document_id_is_trimmed_before_storing(self, client, storage):
        response = client.post("/doc-hook", json={
            "docName": "Doc",
            "docId": " 42 ",
            "docType": "md",
            "ts": ms(2024, 5, 2),
            "user": {"name": "a"},
        })

        assert response.status_code == 200
        assert sorted(p.name for p in storage.iterdir()) == ["Doc_42.md.json"]
        assert client.get("/doc/42/status?format=json").json()["totalPv"] == 1


class TestFailures:
    """Test error responses produced around the handlers."""

    def test_handler_exception_becomes_json_500(self, test_settings, clock):
        async def explode(request, context):
            raise RuntimeError("disk on fire")

        registry = default_registry()
        registry.register("explode", explode)
        app = create_app(
            settings=test_settings,
            routes_document=RoutesDocument.model_validate({
                "routes": {"explode": {"path": "/explode", "method": ["POST"], "handler": "explode"}}
            }),
            services=build_services(test_settings, clock=clock),
            registry=registry,
        )

        response = TestClient(app).post("/explode", json={})

        assert response.status_code == 500
        assert response.json() == {
            "status": "error",
            "message": "Internal server error",
            "error": "disk on fire",
        }

    def test_rate_limit_exceeded(self, storage, clock, monkeypatch):
        # create_app switches the shared limiter on; restore it afterwards
        monkeypatch.setattr(rate_limit.limiter, "enabled", rate_limit.limiter.enabled)
        monkeypatch.setitem(rate_limit.RATE_LIMITS, "listen", "2/minute")
        rate_limit.limiter.reset()
        limited_settings = Settings(STORAGE_DIR=storage, RATE_LIMIT_ENABLED=True)
        app = create_app(
            settings=limited_settings,
            routes_document=RoutesDocument.model_validate({
                "routes": {"throttled": {"path": "/throttled", "method": ["POST"], "handler": "listen"}}
            }),
            services=build_services(limited_settings, clock=clock),
        )
        test_client = TestClient(app)

        statuses = [test_client.post("/throttled", json={}).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        rate_limit.limiter.reset()

    def test_cli_exits_with_error_on_bad_routes_document(self, tmp_path, monkeypatch):
        from webhook_server.__main__ import main

        monkeypatch.setattr(settings, "ROUTES_CONFIG_PATH", tmp_path / "missing.json")

        assert main() == 1
