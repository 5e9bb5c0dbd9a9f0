"""
Tests for loading the routes document.
"""

import json

import pytest

from webhook_server.core.exceptions import ConfigError
from webhook_server.core.routes_config import (
    RoutesDocument,
    convert_path,
    load_routes_document,
    normalize_handler_id,
)
from webhook_server.core.setting import BASE_DIR


class TestPathConversion:

    def test_express_params(self):
        assert convert_path("/doc/:docId/status") == "/doc/{docId}/status"
        assert convert_path("/a/:x/:y") == "/a/{x}/{y}"

    def test_plain_paths_unchanged(self):
        assert convert_path("/webhook") == "/webhook"

    def test_leading_slash_added(self):
        assert convert_path("health") == "/health"

    def test_handler_suffix_ignored(self):
        assert normalize_handler_id("doc-status.js") == "doc-status"
        assert normalize_handler_id("doc-status.py") == "doc-status"
        assert normalize_handler_id("listen") == "listen"


class TestRoutesDocument:

    def test_methods_normalized(self):
        document = RoutesDocument.model_validate({
            "routes": {"hook": {"path": "/hook/:id", "method": ["get", "Post"], "handler": "listen.js"}}
        })
        route = document.routes["hook"]
        assert route.methods == ["GET", "POST"]
        assert route.path == "/hook/{id}"
        assert route.handler_id == "listen"

    def test_single_method_string(self):
        document = RoutesDocument.model_validate({
            "routes": {"hook": {"path": "/hook", "method": "get", "handler": "listen"}}
        })
        assert document.routes["hook"].methods == ["GET"]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_routes_document(tmp_path / "missing.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{nope")
        with pytest.raises(ConfigError):
            load_routes_document(path)

    def test_load_unsupported_method(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "routes": {"hook": {"path": "/hook", "method": ["FETCH"], "handler": "listen"}}
        }))
        with pytest.raises(ConfigError):
            load_routes_document(path)

    def test_shipped_config_is_valid(self):
        document = load_routes_document(BASE_DIR / "config.json")
        handlers = {route.handler_id for route in document.routes.values()}
        assert {"listen", "health", "doc-hook", "doc-status", "doc-status-window"} <= handlers
        assert document.server.port == 8080
