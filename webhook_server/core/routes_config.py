"""
Routes Document Loading

The webhook routes are declared in a JSON document:

    {
        "server": {"host": "0.0.0.0", "port": 8080},
        "routes": {
            "docStatus": {
                "path": "/doc/:docId/status",
                "method": ["GET"],
                "handler": "doc-status.js"
            }
        }
    }

Paths may use Express-style ``:param`` segments; they are converted to
FastAPI ``{param}`` segments at load time.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from webhook_server.core.exceptions import ConfigError

SUPPORTED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}

_EXPRESS_PARAM = re.compile(r':([A-Za-z_][A-Za-z0-9_]*)')


def convert_path(path: str) -> str:
    """
    Convert an Express-style route path to FastAPI syntax.

    Example:
        convert_path("/doc/:docId/status") -> "/doc/{docId}/status"
    """
    if not path.startswith("/"):
        path = "/" + path
    return _EXPRESS_PARAM.sub(r'{\1}', path)


def normalize_handler_id(handler: str) -> str:
    """Strip a script suffix so 'doc-status.js' and 'doc-status' are the same handler."""
    name = handler.strip()
    for suffix in (".js", ".py"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


class ServerConfig(BaseModel):
    """Bind address declared by the routes document."""
    host: Optional[str] = None
    port: Optional[int] = None


class RouteConfig(BaseModel):
    """A single webhook route."""
    path: str
    methods: List[str] = Field(..., alias="method")
    handler: str

    model_config = {"populate_by_name": True}

    @field_validator("path")
    @classmethod
    def _convert_path(cls, value: str) -> str:
        return convert_path(value)

    @field_validator("methods", mode="before")
    @classmethod
    def _normalize_methods(cls, value):
        if isinstance(value, str):
            value = [value]
        methods = [str(m).upper() for m in value]
        unsupported = [m for m in methods if m not in SUPPORTED_METHODS]
        if unsupported:
            raise ValueError(f"Unsupported HTTP method(s): {', '.join(unsupported)}")
        if not methods:
            raise ValueError("At least one HTTP method is required")
        return methods

    @property
    def handler_id(self) -> str:
        return normalize_handler_id(self.handler)


class RoutesDocument(BaseModel):
    """The full routes document."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    routes: Dict[str, RouteConfig] = Field(default_factory=dict)


def load_routes_document(path: Path) -> RoutesDocument:
    """
    Load and validate the routes document.

    Raises:
        ConfigError: If the file is missing, not JSON, or fails validation
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(path, f"cannot read file ({e})") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(path, f"not valid JSON ({e})") from e

    try:
        return RoutesDocument.model_validate(data)
    except ValidationError as e:
        raise ConfigError(path, str(e)) from e
