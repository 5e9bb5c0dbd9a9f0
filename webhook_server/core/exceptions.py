"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.
"""

from typing import Iterable


class WebhookServerException(Exception):
    """Base exception for the webhook server."""
    pass


class ConfigError(WebhookServerException):
    """Raised when the routes document cannot be loaded or validated."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid routes config {path}: {reason}")


class InvalidDocumentIdError(WebhookServerException):
    """Raised when a document identifier is unsafe to use in a file lookup."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Invalid document id: '{document_id}'")


class MissingFieldsError(WebhookServerException):
    """Raised when an ingestion payload lacks required fields."""

    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class ReadLogWriteError(WebhookServerException):
    """Raised when a read log record cannot be persisted."""

    def __init__(self, path, original_error: Exception = None):
        self.path = path
        self.original_error = original_error
        super().__init__(f"Failed to write read log {path}: {original_error}")
