"""
Document Hook Ingestion

Handles document view/save notifications:
- a payload with ``doc`` saves the document as Markdown
- a payload with ``user`` appends one read event to the document's read log

Required fields are validated before anything is written. Storage
failures after validation are logged and do not change the response: the
sender only needs to know the hook was accepted.
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from webhook_server.core.exceptions import (
    InvalidDocumentIdError,
    MissingFieldsError,
    ReadLogWriteError,
)
from webhook_server.core.validators import sanitize_document_id
from webhook_server.services.read_log import ReadEvent, ReadLogStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("docName", "docId", "docType", "ts")


class DocUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    nickname: Optional[str] = None

    @field_validator("name", "nickname", mode="before")
    @classmethod
    def _stringify(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class DocContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    title: Optional[str] = None
    author: Optional[str] = None
    nickname: Optional[str] = None
    content: Optional[str] = None
    createTime: Optional[Any] = None


class DocComment(BaseModel):
    model_config = ConfigDict(extra="allow")

    author: Optional[str] = None
    authorEmail: Optional[str] = None
    content: Optional[str] = None
    createdAt: Optional[Any] = None


class DocHookPayload(BaseModel):
    """Body of a document hook call."""
    model_config = ConfigDict(extra="allow")

    docName: str
    docId: str
    docType: str
    ts: float = Field(..., gt=0, allow_inf_nan=False)
    user: Optional[DocUser] = None
    doc: Optional[DocContent] = None
    comments: List[DocComment] = []

    @field_validator("docName", "docId", "docType", mode="before")
    @classmethod
    def _stringify(cls, value):
        # ids are often sent as JSON numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


def parse_payload(body) -> DocHookPayload:
    """
    Validate a hook body.

    Raises:
        MissingFieldsError: If a required field is absent, empty or malformed
        InvalidDocumentIdError: If docId cannot be used in a file name
    """
    if not isinstance(body, dict):
        raise MissingFieldsError(REQUIRED_FIELDS)

    missing = [f for f in REQUIRED_FIELDS if body.get(f) in (None, "", 0)]
    if missing:
        raise MissingFieldsError(missing)

    try:
        payload = DocHookPayload.model_validate(body)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise MissingFieldsError(fields or REQUIRED_FIELDS) from e

    document_id = sanitize_document_id(payload.docId)
    if document_id is None:
        raise InvalidDocumentIdError(payload.docId)
    # file names are built from the cleaned id so the stats lookup finds them
    payload.docId = document_id
    return payload


def render_document(payload: DocHookPayload) -> str:
    """Markdown file written for a saved document."""
    doc = payload.doc
    comments = "\n\n".join(
        f"{c.author}({c.authorEmail})：\n{c.content}\n{c.createdAt}"
        for c in payload.comments
    )
    return (
        "---\n"
        f"docId: {doc.id}\n"
        f"title: {doc.title}\n"
        f"author: {doc.author}\n"
        f"authorName: {doc.nickname}\n"
        f"createTime: {doc.createTime}\n"
        "---\n"
        "\n"
        f"# {doc.content}\n"
        "\n"
        "# Comments\n"
        "\n"
        f"{comments}\n"
    )


class IngestionService:
    """Persists document content and read events from hook payloads."""

    def __init__(self, store: ReadLogStore):
        self.store = store

    async def ingest(self, payload: DocHookPayload) -> None:
        name, doc_id, doc_type = payload.docName, payload.docId, payload.docType

        if payload.doc is not None:
            try:
                path = await self.store.write_document(name, doc_id, doc_type, render_document(payload))
                logger.info("Document %s written", path.name)
            except OSError as e:
                logger.error("Failed to write document %s: %s", doc_id, e, exc_info=True)

        if payload.user is not None:
            ts = int(payload.ts) if float(payload.ts).is_integer() else payload.ts
            event = ReadEvent(name=payload.user.name, nickname=payload.user.nickname, last_ts=ts)
            try:
                path = await self.store.append(name, doc_id, doc_type, event)
                logger.info("Read log %s appended", path.name)
            except ReadLogWriteError as e:
                logger.error("Failed to append read log for %s: %s", doc_id, e, exc_info=True)
