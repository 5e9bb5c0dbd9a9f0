"""
Read Log Store

Each document has a primary content file and a paired read log:

    {docName}_{docId}.{docType}        document content (Markdown)
    {docName}_{docId}.{docType}.json   JSON array of read events

A read event is ``{"name": str, "nickname": str, "lastTs": <epoch millis>}``.

Reading is forgiving: a missing storage directory, a missing log, or a log
that is not a JSON array all mean "no history". Writing is serialized per
log file and goes through a temporary file plus an atomic replace, so two
concurrent appends never drop each other's record.
"""

import asyncio
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from webhook_server.core.exceptions import ReadLogWriteError
from webhook_server.core.validators import safe_file_component
from webhook_server.services.locks import KeyedLocks

logger = logging.getLogger(__name__)

READ_LOG_SUFFIX = ".json"

# Subject used when a viewer has neither a name nor a nickname. All such
# viewers count as a single unique visitor.
UNKNOWN_SUBJECT = "unknown"


@dataclass(frozen=True)
class ReadEvent:
    """One recorded view of a document."""
    name: Optional[str]
    nickname: Optional[str]
    last_ts: object

    @property
    def subject_id(self) -> str:
        return self.name or self.nickname or UNKNOWN_SUBJECT

    @classmethod
    def from_record(cls, record: dict) -> "ReadEvent":
        return cls(
            name=record.get("name"),
            nickname=record.get("nickname"),
            last_ts=record.get("lastTs"),
        )

    def to_record(self) -> dict:
        return {"name": self.name, "nickname": self.nickname, "lastTs": self.last_ts}


def document_file_name(document_name: str, document_id: str, document_type: str) -> str:
    """Name of the primary content file for a document."""
    return (
        f"{safe_file_component(document_name)}_{document_id}."
        f"{safe_file_component(document_type)}"
    )


class ReadLogStore:
    """
    File-backed store of per-document read logs.

    File system calls run in a worker thread so the event loop keeps
    serving other requests while a large log is read.
    """

    def __init__(self, storage_dir: Path):
        self.storage_dir = Path(storage_dir)
        self._write_locks = KeyedLocks()

    # Reading

    def _resolve_sync(self, document_id: str) -> Optional[Path]:
        try:
            names = os.listdir(self.storage_dir)
        except OSError:
            return None

        marker = f"_{document_id}."
        candidates = [n for n in names if n.endswith(READ_LOG_SUFFIX) and marker in n]
        if not candidates:
            return None

        # Several documents may share an id after a rename; the most
        # recently written log wins.
        best, best_mtime = None, -1.0
        for name in candidates:
            path = self.storage_dir / name
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            if mtime > best_mtime:
                best, best_mtime = path, mtime

        logger.debug("Resolved read log for %s: %s (candidates=%s)", document_id, best, candidates)
        return best

    def _load_sync(self, document_id: str) -> List[dict]:
        path = self._resolve_sync(document_id)
        if path is None:
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable read log %s: %s", path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring read log %s: top-level value is not an array", path)
            return []
        return [record for record in data if isinstance(record, dict)]

    async def resolve(self, document_id: str) -> Optional[Path]:
        """Return the read log backing ``document_id``, or None if there is none."""
        return await asyncio.to_thread(self._resolve_sync, document_id)

    async def load_events(self, document_id: str) -> List[dict]:
        """Return the raw read records of a document ([] when there is no usable log)."""
        return await asyncio.to_thread(self._load_sync, document_id)

    # Writing

    def _atomic_write(self, path: Path, text: str) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=".tmp-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _append_sync(self, path: Path, record: dict) -> None:
        records: list = []
        if path.exists():
            try:
                raw = path.read_text(encoding="utf-8")
                records = json.loads(raw) if raw.strip() else []
            except ValueError:
                records = None
            if not isinstance(records, list):
                backup = path.with_name(f"{path.name}.corrupt-{int(time.time())}")
                logger.error("Read log %s is corrupt, moving it to %s", path, backup.name)
                os.replace(path, backup)
                records = []
        records.append(record)
        self._atomic_write(path, json.dumps(records, ensure_ascii=False))

    async def append(
        self,
        document_name: str,
        document_id: str,
        document_type: str,
        event: ReadEvent,
    ) -> Path:
        """
        Append one read event to the document's read log.

        Raises:
            ReadLogWriteError: If the log cannot be written
        """
        file_name = document_file_name(document_name, document_id, document_type) + READ_LOG_SUFFIX
        path = self.storage_dir / file_name
        async with self._write_locks.hold(file_name):
            try:
                await asyncio.to_thread(self._append_sync, path, event.to_record())
            except OSError as e:
                raise ReadLogWriteError(path, e) from e
        return path

    async def write_document(
        self,
        document_name: str,
        document_id: str,
        document_type: str,
        content: str,
    ) -> Path:
        """Write (or overwrite) the primary content file of a document."""
        path = self.storage_dir / document_file_name(document_name, document_id, document_type)
        await asyncio.to_thread(self._atomic_write, path, content)
        return path
