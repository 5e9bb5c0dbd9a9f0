"""
Input Validators and Sanitizers

Document identifiers and names end up in file names under the storage
directory, so they are checked here before any file system access.

Security Considerations:
- Path separators and parent references are rejected (path traversal)
- Length limits prevent pathological file names
"""

import re
from typing import Optional

MAX_COMPONENT_LENGTH = 128

_DOCUMENT_ID_PATTERN = re.compile(r'^[0-9A-Za-z_\-]+$')
_UNSAFE_NAME_CHARS = re.compile(r'[\\/\x00-\x1f]')


def sanitize_document_id(document_id: str) -> Optional[str]:
    """
    Sanitize and validate a document identifier.

    Identifiers are matched against read log file names, so only
    [0-9A-Za-z_-] is accepted.

    Args:
        document_id: The identifier to sanitize

    Returns:
        Sanitized identifier if valid, None otherwise
    """
    if not document_id or not isinstance(document_id, str):
        return None

    document_id = document_id.strip()

    if len(document_id) > MAX_COMPONENT_LENGTH:
        return None

    if not _DOCUMENT_ID_PATTERN.match(document_id):
        return None

    return document_id


def safe_file_component(value: str) -> str:
    """
    Make a free-form document name or type usable as part of a file name.

    Separators and control characters are replaced with '-', and leading
    dots are stripped so the result can never be '.' or '..'.
    """
    cleaned = _UNSAFE_NAME_CHARS.sub("-", str(value)).strip().lstrip(".")
    return cleaned[:MAX_COMPONENT_LENGTH] or "untitled"
