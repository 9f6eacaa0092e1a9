"""File storage operations for document content blobs."""

import os
from pathlib import Path
from uuid import UUID, uuid4


def live_key(document_id: UUID) -> str:
    """Blob key of the live content of a document."""
    return str(document_id)


def snapshot_key(document_id: UUID, version: int) -> str:
    """Blob key of the archived content of a document at a past version."""
    return f"{document_id}_v{version}"


def get_blob_file_path(content_path: str, key: str) -> Path:
    """Get absolute path to the blob file for a key.

    Raises:
        ValueError: If the key would escape the content directory
    """
    if not key or "/" in key or "\\" in key or key.startswith("."):
        raise ValueError(f"Invalid blob key: {key!r}")
    return Path(content_path) / key


def write_blob_file(content_path: str, key: str, content: bytes) -> Path:
    """Write blob content, replacing any previous content atomically.

    Content goes to a temporary sibling first and is renamed into place, so a
    reader never observes a half-written blob.

    Returns:
        Absolute path to written file
    """
    file_path = get_blob_file_path(content_path, key)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_name(f".{key}.{uuid4().hex}.tmp")
    try:
        tmp_path.write_bytes(content)
        os.replace(tmp_path, file_path)
    finally:
        tmp_path.unlink(missing_ok=True)
    return file_path


def read_blob_file(content_path: str, key: str) -> bytes:
    """Read blob content.

    Raises:
        FileNotFoundError: If no blob is stored under the key
    """
    return get_blob_file_path(content_path, key).read_bytes()


def delete_blob_file(content_path: str, key: str) -> bool:
    """Delete a blob. Returns False when there was nothing to delete."""
    try:
        get_blob_file_path(content_path, key).unlink()
    except FileNotFoundError:
        return False
    return True
