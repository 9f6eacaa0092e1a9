from datetime import datetime
from typing import Self
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from marginalia.core.db import MongoModel
from marginalia.utils import now


class Document(MongoModel):
    """Published document; live content is stored in the blob store under content_ref."""

    current_version: int = 1  # Only ever increases, via compare-and-swap on edit
    content_ref: str
    title: str | None = None  # Text of the first level-one heading
    size: int  # Live content size in bytes
    sha256: str
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime | None = None  # Last committed edit
    ip_hash: str | None = None  # SHA-256 of the publisher's address, for rate limiting only


class DocumentView(BaseModel):
    """Public representation of a document."""

    id: UUID
    current_version: int
    title: str | None
    size: int
    sha256: str
    created_at: datetime
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, document: Document) -> Self:
        return cls(
            id=document.id,
            current_version=document.current_version,
            title=document.title,
            size=document.size,
            sha256=document.sha256,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class VersionSnapshot(MongoModel):
    """Archived content of a superseded version. Immutable once the version is superseded.

    Indexed on (document_id, version) - unique, which is what serializes
    concurrent edits of the same version. While version equals the
    document's current_version the row is an edit's claim, identified by
    claim_token and leased from created_at.
    """

    document_id: UUID
    version: int
    content_ref: str
    claim_token: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=now)


class CurrentVersion(BaseModel):
    """Version number and content location of a document's live state."""

    version: int
    content_ref: str
