from datetime import datetime
from typing import Self
from uuid import UUID

from pydantic import BaseModel, Field

from marginalia.core.db import MongoModel
from marginalia.utils import now


class Comment(MongoModel):
    """Reader comment attached to one anchor of a document."""

    document_id: UUID
    anchor_id: str
    author_name: str
    body: str
    created_at: datetime = Field(default_factory=now)
    document_version_at_creation: int  # Version current when the comment was posted, never corrected later
    flagged: bool = False  # Moderation: hidden from readers but retained
    ip_hash: str | None = None  # SHA-256 of the poster's address, for rate limiting only


class CommentView(BaseModel):
    """Public representation of a comment, without moderation data."""

    id: UUID
    anchor_id: str
    author_name: str
    body: str
    created_at: datetime
    document_version_at_creation: int

    @classmethod
    def from_domain(cls, comment: Comment) -> Self:
        return cls(
            id=comment.id,
            anchor_id=comment.anchor_id,
            author_name=comment.author_name,
            body=comment.body,
            created_at=comment.created_at,
            document_version_at_creation=comment.document_version_at_creation,
        )
