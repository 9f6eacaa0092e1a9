from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from marginalia.core.modules.anchor.models import NodeKind


class CommentStatus(StrEnum):
    """Relationship between a comment's creation-time anchor and the live render."""

    GENERAL = "general"  # Posted on the document as a whole
    CURRENT = "current"  # Anchor present, posted on the current version
    STALE = "stale"  # Anchor present, posted on an earlier version of the content
    ORPHANED = "orphaned"  # Anchor no longer rendered; shown in the general bucket


class ReconciledComment(BaseModel):
    """Comment as displayed, with its reconciliation status."""

    id: UUID
    anchor_id: str = Field(..., description="Anchor the comment was posted on")
    author_name: str
    body: str
    created_at: datetime
    document_version_at_creation: int
    status: CommentStatus
    orphaned: bool = Field(False, description="Original passage was edited away")


class CommentGroup(BaseModel):
    """Comments sharing one display anchor, in creation order."""

    anchor_id: str
    node_kind: NodeKind | None = Field(None, description="None for the general bucket")
    position: int | None = Field(None, description="Document order of the anchor, None for the general bucket")
    comments: list[ReconciledComment]


class ReconciledView(BaseModel):
    """Grouped comment view of a document's live render."""

    document_id: UUID
    version: int
    groups: list[CommentGroup] = Field(..., description="General bucket first, then anchors in document order")
    orphaned_count: int = 0
    stale_count: int = 0
