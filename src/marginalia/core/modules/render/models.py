from uuid import UUID

from pydantic import BaseModel, Field

from marginalia.core.modules.anchor.models import NodeKind


class AnchoredNode(BaseModel):
    """Rendered content block together with the anchor readers comment on."""

    anchor_id: str
    kind: NodeKind
    text: str
    position: int


class RenderedDocument(BaseModel):
    """Live render of a document, blocks in document order."""

    document_id: UUID
    version: int
    title: str | None = None
    nodes: list[AnchoredNode] = Field(..., description="Anchorable blocks in document order")
