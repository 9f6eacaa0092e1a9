"""Content nodes produced by a render and the anchors derived from them."""

from enum import StrEnum

from pydantic import BaseModel, Field

GENERAL_ANCHOR = "doc-root"  # Attachment point for comments on the document as a whole


class NodeKind(StrEnum):
    """Content units that can carry an anchor."""

    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    HEADING4 = "heading4"
    HEADING5 = "heading5"
    HEADING6 = "heading6"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "list_item"
    BLOCKQUOTE = "blockquote"
    CODEBLOCK = "codeblock"

    @classmethod
    def heading(cls, level: int) -> "NodeKind":
        if not 1 <= level <= 6:
            raise ValueError(f"Heading level out of range: {level}")
        return cls(f"heading{level}")


class ContentNode(BaseModel):
    """One block of a rendered document, recomputed on every render."""

    kind: NodeKind
    text: str = Field(..., description="Flattened plain text of the block")
    position: int = Field(..., description="Index of the block in document order", ge=0)


class Anchor(BaseModel):
    """Identifier of one content node within a single render pass. Never persisted."""

    id: str
    node_kind: NodeKind
    position: int
