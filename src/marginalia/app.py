from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import UUID

import structlog

from marginalia.config import Config
from marginalia.core.core import Core
from marginalia.core.modules.anchor.assigner import assign_anchors
from marginalia.core.modules.anchor.models import ContentNode
from marginalia.core.modules.comment.models import Comment, CommentView
from marginalia.core.modules.document.models import Document, DocumentView
from marginalia.core.modules.reconcile.engine import reconcile_comments
from marginalia.core.modules.reconcile.models import ReconciledView
from marginalia.core.modules.render.models import AnchoredNode, RenderedDocument
from marginalia.utils import sha256_hex

logger = structlog.get_logger(__name__)


class App:
    """Facade for all document and comment operations, delegating to Core services."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Documents ===
    async def publish_document(self, content: str, client_ip: str | None = None) -> DocumentView:
        """Publish markdown content as a new document at version 1."""
        ip_hash = sha256_hex(client_ip) if client_ip else None
        document = await self._core.services.document.publish_document(content, ip_hash)
        return DocumentView.from_domain(document)

    async def get_document(self, document_id: UUID) -> DocumentView:
        document = await self._core.services.document.get_document(document_id)
        return DocumentView.from_domain(document)

    async def get_raw_content(self, document_id: UUID) -> str:
        """Get the live markdown of a document."""
        return await self._core.services.document.get_content(document_id)

    async def render_document(self, document_id: UUID) -> RenderedDocument:
        """Render the live content and attach a fresh anchor to every block."""
        document, nodes = await self._render(document_id)
        anchors = assign_anchors(nodes)
        return RenderedDocument(
            document_id=document.id,
            version=document.current_version,
            title=document.title,
            nodes=[
                AnchoredNode(anchor_id=anchor.id, kind=node.kind, text=node.text, position=node.position)
                for node, anchor in zip(nodes, anchors, strict=True)
            ],
        )

    async def commit_edit(self, document_id: UUID, new_content: str) -> int:
        """Replace document content, archiving the previous version. Returns the new version."""
        return await self._core.services.document.commit_edit(document_id, new_content)

    async def get_snapshot(self, document_id: UUID, version: int) -> str:
        """Get archived markdown of a superseded version."""
        return await self._core.services.document.get_snapshot(document_id, version)

    async def delete_document(self, document_id: UUID) -> None:
        """Delete a document with all its versions and comments."""
        await self._core.services.document.get_document(document_id)

        # Comments first so none outlive their document if a later step fails
        comments = await self._core.services.comment.delete_comments_by_document(document_id)
        snapshots = await self._core.services.document.delete_document(document_id)
        logger.info("document_cascade_deleted", document_id=document_id, comments=comments, snapshots=snapshots)

    # === Comments ===
    async def list_comments(self, document_id: UUID) -> list[CommentView]:
        """Get visible comments of a document, oldest first."""
        await self._core.services.document.get_document(document_id)
        comments = await self._core.services.comment.list_comments(document_id)
        return [CommentView.from_domain(comment) for comment in comments]

    async def post_comment(
        self, document_id: UUID, anchor_id: str | None, author_name: str, body: str, client_ip: str | None = None
    ) -> CommentView:
        """Post a comment on an anchor, or on the whole document when anchor_id is blank."""
        ip_hash = sha256_hex(client_ip) if client_ip else None
        comment = await self._core.services.comment.create_comment(document_id, anchor_id, author_name, body, ip_hash)
        return CommentView.from_domain(comment)

    async def flag_comment(self, comment_id: UUID, flagged: bool) -> Comment:
        """Hide or restore a comment (moderation)."""
        return await self._core.services.comment.set_flagged(comment_id, flagged)

    async def reconcile(self, document_id: UUID) -> ReconciledView:
        """Group visible comments by anchor of the live render, marking stale and orphaned ones."""
        document, nodes = await self._render(document_id)
        comments = await self._core.services.comment.list_comments(document_id)
        return reconcile_comments(document.id, document.current_version, assign_anchors(nodes), comments)

    # === Private helpers ===
    async def _render(self, document_id: UUID) -> tuple[Document, list[ContentNode]]:
        """Load a document and render its live content.

        Version and content are read separately; a concurrent edit may land
        in between, in which case the newer content is rendered.
        """
        document = await self._core.services.document.get_document(document_id)
        content = await self._core.services.blob.get(document.content_ref)
        return document, self._core.renderer(content.decode())
