from datetime import timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from marginalia.core.core import Service
from marginalia.core.db import storage_errors
from marginalia.core.modules.comment.models import Comment
from marginalia.core.modules.comment.validators import validate_anchor_id, validate_author_name, validate_body
from marginalia.errors import NotFoundError, RateLimitedError
from marginalia.utils import now

logger = structlog.get_logger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=1)


class CommentService(Service):
    """Manages reader comments, each stamped with its anchor and the document version at creation."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("comments")

    async def on_start(self) -> None:
        """Create indexes for per-document listing and rate limiting."""
        with storage_errors("create_indexes"):
            await self._collection.create_index([("document_id", 1), ("created_at", 1)])
            await self._collection.create_index([("ip_hash", 1), ("created_at", 1)])

    async def create_comment(
        self, document_id: UUID, anchor_id: str | None, author_name: str, body: str, ip_hash: str | None = None
    ) -> Comment:
        """Validate and store a comment.

        The comment is stamped with whatever version is current at the time of
        the read. An edit committing right after is not reflected.

        Raises:
            ValidationError: If author_name, body or anchor_id are out of bounds
            NotFoundError: If the document does not exist
            RateLimitedError: If the client posted too many comments in the last hour
        """
        anchor_id = validate_anchor_id(anchor_id)
        author_name = validate_author_name(author_name)
        body = validate_body(body)

        current = await self.core.services.document.get_current(document_id)

        if ip_hash is not None:
            await self._check_rate_limit(ip_hash)

        comment = Comment(
            document_id=document_id,
            anchor_id=anchor_id,
            author_name=author_name,
            body=body,
            document_version_at_creation=current.version,
            ip_hash=ip_hash,
        )
        with storage_errors("insert_comment"):
            await self._collection.insert_one(comment.to_mongo())

        logger.info(
            "comment_created",
            document_id=document_id,
            comment_id=comment.id,
            anchor_id=anchor_id,
            version=current.version,
        )
        return comment

    async def get_comment(self, comment_id: UUID) -> Comment:
        with storage_errors("get_comment"):
            doc = await self._collection.find_one({"_id": comment_id})
        if doc is None:
            raise NotFoundError(f"Comment not found: {comment_id}")
        return Comment.model_validate(doc)

    async def list_comments(self, document_id: UUID) -> list[Comment]:
        """Get non-flagged comments of a document, oldest first."""
        with storage_errors("list_comments"):
            cursor = self._collection.find({"document_id": document_id, "flagged": False}).sort("created_at", 1)
            return await Comment.list_cursor(cursor)

    async def set_flagged(self, comment_id: UUID, flagged: bool) -> Comment:
        """Toggle the moderation flag. The only mutation a comment ever sees."""
        with storage_errors("flag_comment"):
            result = await self._collection.update_one({"_id": comment_id}, {"$set": {"flagged": flagged}})
        if result.matched_count == 0:
            raise NotFoundError(f"Comment not found: {comment_id}")
        logger.info("comment_flagged", comment_id=comment_id, flagged=flagged)
        return await self.get_comment(comment_id)

    async def delete_comments_by_document(self, document_id: UUID) -> int:
        """Delete all comments of a document and return count of deleted comments."""
        with storage_errors("delete_comments"):
            result = await self._collection.delete_many({"document_id": document_id})
        return result.deleted_count

    async def _check_rate_limit(self, ip_hash: str) -> None:
        limit = self.core.config.comment_rate_limit_per_hour
        if limit <= 0:
            return
        with storage_errors("count_recent_comments"):
            recent = await self._collection.count_documents(
                {"ip_hash": ip_hash, "created_at": {"$gt": now() - RATE_LIMIT_WINDOW}}
            )
        if recent >= limit:
            logger.info("comment_rate_limited", recent=recent, limit=limit)
            raise RateLimitedError(f"Rate limit exceeded. Maximum {limit} comments per hour.")
