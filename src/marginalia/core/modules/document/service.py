import asyncio
from datetime import timedelta
from typing import Any
from uuid import UUID, uuid4

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from marginalia.core.core import Service
from marginalia.core.db import storage_errors
from marginalia.core.modules.blob.storage import live_key, snapshot_key
from marginalia.core.modules.document.models import CurrentVersion, Document, VersionSnapshot
from marginalia.core.modules.render.markdown import extract_title
from marginalia.errors import ConflictError, NotFoundError, RateLimitedError, StorageUnavailableError, ValidationError
from marginalia.utils import now, sha256_hex

logger = structlog.get_logger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=1)


class DocumentService(Service):
    """Publishes documents and tracks each one's append-only version chain."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("documents")
        self._snapshots = database.get_collection("snapshots")

    async def on_start(self) -> None:
        """Create the unique snapshot index that serializes concurrent edits, and the rate limit index."""
        with storage_errors("create_indexes"):
            await self._snapshots.create_index([("document_id", 1), ("version", 1)], unique=True)
            await self._collection.create_index([("ip_hash", 1), ("created_at", 1)])

    def validate_content(self, content: str) -> bytes:
        """Check content is non-blank and within the size limit, return its UTF-8 bytes."""
        if not content.strip():
            raise ValidationError("content must not be empty")
        data = content.encode()
        limit = self.core.config.max_content_bytes
        if len(data) > limit:
            raise ValidationError(f"content is too large, maximum size is {limit // 1024} KB")
        return data

    async def publish_document(self, content: str, ip_hash: str | None = None) -> Document:
        """Store content as a new document at version 1.

        Raises:
            ValidationError: If content is blank or too large
            RateLimitedError: If the client published too many documents in the last hour
        """
        data = self.validate_content(content)
        if ip_hash is not None:
            await self._check_rate_limit(ip_hash)

        document_id = uuid4()
        document = Document(
            id=document_id,
            content_ref=live_key(document_id),
            title=extract_title(content),
            size=len(data),
            sha256=sha256_hex(data),
            ip_hash=ip_hash,
        )

        blob = self.core.services.blob
        await blob.put(document.content_ref, data)
        try:
            with storage_errors("insert_document"):
                await self._collection.insert_one(document.to_mongo())
        except Exception:
            await blob.delete(document.content_ref)
            raise

        logger.info("document_published", document_id=document_id, size=document.size)
        return document

    async def get_document(self, document_id: UUID) -> Document:
        with storage_errors("get_document"):
            doc = await self._collection.find_one({"_id": document_id})
        if doc is None:
            raise NotFoundError(f"Document not found: {document_id}")
        return Document.model_validate(doc)

    async def get_current(self, document_id: UUID) -> CurrentVersion:
        document = await self.get_document(document_id)
        return CurrentVersion(version=document.current_version, content_ref=document.content_ref)

    async def get_content(self, document_id: UUID) -> str:
        """Get the live raw content of a document."""
        document = await self.get_document(document_id)
        data = await self.core.services.blob.get(document.content_ref)
        return data.decode()

    async def commit_edit(self, document_id: UUID, new_content: str) -> int:
        """Replace live content, archiving the previous version.

        Each attempt reads the current version V and submits the edit
        conditioned on V still being current. A collision with a concurrent
        edit is retried up to edit_max_retries times with linear backoff.

        Returns:
            The new version number, V + 1

        Raises:
            ConflictError: If every attempt collided with another edit
        """
        data = self.validate_content(new_content)
        config = self.core.config
        attempts = config.edit_max_retries + 1

        for attempt in range(1, attempts + 1):
            document = await self.get_document(document_id)
            try:
                new_version = await self._apply_edit(document, new_content, data)
            except ConflictError:
                logger.debug(
                    "edit_conflict_retry",
                    document_id=document_id,
                    expected_version=document.current_version,
                    attempt=attempt,
                )
                if attempt < attempts:
                    await asyncio.sleep(config.edit_retry_backoff_ms * attempt / 1000)
                continue

            logger.info("edit_committed", document_id=document_id, version=new_version, size=len(data))
            return new_version

        logger.warning("edit_conflict", document_id=document_id, attempts=attempts)
        raise ConflictError

    async def get_snapshot(self, document_id: UUID, version: int) -> str:
        """Get archived content of a past version.

        The live version has no snapshot until it is superseded.
        """
        document = await self.get_document(document_id)
        if not 1 <= version < document.current_version:
            raise NotFoundError(f"Version {version} of document {document_id} is not archived")

        with storage_errors("get_snapshot"):
            doc = await self._snapshots.find_one({"document_id": document_id, "version": version})
        if doc is None:
            raise NotFoundError(f"Version {version} of document {document_id} is not archived")

        snapshot = VersionSnapshot.model_validate(doc)
        data = await self.core.services.blob.get(snapshot.content_ref)
        return data.decode()

    async def delete_document(self, document_id: UUID) -> int:
        """Delete a document with its snapshots and return count of deleted snapshots.

        Rows go first, blobs after. A blob that cannot be deleted is logged
        and left behind. Comments are not touched here, delete them first.
        """
        document = await self.get_document(document_id)
        with storage_errors("delete_document"):
            snapshots = await VersionSnapshot.list_cursor(self._snapshots.find({"document_id": document_id}))
            await self._collection.delete_one({"_id": document_id})
            await self._snapshots.delete_many({"document_id": document_id})

        blob = self.core.services.blob
        for key in [*(snapshot.content_ref for snapshot in snapshots), document.content_ref]:
            try:
                await blob.delete(key)
            except StorageUnavailableError:
                logger.warning("blob_delete_failed", document_id=document_id, key=key)

        logger.info("document_deleted", document_id=document_id, snapshots=len(snapshots))
        return len(snapshots)

    async def _check_rate_limit(self, ip_hash: str) -> None:
        limit = self.core.config.publish_rate_limit_per_hour
        if limit <= 0:
            return
        with storage_errors("count_recent_documents"):
            recent = await self._collection.count_documents(
                {"ip_hash": ip_hash, "created_at": {"$gt": now() - RATE_LIMIT_WINDOW}}
            )
        if recent >= limit:
            logger.info("publish_rate_limited", recent=recent, limit=limit)
            raise RateLimitedError(f"Rate limit exceeded. Maximum {limit} uploads per hour.")

    async def _apply_edit(self, document: Document, new_content: str, data: bytes) -> int:
        """Run one compare-and-swap attempt of an edit against the expected version.

        Claiming the (document_id, version) snapshot slot through the unique
        index makes this attempt the only writer of that version. Everything
        after the claim is undone on failure or cancellation.
        """
        version = document.current_version
        snapshot = await self._claim_version(document)

        blob = self.core.services.blob
        previous: bytes | None = None
        try:
            previous = await self._read_claimed_content(document, snapshot)
            await blob.put(snapshot.content_ref, previous)
            await blob.put(document.content_ref, data)
            with storage_errors("bump_version"):
                result = await self._collection.update_one(
                    {"_id": document.id, "current_version": version},
                    {
                        "$set": {
                            "current_version": version + 1,
                            "title": extract_title(new_content),
                            "size": len(data),
                            "sha256": sha256_hex(data),
                            "updated_at": now(),
                        }
                    },
                )
            if result.matched_count == 0:
                raise ConflictError
        except BaseException:
            await asyncio.shield(self._rollback_edit(document, snapshot, previous))
            raise

        return version + 1

    async def _claim_version(self, document: Document) -> VersionSnapshot:
        """Claim the snapshot slot of the document's current version.

        Raises:
            ConflictError: If another edit holds the slot
        """
        version = document.current_version
        snapshot = VersionSnapshot(
            document_id=document.id,
            version=version,
            content_ref=snapshot_key(document.id, version),
        )
        try:
            with storage_errors("claim_snapshot"):
                await self._snapshots.insert_one(snapshot.to_mongo())
        except DuplicateKeyError:
            return await self._take_over_stale_claim(document)
        return snapshot

    async def _take_over_stale_claim(self, document: Document) -> VersionSnapshot:
        """Take over a claim left by an attempt that died without rolling back.

        Only a claim on the still-current version, older than
        edit_claim_lease_ms, is taken over. The token swap makes exactly one
        contender the new owner.

        Raises:
            ConflictError: If the slot is held by a live claim, already committed or taken by someone else
        """
        with storage_errors("find_claim"):
            doc = await self._snapshots.find_one({"document_id": document.id, "version": document.current_version})
        if doc is None:
            raise ConflictError
        claim = VersionSnapshot.model_validate(doc)

        lease = timedelta(milliseconds=self.core.config.edit_claim_lease_ms)
        if claim.created_at > now() - lease:
            raise ConflictError
        if (await self.get_current(document.id)).version != claim.version:
            raise ConflictError

        renewed = claim.model_copy(update={"claim_token": uuid4(), "created_at": now()})
        with storage_errors("take_over_claim"):
            result = await self._snapshots.update_one(
                {"_id": claim.id, "claim_token": claim.claim_token},
                {"$set": {"claim_token": renewed.claim_token, "created_at": renewed.created_at}},
            )
        if result.matched_count == 0:
            raise ConflictError

        logger.warning("stale_claim_taken_over", document_id=document.id, version=claim.version, claimed_at=claim.created_at)
        return renewed

    async def _read_claimed_content(self, document: Document, snapshot: VersionSnapshot) -> bytes:
        """Content of the claimed version.

        An archive blob of the current version exists only when an earlier
        attempt wrote it before touching the live blob, so it holds the
        version's content and takes precedence.
        """
        blob = self.core.services.blob
        try:
            return await blob.get(snapshot.content_ref)
        except NotFoundError:
            return await blob.get(document.content_ref)

    async def _rollback_edit(self, document: Document, snapshot: VersionSnapshot, previous: bytes | None) -> None:
        """Restore live content and release the claim of a failed edit.

        Nothing is undone when the version bump landed despite the error.
        Without previous content the blobs were never touched and only the
        claim is released.
        """
        blob = self.core.services.blob
        try:
            if (await self.get_current(document.id)).version > snapshot.version:
                logger.warning("edit_outcome_committed", document_id=document.id, version=snapshot.version + 1)
                return
            if previous is not None:
                await blob.put(document.content_ref, previous)
                await blob.delete(snapshot.content_ref)
            with storage_errors("release_snapshot"):
                await self._snapshots.delete_one({"_id": snapshot.id, "claim_token": snapshot.claim_token})
        except Exception:
            logger.exception("edit_rollback_failed", document_id=document.id, version=snapshot.version)
            raise
        logger.info("edit_rolled_back", document_id=document.id, version=snapshot.version)
