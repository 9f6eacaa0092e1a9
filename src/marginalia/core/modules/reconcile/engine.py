"""Reconciliation of stored comments against a document's live render."""

from collections.abc import Iterable, Mapping, Sequence
from uuid import UUID

from marginalia.core.modules.anchor.models import GENERAL_ANCHOR, Anchor
from marginalia.core.modules.comment.models import Comment
from marginalia.core.modules.reconcile.models import CommentGroup, CommentStatus, ReconciledComment, ReconciledView


def classify_comment(comment: Comment, anchors: Mapping[str, Anchor], current_version: int) -> CommentStatus:
    """Classify one comment against the freshly computed anchors of the live render."""
    if comment.anchor_id == GENERAL_ANCHOR:
        return CommentStatus.GENERAL
    if comment.anchor_id not in anchors:
        return CommentStatus.ORPHANED
    if comment.document_version_at_creation < current_version:
        return CommentStatus.STALE
    return CommentStatus.CURRENT


def reconcile_comments(
    document_id: UUID, current_version: int, anchors: Sequence[Anchor], comments: Iterable[Comment]
) -> ReconciledView:
    """Classify comments and group them by display anchor.

    Orphaned comments join the general bucket, which always comes first;
    other groups follow the document order of their anchors. Comments are
    expected oldest first and keep that order inside each group. Only
    non-empty groups are returned. Linear in comments plus anchors.
    """
    anchors_by_id = {anchor.id: anchor for anchor in anchors}
    buckets: dict[str, list[ReconciledComment]] = {}
    orphaned_count = 0
    stale_count = 0

    for comment in comments:
        status = classify_comment(comment, anchors_by_id, current_version)
        if status == CommentStatus.ORPHANED:
            orphaned_count += 1
        elif status == CommentStatus.STALE:
            stale_count += 1

        display_anchor = GENERAL_ANCHOR if status in (CommentStatus.GENERAL, CommentStatus.ORPHANED) else comment.anchor_id
        buckets.setdefault(display_anchor, []).append(
            ReconciledComment(
                id=comment.id,
                anchor_id=comment.anchor_id,
                author_name=comment.author_name,
                body=comment.body,
                created_at=comment.created_at,
                document_version_at_creation=comment.document_version_at_creation,
                status=status,
                orphaned=status == CommentStatus.ORPHANED,
            )
        )

    groups: list[CommentGroup] = []
    if GENERAL_ANCHOR in buckets:
        groups.append(CommentGroup(anchor_id=GENERAL_ANCHOR, comments=buckets[GENERAL_ANCHOR]))
    for anchor in anchors:
        if anchor.id in buckets:
            groups.append(
                CommentGroup(
                    anchor_id=anchor.id,
                    node_kind=anchor.node_kind,
                    position=anchor.position,
                    comments=buckets[anchor.id],
                )
            )

    return ReconciledView(
        document_id=document_id,
        version=current_version,
        groups=groups,
        orphaned_count=orphaned_count,
        stale_count=stale_count,
    )
