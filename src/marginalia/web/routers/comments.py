"""Comment-related API endpoints."""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from marginalia.core.modules.comment.models import CommentView
from marginalia.core.modules.reconcile.models import ReconciledView
from marginalia.web.deps import AppDep, ClientIpDep
from marginalia.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["comments"])


class CreateCommentRequest(BaseModel):
    """Request to create a new comment."""

    author_name: str = Field(..., description="Display name of the reader, 1-50 characters")
    body: str = Field(..., description="The comment text, 1-2000 characters")
    anchor_id: str | None = Field(
        None, description="Anchor of the passage commented on; omit or use 'doc-root' for the whole document"
    )


class FlagCommentRequest(BaseModel):
    """Request to change the moderation flag of a comment."""

    flagged: bool = Field(..., description="True hides the comment from readers")


class FlagCommentResponse(BaseModel):
    """Moderation state of a comment."""

    id: UUID
    flagged: bool


@router.get(
    "/documents/{document_id}/comments",
    summary="List document comments",
    description="Get all visible comments of a document ordered by creation time. Flagged comments are omitted.",
    operation_id="listComments",
    responses={
        200: {"description": "Comments, oldest first"},
        404: {"model": ErrorResponse, "description": "Document not found"},
    },
)
async def list_comments(document_id: UUID, app: AppDep) -> list[CommentView]:
    return await app.list_comments(document_id)


@router.post(
    "/documents/{document_id}/comments",
    summary="Create comment",
    description=(
        "Attach a comment to a passage of the document. The comment records the document version "
        "current at posting time."
    ),
    operation_id="createComment",
    status_code=201,
    responses={
        201: {"description": "Comment created successfully"},
        400: {"model": ErrorResponse, "description": "author_name, body or anchor_id out of bounds"},
        404: {"model": ErrorResponse, "description": "Document not found"},
        429: {"model": ErrorResponse, "description": "Too many comments from this client"},
    },
)
async def create_comment(
    document_id: UUID, request: CreateCommentRequest, app: AppDep, client_ip: ClientIpDep
) -> CommentView:
    return await app.post_comment(document_id, request.anchor_id, request.author_name, request.body, client_ip)


@router.get(
    "/documents/{document_id}/comments/reconciled",
    summary="Reconciled comment view",
    description=(
        "Group comments by anchor of the live render. Comments whose passage no longer exists are moved "
        "to the general bucket and marked orphaned; comments from earlier versions are marked stale."
    ),
    operation_id="reconcileComments",
    responses={
        200: {"description": "Grouped comments, general bucket first"},
        404: {"model": ErrorResponse, "description": "Document not found"},
    },
)
async def reconcile_comments(document_id: UUID, app: AppDep) -> ReconciledView:
    return await app.reconcile(document_id)


@router.put(
    "/comments/{comment_id}/flag",
    summary="Flag comment",
    description="Hide a comment from readers or restore it. Flagged comments are kept for moderation.",
    operation_id="flagComment",
    responses={
        200: {"description": "Moderation state updated"},
        404: {"model": ErrorResponse, "description": "Comment not found"},
    },
)
async def flag_comment(comment_id: UUID, request: FlagCommentRequest, app: AppDep) -> FlagCommentResponse:
    comment = await app.flag_comment(comment_id, request.flagged)
    return FlagCommentResponse(id=comment.id, flagged=comment.flagged)
