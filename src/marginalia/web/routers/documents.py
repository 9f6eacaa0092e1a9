"""Document publishing, rendering and editing endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from marginalia.core.modules.document.models import DocumentView
from marginalia.core.modules.render.models import RenderedDocument
from marginalia.web.deps import AppDep, ClientIpDep
from marginalia.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["documents"])


class ContentRequest(BaseModel):
    """Markdown content of a document."""

    content: str = Field(..., description="Raw markdown, at most 200 KB by default", min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [{"content": "# Release notes\n\nIntro\n\n## Overview\n\n- Faster renders\n- Stable anchors"}]
        }
    }


class CommitEditResponse(BaseModel):
    """Result of a committed edit."""

    version: int = Field(..., description="New current version of the document")


@router.post(
    "/documents",
    summary="Publish document",
    description="Publish markdown content as a new shareable document at version 1.",
    operation_id="publishDocument",
    status_code=201,
    responses={
        201: {"description": "Document published"},
        400: {"model": ErrorResponse, "description": "Empty or oversized content"},
        429: {"model": ErrorResponse, "description": "Too many documents from this client"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
)
async def publish_document(request: ContentRequest, app: AppDep, client_ip: ClientIpDep) -> DocumentView:
    return await app.publish_document(request.content, client_ip)


@router.get(
    "/documents/{document_id}",
    summary="Get document",
    description="Get document metadata including its current version.",
    operation_id="getDocument",
    responses={
        200: {"description": "Document metadata"},
        404: {"model": ErrorResponse, "description": "Document not found"},
    },
)
async def get_document(document_id: UUID, app: AppDep) -> DocumentView:
    return await app.get_document(document_id)


@router.get(
    "/documents/{document_id}/raw",
    summary="Get raw markdown",
    description="Get the live markdown content of a document.",
    operation_id="getDocumentRaw",
    response_class=PlainTextResponse,
    responses={404: {"model": ErrorResponse, "description": "Document not found"}},
)
async def get_raw_content(document_id: UUID, app: AppDep) -> PlainTextResponse:
    content = await app.get_raw_content(document_id)
    return PlainTextResponse(content, media_type="text/markdown")


@router.get(
    "/documents/{document_id}/render",
    summary="Render document",
    description="Render the live content into blocks, each carrying the anchor id readers comment on.",
    operation_id="renderDocument",
    responses={
        200: {"description": "Rendered blocks in document order"},
        404: {"model": ErrorResponse, "description": "Document not found"},
    },
)
async def render_document(document_id: UUID, app: AppDep) -> RenderedDocument:
    return await app.render_document(document_id)


@router.put(
    "/documents/{document_id}",
    summary="Edit document",
    description=(
        "Replace the live content. The previous content is archived under the previous version number "
        "and the version is incremented by exactly one."
    ),
    operation_id="commitEdit",
    responses={
        200: {"description": "Edit committed"},
        400: {"model": ErrorResponse, "description": "Empty or oversized content"},
        404: {"model": ErrorResponse, "description": "Document not found"},
        409: {"model": ErrorResponse, "description": "Concurrent edits kept colliding, retry later"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
)
async def commit_edit(document_id: UUID, request: ContentRequest, app: AppDep) -> CommitEditResponse:
    version = await app.commit_edit(document_id, request.content)
    return CommitEditResponse(version=version)


@router.get(
    "/documents/{document_id}/versions/{version}",
    summary="Get archived version",
    description="Get the markdown of a superseded version. The current version has no archive.",
    operation_id="getDocumentSnapshot",
    response_class=PlainTextResponse,
    responses={404: {"model": ErrorResponse, "description": "Document or archived version not found"}},
)
async def get_snapshot(
    document_id: UUID, version: Annotated[int, Path(ge=1, description="Archived version number")], app: AppDep
) -> PlainTextResponse:
    content = await app.get_snapshot(document_id, version)
    return PlainTextResponse(content, media_type="text/markdown")


@router.delete(
    "/documents/{document_id}",
    summary="Delete document",
    description="Delete a document together with its archived versions and all comments.",
    operation_id="deleteDocument",
    status_code=204,
    responses={
        204: {"description": "Document deleted"},
        404: {"model": ErrorResponse, "description": "Document not found"},
    },
)
async def delete_document(document_id: UUID, app: AppDep) -> None:
    await app.delete_document(document_id)
