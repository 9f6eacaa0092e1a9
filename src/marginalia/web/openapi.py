from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        app.openapi_schema = get_openapi(
            title="Marginalia API",
            version="0.1.0",
            summary="Shareable markdown documents with passage-anchored reader comments",
            routes=app.routes,
        )
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "author_name must be 1-50 characters", "type": "validation_error"},
                {"message": "Document not found", "type": "not_found"},
                {"message": "Document was modified concurrently, please retry", "type": "conflict"},
            ]
        }
    }
