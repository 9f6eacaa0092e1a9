from marginalia.web.routers.comments import router as comments_router
from marginalia.web.routers.documents import router as documents_router

__all__ = [
    "comments_router",
    "documents_router",
]
