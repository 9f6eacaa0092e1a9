from typing import Annotated, cast

from fastapi import Depends, Request

from marginalia.app import App


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_client_ip(request: Request) -> str | None:
    """Client address for comment rate limiting (already proxy-resolved by uvicorn)."""
    return request.client.host if request.client else None


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ClientIpDep = Annotated[str | None, Depends(get_client_ip)]
