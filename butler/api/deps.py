"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from butler.core.butler import ContextButler


def get_butler(request: Request) -> ContextButler:
    """The process-wide Butler created at startup."""
    butler = getattr(request.app.state, "butler", None)
    if butler is None:
        raise HTTPException(status_code=503, detail="Context service not initialized")
    return butler
