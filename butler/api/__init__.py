"""API router for v1 endpoints."""

from fastapi import APIRouter

from butler.api import admin, context

router = APIRouter()

router.include_router(context.router, tags=["context"])

router.include_router(admin.router)
