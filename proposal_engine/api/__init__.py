"""API router for v1 endpoints."""

from fastapi import APIRouter

from proposal_engine.api import proposals

router = APIRouter()

router.include_router(proposals.router)
