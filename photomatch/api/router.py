"""
photomatch — Main API Router

Aggregates all sub-routers under a single prefix so that ``photomatch.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from photomatch.api import matching, personality, sessions
from photomatch.api.admin import embeddings

router = APIRouter()

router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
router.include_router(matching.router, prefix="/matching", tags=["Matching"])
router.include_router(personality.router, prefix="/personality", tags=["Personality"])
router.include_router(matching.admin_router, prefix="/admin/matching", tags=["Admin - Matching"])
router.include_router(embeddings.router, prefix="/admin/embeddings", tags=["Admin - Embeddings"])
