"""
Top-level router for version 1 of the API.

Every endpoint of this version lives under ``/events``; the event,
response and finalization routers are split by concern and mounted on
the same prefix here.
"""

from fastapi import APIRouter

from .endpoints import events, finalize, responses

router = APIRouter()

router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(responses.router, prefix="/events", tags=["responses"])
router.include_router(finalize.router, prefix="/events", tags=["finalize"])
