"""
API Routes for the booking backend.
"""
from fastapi import APIRouter

from . import admin, auth, guides, payments, requests, users
from ..models.reference_data import SCRIBE_SUBJECT_OPTIONS, TAMIL_NADU_DISTRICTS


router = APIRouter()

for module in (auth, users, guides, requests, payments, admin):
    router.include_router(module.router)


@router.get("/api/reference", tags=["reference"])
async def reference_data():
    """Districts and scribe subjects offered by the forms."""
    return {
        "districts": TAMIL_NADU_DISTRICTS,
        "scribeSubjects": [{"id": key, "label": label} for key, label in SCRIBE_SUBJECT_OPTIONS.items()],
    }
