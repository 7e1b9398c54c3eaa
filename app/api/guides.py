"""
Guide routes - profile, availability, verification and the request dashboard.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional

from .deps import get_actor, get_services
from ..container import Services
from ..models.user import Contact, DisabilityExpertise, GuideAddress, Verification
from ..services.sessions import Actor


router = APIRouter(prefix="/api/guides/me", tags=["guides"])


class GuideProfileUpdate(BaseModel):
    address: Optional[GuideAddress] = None
    contact: Optional[Contact] = None
    disabilityExpertise: Optional[DisabilityExpertise] = None


class AvailabilityUpdate(BaseModel):
    isAvailable: bool


@router.get("/profile")
async def get_profile(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    profile = await services.profiles.get_guide_profile(actor)
    return profile.to_document() if profile else None


@router.put("/profile")
async def save_profile(body: GuideProfileUpdate, actor: Actor = Depends(get_actor),
                       services: Services = Depends(get_services)):
    profile = await services.profiles.save_guide_profile(
        actor, address=body.address, contact=body.contact, expertise=body.disabilityExpertise,
    )
    return profile.to_document()


@router.put("/availability")
async def set_availability(body: AvailabilityUpdate, actor: Actor = Depends(get_actor),
                           services: Services = Depends(get_services)):
    profile = await services.profiles.set_availability(actor, body.isAvailable)
    return profile.to_document()


@router.post("/verification")
async def submit_verification(verification: Verification, actor: Actor = Depends(get_actor),
                              services: Services = Depends(get_services)):
    profile = await services.profiles.submit_verification(actor, verification)
    return profile.to_document()


@router.get("/requests")
async def my_requests(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    """Assigned requests grouped into in progress, upcoming and past."""
    buckets = await services.lifecycle.guide_requests(actor)
    return {name: [r.to_display_dict(include_pin=False) for r in requests] for name, requests in buckets.items()}
