"""
Admin routes - guide moderation, deletions and terminal status changes.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Literal, Optional

from .deps import get_actor, get_services
from ..container import Services
from ..models.travel_request import RequestStatus
from ..models.user import OnboardingState
from ..services.guide_matcher import expertise_tags
from ..services.sessions import Actor


router = APIRouter(prefix="/api/admin", tags=["admin"])


class GuideReview(BaseModel):
    decision: Literal["approve", "reject"]


class StatusUpdate(BaseModel):
    status: Literal["completed", "cancelled"]


@router.get("/guides")
async def list_guides(state: Optional[OnboardingState] = None, actor: Actor = Depends(get_actor),
                      services: Services = Depends(get_services)):
    guides = await services.admin.list_guides(actor, state)
    return [
        {
            "user": guide.user.to_document(),
            "profile": guide.profile.to_document() if guide.profile else None,
            "expertiseTags": expertise_tags(guide),
        }
        for guide in guides
    ]


@router.post("/guides/{guide_id}/review")
async def review_guide(guide_id: str, body: GuideReview, actor: Actor = Depends(get_actor),
                       services: Services = Depends(get_services)):
    profile = await services.admin.review_guide(actor, guide_id, approve=body.decision == "approve")
    return profile.to_document()


@router.delete("/guides/{guide_id}")
async def delete_guide(guide_id: str, actor: Actor = Depends(get_actor),
                       services: Services = Depends(get_services)):
    await services.admin.delete_guide(actor, guide_id)
    return {"success": True}


@router.get("/travelers")
async def list_travelers(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return [user.to_document() for user in await services.admin.list_travelers(actor)]


@router.delete("/travelers/{uid}")
async def delete_traveler(uid: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    removed = await services.admin.delete_traveler(actor, uid)
    return {"success": True, "deletedRequests": removed}


@router.delete("/travelers/{uid}/profile-info")
async def delete_traveler_profile_info(uid: str, actor: Actor = Depends(get_actor),
                                       services: Services = Depends(get_services)):
    user = await services.admin.delete_traveler_profile_info(actor, uid)
    return user.to_document()


@router.delete("/requests/drafts")
async def delete_drafts(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return {"success": True, "deleted": await services.admin.delete_drafts(actor)}


@router.delete("/requests/{request_id}")
async def delete_request(request_id: str, actor: Actor = Depends(get_actor),
                         services: Services = Depends(get_services)):
    await services.lifecycle.delete_request(actor, request_id)
    return {"success": True}


@router.put("/requests/{request_id}/status")
async def close_request(request_id: str, body: StatusUpdate, actor: Actor = Depends(get_actor),
                        services: Services = Depends(get_services)):
    request = await services.lifecycle.close(actor, request_id, RequestStatus(body.status))
    return request.to_display_dict()
