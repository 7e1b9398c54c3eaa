"""
Travel request routes - the booking wizard and every lifecycle action.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .deps import get_actor, get_services
from ..container import Services
from ..models.user import Role
from ..services.sessions import Actor


router = APIRouter(prefix="/api/requests", tags=["requests"])


class SelectGuideRequest(BaseModel):
    guideId: str


class RespondRequest(BaseModel):
    accept: bool


class TripPinRequest(BaseModel):
    pin: str = Field(..., pattern=r"^\s*[0-9]{4}\s*$")


def _view(actor: Actor, request) -> dict:
    return request.to_display_dict(include_pin=actor.user.role != Role.GUIDE)


@router.post("")
async def create_draft(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    """Start a new request in the draft state."""
    request = await services.lifecycle.create_draft(actor)
    return _view(actor, request)


@router.get("")
async def list_my_requests(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    requests = await services.lifecycle.list_for_traveler(actor)
    return [_view(actor, r) for r in requests]


@router.get("/{request_id}")
async def get_request(request_id: str, actor: Actor = Depends(get_actor),
                      services: Services = Depends(get_services)):
    return _view(actor, await services.lifecycle.get_request(actor, request_id))


@router.put("/{request_id}/steps/{step}")
async def save_step(request_id: str, step: int, payload: dict, actor: Actor = Depends(get_actor),
                    services: Services = Depends(get_services)):
    """Save one wizard step; validation issues come back as 422 with per-field messages."""
    request = await services.lifecycle.save_step(actor, request_id, step, payload)
    return _view(actor, request)


@router.get("/{request_id}/cost")
async def cost_preview(request_id: str, actor: Actor = Depends(get_actor),
                       services: Services = Depends(get_services)):
    return await services.lifecycle.cost_preview(actor, request_id)


@router.post("/{request_id}/submit")
async def submit(request_id: str, actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    return _view(actor, await services.lifecycle.submit(actor, request_id))


@router.get("/{request_id}/matches")
async def find_matches(request_id: str, actor: Actor = Depends(get_actor),
                       services: Services = Depends(get_services)):
    return await services.lifecycle.find_matches(actor, request_id)


@router.post("/{request_id}/guide")
async def select_guide(request_id: str, body: SelectGuideRequest, actor: Actor = Depends(get_actor),
                       services: Services = Depends(get_services)):
    return _view(actor, await services.lifecycle.select_guide(actor, request_id, body.guideId))


@router.post("/{request_id}/respond")
async def respond(request_id: str, body: RespondRequest, actor: Actor = Depends(get_actor),
                  services: Services = Depends(get_services)):
    """The assigned guide accepts or declines."""
    return _view(actor, await services.lifecycle.respond(actor, request_id, body.accept))


@router.post("/{request_id}/payment-order")
async def create_payment_order(request_id: str, actor: Actor = Depends(get_actor),
                               services: Services = Depends(get_services)):
    order = await services.lifecycle.create_payment_order(actor, request_id)
    return order.model_dump()


@router.post("/{request_id}/trip-pin")
async def verify_trip_pin(request_id: str, body: TripPinRequest, actor: Actor = Depends(get_actor),
                          services: Services = Depends(get_services)):
    return {"valid": await services.lifecycle.verify_trip_pin(actor, request_id, body.pin)}
