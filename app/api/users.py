"""
Profile routes for the logged-in user.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Optional

from .deps import get_actor, get_services
from ..container import Services
from ..models.user import Contact, Disability, Gender, HomeAddress
from ..services.sessions import Actor


router = APIRouter(prefix="/api/users/me", tags=["users"])


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    gender: Optional[Gender] = None
    photoURL: Optional[str] = None


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


@router.get("")
async def get_me(actor: Actor = Depends(get_actor)):
    return {**actor.user.to_document(), "isAdmin": actor.is_admin}


@router.patch("")
async def update_me(body: ProfileUpdate, actor: Actor = Depends(get_actor),
                    services: Services = Depends(get_services)):
    user = await services.profiles.update_basic(actor, body.name, body.gender, body.photoURL)
    return user.to_document()


@router.put("/address")
async def update_address(address: HomeAddress, actor: Actor = Depends(get_actor),
                         services: Services = Depends(get_services)):
    return (await services.profiles.update_address(actor, address)).to_document()


@router.put("/contact")
async def update_contact(contact: Contact, actor: Actor = Depends(get_actor),
                         services: Services = Depends(get_services)):
    return (await services.profiles.update_contact(actor, contact)).to_document()


@router.put("/disability")
async def update_disability(disability: Disability, actor: Actor = Depends(get_actor),
                            services: Services = Depends(get_services)):
    return (await services.profiles.update_disability(actor, disability)).to_document()


@router.post("/fcm-tokens")
async def add_push_token(body: PushTokenRequest, actor: Actor = Depends(get_actor),
                         services: Services = Depends(get_services)):
    """Opt this device in to push notifications."""
    user = await services.profiles.add_push_token(actor, body.token)
    return {"success": True, "tokenCount": len(user.fcm_tokens)}


@router.delete("/fcm-tokens/{token}")
async def remove_push_token(token: str, actor: Actor = Depends(get_actor),
                            services: Services = Depends(get_services)):
    user = await services.profiles.remove_push_token(actor, token)
    return {"success": True, "tokenCount": len(user.fcm_tokens)}


@router.post("/photo-alt")
async def regenerate_photo_alt(actor: Actor = Depends(get_actor), services: Services = Depends(get_services)):
    """Describe the current profile photo again."""
    user = await services.profiles.describe_photo(actor)
    return {"photoAlt": user.photo_alt}
