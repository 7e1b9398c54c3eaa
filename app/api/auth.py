"""
Authentication routes - signup, session login and logout.
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from typing import Optional

from .deps import get_services
from ..container import Services
from ..models.user import Gender, Role


router = APIRouter(prefix="/api/auth", tags=["auth"])


class SessionRequest(BaseModel):
    idToken: Optional[str] = None


class SignupRequest(BaseModel):
    idToken: str
    name: str = Field(..., min_length=2)
    role: Role
    gender: Optional[Gender] = None


class SessionResponse(BaseModel):
    success: bool
    role: Role
    isAdmin: bool


def _set_session_cookie(response: Response, services: Services, uid: str):
    config = services.config
    response.set_cookie(
        config.session_cookie_name,
        services.sessions.create_session_cookie(uid),
        max_age=services.sessions.max_age_seconds,
        httponly=True,
        secure=config.session_cookie_secure,
        path="/",
    )


@router.post("/signup", response_model=SessionResponse)
async def signup(body: SignupRequest, response: Response, services: Services = Depends(get_services)):
    """Create the account document for a new identity and log it in."""
    claims = services.sessions.verify_id_token(body.idToken)
    user = await services.profiles.signup(claims, body.name, body.role, body.gender)
    _set_session_cookie(response, services, user.uid)
    return SessionResponse(success=True, role=user.role, isAdmin=await services.sessions.is_admin(user.uid))


@router.post("/session", response_model=SessionResponse)
async def create_session(body: SessionRequest, response: Response, services: Services = Depends(get_services)):
    """Exchange an ID token for a five-day session cookie."""
    if not body.idToken:
        raise HTTPException(status_code=400, detail="ID token is required")

    claims = services.sessions.verify_id_token(body.idToken)
    actor = await services.sessions.load_actor(claims.uid)
    _set_session_cookie(response, services, actor.uid)
    return SessionResponse(success=True, role=actor.user.role, isAdmin=actor.is_admin)


@router.post("/logout")
async def logout(response: Response, services: Services = Depends(get_services)):
    response.delete_cookie(services.config.session_cookie_name, path="/")
    return {"success": True}
