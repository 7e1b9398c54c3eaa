"""
Shared route dependencies.
"""
from fastapi import Depends, Request

from ..container import Services
from ..services.sessions import Actor


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_actor(request: Request, services: Services = Depends(get_services)) -> Actor:
    """The user identified by the session cookie."""
    cookie = request.cookies.get(services.config.session_cookie_name)
    return await services.sessions.actor_from_cookie(cookie)
