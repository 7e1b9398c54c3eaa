"""HTTP API for the booking backend."""
from .routes import router

__all__ = ["router"]
