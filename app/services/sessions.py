"""
Session management - ID token verification and session cookies.
The identity provider issues signed ID tokens; the backend exchanges one for a
longer-lived session cookie that identifies the acting user on every request.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from .document_store import DocumentStore
from ..errors import AuthenticationError
from ..models.user import User

logger = logging.getLogger(__name__)

ROLES_ADMIN = "roles_admin"


@dataclass
class IdentityClaims:
    """Verified claims of an ID token."""
    uid: str
    email: Optional[str] = None


@dataclass
class Actor:
    """The authenticated user behind a request."""
    user: User
    is_admin: bool = False

    @property
    def uid(self) -> str:
        return self.user.uid


class SessionManager:
    """Verifies ID tokens and issues / verifies session cookies."""

    def __init__(
        self,
        store: DocumentStore,
        session_secret: str,
        id_token_secret: str,
        id_token_audience: str,
        algorithm: str = "HS256",
        expires_days: int = 5,
    ):
        self.store = store
        self.session_secret = session_secret
        self.id_token_secret = id_token_secret
        self.id_token_audience = id_token_audience
        self.algorithm = algorithm
        self.expires_in = timedelta(days=expires_days)

    def verify_id_token(self, id_token: str) -> IdentityClaims:
        try:
            claims = jwt.decode(
                id_token,
                self.id_token_secret,
                algorithms=[self.algorithm],
                audience=self.id_token_audience,
            )
        except JWTError as e:
            raise AuthenticationError("Invalid ID token") from e

        uid = claims.get("sub") or claims.get("uid")
        if not uid:
            raise AuthenticationError("ID token has no subject")
        return IdentityClaims(uid=uid, email=claims.get("email"))

    def create_session_cookie(self, uid: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {"sub": uid, "iat": now, "exp": now + self.expires_in, "typ": "session"}
        return jwt.encode(payload, self.session_secret, algorithm=self.algorithm)

    def verify_session_cookie(self, cookie: str) -> str:
        """Return the uid a session cookie was issued to."""
        try:
            claims = jwt.decode(cookie, self.session_secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthenticationError("Session expired or invalid") from e
        if claims.get("typ") != "session" or not claims.get("sub"):
            raise AuthenticationError("Session expired or invalid")
        return claims["sub"]

    @property
    def max_age_seconds(self) -> int:
        return int(self.expires_in.total_seconds())

    async def is_admin(self, uid: str) -> bool:
        return await self.store.get(ROLES_ADMIN, uid) is not None

    async def load_actor(self, uid: str) -> Actor:
        doc = await self.store.get("users", uid)
        if doc is None:
            logger.warning(f"User document not found for UID: {uid}")
            raise AuthenticationError("User document not found.")
        return Actor(user=User.model_validate(doc), is_admin=await self.is_admin(uid))

    async def actor_from_cookie(self, cookie: Optional[str]) -> Actor:
        if not cookie:
            raise AuthenticationError("Unauthenticated. Please log in.")
        return await self.load_actor(self.verify_session_cookie(cookie))
