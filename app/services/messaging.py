"""
Outbound messaging clients.
Transactional email through SendGrid and web push through Firebase Cloud Messaging.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from jose import JOSEError, jwt

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"

# FCM errors meaning the token will never work again
STALE_TOKEN_ERRORS = {"UNREGISTERED", "INVALID_ARGUMENT"}


class Mailer:
    """Sends HTML email via the SendGrid v3 API."""

    def __init__(self, api_key: str, from_email: str, base_url: str = "https://api.sendgrid.com/v3",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email. Returns False when it was not sent."""
        if not self.enabled:
            logger.info(f"Email not sent (SendGrid not configured): To={to}, Subject={subject}")
            return False

        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(base_url=self.base_url, timeout=10.0, transport=self._transport) as client:
            try:
                response = await client.post("/mail/send", json=body, headers=headers)
                response.raise_for_status()
                logger.info(f"Email sent successfully to {to}")
                return True
            except httpx.HTTPError as e:
                logger.error(f"Error sending email to {to}: {e}")
                return False


@dataclass
class PushResult:
    """Outcome of one multicast push."""
    success_count: int = 0
    failure_count: int = 0
    stale_tokens: List[str] = field(default_factory=list)


class PushSender:
    """
    Sends web push notifications through the FCM HTTP v1 API.

    Authenticates as a service account: a signed JWT assertion is exchanged
    for an OAuth2 access token, which is cached until shortly before it expires.
    """

    def __init__(self, project_id: str, client_email: str, private_key: str,
                 token_uri: str = "https://oauth2.googleapis.com/token",
                 base_url: str = "https://fcm.googleapis.com/v1",
                 icon: str = "/logo.png", transport: Optional[httpx.AsyncBaseTransport] = None):
        self.project_id = project_id
        self.client_email = client_email
        # Keys pasted into env files usually carry escaped newlines
        self.private_key = private_key.replace("\\n", "\n")
        self.token_uri = token_uri
        self.base_url = base_url.rstrip("/")
        self.icon = icon
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def enabled(self) -> bool:
        return bool(self.project_id and self.client_email and self.private_key)

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        if self._access_token and time.time() < self._token_expires_at - 60:
            return self._access_token

        now = int(time.time())
        assertion = jwt.encode({
            "iss": self.client_email,
            "scope": FCM_SCOPE,
            "aud": self.token_uri,
            "iat": now,
            "exp": now + 3600,
        }, self.private_key, algorithm="RS256")

        response = await client.post(self.token_uri, data={
            "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
            "assertion": assertion,
        })
        response.raise_for_status()
        data = response.json()
        self._access_token = data["access_token"]
        self._token_expires_at = now + int(data.get("expires_in", 3600))
        return self._access_token

    def _message(self, token: str, title: str, body: str, link: str) -> dict:
        return {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                "webpush": {
                    "notification": {"icon": self.icon},
                    "fcm_options": {"link": link},
                },
            }
        }

    @staticmethod
    def _error_code(response: httpx.Response) -> str:
        """FCM error code from a v1 error body, falling back to the RPC status."""
        try:
            error = response.json().get("error", {})
        except ValueError:
            return f"HTTP {response.status_code}"
        for detail in error.get("details", []):
            if detail.get("errorCode"):
                return detail["errorCode"]
        return error.get("status") or f"HTTP {response.status_code}"

    async def _send_one(self, client: httpx.AsyncClient, access_token: str,
                        token: str, title: str, body: str, link: str) -> Optional[str]:
        """Send to one device. Returns the error code, or None on success."""
        try:
            response = await client.post(
                f"{self.base_url}/projects/{self.project_id}/messages:send",
                json=self._message(token, title, body, link),
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            return f"transport error: {e}"
        if response.is_success:
            return None
        return self._error_code(response)

    async def send(self, tokens: List[str], title: str, body: str, link: str) -> PushResult:
        """Send one notification to every device token of a user."""
        if not self.enabled:
            logger.info(f"Push not sent (FCM not configured): {title}")
            return PushResult()

        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            try:
                access_token = await self._get_access_token(client)
            except (httpx.HTTPError, ValueError, KeyError, JOSEError) as e:
                logger.error(f"Push delivery failed, could not authorize with FCM: {e}")
                return PushResult(failure_count=len(tokens))

            errors = await asyncio.gather(*[
                self._send_one(client, access_token, token, title, body, link) for token in tokens
            ])

        result = PushResult()
        for token, error in zip(tokens, errors):
            if error is None:
                result.success_count += 1
                continue
            result.failure_count += 1
            logger.error(f"Failure sending push to {token}: {error}")
            if error in STALE_TOKEN_ERRORS:
                result.stale_tokens.append(token)
        return result
