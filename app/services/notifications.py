"""
Notification Dispatcher - reacts to travel request status changes.

Each relevant transition notifies exactly one person. Emails are sent at most
once per transition: the flag on the request is claimed in a transaction before
sending, so a redelivered change event finds it already set. Push is best effort.
"""
import html
import logging
from dataclasses import dataclass
from typing import Optional

from .change_feed import ChangeEvent
from .document_store import ArrayRemove, DocumentStore
from .messaging import Mailer, PushSender
from ..models.travel_request import TRAVEL_REQUESTS, RequestStatus

logger = logging.getLogger(__name__)

SIGNATURE = "<p>Thank you,<br/>The Let's Travel Together Team</p>"


@dataclass
class Notice:
    """What to tell whom for one transition."""
    recipient_id: str
    recipient_is_traveler: bool
    push_title: Optional[str] = None
    push_body: Optional[str] = None
    email_flag: Optional[str] = None
    email_subject: Optional[str] = None
    email_html: Optional[str] = None
    email_to: Optional[str] = None


def _name(snapshot: Optional[dict], fallback: str) -> str:
    return (snapshot or {}).get("name") or fallback


def build_notice(before: dict, after: dict) -> Optional[Notice]:
    """Decide who hears about a status change, if anyone."""
    old, new = before.get("status"), after.get("status")
    traveler = after.get("travelerData") or {}
    guide = after.get("guideData") or {}

    if old == RequestStatus.PENDING.value and new == RequestStatus.GUIDE_SELECTED.value and after.get("guideId"):
        traveler_name = _name(traveler, "a traveler")
        return Notice(
            recipient_id=after["guideId"],
            recipient_is_traveler=False,
            push_title="New Travel Request!",
            push_body=f"You have a new request from {traveler_name}. Please respond.",
            email_flag="guideSelected",
            email_subject="You Have a New Travel Request on Let's Travel Together",
            email_html=(
                "<p>Hi {recipient},</p>"
                f"<p>You have received a new travel request from {html.escape(traveler_name)}.</p>"
                "<p>Please log in to your dashboard to review the details and respond.</p>"
                + SIGNATURE
            ),
        )

    if old == RequestStatus.GUIDE_SELECTED.value and new == RequestStatus.CONFIRMED.value:
        guide_name = _name(guide, "your guide")
        return Notice(
            recipient_id=after["travelerId"],
            recipient_is_traveler=True,
            push_title="Your Guide has Confirmed!",
            push_body=f"Your booking with {guide_name} is confirmed. Please proceed with payment.",
            email_flag="travelerConfirmed",
            email_subject="Your Travel Request is Confirmed!",
            email_html=(
                "<p>Hi {recipient},</p>"
                f"<p>Great news! Your request has been confirmed by {html.escape(guide_name)}.</p>"
                "<p>Please complete the payment to finalize your booking.</p>"
                + SIGNATURE
            ),
            email_to=traveler.get("email"),
        )

    if old == RequestStatus.GUIDE_SELECTED.value and new == RequestStatus.PENDING.value:
        # No email on decline, push is enough
        guide_name = _name(before.get("guideData"), "The selected guide")
        return Notice(
            recipient_id=after["travelerId"],
            recipient_is_traveler=True,
            push_title="Guide Unavailable",
            push_body=f"{guide_name} was unable to accept your request. Please find another guide.",
        )

    if old == RequestStatus.PAYMENT_PENDING.value and new == RequestStatus.PAID.value and after.get("tripPin"):
        guide_name = _name(guide, "your guide")
        return Notice(
            recipient_id=after["travelerId"],
            recipient_is_traveler=True,
            email_flag="travelerPaid",
            email_subject="Payment Received - Your Booking is Finalized!",
            email_html=(
                "<p>Hi {recipient},</p>"
                f"<p>We have received your payment. Your booking with {html.escape(guide_name)} "
                "is now finalized and secure.</p>"
                f"<p>Your Trip PIN is: <strong>{html.escape(after['tripPin'])}</strong>. "
                "You will need to provide this to your guide to start the service.</p>"
                "<p>We wish you a safe and pleasant journey!</p>"
                + SIGNATURE
            ),
            email_to=traveler.get("email"),
        )

    return None


class NotificationDispatcher:
    """Sends push and email for request lifecycle transitions."""

    def __init__(self, store: DocumentStore, mailer: Mailer, push: PushSender):
        self.store = store
        self.mailer = mailer
        self.push = push

    async def handle_request_updated(self, change: ChangeEvent):
        """Change-feed handler for travelRequests updates."""
        if change.before is None or change.after is None:
            return
        notice = build_notice(change.before, change.after)
        if notice is None:
            return

        recipient = await self.store.get("users", notice.recipient_id)
        if recipient is None:
            logger.info(f"User document {notice.recipient_id} not found; nothing sent.")
            return

        if notice.email_flag:
            await self._send_email_once(change.doc_id, change.after, notice, recipient)
        if notice.push_title:
            await self._send_push(notice, recipient)

    async def _send_email_once(self, request_id: str, after: dict, notice: Notice, recipient: dict):
        to = notice.email_to or recipient.get("email")
        if not to:
            logger.info(f"No email address for {notice.recipient_id}; email skipped.")
            return

        expected_status = after.get("status")
        expected_guide = after.get("guideId")

        def claim(doc: dict) -> Optional[dict]:
            if doc.get("status") != expected_status or doc.get("guideId") != expected_guide:
                return None
            if (doc.get("emailNotified") or {}).get(notice.email_flag):
                return None
            return {f"emailNotified.{notice.email_flag}": True}

        claimed = await self.store.transaction(TRAVEL_REQUESTS, request_id, claim)
        if claimed is None:
            logger.info(f"Email '{notice.email_flag}' for request {request_id} already handled.")
            return

        name = html.escape(recipient.get("name") or "there")
        await self.mailer.send(to, notice.email_subject, notice.email_html.replace("{recipient}", name))

    async def _send_push(self, notice: Notice, recipient: dict):
        tokens = recipient.get("fcmTokens") or []
        if not tokens:
            logger.info(f"User {notice.recipient_id} has no push tokens.")
            return

        link = "/traveler/my-bookings" if notice.recipient_is_traveler else "/guide/dashboard"
        logger.info(f"Sending push notification to {len(tokens)} tokens for user {notice.recipient_id}.")
        result = await self.push.send(tokens, notice.push_title, notice.push_body, link)

        if result.stale_tokens:
            await self.store.update("users", notice.recipient_id, {
                "fcmTokens": ArrayRemove(*result.stale_tokens),
            })
            logger.info(f"Pruned {len(result.stale_tokens)} stale push tokens for {notice.recipient_id}.")
