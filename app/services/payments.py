"""
Payment Service.
Razorpay order API access, webhook signature checks, and reconciliation of
captured payments against travel requests.
"""
import hashlib
import hmac
import json
import logging
import secrets
from typing import Optional

import httpx
from pydantic import ValidationError

from .change_feed import ChangeEvent
from .document_store import AlreadyExistsError, DocumentStore, SERVER_TIMESTAMP
from ..errors import (
    ConfigurationError,
    ExternalServiceError,
    NotFoundError,
    PaymentError,
    PermissionDeniedError,
)
from ..models.payment import (
    PAYMENT_EVENTS,
    CheckoutVerification,
    EventStatus,
    WebhookEvent,
)
from ..models.travel_request import TRAVEL_REQUESTS, RequestStatus, TravelRequest

logger = logging.getLogger(__name__)


def compute_signature(message: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of a message."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(message: bytes, signature: Optional[str], secret: str) -> bool:
    """Check a Razorpay signature header against the message."""
    if not signature:
        return False
    expected = compute_signature(message, secret).encode("ascii")
    return hmac.compare_digest(expected, signature.encode("utf-8", "surrogateescape"))


def generate_trip_pin() -> str:
    """Four-digit PIN the traveler gives the guide at the start of the service."""
    return str(1000 + secrets.randbelow(9000))


class RazorpayClient:
    """Minimal async client for the Razorpay Orders API."""

    def __init__(self, key_id: str, key_secret: str, base_url: str = "https://api.razorpay.com/v1",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not (self.key_id and self.key_secret):
            raise ConfigurationError("Razorpay keys are not configured")
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=15.0,
            transport=self._transport,
        )

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        async with self._client() as client:
            try:
                response = await client.post("/orders", json={
                    "amount": amount,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                })
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as e:
                logger.error(f"Razorpay order creation failed for {receipt}: {e}")
                raise ExternalServiceError("Could not create payment order.") from e

    async def fetch_order(self, order_id: str) -> dict:
        async with self._client() as client:
            try:
                response = await client.get(f"/orders/{order_id}")
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as e:
                logger.warning(f"Razorpay order fetch failed for {order_id}: {e}")
                raise ExternalServiceError("Could not fetch payment order.") from e


def settlement_changes(
    doc: dict,
    order_id: str,
    payment_id: Optional[str],
    amount: Optional[int],
    currency: Optional[str],
    event_id: Optional[str] = None,
) -> Optional[dict]:
    """
    Changes that mark a request paid, or None when it already is.
    Raises PaymentError on any mismatch so the caller's transaction aborts.
    """
    request = TravelRequest.model_validate(doc)

    if request.status == RequestStatus.PAID and request.trip_pin:
        return None
    if request.status != RequestStatus.PAYMENT_PENDING:
        raise PaymentError(
            f"Request {request.id} is not in 'payment-pending' state. Current state: {request.status.value}."
        )
    if request.razorpay_order_id != order_id:
        raise PaymentError(f"Razorpay order id mismatch for request {request.id}.")

    expected = request.payment_details
    if amount is None or currency is None:
        raise PaymentError(f"Payment for request {request.id} carries no amount or currency.")
    if expected.expected_amount != amount:
        raise PaymentError(
            f"Amount mismatch for request {request.id}. Expected {expected.expected_amount}, got {amount}."
        )
    if expected.currency != currency:
        raise PaymentError(
            f"Currency mismatch for request {request.id}. Expected {expected.currency}, got {currency}."
        )

    changes = {
        "status": RequestStatus.PAID.value,
        "paidAt": SERVER_TIMESTAMP,
        "tripPin": generate_trip_pin(),
    }
    if payment_id:
        changes["paymentDetails.razorpayPaymentId"] = payment_id
    if event_id:
        changes["paymentDetails.processedEventId"] = event_id
    return changes


class PaymentReconciler:
    """Verifies gateway callbacks and settles the matching travel request."""

    def __init__(self, store: DocumentStore, webhook_secret: str, key_secret: str):
        self.store = store
        self.webhook_secret = webhook_secret
        self.key_secret = key_secret

    async def receive_webhook(self, raw_body: bytes, signature: Optional[str],
                              event_id: Optional[str] = None) -> str:
        """
        Verify and record a webhook delivery.

        The stored event is processed by handle_event_created once the store
        publishes its creation.

        Returns:
            The payment event id
        """
        if not self.webhook_secret:
            logger.error("Webhook Error: Razorpay webhook secret is not configured.")
            raise ConfigurationError("Server configuration error")
        if not signature:
            logger.error("Webhook Error: Missing Razorpay signature")
            raise PaymentError("Missing signature")
        if not verify_signature(raw_body, signature, self.webhook_secret):
            logger.error("Webhook Error: Invalid Razorpay signature")
            raise PaymentError("Invalid signature")

        try:
            payload = json.loads(raw_body)
            event = WebhookEvent.model_validate(payload)
        except (ValueError, ValidationError) as e:
            logger.error(f"Webhook Error: Malformed body: {e}")
            raise PaymentError("Malformed payload")

        if event.is_settling() and not (event.request_id() and event.order_id()):
            logger.error("Webhook Error: Missing requestId or order_id in payment event")
            raise PaymentError("Missing requestId")

        try:
            event_id = await self.store.create(PAYMENT_EVENTS, {
                "event": event.event,
                "payload": payload.get("payload", {}),
                "status": EventStatus.RECEIVED.value,
                "receivedAt": SERVER_TIMESTAMP,
            }, doc_id=event_id)
        except AlreadyExistsError:
            logger.info(f"Webhook event {event_id} already recorded; ignoring redelivery.")
        return event_id

    async def handle_event_created(self, change: ChangeEvent):
        """Change-feed handler for new payment events."""
        await self.process_event(change.doc_id, change.after or {})

    async def process_event(self, event_id: str, event_doc: dict) -> EventStatus:
        """Settle the request referenced by a stored webhook event."""
        try:
            event = WebhookEvent.model_validate(event_doc)
        except ValidationError as e:
            return await self._record(event_id, EventStatus.FAILED, f"Unreadable event: {e}")

        if not event.is_settling():
            logger.info(f"[Processor] Ignoring event '{event.event}' ({event_id}).")
            return await self._record(event_id, EventStatus.IGNORED)

        request_id = event.request_id()
        order_id = event.order_id()
        if not request_id or not order_id:
            return await self._record(event_id, EventStatus.FAILED, "Missing requestId or order_id")

        payment = event.payment
        try:
            updated = await self.store.transaction(
                TRAVEL_REQUESTS,
                request_id,
                lambda doc: settlement_changes(
                    doc, order_id, payment.id,
                    amount=payment.amount, currency=payment.currency, event_id=event_id,
                ),
            )
        except (PaymentError, NotFoundError) as e:
            logger.error(f"[Processor] Event {event_id} left for manual reconciliation: {e}")
            return await self._record(event_id, EventStatus.FAILED, str(e))

        if updated is None:
            logger.info(f"[Processor] Request {request_id} is already paid. Ignoring duplicate event.")
        else:
            logger.info(f"[Processor] Payment settled for request {request_id}.")
        return await self._record(event_id, EventStatus.PROCESSED)

    async def _record(self, event_id: str, status: EventStatus, error: Optional[str] = None) -> EventStatus:
        changes = {"status": status.value, "processedAt": SERVER_TIMESTAMP}
        if error:
            changes["error"] = error
        await self.store.update(PAYMENT_EVENTS, event_id, changes)
        return status

    async def verify_checkout(self, traveler_id: str, verification: CheckoutVerification) -> dict:
        """Settle a request from the checkout success callback."""
        if not self.key_secret:
            raise ConfigurationError("Razorpay keys are not configured")

        message = f"{verification.razorpay_order_id}|{verification.razorpay_payment_id}".encode("utf-8")
        if not verify_signature(message, verification.razorpay_signature, self.key_secret):
            raise PaymentError("Invalid payment signature")

        matches = await self.store.query(TRAVEL_REQUESTS, {"razorpayOrderId": verification.razorpay_order_id})
        if not matches:
            raise NotFoundError("No matching travel request found for this order.")
        request_doc = matches[0]
        if request_doc.get("travelerId") != traveler_id:
            raise PermissionDeniedError()

        def settle(doc: dict) -> Optional[dict]:
            # The signature binds the order, whose amount was fixed at creation
            expected = TravelRequest.model_validate(doc).payment_details
            return settlement_changes(
                doc, verification.razorpay_order_id, verification.razorpay_payment_id,
                amount=expected.expected_amount, currency=expected.currency,
            )

        updated = await self.store.transaction(TRAVEL_REQUESTS, request_doc["id"], settle)
        if updated is None:
            return {"success": True, "message": "Payment already verified."}
        return {"success": True, "message": "Payment verified and booking confirmed."}
