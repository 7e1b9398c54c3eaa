"""
Request Lifecycle - the booking state machine.

Every status change goes through the transition table and is checked against
the acting user inside a single-document transaction. Notifications are not
sent from here; they follow from the change feed.
"""
import hmac
import logging
from enum import Enum
from typing import Callable

from .cost_estimator import describe_cost, estimate_request_cost, to_minor_units
from .document_store import DELETE_FIELD, SERVER_TIMESTAMP, DocumentStore
from .guide_matcher import GuideMatcher, to_match_card
from .payments import RazorpayClient
from .sessions import Actor
from ..errors import (
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    PaymentError,
    PermissionDeniedError,
    StepValidationError,
)
from ..models.form_schema import validate_step
from ..models.payment import PaymentOrder
from ..models.travel_request import TRAVEL_REQUESTS, RequestStatus, TravelRequest
from ..models.user import Role, User

logger = logging.getLogger(__name__)


class LifecycleAction(str, Enum):
    """Actions that can move a request between states."""
    SAVE_STEP = "save_step"
    SUBMIT = "submit"
    SELECT_GUIDE = "select_guide"
    ACCEPT = "accept"
    DECLINE = "decline"
    START_PAYMENT = "start_payment"
    SETTLE = "settle"
    COMPLETE = "complete"
    CANCEL = "cancel"


S = RequestStatus
A = LifecycleAction

TRANSITIONS: dict[RequestStatus, dict[LifecycleAction, RequestStatus]] = {
    S.DRAFT: {A.SAVE_STEP: S.DRAFT, A.SUBMIT: S.PENDING, A.CANCEL: S.CANCELLED},
    S.PENDING: {A.SELECT_GUIDE: S.GUIDE_SELECTED, A.CANCEL: S.CANCELLED},
    S.GUIDE_SELECTED: {A.ACCEPT: S.CONFIRMED, A.DECLINE: S.PENDING, A.CANCEL: S.CANCELLED},
    S.CONFIRMED: {A.START_PAYMENT: S.PAYMENT_PENDING, A.CANCEL: S.CANCELLED},
    S.PAYMENT_PENDING: {A.START_PAYMENT: S.PAYMENT_PENDING, A.SETTLE: S.PAID, A.CANCEL: S.CANCELLED},
    S.PAID: {A.COMPLETE: S.COMPLETED, A.CANCEL: S.CANCELLED},
    S.COMPLETED: {},
    S.CANCELLED: {},
}

GUIDE_IN_PROGRESS = (S.GUIDE_SELECTED, S.CONFIRMED, S.PAYMENT_PENDING)

# Razorpay order states that already carry a payment attempt
ORDER_IN_FLIGHT = ("attempted", "paid")


def next_status(current: RequestStatus, action: LifecycleAction) -> RequestStatus:
    """Target status of an action, or InvalidTransitionError."""
    target = TRANSITIONS.get(current, {}).get(action)
    if target is None:
        raise InvalidTransitionError(
            f"Cannot {action.value.replace('_', ' ')} a request that is {current.value}."
        )
    return target


class RequestLifecycle:
    """Traveler, guide and admin actions on travel requests."""

    def __init__(self, store: DocumentStore, matcher: GuideMatcher, razorpay: RazorpayClient,
                 currency: str = "INR"):
        self.store = store
        self.matcher = matcher
        self.razorpay = razorpay
        self.currency = currency

    # Loading and access checks

    async def _load(self, request_id: str) -> TravelRequest:
        doc = await self.store.get(TRAVEL_REQUESTS, request_id)
        if doc is None:
            raise NotFoundError("Request not found.")
        return TravelRequest.model_validate(doc)

    async def _load_user(self, uid: str) -> User:
        doc = await self.store.get("users", uid)
        if doc is None:
            raise NotFoundError("User not found.")
        return User.model_validate(doc)

    @staticmethod
    def _require_traveler_owner(actor: Actor, request: TravelRequest):
        if actor.user.role != Role.TRAVELER or request.traveler_id != actor.uid:
            raise PermissionDeniedError()

    @staticmethod
    def _require_assigned_guide(actor: Actor, request: TravelRequest):
        if actor.user.role != Role.GUIDE or request.guide_id != actor.uid:
            raise PermissionDeniedError()

    async def _transition(
        self,
        request_id: str,
        action: LifecycleAction,
        check: Callable[[TravelRequest], None],
        changes: Callable[[TravelRequest], dict],
    ) -> TravelRequest:
        """Re-check and apply a transition atomically against the stored document."""

        def apply(doc: dict) -> dict:
            current = TravelRequest.model_validate(doc)
            check(current)
            target = next_status(current.status, action)
            return {"status": target.value, **changes(current)}

        updated = await self.store.transaction(TRAVEL_REQUESTS, request_id, apply)
        request = TravelRequest.model_validate(updated)
        logger.info(f"Request {request_id}: {action.value} -> {request.status.value}")
        return request

    async def get_request(self, actor: Actor, request_id: str) -> TravelRequest:
        """A request visible to its traveler, its assigned guide, or an admin."""
        request = await self._load(request_id)
        if actor.is_admin or request.traveler_id == actor.uid or request.guide_id == actor.uid:
            return request
        raise PermissionDeniedError()

    # Traveler actions

    async def create_draft(self, actor: Actor) -> TravelRequest:
        if actor.user.role != Role.TRAVELER:
            raise PermissionDeniedError()

        request_id = await self.store.create(TRAVEL_REQUESTS, {
            "travelerId": actor.uid,
            "status": RequestStatus.DRAFT.value,
            "step1Complete": False,
            "step2Complete": False,
            "step3Complete": False,
            "step4Complete": False,
            "createdAt": SERVER_TIMESTAMP,
        })
        logger.info(f"Draft request {request_id} created for traveler {actor.uid}")
        return await self._load(request_id)

    async def list_for_traveler(self, actor: Actor) -> list[TravelRequest]:
        docs = await self.store.query(TRAVEL_REQUESTS, {"travelerId": actor.uid})
        requests = [TravelRequest.model_validate(doc) for doc in docs]
        return sorted(requests, key=lambda r: r.created_at.isoformat() if r.created_at else "", reverse=True)

    async def save_step(self, actor: Actor, request_id: str, step: int, payload: dict) -> TravelRequest:
        """Validate and store one wizard step. Earlier steps must already be complete."""
        form, issues = validate_step(step, payload)
        if form is None:
            raise StepValidationError(f"Step {step} is incomplete.", issues)

        def check(current: TravelRequest):
            self._require_traveler_owner(actor, current)
            if not all(current.completed_steps()[:step - 1]):
                raise InvalidTransitionError(f"Complete step {step - 1} before step {step}.")

        return await self._transition(request_id, A.SAVE_STEP, check, lambda _: form.to_changes())

    async def cost_preview(self, actor: Actor, request_id: str) -> dict:
        request = await self.get_request(actor, request_id)
        preview = describe_cost(request)
        if request.estimated_cost is not None:
            preview["estimatedCost"] = request.estimated_cost
        return preview

    async def submit(self, actor: Actor, request_id: str) -> TravelRequest:
        """Send a finished draft out for matching."""
        traveler = await self._load_user(actor.uid)

        def check(current: TravelRequest):
            self._require_traveler_owner(actor, current)
            if current.status == S.DRAFT and not current.all_steps_complete():
                raise InvalidTransitionError("All four steps must be complete before submitting.")

        def changes(current: TravelRequest) -> dict:
            return {
                "estimatedCost": estimate_request_cost(current),
                "submittedAt": SERVER_TIMESTAMP,
                "travelerData": {
                    "name": traveler.name,
                    "email": traveler.email,
                    "disability": traveler.disability.to_document() if traveler.disability else None,
                },
            }

        return await self._transition(request_id, A.SUBMIT, check, changes)

    async def find_matches(self, actor: Actor, request_id: str) -> list[dict]:
        request = await self._load(request_id)
        self._require_traveler_owner(actor, request)
        if request.status != S.PENDING:
            raise InvalidTransitionError("Guides can only be matched for a pending request.")
        traveler = await self._load_user(request.traveler_id)
        return [to_match_card(guide) for guide in await self.matcher.find_matches(request, traveler)]

    async def select_guide(self, actor: Actor, request_id: str, guide_id: str) -> TravelRequest:
        request = await self._load(request_id)
        self._require_traveler_owner(actor, request)
        traveler = await self._load_user(request.traveler_id)
        if not await self.matcher.is_match(request, traveler, guide_id):
            raise InvalidTransitionError("This guide is not available for your request.")
        guide = await self._load_user(guide_id)

        def check(current: TravelRequest):
            self._require_traveler_owner(actor, current)

        return await self._transition(request_id, A.SELECT_GUIDE, check, lambda _: {
            "guideId": guide_id,
            "guideData": {"name": guide.name, "email": guide.email},
        })

    async def create_payment_order(self, actor: Actor, request_id: str) -> PaymentOrder:
        """Create (or reuse) the gateway order for a confirmed request."""
        request = await self._load(request_id)
        self._require_traveler_owner(actor, request)
        next_status(request.status, A.START_PAYMENT)

        order = None
        if request.razorpay_order_id:
            try:
                existing = await self.razorpay.fetch_order(request.razorpay_order_id)
            except ExternalServiceError:
                logger.warning(f"Existing order {request.razorpay_order_id} unreadable; creating a new one.")
                existing = {}
            status = existing.get("status")
            if status in ORDER_IN_FLIGHT:
                raise InvalidTransitionError("Payment for this request is already in progress.")
            if status == "created":
                order = existing

        if order is None:
            amount = estimate_request_cost(request)
            if amount <= 0:
                raise PaymentError("Calculated amount must be positive.")
            order = await self.razorpay.create_order(
                amount=to_minor_units(amount),
                currency=self.currency,
                receipt=request_id,
                notes={"requestId": request_id, "travelerId": request.traveler_id},
            )

        def check(current: TravelRequest):
            self._require_traveler_owner(actor, current)

        await self._transition(request_id, A.START_PAYMENT, check, lambda _: {
            "razorpayOrderId": order["id"],
            "paymentDetails.expectedAmount": order["amount"],
            "paymentDetails.currency": order["currency"],
        })
        return PaymentOrder(id=order["id"], key=self.razorpay.key_id,
                            amount=order["amount"], currency=order["currency"])

    # Guide actions

    async def respond(self, actor: Actor, request_id: str, accept: bool) -> TravelRequest:
        """The assigned guide accepts or declines."""

        def check(current: TravelRequest):
            self._require_assigned_guide(actor, current)

        if accept:
            return await self._transition(request_id, A.ACCEPT, check, lambda _: {
                "acceptedAt": SERVER_TIMESTAMP,
            })

        return await self._transition(request_id, A.DECLINE, check, lambda _: {
            "guideId": DELETE_FIELD,
            "guideData": DELETE_FIELD,
            "emailNotified.guideSelected": False,
        })

    async def guide_requests(self, actor: Actor) -> dict:
        """Requests assigned to a guide, bucketed for the dashboard."""
        if actor.user.role != Role.GUIDE:
            raise PermissionDeniedError()
        docs = await self.store.query(TRAVEL_REQUESTS, {"guideId": actor.uid})
        requests = [TravelRequest.model_validate(doc) for doc in docs]
        return {
            "inProgress": [r for r in requests if r.status in GUIDE_IN_PROGRESS],
            "upcoming": [r for r in requests if r.status == S.PAID],
            "past": [r for r in requests if r.status == S.COMPLETED],
        }

    async def verify_trip_pin(self, actor: Actor, request_id: str, pin: str) -> bool:
        """Check the PIN the traveler hands the guide at the start of the service."""
        request = await self._load(request_id)
        self._require_assigned_guide(actor, request)
        if request.status != S.PAID or not request.trip_pin:
            raise InvalidTransitionError("This booking has not been paid yet.")
        return hmac.compare_digest(request.trip_pin.encode("utf-8"), pin.strip().encode("utf-8"))

    # Admin actions

    async def close(self, actor: Actor, request_id: str, status: RequestStatus) -> TravelRequest:
        """Move a request to a terminal state."""
        if not actor.is_admin:
            raise PermissionDeniedError()
        actions = {S.COMPLETED: A.COMPLETE, S.CANCELLED: A.CANCEL}
        if status not in actions:
            raise InvalidTransitionError(f"{status.value} is not a terminal status.")

        field = "completedAt" if status == S.COMPLETED else "cancelledAt"
        return await self._transition(request_id, actions[status], lambda _: None, lambda _: {
            field: SERVER_TIMESTAMP,
        })

    async def delete_request(self, actor: Actor, request_id: str):
        if not actor.is_admin:
            raise PermissionDeniedError()
        if not await self.store.delete(TRAVEL_REQUESTS, request_id):
            raise NotFoundError("Request not found.")
        logger.info(f"Request {request_id} deleted by admin {actor.uid}")
