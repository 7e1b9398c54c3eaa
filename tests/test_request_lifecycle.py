"""Tests for the travel request state machine."""
import json
from unittest.mock import AsyncMock

import pytest

from app.errors import (
    ExternalServiceError,
    InvalidTransitionError,
    PaymentError,
    PermissionDeniedError,
    StepValidationError,
)
from app.models.payment import PAYMENT_EVENTS, EventStatus
from app.models.travel_request import RequestStatus
from app.services.guide_matcher import GuideMatcher
from app.services.payments import PaymentReconciler, compute_signature
from app.services.request_lifecycle import LifecycleAction, RequestLifecycle, next_status


STEP_PAYLOADS = {
    1: {
        "purpose": "hospital",
        "subPurposeData": {
            "hospitalName": "Government General Hospital",
            "hospitalAddress": {"street": "Park Town", "district": "Chennai", "pincode": "600003"},
            "bookingDetails": {"isAppointmentPrebooked": "no", "visitingTime": "10:00"},
        },
    },
    2: {"requestedDate": "2026-11-20", "startTime": "09:00", "endTime": "13:00"},
    3: {"travelMedium": "car"},
    4: {"pickupType": "destination"},
}


@pytest.fixture
def razorpay():
    client = AsyncMock()
    client.key_id = "rzp_test_key"
    client.create_order.return_value = {"id": "order_1", "amount": 55000, "currency": "INR", "status": "created"}
    return client


@pytest.fixture
def lifecycle(store, razorpay):
    return RequestLifecycle(store, GuideMatcher(store), razorpay)


class TestTransitionTable:

    def test_allowed(self):
        assert next_status(RequestStatus.PENDING, LifecycleAction.SELECT_GUIDE) == RequestStatus.GUIDE_SELECTED
        assert next_status(RequestStatus.GUIDE_SELECTED, LifecycleAction.DECLINE) == RequestStatus.PENDING

    @pytest.mark.parametrize("status", [RequestStatus.COMPLETED, RequestStatus.CANCELLED])
    @pytest.mark.parametrize("action", list(LifecycleAction))
    def test_terminal_states_are_final(self, status, action):
        with pytest.raises(InvalidTransitionError):
            next_status(status, action)

    def test_payment_cannot_skip_confirmation(self):
        with pytest.raises(InvalidTransitionError):
            next_status(RequestStatus.GUIDE_SELECTED, LifecycleAction.START_PAYMENT)


class TestWizard:
    """Draft creation, step saving and submission."""

    @pytest.mark.asyncio
    async def test_full_wizard_then_submit(self, lifecycle, seed):
        traveler = await seed.traveler()
        draft = await lifecycle.create_draft(traveler)
        assert draft.status == RequestStatus.DRAFT
        assert draft.completed_steps() == [False, False, False, False]

        for step, payload in STEP_PAYLOADS.items():
            request = await lifecycle.save_step(traveler, draft.id, step, payload)
        assert request.all_steps_complete()

        submitted = await lifecycle.submit(traveler, draft.id)
        assert submitted.status == RequestStatus.PENDING
        assert submitted.estimated_cost == 550.0
        assert submitted.submitted_at is not None
        assert submitted.traveler_data.name == "Priya"

    @pytest.mark.asyncio
    async def test_guides_cannot_create_drafts(self, lifecycle, seed):
        guide = await seed.guide()
        with pytest.raises(PermissionDeniedError):
            await lifecycle.create_draft(guide)

    @pytest.mark.asyncio
    async def test_steps_in_order(self, lifecycle, seed):
        traveler = await seed.traveler()
        draft = await lifecycle.create_draft(traveler)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.save_step(traveler, draft.id, 2, STEP_PAYLOADS[2])

    @pytest.mark.asyncio
    async def test_invalid_step_reports_fields(self, lifecycle, seed):
        traveler = await seed.traveler()
        draft = await lifecycle.create_draft(traveler)
        with pytest.raises(StepValidationError) as exc:
            await lifecycle.save_step(traveler, draft.id, 1, {"purpose": "hospital"})
        assert any(e["path"] == "subPurposeData.hospitalName" for e in exc.value.errors)

    @pytest.mark.asyncio
    async def test_other_traveler_cannot_edit(self, lifecycle, seed):
        owner = await seed.traveler()
        other = await seed.traveler("traveler-2", name="Arun", gender="Male")
        draft = await lifecycle.create_draft(owner)
        with pytest.raises(PermissionDeniedError):
            await lifecycle.save_step(other, draft.id, 1, STEP_PAYLOADS[1])
        with pytest.raises(PermissionDeniedError):
            await lifecycle.get_request(other, draft.id)

    @pytest.mark.asyncio
    async def test_incomplete_draft_cannot_be_submitted(self, lifecycle, seed):
        traveler = await seed.traveler()
        draft = await lifecycle.create_draft(traveler)
        await lifecycle.save_step(traveler, draft.id, 1, STEP_PAYLOADS[1])
        with pytest.raises(InvalidTransitionError):
            await lifecycle.submit(traveler, draft.id)

    @pytest.mark.asyncio
    async def test_submitted_request_is_no_longer_editable(self, lifecycle, seed):
        traveler = await seed.traveler()
        request_id = await seed.request(status="pending")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.save_step(traveler, request_id, 1, STEP_PAYLOADS[1])
        with pytest.raises(InvalidTransitionError):
            await lifecycle.submit(traveler, request_id)


class TestGuideSelection:

    @pytest.mark.asyncio
    async def test_find_matches(self, lifecycle, seed):
        traveler = await seed.traveler()
        await seed.guide("guide-1")
        await seed.guide("guide-2", district="Madurai")
        request_id = await seed.request(status="pending")

        cards = await lifecycle.find_matches(traveler, request_id)
        assert [c["uid"] for c in cards] == ["guide-1"]

    @pytest.mark.asyncio
    async def test_select_matching_guide(self, lifecycle, seed):
        traveler = await seed.traveler()
        await seed.guide("guide-1")
        request_id = await seed.request(status="pending")

        request = await lifecycle.select_guide(traveler, request_id, "guide-1")
        assert request.status == RequestStatus.GUIDE_SELECTED
        assert request.guide_id == "guide-1"
        assert request.guide_data.name == "Lakshmi"

    @pytest.mark.asyncio
    async def test_ineligible_guide_is_rejected(self, lifecycle, seed, store):
        traveler = await seed.traveler()
        await seed.guide("guide-1", state="verification-pending")
        request_id = await seed.request(status="pending")

        with pytest.raises(InvalidTransitionError):
            await lifecycle.select_guide(traveler, request_id, "guide-1")
        doc = await store.get("travelRequests", request_id)
        assert doc["status"] == "pending"
        assert "guideId" not in doc


class TestGuideResponse:

    @pytest.mark.asyncio
    async def test_accept(self, lifecycle, seed):
        guide = await seed.guide()
        request_id = await seed.request(status="guide-selected", guideId="guide-1")

        request = await lifecycle.respond(guide, request_id, accept=True)
        assert request.status == RequestStatus.CONFIRMED
        assert request.accepted_at is not None

    @pytest.mark.asyncio
    async def test_decline_clears_guide(self, lifecycle, seed, store):
        guide = await seed.guide()
        request_id = await seed.request(
            status="guide-selected",
            guideId="guide-1",
            guideData={"name": "Lakshmi", "email": "lakshmi@example.com"},
            emailNotified={"guideSelected": True},
        )

        request = await lifecycle.respond(guide, request_id, accept=False)
        assert request.status == RequestStatus.PENDING
        doc = await store.get("travelRequests", request_id)
        assert "guideId" not in doc
        assert "guideData" not in doc
        assert doc["emailNotified"]["guideSelected"] is False

    @pytest.mark.asyncio
    async def test_only_assigned_guide_may_respond(self, lifecycle, seed):
        other = await seed.guide("guide-2", name="Meena")
        request_id = await seed.request(status="guide-selected", guideId="guide-1")
        with pytest.raises(PermissionDeniedError):
            await lifecycle.respond(other, request_id, accept=True)

    @pytest.mark.asyncio
    async def test_cannot_accept_twice(self, lifecycle, seed):
        guide = await seed.guide()
        request_id = await seed.request(status="confirmed", guideId="guide-1")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.respond(guide, request_id, accept=True)


class TestPaymentOrder:

    @pytest.mark.asyncio
    async def test_create_order(self, lifecycle, seed, store, razorpay):
        traveler = await seed.traveler()
        request_id = await seed.request(status="confirmed", guideId="guide-1")

        order = await lifecycle.create_payment_order(traveler, request_id)
        assert order.id == "order_1"
        assert order.amount == 55000
        assert order.key == "rzp_test_key"

        kwargs = razorpay.create_order.call_args.kwargs
        assert kwargs["amount"] == 55000
        assert kwargs["notes"] == {"requestId": request_id, "travelerId": "traveler-1"}

        doc = await store.get("travelRequests", request_id)
        assert doc["status"] == "payment-pending"
        assert doc["razorpayOrderId"] == "order_1"
        assert doc["paymentDetails"] == {"expectedAmount": 55000, "currency": "INR"}

    @pytest.mark.asyncio
    async def test_open_order_is_reused(self, lifecycle, seed, razorpay):
        traveler = await seed.traveler()
        request_id = await seed.request(
            status="payment-pending", guideId="guide-1", razorpayOrderId="order_1",
            paymentDetails={"expectedAmount": 55000, "currency": "INR"},
        )
        razorpay.fetch_order.return_value = {"id": "order_1", "amount": 55000, "currency": "INR", "status": "created"}

        order = await lifecycle.create_payment_order(traveler, request_id)
        assert order.id == "order_1"
        razorpay.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_confirmation(self, lifecycle, seed, razorpay):
        traveler = await seed.traveler()
        request_id = await seed.request(status="guide-selected", guideId="guide-1")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.create_payment_order(traveler, request_id)
        razorpay.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_cost_is_refused(self, lifecycle, seed):
        traveler = await seed.traveler()
        request_id = await seed.request(status="confirmed", guideId="guide-1", endTime="09:00")
        with pytest.raises(PaymentError):
            await lifecycle.create_payment_order(traveler, request_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order_status", ["attempted", "paid"])
    async def test_order_with_payment_attempt_is_kept(self, lifecycle, seed, store, razorpay, order_status):
        traveler = await seed.traveler()
        request_id = await seed.request(
            request_id="req-1", status="payment-pending", guideId="guide-1", razorpayOrderId="order_1",
            paymentDetails={"expectedAmount": 55000, "currency": "INR"},
        )
        razorpay.fetch_order.return_value = {"id": "order_1", "amount": 55000, "currency": "INR",
                                             "status": order_status}

        with pytest.raises(InvalidTransitionError, match="already in progress"):
            await lifecycle.create_payment_order(traveler, request_id)
        razorpay.create_order.assert_not_called()

        # The late webhook for the original order still settles the request
        reconciler = PaymentReconciler(store, "whsec_test", "key_secret_test")
        body = json.dumps({
            "event": "payment.captured",
            "payload": {"payment": {"entity": {
                "id": "pay_1", "order_id": "order_1", "amount": 55000, "currency": "INR",
                "notes": {"requestId": request_id},
            }}},
        }).encode("utf-8")
        event_id = await reconciler.receive_webhook(body, compute_signature(body, "whsec_test"), "evt_1")
        assert await reconciler.process_event(event_id, await store.get(PAYMENT_EVENTS, event_id)) \
            == EventStatus.PROCESSED

        doc = await store.get("travelRequests", request_id)
        assert doc["status"] == "paid"
        assert doc["razorpayOrderId"] == "order_1"

    @pytest.mark.asyncio
    async def test_unreadable_order_is_replaced(self, lifecycle, seed, store, razorpay):
        traveler = await seed.traveler()
        request_id = await seed.request(
            status="payment-pending", guideId="guide-1", razorpayOrderId="order_0",
            paymentDetails={"expectedAmount": 55000, "currency": "INR"},
        )
        razorpay.fetch_order.side_effect = ExternalServiceError("Could not fetch payment order.")

        order = await lifecycle.create_payment_order(traveler, request_id)
        assert order.id == "order_1"
        assert (await store.get("travelRequests", request_id))["razorpayOrderId"] == "order_1"


class TestGuideDashboard:

    @pytest.mark.asyncio
    async def test_buckets(self, lifecycle, seed):
        guide = await seed.guide()
        await seed.request(request_id="r-selected", status="guide-selected", guideId="guide-1")
        await seed.request(request_id="r-paying", status="payment-pending", guideId="guide-1")
        await seed.request(request_id="r-paid", status="paid", guideId="guide-1", tripPin="4821")
        await seed.request(request_id="r-done", status="completed", guideId="guide-1")
        await seed.request(request_id="r-other", status="paid", guideId="guide-2")

        buckets = await lifecycle.guide_requests(guide)
        assert sorted(r.id for r in buckets["inProgress"]) == ["r-paying", "r-selected"]
        assert [r.id for r in buckets["upcoming"]] == ["r-paid"]
        assert [r.id for r in buckets["past"]] == ["r-done"]

    @pytest.mark.asyncio
    async def test_trip_pin(self, lifecycle, seed):
        guide = await seed.guide()
        request_id = await seed.request(status="paid", guideId="guide-1", tripPin="4821")
        assert await lifecycle.verify_trip_pin(guide, request_id, "4821") is True
        assert await lifecycle.verify_trip_pin(guide, request_id, "1234") is False

    @pytest.mark.asyncio
    async def test_trip_pin_before_payment(self, lifecycle, seed):
        guide = await seed.guide()
        request_id = await seed.request(status="confirmed", guideId="guide-1")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.verify_trip_pin(guide, request_id, "4821")

    @pytest.mark.asyncio
    async def test_trip_pin_with_non_ascii_digits(self, lifecycle, seed):
        guide = await seed.guide()
        request_id = await seed.request(status="paid", guideId="guide-1", tripPin="1234")
        assert await lifecycle.verify_trip_pin(guide, request_id, "١٢٣٤") is False


class TestAdminClose:

    @pytest.mark.asyncio
    async def test_complete_paid_request(self, lifecycle, seed):
        admin = await seed.admin()
        request_id = await seed.request(status="paid", guideId="guide-1", tripPin="4821")
        request = await lifecycle.close(admin, request_id, RequestStatus.COMPLETED)
        assert request.status == RequestStatus.COMPLETED
        assert request.completed_at is not None

    @pytest.mark.asyncio
    async def test_pending_request_cannot_complete(self, lifecycle, seed):
        admin = await seed.admin()
        request_id = await seed.request(status="pending")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.close(admin, request_id, RequestStatus.COMPLETED)
        request = await lifecycle.close(admin, request_id, RequestStatus.CANCELLED)
        assert request.status == RequestStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_requires_admin(self, lifecycle, seed):
        traveler = await seed.traveler()
        request_id = await seed.request(status="paid")
        with pytest.raises(PermissionDeniedError):
            await lifecycle.close(traveler, request_id, RequestStatus.CANCELLED)
