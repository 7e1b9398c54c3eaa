"""Data models for the booking backend."""
from .user import User, Role, Gender, GuideProfile, GuideWithProfile, OnboardingState
from .travel_request import TravelRequest, RequestStatus, Purpose, PurposeData
from .form_schema import STEP_FORMS, validate_step
from .payment import WebhookEvent, EventStatus, PaymentOrder, CheckoutVerification

__all__ = [
    "User",
    "Role",
    "Gender",
    "GuideProfile",
    "GuideWithProfile",
    "OnboardingState",
    "TravelRequest",
    "RequestStatus",
    "Purpose",
    "PurposeData",
    "STEP_FORMS",
    "validate_step",
    "WebhookEvent",
    "EventStatus",
    "PaymentOrder",
    "CheckoutVerification",
]
