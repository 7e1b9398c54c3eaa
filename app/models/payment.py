"""
Payment gateway models - Razorpay webhook events and checkout callbacks.
"""
from pydantic import BaseModel, Field
from typing import Optional, Any
from enum import Enum


PAYMENT_EVENTS = "payment_events"

# Webhook events that settle a booking
SETTLING_EVENTS = ("payment.captured", "order.paid")


class EventStatus(str, Enum):
    """Processing outcome recorded on a stored webhook event."""
    RECEIVED = "received"
    PROCESSED = "processed"
    IGNORED = "ignored"
    FAILED = "failed"


class PaymentEntity(BaseModel):
    id: Optional[str] = None
    order_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)


class OrderEntity(BaseModel):
    id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)


class _PaymentWrapper(BaseModel):
    entity: PaymentEntity = Field(default_factory=PaymentEntity)


class _OrderWrapper(BaseModel):
    entity: OrderEntity = Field(default_factory=OrderEntity)


class WebhookPayload(BaseModel):
    payment: _PaymentWrapper = Field(default_factory=_PaymentWrapper)
    order: Optional[_OrderWrapper] = None


class WebhookEvent(BaseModel):
    """A Razorpay webhook body."""
    event: str
    payload: WebhookPayload = Field(default_factory=WebhookPayload)

    @property
    def payment(self) -> PaymentEntity:
        return self.payload.payment.entity

    @property
    def order(self) -> Optional[OrderEntity]:
        return self.payload.order.entity if self.payload.order else None

    def is_settling(self) -> bool:
        return self.event in SETTLING_EVENTS

    def request_id(self) -> Optional[str]:
        """Booking id carried in the order notes, falling back to the payment notes."""
        if self.order and self.order.notes.get("requestId"):
            return self.order.notes["requestId"]
        return self.payment.notes.get("requestId")

    def order_id(self) -> Optional[str]:
        return self.payment.order_id or (self.order.id if self.order else None)


class PaymentOrder(BaseModel):
    """Order details handed to the client checkout."""
    id: str
    key: str
    amount: int
    currency: str


class CheckoutVerification(BaseModel):
    """Callback values returned by Razorpay checkout."""
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
