"""
Payment routes - the Razorpay webhook and the checkout success callback.
"""
from fastapi import APIRouter, Depends, Request

from .deps import get_actor, get_services
from ..container import Services
from ..models.payment import CheckoutVerification
from ..services.sessions import Actor


router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/payment-verification")
async def payment_webhook(request: Request, services: Services = Depends(get_services)):
    """
    Razorpay webhook endpoint.

    The raw body is verified before parsing; the event is stored and settled
    asynchronously from the change feed, so a 200 only means "recorded".
    """
    raw_body = await request.body()
    await services.reconciler.receive_webhook(
        raw_body,
        request.headers.get("x-razorpay-signature"),
        request.headers.get("x-razorpay-event-id"),
    )
    return {"status": "ok"}


@router.post("/payments/checkout-verification")
async def verify_checkout(body: CheckoutVerification, actor: Actor = Depends(get_actor),
                          services: Services = Depends(get_services)):
    return await services.reconciler.verify_checkout(actor.uid, body)
