"""
Travel request models - one booking attempt and its wizard sub-documents.
"""
from pydantic import Field
from typing import Optional, Literal
from datetime import datetime
from enum import Enum

from .base import DocumentModel


TRAVEL_REQUESTS = "travelRequests"


class RequestStatus(str, Enum):
    """Lifecycle status of a travel request."""
    DRAFT = "draft"
    PENDING = "pending"
    GUIDE_SELECTED = "guide-selected"
    CONFIRMED = "confirmed"
    PAYMENT_PENDING = "payment-pending"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Purpose(str, Enum):
    EDUCATION = "education"
    HOSPITAL = "hospital"
    SHOPPING = "shopping"


class PlaceAddress(DocumentModel):
    street: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None


class ShoppingArea(DocumentModel):
    area: Optional[str] = None
    district: Optional[str] = None


class BookingDetails(DocumentModel):
    """Hospital appointment details."""
    is_appointment_prebooked: Optional[Literal["yes", "no"]] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    visiting_time: Optional[str] = None


class SubPurposeData(DocumentModel):
    # Education
    sub_purpose: Optional[Literal["scribe", "admission"]] = None
    college_name: Optional[str] = None
    college_address: Optional[PlaceAddress] = None
    scribe_subjects: Optional[list[str]] = None

    # Hospital
    hospital_name: Optional[str] = None
    hospital_address: Optional[PlaceAddress] = None
    booking_details: Optional[BookingDetails] = None

    # Shopping
    shop_type: Optional[Literal["particular", "area"]] = None
    shop_name: Optional[str] = None
    shop_address: Optional[PlaceAddress] = None
    shopping_area: Optional[ShoppingArea] = None
    agree_not_to_carry: Optional[bool] = None


class PurposeData(DocumentModel):
    purpose: Optional[Purpose] = None
    sub_purpose_data: SubPurposeData = Field(default_factory=SubPurposeData)

    def destination_district(self) -> Optional[str]:
        """District of whichever sub-purpose address applies, first present wins."""
        sub = self.sub_purpose_data
        for place in (sub.college_address, sub.hospital_address, sub.shop_address, sub.shopping_area):
            if place is not None and place.district:
                return place.district
        return None

    def is_prebooked_hospital(self) -> bool:
        details = self.sub_purpose_data.booking_details
        return (
            self.purpose == Purpose.HOSPITAL
            and details is not None
            and details.is_appointment_prebooked == "yes"
        )


class VehicleInfo(DocumentModel):
    bus_name: Optional[str] = None
    bus_number: Optional[str] = None
    train_name: Optional[str] = None
    train_number: Optional[str] = None
    flight_number: Optional[str] = None


class TravelMediumData(DocumentModel):
    travel_medium: Optional[Literal["car", "bus", "train", "flight"]] = None
    is_ticket_prebooked: Optional[Literal["yes", "no"]] = None
    vehicle_info: Optional[VehicleInfo] = None
    time: Optional[str] = None


class HotelDetails(DocumentModel):
    name: Optional[str] = None
    room_number: Optional[str] = None


class PickupData(DocumentModel):
    pickup_type: Optional[Literal["destination", "hotel", "bus_stand", "railway_station", "airport"]] = None
    hotel_details: Optional[HotelDetails] = None
    station_name: Optional[str] = None
    pickup_time: Optional[str] = None


class PaymentDetails(DocumentModel):
    expected_amount: Optional[int] = None  # paise
    currency: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    processed_event_id: Optional[str] = None


class EmailNotified(DocumentModel):
    """At-most-once email flags, one per notifying transition."""
    guide_selected: bool = False
    traveler_confirmed: bool = False
    traveler_paid: bool = False


class PartySnapshot(DocumentModel):
    """Traveler or guide details copied onto the request when it changes hands."""
    name: Optional[str] = None
    email: Optional[str] = None
    disability: Optional[dict] = None


class TravelRequest(DocumentModel):
    """A single booking attempt by a traveler."""
    id: str
    traveler_id: str
    guide_id: Optional[str] = None
    status: RequestStatus = RequestStatus.DRAFT

    step1_complete: bool = False
    step2_complete: bool = False
    step3_complete: bool = False
    step4_complete: bool = False

    purpose_data: Optional[PurposeData] = None
    requested_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    travel_medium_data: Optional[TravelMediumData] = None
    pickup_data: Optional[PickupData] = None

    estimated_cost: Optional[float] = None
    trip_pin: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    payment_details: PaymentDetails = Field(default_factory=PaymentDetails)
    email_notified: EmailNotified = Field(default_factory=EmailNotified)

    traveler_data: Optional[PartySnapshot] = None
    guide_data: Optional[PartySnapshot] = None

    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def completed_steps(self) -> list[bool]:
        return [self.step1_complete, self.step2_complete, self.step3_complete, self.step4_complete]

    def all_steps_complete(self) -> bool:
        return all(self.completed_steps())

    def to_display_dict(self, include_pin: bool = True) -> dict:
        """Convert to the API response shape. Guides get it without the trip PIN."""
        data = self.to_document()
        if not include_pin:
            data.pop("tripPin", None)
        return data
