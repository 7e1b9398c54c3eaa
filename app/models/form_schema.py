"""
Booking Wizard Form Schemas - one form per wizard step.
Each form validates its own payload and turns it into a document update.
"""
from pydantic import Field, ValidationError
from typing import Optional, Literal
from datetime import date

from .base import DocumentModel
from .reference_data import SCRIBE_SUBJECT_OPTIONS
from .travel_request import (
    Purpose,
    SubPurposeData,
    VehicleInfo,
    HotelDetails,
)


TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

STATION_PICKUPS = ("bus_stand", "railway_station", "airport")


def _issue(path: str, message: str) -> dict:
    return {"path": path, "message": message}


class Step1Form(DocumentModel):
    """Step 1 - purpose of the trip and where the traveler is going."""
    purpose: Purpose
    sub_purpose_data: SubPurposeData = Field(default_factory=SubPurposeData)

    def get_issues(self) -> list[dict]:
        sub = self.sub_purpose_data
        issues = []

        if self.purpose == Purpose.EDUCATION:
            if not sub.sub_purpose:
                issues.append(_issue("subPurposeData.subPurpose", "Please select a support type."))
            else:
                address = sub.college_address
                if not sub.college_name:
                    issues.append(_issue("subPurposeData.collegeName", "College name is required."))
                if not (address and address.street):
                    issues.append(_issue("subPurposeData.collegeAddress.street", "Street address is required."))
                if not (address and address.district):
                    issues.append(_issue("subPurposeData.collegeAddress.district", "District is required."))
                if not (address and address.pincode):
                    issues.append(_issue("subPurposeData.collegeAddress.pincode", "Pincode is required."))
            if sub.sub_purpose == "scribe":
                if not sub.scribe_subjects:
                    issues.append(_issue("subPurposeData.scribeSubjects", "Please select at least one subject."))
                else:
                    unknown = [s for s in sub.scribe_subjects if s not in SCRIBE_SUBJECT_OPTIONS]
                    if unknown:
                        issues.append(_issue("subPurposeData.scribeSubjects", f"Unknown subjects: {', '.join(unknown)}"))

        elif self.purpose == Purpose.HOSPITAL:
            address = sub.hospital_address
            details = sub.booking_details
            if not sub.hospital_name:
                issues.append(_issue("subPurposeData.hospitalName", "Hospital name is required."))
            if not (address and address.street):
                issues.append(_issue("subPurposeData.hospitalAddress.street", "Street address is required."))
            if not (address and address.district):
                issues.append(_issue("subPurposeData.hospitalAddress.district", "District is required."))
            if not (address and address.pincode):
                issues.append(_issue("subPurposeData.hospitalAddress.pincode", "Pincode is required."))
            if not (details and details.is_appointment_prebooked):
                issues.append(_issue(
                    "subPurposeData.bookingDetails.isAppointmentPrebooked",
                    "Please specify if your appointment is pre-booked.",
                ))
            elif details.is_appointment_prebooked == "yes":
                if not details.start_time:
                    issues.append(_issue("subPurposeData.bookingDetails.startTime", "Start time is required."))
                if not details.end_time:
                    issues.append(_issue("subPurposeData.bookingDetails.endTime", "End time is required."))
            elif not details.visiting_time:
                issues.append(_issue(
                    "subPurposeData.bookingDetails.visitingTime",
                    "Please provide a preferred visiting time.",
                ))

        elif self.purpose == Purpose.SHOPPING:
            if not sub.shop_type:
                issues.append(_issue("subPurposeData.shopType", "Please select a shopping type."))
            if sub.shop_type == "particular":
                address = sub.shop_address
                if not sub.shop_name:
                    issues.append(_issue("subPurposeData.shopName", "Shop name is required."))
                if not (address and address.street):
                    issues.append(_issue("subPurposeData.shopAddress.street", "Street address is required."))
                if not (address and address.district):
                    issues.append(_issue("subPurposeData.shopAddress.district", "District is required."))
                if not (address and address.pincode):
                    issues.append(_issue("subPurposeData.shopAddress.pincode", "Pincode is required."))
            if sub.shop_type == "area":
                area = sub.shopping_area
                if not (area and area.area):
                    issues.append(_issue("subPurposeData.shoppingArea.area", "Area name is required."))
                if not (area and area.district):
                    issues.append(_issue("subPurposeData.shoppingArea.district", "District is required."))
            if not sub.agree_not_to_carry:
                issues.append(_issue(
                    "subPurposeData.agreeNotToCarry",
                    "You must agree that you will not ask the guide to carry your things.",
                ))

        return issues

    def to_changes(self) -> dict:
        """Keep only the sub-purpose fields that belong to the chosen purpose."""
        sub = self.sub_purpose_data
        if self.purpose == Purpose.EDUCATION:
            kept = {"sub_purpose", "college_name", "college_address"}
            if sub.sub_purpose == "scribe":
                kept.add("scribe_subjects")
        elif self.purpose == Purpose.HOSPITAL:
            kept = {"hospital_name", "hospital_address", "booking_details"}
        else:
            kept = {"shop_type", "agree_not_to_carry"}
            kept.add("shop_name" if sub.shop_type == "particular" else "shopping_area")
            if sub.shop_type == "particular":
                kept.add("shop_address")

        clean = SubPurposeData(**{name: getattr(sub, name) for name in kept})
        return {
            "purposeData": {"purpose": self.purpose.value, "subPurposeData": clean.to_document()},
            "step1Complete": True,
        }


class Step2Form(DocumentModel):
    """Step 2 - date and time window of the trip."""
    requested_date: date
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)

    def get_issues(self) -> list[dict]:
        if self.end_time <= self.start_time:
            return [_issue("endTime", "End time must be after start time.")]
        return []

    def to_changes(self) -> dict:
        return {
            "requestedDate": self.requested_date.isoformat(),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "step2Complete": True,
        }


class Step3Form(DocumentModel):
    """Step 3 - how the traveler reaches the destination."""
    travel_medium: Literal["car", "bus", "train", "flight"]
    is_ticket_prebooked: Optional[Literal["yes", "no"]] = None
    vehicle_info: Optional[VehicleInfo] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)

    def get_issues(self) -> list[dict]:
        if self.travel_medium == "car":
            return []

        issues = []
        vehicle = self.vehicle_info or VehicleInfo()
        if not self.is_ticket_prebooked:
            issues.append(_issue("isTicketPrebooked", "Please specify if your ticket is pre-booked."))
        if self.is_ticket_prebooked == "yes":
            if not self.time:
                issues.append(_issue("time", "Arrival/Departure time is required."))
            if self.travel_medium == "bus" and not vehicle.bus_name:
                issues.append(_issue("vehicleInfo.busName", "Bus name is required."))
            if self.travel_medium == "train" and not vehicle.train_name:
                issues.append(_issue("vehicleInfo.trainName", "Train name is required."))
            if self.travel_medium == "flight" and not vehicle.flight_number:
                issues.append(_issue("vehicleInfo.flightNumber", "Flight number is required."))
        return issues

    def to_changes(self) -> dict:
        return {"travelMediumData": self.to_document(), "step3Complete": True}


class Step4Form(DocumentModel):
    """Step 4 - where the guide meets the traveler."""
    pickup_type: Literal["destination", "hotel", "bus_stand", "railway_station", "airport"]
    hotel_details: Optional[HotelDetails] = None
    station_name: Optional[str] = None
    pickup_time: Optional[str] = Field(None, pattern=TIME_PATTERN)

    def get_issues(self) -> list[dict]:
        issues = []
        if self.pickup_type != "destination" and not self.pickup_time:
            issues.append(_issue("pickupTime", "Pickup time is required."))
        if self.pickup_type == "hotel" and not (self.hotel_details and self.hotel_details.name):
            issues.append(_issue("hotelDetails.name", "Hotel name is required."))
        if self.pickup_type in STATION_PICKUPS and not self.station_name:
            issues.append(_issue("stationName", "Location name is required."))
        return issues

    def to_changes(self) -> dict:
        return {"pickupData": self.to_document(), "step4Complete": True}


STEP_FORMS = {
    1: Step1Form,
    2: Step2Form,
    3: Step3Form,
    4: Step4Form,
}


def validate_step(step: int, payload: dict) -> tuple[Optional[DocumentModel], list[dict]]:
    """
    Validate a wizard step payload.

    Returns:
        Tuple of (form or None, list of {path, message} issues)
    """
    form_cls = STEP_FORMS.get(step)
    if form_cls is None:
        return None, [_issue("step", f"Unknown step {step}")]

    try:
        form = form_cls.model_validate(payload)
    except ValidationError as e:
        return None, [
            _issue(".".join(str(p) for p in err["loc"]), err["msg"])
            for err in e.errors()
        ]

    issues = form.get_issues()
    return (form if not issues else None), issues
