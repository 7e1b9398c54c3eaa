"""Shared fixtures: an in-memory store and helpers that seed users, guides and requests."""
from copy import deepcopy
from typing import Optional

import pytest

from app.models.travel_request import TRAVEL_REQUESTS
from app.models.user import GUIDE_PROFILE_DOC_ID, User, guide_profile_collection
from app.services.change_feed import ChangeFeed
from app.services.document_store import DocumentStore
from app.services.sessions import ROLES_ADMIN, Actor


# Hospital visit in Chennai, 09:00-13:00, met at the destination: costs 550
HOSPITAL_REQUEST = {
    "purposeData": {
        "purpose": "hospital",
        "subPurposeData": {
            "hospitalName": "Government General Hospital",
            "hospitalAddress": {"street": "Park Town", "district": "Chennai", "pincode": "600003"},
            "bookingDetails": {"isAppointmentPrebooked": "no", "visitingTime": "10:00"},
        },
    },
    "requestedDate": "2026-11-20",
    "startTime": "09:00",
    "endTime": "13:00",
    "travelMediumData": {"travelMedium": "car"},
    "pickupData": {"pickupType": "destination"},
    "step1Complete": True,
    "step2Complete": True,
    "step3Complete": True,
    "step4Complete": True,
}


class Seeder:
    """Writes realistic documents straight into the store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def traveler(self, uid: str = "traveler-1", name: str = "Priya", gender: str = "Female",
                       email: str = "priya@example.com", sign_language: bool = False,
                       fcm_tokens: Optional[list] = None) -> Actor:
        doc = {
            "uid": uid,
            "name": name,
            "email": email,
            "role": "Traveler",
            "gender": gender,
            "fcmTokens": fcm_tokens or [],
        }
        if sign_language:
            doc["disability"] = {"mainDisability": "hard-of-hearing", "requiresSignLanguageGuide": True}
        await self.store.set("users", uid, doc)
        return Actor(user=User.model_validate(await self.store.get("users", uid)))

    async def guide(self, uid: str = "guide-1", name: str = "Lakshmi", gender: str = "Female",
                    email: str = "lakshmi@example.com", district: str = "Chennai",
                    state: str = "active", available: bool = True,
                    expertise: Optional[list] = None, sign_language: bool = False,
                    scribe_subjects: Optional[list] = None, fcm_tokens: Optional[list] = None,
                    with_profile: bool = True) -> Actor:
        await self.store.set("users", uid, {
            "uid": uid,
            "name": name,
            "email": email,
            "role": "Guide",
            "gender": gender,
            "fcmTokens": fcm_tokens or [],
        })
        if with_profile:
            disability_expertise = {
                "localExpertise": expertise if expertise is not None else ["hospital", "shopping", "education"],
                "hearingSupport": {"knowsSignLanguage": sign_language},
            }
            if scribe_subjects is not None:
                disability_expertise["visionSupport"] = {
                    "willingToScribe": "yes",
                    "scribeSubjects": scribe_subjects,
                }
            await self.store.set(guide_profile_collection(uid), GUIDE_PROFILE_DOC_ID, {
                "address": {"street": "Anna Salai", "city": district, "district": district, "pincode": "600002"},
                "disabilityExpertise": disability_expertise,
                "onboardingState": state,
                "isAvailable": available,
            })
        return Actor(user=User.model_validate(await self.store.get("users", uid)))

    async def admin(self, uid: str = "admin-1") -> Actor:
        await self.store.set("users", uid, {
            "uid": uid,
            "name": "Admin",
            "email": "admin@example.com",
            "role": "Traveler",
        })
        await self.store.set(ROLES_ADMIN, uid, {"isAdmin": True})
        return Actor(user=User.model_validate(await self.store.get("users", uid)), is_admin=True)

    async def request(self, traveler_id: str = "traveler-1", status: str = "pending",
                      request_id: Optional[str] = None, **fields) -> str:
        doc = deepcopy(HOSPITAL_REQUEST)
        doc.update({"travelerId": traveler_id, "status": status})
        doc.update(fields)
        return await self.store.create(TRAVEL_REQUESTS, doc, doc_id=request_id)


@pytest.fixture
def store():
    store = DocumentStore(":memory:", ChangeFeed())
    yield store
    store.close()


@pytest.fixture
def seed(store):
    return Seeder(store)
