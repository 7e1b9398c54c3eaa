"""
User models - travelers, guides and the guide profile sub-document.
"""
from pydantic import Field
from typing import Optional, Literal
from datetime import datetime
from enum import Enum

from .base import DocumentModel


GUIDE_PROFILE_DOC_ID = "guide-profile-doc"


def guide_profile_collection(uid: str) -> str:
    """Collection path of a guide's profile sub-collection."""
    return f"users/{uid}/guideProfile"


class Role(str, Enum):
    """Account role, fixed at signup."""
    TRAVELER = "Traveler"
    GUIDE = "Guide"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class MainDisability(str, Enum):
    VISUALLY_IMPAIRED = "visually-impaired"
    HARD_OF_HEARING = "hard-of-hearing"
    NONE = "none"


class OnboardingState(str, Enum):
    """Guide verification status."""
    NOT_STARTED = "not_started"
    VERIFICATION_PENDING = "verification-pending"
    ACTIVE = "active"
    REJECTED = "rejected"


class HomeAddress(DocumentModel):
    """Postal address of a traveler."""
    address_line1: str = Field(..., min_length=1)
    address_line2: str = ""
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = "India"
    is_default: bool = True


class Contact(DocumentModel):
    primary_phone: str = Field(..., min_length=10)
    whatsapp_number: Optional[str] = None
    whatsapp_same_as_primary: bool = False


class Disability(DocumentModel):
    """Voluntarily disclosed disability details of a traveler."""
    main_disability: MainDisability
    vision_sub_option: Optional[Literal["totally-blind", "low-vision"]] = None
    vision_percentage: Optional[int] = Field(None, ge=0, le=100)
    hearing_percentage: Optional[int] = Field(None, ge=0, le=100)
    requires_sign_language_guide: Optional[bool] = None
    document_url: Optional[str] = None
    document_name: Optional[str] = None
    agreed_to_voluntary_disclosure: Optional[bool] = None


class User(DocumentModel):
    """A traveler or guide account document."""
    uid: str
    name: str = ""
    email: Optional[str] = None
    role: Role
    gender: Optional[Gender] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    photo_alt: Optional[str] = None
    fcm_tokens: list[str] = Field(default_factory=list)
    address: Optional[HomeAddress] = None
    contact: Optional[Contact] = None
    disability: Optional[Disability] = None
    created_at: Optional[datetime] = None

    def requires_sign_language(self) -> bool:
        """True when the traveler disclosed a hearing impairment needing sign language."""
        return bool(
            self.disability
            and self.disability.main_disability == MainDisability.HARD_OF_HEARING
            and self.disability.requires_sign_language_guide
        )


class GuideAddress(DocumentModel):
    street: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None


class HearingSupport(DocumentModel):
    knows_sign_language: bool = False


class VisionSupport(DocumentModel):
    willing_to_scribe: Optional[Literal["yes", "no"]] = None
    scribe_subjects: list[str] = Field(default_factory=list)


class DisabilityExpertise(DocumentModel):
    """What kind of assistance a guide offers."""
    local_expertise: list[Literal["education", "hospital", "shopping"]] = Field(default_factory=list)
    hearing_support: Optional[HearingSupport] = None
    vision_support: Optional[VisionSupport] = None


class Verification(DocumentModel):
    document_url: str
    document_name: Optional[str] = None
    submitted_at: Optional[datetime] = None


class GuideProfile(DocumentModel):
    """Guide profile stored at users/{uid}/guideProfile/guide-profile-doc."""
    address: Optional[GuideAddress] = None
    contact: Optional[Contact] = None
    disability_expertise: Optional[DisabilityExpertise] = None
    verification: Optional[Verification] = None
    onboarding_state: OnboardingState = OnboardingState.NOT_STARTED
    is_available: Optional[bool] = None

    def knows_sign_language(self) -> bool:
        expertise = self.disability_expertise
        return bool(expertise and expertise.hearing_support and expertise.hearing_support.knows_sign_language)

    def scribe_subjects(self) -> list[str]:
        expertise = self.disability_expertise
        if expertise and expertise.vision_support and expertise.vision_support.willing_to_scribe == "yes":
            return list(expertise.vision_support.scribe_subjects)
        return []


class GuideWithProfile(DocumentModel):
    """A guide account joined with its (possibly missing) profile."""
    user: User
    profile: Optional[GuideProfile] = None
