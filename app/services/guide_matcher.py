"""
Guide Matcher - finds the guides eligible to serve a travel request.
Candidate profiles are fetched in parallel, then filtered in a single pass.
"""
import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from .document_store import DocumentStore
from ..models.reference_data import scribe_subject_label
from ..models.travel_request import Purpose, TravelRequest
from ..models.user import (
    GUIDE_PROFILE_DOC_ID,
    GuideProfile,
    GuideWithProfile,
    OnboardingState,
    Role,
    User,
    guide_profile_collection,
)

logger = logging.getLogger(__name__)


def _has_profile(guide: GuideWithProfile, **_) -> bool:
    return guide.profile is not None


def _is_active_and_available(guide: GuideWithProfile, **_) -> bool:
    return guide.profile.onboarding_state == OnboardingState.ACTIVE and guide.profile.is_available is True


def _same_gender(guide: GuideWithProfile, traveler: User, **_) -> bool:
    return traveler.gender is not None and guide.user.gender == traveler.gender


def _same_district(guide: GuideWithProfile, request: TravelRequest, **_) -> bool:
    district = request.purpose_data.destination_district() if request.purpose_data else None
    address = guide.profile.address
    return district is not None and address is not None and address.district == district


def _has_purpose_expertise(guide: GuideWithProfile, request: TravelRequest, **_) -> bool:
    purpose_data = request.purpose_data
    if purpose_data is None or purpose_data.purpose is None:
        return False

    expertise = guide.profile.disability_expertise
    if expertise is None or purpose_data.purpose.value not in expertise.local_expertise:
        return False

    sub = purpose_data.sub_purpose_data
    if purpose_data.purpose == Purpose.EDUCATION and sub.sub_purpose == "scribe":
        vision = expertise.vision_support
        if vision is None or vision.willing_to_scribe != "yes":
            return False
        required = sub.scribe_subjects or []
        return all(subject in vision.scribe_subjects for subject in required)

    return True


def _meets_sign_language_need(guide: GuideWithProfile, traveler: User, **_) -> bool:
    if not traveler.requires_sign_language():
        return True
    return guide.profile.knows_sign_language()


# Applied in order; the first failing check excludes the guide
GUIDE_FILTERS = [
    _has_profile,
    _is_active_and_available,
    _same_gender,
    _same_district,
    _has_purpose_expertise,
    _meets_sign_language_need,
]


def is_eligible(guide: GuideWithProfile, request: TravelRequest, traveler: User) -> bool:
    """Whether one guide passes every filter for this request."""
    return all(check(guide, request=request, traveler=traveler) for check in GUIDE_FILTERS)


def filter_guides(
    request: TravelRequest,
    traveler: User,
    candidates: list[GuideWithProfile],
) -> list[GuideWithProfile]:
    """Guides eligible to serve the request, in candidate order."""
    return [guide for guide in candidates if is_eligible(guide, request, traveler)]


def expertise_tags(guide: GuideWithProfile) -> list[str]:
    """Display tags for a matched guide."""
    if guide.profile is None:
        return []
    tags = []
    if guide.profile.knows_sign_language():
        tags.append("Sign Language")
    tags.extend(f"Scribe: {scribe_subject_label(s)}" for s in guide.profile.scribe_subjects())
    return tags


def to_match_card(guide: GuideWithProfile) -> dict:
    """Public view of a matched guide."""
    profile = guide.profile
    return {
        "uid": guide.user.uid,
        "name": guide.user.name,
        "gender": guide.user.gender.value if guide.user.gender else None,
        "photoURL": guide.user.photo_url,
        "photoAlt": guide.user.photo_alt or f"Photo of {guide.user.name}",
        "district": profile.address.district if profile and profile.address else None,
        "expertiseTags": expertise_tags(guide),
    }


class GuideMatcher:
    """Loads candidate guides from the store and filters them."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def _load_profile(self, uid: str) -> Optional[GuideProfile]:
        doc = await self.store.get(guide_profile_collection(uid), GUIDE_PROFILE_DOC_ID)
        if doc is None:
            return None
        try:
            return GuideProfile.model_validate(doc)
        except ValidationError as e:
            logger.warning(f"Unreadable guide profile for {uid}: {e}")
            return None

    async def load_candidates(self) -> list[GuideWithProfile]:
        """All guide accounts joined with their profiles."""
        users = []
        for doc in await self.store.query("users", {"role": Role.GUIDE.value}):
            try:
                users.append(User.model_validate(doc))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable guide {doc.get('id')}: {e}")

        profiles = await asyncio.gather(*(self._load_profile(user.uid) for user in users))
        return [GuideWithProfile(user=user, profile=profile) for user, profile in zip(users, profiles)]

    async def find_matches(self, request: TravelRequest, traveler: User) -> list[GuideWithProfile]:
        """Guides currently eligible to serve the request."""
        candidates = await self.load_candidates()
        matches = filter_guides(request, traveler, candidates)
        logger.info(f"Request {request.id}: {len(matches)} of {len(candidates)} guides matched")
        return matches

    async def is_match(self, request: TravelRequest, traveler: User, guide_id: str) -> bool:
        """Whether a specific guide is currently eligible for the request."""
        doc = await self.store.get("users", guide_id)
        if doc is None or doc.get("role") != Role.GUIDE.value:
            return False
        guide = GuideWithProfile(user=User.model_validate(doc), profile=await self._load_profile(guide_id))
        return is_eligible(guide, request, traveler)
