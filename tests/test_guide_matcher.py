"""Tests for guide matching."""
from copy import deepcopy

import pytest

from app.models.travel_request import TravelRequest
from app.models.user import GuideProfile, GuideWithProfile, User
from app.services.guide_matcher import (
    GuideMatcher,
    expertise_tags,
    filter_guides,
    is_eligible,
    to_match_card,
)
from tests.conftest import HOSPITAL_REQUEST


def make_request(**fields) -> TravelRequest:
    doc = deepcopy(HOSPITAL_REQUEST)
    doc.update({"id": "req-1", "travelerId": "traveler-1", "status": "pending"})
    doc.update(fields)
    return TravelRequest.model_validate(doc)


def scribe_request(subjects: list) -> TravelRequest:
    return make_request(purposeData={
        "purpose": "education",
        "subPurposeData": {
            "subPurpose": "scribe",
            "collegeName": "Presidency College",
            "collegeAddress": {"street": "Kamarajar Salai", "district": "Chennai", "pincode": "600005"},
            "scribeSubjects": subjects,
        },
    })


def make_traveler(gender="Female", sign_language=False) -> User:
    doc = {"uid": "traveler-1", "name": "Priya", "role": "Traveler", "gender": gender}
    if sign_language:
        doc["disability"] = {"mainDisability": "hard-of-hearing", "requiresSignLanguageGuide": True}
    return User.model_validate(doc)


def make_guide(uid="guide-1", gender="Female", district="Chennai", state="active", available=True,
               expertise=("hospital", "education", "shopping"), sign_language=False,
               scribe_subjects=None, profile=True) -> GuideWithProfile:
    user = User.model_validate({"uid": uid, "name": f"Guide {uid}", "role": "Guide", "gender": gender})
    if not profile:
        return GuideWithProfile(user=user)
    expertise_doc = {"localExpertise": list(expertise), "hearingSupport": {"knowsSignLanguage": sign_language}}
    if scribe_subjects is not None:
        expertise_doc["visionSupport"] = {"willingToScribe": "yes", "scribeSubjects": scribe_subjects}
    return GuideWithProfile(user=user, profile=GuideProfile.model_validate({
        "address": {"district": district},
        "disabilityExpertise": expertise_doc,
        "onboardingState": state,
        "isAvailable": available,
    }))


class TestFilters:
    """Each filter excludes a guide on its own."""

    def test_matching_guide_is_eligible(self):
        assert is_eligible(make_guide(), make_request(), make_traveler())

    def test_guide_without_profile(self):
        assert not is_eligible(make_guide(profile=False), make_request(), make_traveler())

    @pytest.mark.parametrize("state", ["not_started", "verification-pending", "rejected"])
    def test_only_active_guides(self, state):
        assert not is_eligible(make_guide(state=state), make_request(), make_traveler())

    def test_unavailable_guide(self):
        assert not is_eligible(make_guide(available=False), make_request(), make_traveler())

    def test_different_gender(self):
        assert not is_eligible(make_guide(gender="Male"), make_request(), make_traveler())

    def test_traveler_without_gender_matches_nobody(self):
        traveler = make_traveler()
        traveler.gender = None
        assert not is_eligible(make_guide(), make_request(), traveler)

    def test_different_district(self):
        assert not is_eligible(make_guide(district="Madurai"), make_request(), make_traveler())

    def test_request_without_district_matches_nobody(self):
        purpose = deepcopy(HOSPITAL_REQUEST["purposeData"])
        del purpose["subPurposeData"]["hospitalAddress"]["district"]
        assert not is_eligible(make_guide(), make_request(purposeData=purpose), make_traveler())

    def test_missing_purpose_expertise(self):
        assert not is_eligible(make_guide(expertise=("shopping",)), make_request(), make_traveler())

    def test_sign_language_required(self):
        traveler = make_traveler(sign_language=True)
        assert not is_eligible(make_guide(), make_request(), traveler)
        assert is_eligible(make_guide(sign_language=True), make_request(), traveler)


class TestScribeSubjects:
    """Scribe requests need every requested subject covered."""

    def test_superset_of_subjects_matches(self):
        guide = make_guide(scribe_subjects=["physics", "chemistry", "mathematics"])
        assert is_eligible(guide, scribe_request(["physics", "chemistry"]), make_traveler())

    def test_missing_subject_excludes(self):
        guide = make_guide(scribe_subjects=["physics"])
        assert not is_eligible(guide, scribe_request(["physics", "chemistry"]), make_traveler())

    def test_guide_not_willing_to_scribe(self):
        assert not is_eligible(make_guide(), scribe_request(["physics"]), make_traveler())


class TestMatchCards:

    def test_filter_keeps_candidate_order(self):
        guides = [make_guide("g1"), make_guide("g2", gender="Male"), make_guide("g3")]
        matched = filter_guides(make_request(), make_traveler(), guides)
        assert [g.user.uid for g in matched] == ["g1", "g3"]

    def test_expertise_tags(self):
        guide = make_guide(sign_language=True, scribe_subjects=["computer_science"])
        assert expertise_tags(guide) == ["Sign Language", "Scribe: Computer Science"]

    def test_card_has_alt_text_fallback(self):
        card = to_match_card(make_guide("g1"))
        assert card["uid"] == "g1"
        assert card["district"] == "Chennai"
        assert card["photoAlt"] == "Photo of Guide g1"


class TestGuideMatcher:
    """Matching against guides stored in the document store."""

    @pytest.mark.asyncio
    async def test_find_matches(self, store, seed):
        traveler = await seed.traveler()
        await seed.guide("guide-ok")
        await seed.guide("guide-pending", state="verification-pending")
        await seed.guide("guide-male", gender="Male")
        await seed.guide("guide-no-profile", with_profile=False)

        matches = await GuideMatcher(store).find_matches(make_request(), traveler.user)
        assert [g.user.uid for g in matches] == ["guide-ok"]

    @pytest.mark.asyncio
    async def test_is_match(self, store, seed):
        traveler = await seed.traveler()
        await seed.guide("guide-ok")
        await seed.guide("guide-busy", available=False)
        matcher = GuideMatcher(store)

        assert await matcher.is_match(make_request(), traveler.user, "guide-ok")
        assert not await matcher.is_match(make_request(), traveler.user, "guide-busy")
        assert not await matcher.is_match(make_request(), traveler.user, "traveler-1")
        assert not await matcher.is_match(make_request(), traveler.user, "nobody")
