"""
Admin Service - guide moderation and data clean-up.
"""
import logging
from typing import Optional

from .document_store import DELETE_FIELD, DocumentStore
from .guide_matcher import GuideMatcher
from .sessions import Actor
from ..errors import NotFoundError, PermissionDeniedError
from ..models.travel_request import TRAVEL_REQUESTS, RequestStatus
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


def _require_admin(actor: Actor):
    if not actor.is_admin:
        raise PermissionDeniedError()


class AdminService:
    """Operations reserved for members of roles_admin."""

    def __init__(self, store: DocumentStore, matcher: GuideMatcher):
        self.store = store
        self.matcher = matcher

    async def list_guides(self, actor: Actor, state: Optional[OnboardingState] = None) -> list[GuideWithProfile]:
        _require_admin(actor)
        guides = await self.matcher.load_candidates()
        if state is None:
            return guides
        return [g for g in guides if g.profile is not None and g.profile.onboarding_state == state]

    async def list_travelers(self, actor: Actor) -> list[User]:
        _require_admin(actor)
        docs = await self.store.query("users", {"role": Role.TRAVELER.value})
        return [User.model_validate(doc) for doc in docs]

    async def review_guide(self, actor: Actor, guide_id: str, approve: bool) -> GuideProfile:
        """Approve (active) or reject a guide's verification."""
        _require_admin(actor)
        state = OnboardingState.ACTIVE if approve else OnboardingState.REJECTED
        try:
            updated = await self.store.update(guide_profile_collection(guide_id), GUIDE_PROFILE_DOC_ID, {
                "onboardingState": state.value,
            })
        except NotFoundError:
            raise NotFoundError("Guide profile not found.")
        logger.info(f"Guide {guide_id} set to {state.value} by admin {actor.uid}")
        return GuideProfile.model_validate(updated)

    async def delete_traveler(self, actor: Actor, uid: str) -> int:
        """Delete a traveler and every request they made. Returns the number of requests removed."""
        _require_admin(actor)
        user = await self.store.get("users", uid)
        if user is None or user.get("role") != Role.TRAVELER.value:
            raise NotFoundError("Traveler not found.")

        requests = await self.store.query(TRAVEL_REQUESTS, {"travelerId": uid})
        for request in requests:
            await self.store.delete(TRAVEL_REQUESTS, request["id"])
        await self.store.delete("users", uid)
        logger.info(f"Traveler {uid} and {len(requests)} requests deleted by admin {actor.uid}")
        return len(requests)

    async def delete_traveler_profile_info(self, actor: Actor, uid: str) -> User:
        """Remove a traveler's address, contact and disability details, keeping the account."""
        _require_admin(actor)
        try:
            updated = await self.store.update("users", uid, {
                "address": DELETE_FIELD,
                "contact": DELETE_FIELD,
                "disability": DELETE_FIELD,
            })
        except NotFoundError:
            raise NotFoundError("Traveler not found.")
        return User.model_validate(updated)

    async def delete_guide(self, actor: Actor, uid: str):
        _require_admin(actor)
        user = await self.store.get("users", uid)
        if user is None or user.get("role") != Role.GUIDE.value:
            raise NotFoundError("Guide not found.")
        await self.store.delete(guide_profile_collection(uid), GUIDE_PROFILE_DOC_ID)
        await self.store.delete("users", uid)
        logger.info(f"Guide {uid} deleted by admin {actor.uid}")

    async def delete_drafts(self, actor: Actor) -> int:
        """Delete every unsubmitted draft request."""
        _require_admin(actor)
        drafts = await self.store.query(TRAVEL_REQUESTS, {"status": RequestStatus.DRAFT.value})
        for draft in drafts:
            await self.store.delete(TRAVEL_REQUESTS, draft["id"])
        logger.info(f"{len(drafts)} draft requests deleted by admin {actor.uid}")
        return len(drafts)
