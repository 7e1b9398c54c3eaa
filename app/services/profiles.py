"""
Profile Service - account creation and the user-editable profile sections.
"""
import logging
from typing import Optional

from .document_store import ArrayRemove, ArrayUnion, DocumentStore, SERVER_TIMESTAMP
from .llm_client import AltTextGenerator
from .sessions import ROLES_ADMIN, Actor, IdentityClaims
from ..errors import InvalidTransitionError, NotFoundError, PermissionDeniedError
from ..models.user import (
    GUIDE_PROFILE_DOC_ID,
    Contact,
    Disability,
    DisabilityExpertise,
    Gender,
    GuideAddress,
    GuideProfile,
    HomeAddress,
    OnboardingState,
    Role,
    User,
    Verification,
    guide_profile_collection,
)

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads and writes the acting user's own documents."""

    def __init__(self, store: DocumentStore, alt_text: AltTextGenerator, admin_emails: list[str]):
        self.store = store
        self.alt_text = alt_text
        self.admin_emails = admin_emails

    async def signup(self, claims: IdentityClaims, name: str, role: Role,
                     gender: Optional[Gender] = None) -> User:
        """Create the user document for a freshly registered identity."""
        await self.store.create("users", {
            "uid": claims.uid,
            "name": name,
            "email": claims.email,
            "role": role.value,
            "gender": gender.value if gender else None,
            "fcmTokens": [],
            "createdAt": SERVER_TIMESTAMP,
        }, doc_id=claims.uid)

        if claims.email and claims.email.lower() in self.admin_emails:
            await self.store.set(ROLES_ADMIN, claims.uid, {"isAdmin": True})
            logger.info(f"Granted admin role to {claims.uid}")

        logger.info(f"Signed up {role.value} {claims.uid}")
        return User.model_validate(await self.store.get("users", claims.uid))

    async def _update_user(self, uid: str, changes: dict) -> User:
        return User.model_validate(await self.store.update("users", uid, changes))

    async def update_basic(self, actor: Actor, name: Optional[str] = None,
                           gender: Optional[Gender] = None, photo_url: Optional[str] = None) -> User:
        changes = {}
        if name is not None:
            changes["name"] = name
        if gender is not None:
            changes["gender"] = gender.value
        if photo_url is not None:
            changes["photoURL"] = photo_url
            changes["photoAlt"] = await self.alt_text.describe_photo(photo_url, name or actor.user.name)
        if not changes:
            return actor.user
        return await self._update_user(actor.uid, changes)

    async def describe_photo(self, actor: Actor) -> User:
        """Regenerate the alt text of the current profile photo."""
        if not actor.user.photo_url:
            raise NotFoundError("No profile photo to describe.")
        alt = await self.alt_text.describe_photo(actor.user.photo_url, actor.user.name)
        return await self._update_user(actor.uid, {"photoAlt": alt})

    async def update_address(self, actor: Actor, address: HomeAddress) -> User:
        return await self._update_user(actor.uid, {"address": address.to_document()})

    async def update_contact(self, actor: Actor, contact: Contact) -> User:
        data = contact.to_document()
        if contact.whatsapp_same_as_primary:
            data["whatsappNumber"] = contact.primary_phone
        return await self._update_user(actor.uid, {"contact": data})

    async def update_disability(self, actor: Actor, disability: Disability) -> User:
        if actor.user.role != Role.TRAVELER:
            raise PermissionDeniedError()
        return await self._update_user(actor.uid, {"disability": disability.to_document()})

    async def add_push_token(self, actor: Actor, token: str) -> User:
        return await self._update_user(actor.uid, {"fcmTokens": ArrayUnion(token)})

    async def remove_push_token(self, actor: Actor, token: str) -> User:
        return await self._update_user(actor.uid, {"fcmTokens": ArrayRemove(token)})

    # Guide profile

    @staticmethod
    def _require_guide(actor: Actor):
        if actor.user.role != Role.GUIDE:
            raise PermissionDeniedError()

    async def get_guide_profile(self, actor: Actor) -> Optional[GuideProfile]:
        self._require_guide(actor)
        doc = await self.store.get(guide_profile_collection(actor.uid), GUIDE_PROFILE_DOC_ID)
        return GuideProfile.model_validate(doc) if doc else None

    async def save_guide_profile(
        self,
        actor: Actor,
        address: Optional[GuideAddress] = None,
        contact: Optional[Contact] = None,
        expertise: Optional[DisabilityExpertise] = None,
    ) -> GuideProfile:
        """Create or merge the guide's profile sections."""
        self._require_guide(actor)
        collection = guide_profile_collection(actor.uid)
        existing = await self.store.get(collection, GUIDE_PROFILE_DOC_ID)

        data = {}
        if existing is None:
            data["onboardingState"] = OnboardingState.NOT_STARTED.value
            data["isAvailable"] = False
        if address is not None:
            data["address"] = address.to_document()
        if contact is not None:
            data["contact"] = contact.to_document()
        if expertise is not None:
            # Replace rather than merge so removed subjects disappear
            data["disabilityExpertise"] = expertise.to_document()

        if existing is not None and "disabilityExpertise" in data:
            await self.store.update(collection, GUIDE_PROFILE_DOC_ID, {
                "disabilityExpertise": data.pop("disabilityExpertise"),
            })
        saved = await self.store.set(collection, GUIDE_PROFILE_DOC_ID, data, merge=True)
        return GuideProfile.model_validate(saved)

    async def set_availability(self, actor: Actor, available: bool) -> GuideProfile:
        profile = await self.get_guide_profile(actor)
        if profile is None:
            raise NotFoundError("Complete your guide profile first.")
        updated = await self.store.update(guide_profile_collection(actor.uid), GUIDE_PROFILE_DOC_ID, {
            "isAvailable": available,
        })
        return GuideProfile.model_validate(updated)

    async def submit_verification(self, actor: Actor, verification: Verification) -> GuideProfile:
        """Hand in the verification document; an admin reviews it next."""
        profile = await self.get_guide_profile(actor)
        if profile is None:
            raise NotFoundError("Complete your guide profile first.")
        if profile.onboarding_state == OnboardingState.ACTIVE:
            raise InvalidTransitionError("Your profile is already verified.")

        data = verification.to_document()
        data["submittedAt"] = SERVER_TIMESTAMP
        updated = await self.store.update(guide_profile_collection(actor.uid), GUIDE_PROFILE_DOC_ID, {
            "verification": data,
            "onboardingState": OnboardingState.VERIFICATION_PENDING.value,
        })
        logger.info(f"Guide {actor.uid} submitted verification")
        return GuideProfile.model_validate(updated)
