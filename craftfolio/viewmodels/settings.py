import logging
from typing import Any, Dict, Optional

from craftfolio.exceptions import InvariantViolation
from craftfolio.schema.identity_schema import Identity, ProfileUpdate
from craftfolio.session.store import SessionStore
from craftfolio.viewmodels.base import ViewModel

logger = logging.getLogger(__name__)


class ProfileSettings(ViewModel):
    """Own-profile editor; the Session Store republishes the identity after a save."""

    name = "settings"

    def __init__(self, session: SessionStore):
        super().__init__(session.client, session.identity)
        self.session = session
        self.form = ProfileUpdate()

    async def load(self) -> None:
        identity = self.session.identity
        if identity is None:
            raise InvariantViolation("Please sign in to continue")
        self._commit(identity=identity, form=ProfileUpdate(**identity.model_dump(include=set(ProfileUpdate.model_fields))))

    async def save(self, update: ProfileUpdate) -> Optional[Identity]:
        identity = self.session.require_verified()
        patch = update.model_dump(exclude_unset=True)
        if not patch:
            return identity
        if "full_name" in patch and not (patch["full_name"] or "").strip():
            raise InvariantViolation("Full name cannot be empty")

        await self._write(self.client.table("profiles").update(patch).eq("id", identity.id), "Failed to update profile")

        refreshed = await self.session.resolve_profile(identity.id)
        self._commit(identity=refreshed, form=ProfileUpdate(**{**self.form.model_dump(), **patch}))
        return refreshed

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "email": self.identity.email if self.identity else None,
            "role": self.identity.role.value if self.identity else None,
            "profile": self.form.model_dump(mode="json"),
        }
