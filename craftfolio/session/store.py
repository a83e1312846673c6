"""
Session Store.

Sole writer of the current identity. Publishes a cached identity at
bootstrap for instant rendering, then reconciles it against the gateway's
verified session; every reader gets updates through subscribe().
"""

import enum
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from craftfolio.exceptions import InvariantViolation
from craftfolio.gateway.auth import AuthChangeEvent
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.models.user import UserRole
from craftfolio.schema.auth_schema import AuthSession
from craftfolio.schema.identity_schema import Identity
from craftfolio.session.router import AUTH_PATH, LANDING_PATH, Navigator, is_public_path
from craftfolio.utils.storage import KeyValueStorage

logger = logging.getLogger(__name__)

CACHE_KEY = "craftfolio_user"


class SessionFreshness(str, enum.Enum):
    CACHED = "cached"
    VERIFIED = "verified"


IdentityListener = Callable[[Optional[Identity], SessionFreshness], None]


class SessionStore:
    def __init__(
        self,
        client: GatewayClient,
        storage: KeyValueStorage,
        navigator: Optional[Navigator] = None
    ):
        self.client = client
        self.storage = storage
        self._identity: Optional[Identity] = None
        self._freshness = SessionFreshness.CACHED
        self._listeners: List[IdentityListener] = []
        self._unsubscribe_auth: Optional[Callable[[], None]] = None

        if navigator is None:
            navigator = Navigator(lambda: self._identity)
        else:
            navigator.bind(lambda: self._identity)
        self.navigator = navigator

    # ----------------- Published state -----------------

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def freshness(self) -> SessionFreshness:
        return self._freshness

    @property
    def is_verified(self) -> bool:
        return self._freshness == SessionFreshness.VERIFIED

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, identity: Optional[Identity], freshness: SessionFreshness) -> None:
        self._identity = identity
        self._freshness = freshness
        for listener in list(self._listeners):
            try:
                listener(identity, freshness)
            except Exception:
                logger.exception("Identity listener failed")

    def require_verified(self, *roles: UserRole) -> Identity:
        """Verified identity for a role-gated action; raises InvariantViolation otherwise."""
        if self._identity is None or not self.is_verified:
            raise InvariantViolation("Please sign in to continue")
        if roles and self._identity.role not in roles:
            raise InvariantViolation("You are not allowed to perform this action")
        return self._identity

    # ----------------- Durable cache -----------------

    def _read_cache(self) -> Optional[Identity]:
        raw = self.storage.get_item(CACHE_KEY)
        if raw is None:
            return None
        try:
            return Identity.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Error parsing cached user, discarding it: %s", e)
            self.storage.remove_item(CACHE_KEY)
            return None

    def _write_cache(self, identity: Identity) -> None:
        self.storage.set_item(CACHE_KEY, identity.model_dump_json())

    def _clear(self) -> None:
        self.storage.remove_item(CACHE_KEY)
        self._publish(None, SessionFreshness.VERIFIED)

    # ----------------- Lifecycle -----------------

    async def bootstrap(self) -> Optional[Identity]:
        cached = self._read_cache()
        if cached is not None:
            self._publish(cached, SessionFreshness.CACHED)
            self.navigator.refresh()

        if self._unsubscribe_auth is None:
            self._unsubscribe_auth = self.client.auth.on_session_change(self.on_identity_change)

        try:
            session = await self.client.auth.get_session()
        except GatewayError as e:
            logger.error("Session verification failed: %s", e.message)
            session = None

        if session is not None:
            await self.resolve_profile(session.user.id)
        elif cached is None:
            self._publish(None, SessionFreshness.VERIFIED)
            self.navigator.refresh()
        elif self._identity is not None:
            # cache without a session: the listener does the cleanup
            await self.on_identity_change(AuthChangeEvent.INITIAL_SESSION, None)
        return self._identity

    async def on_identity_change(self, event: AuthChangeEvent, session: Optional[AuthSession]) -> None:
        if session is not None:
            if self._identity is None or self._identity.id != session.user.id:
                await self.resolve_profile(session.user.id)
            return

        self._clear()
        if not is_public_path(self.navigator.current_path):
            self.navigator.navigate(LANDING_PATH)

    async def resolve_profile(self, user_id: str) -> Optional[Identity]:
        try:
            result = await self.client.table("profiles").select("*").eq("id", user_id).maybe_single().execute()
            row = result.data
            if row is None:
                row = await self._create_default_profile(user_id)
            identity = Identity.model_validate(row) if row is not None else None
        except (GatewayError, ValidationError) as e:
            logger.error("Error fetching/creating profile for %s: %s", user_id, e)
            identity = None

        if identity is None:
            self._clear()
            return None

        self._write_cache(identity)
        self._publish(identity, SessionFreshness.VERIFIED)

        # role home only from landing or auth; deep links stay put when allowed
        if self.navigator.current_path in (LANDING_PATH, AUTH_PATH):
            self.navigator.navigate(LANDING_PATH)
        else:
            self.navigator.refresh()
        return identity

    async def _create_default_profile(self, user_id: str) -> Optional[dict]:
        """Fallback for a missing trigger-created profile row"""
        user = await self.client.auth.get_user()
        if user is None or user.id != user_id:
            logger.warning("No auth user to build a profile for %s", user_id)
            return None

        metadata = user.user_metadata or {}
        profile = {
            "id": user_id,
            "email": user.email,
            "full_name": metadata.get("full_name") or user.email.split("@")[0],
            "avatar_url": metadata.get("avatar_url"),
            "role": UserRole.SEEKER.value,
        }
        result = await self.client.table("profiles").insert(profile).execute()
        return result.data[0] if result.data else profile

    async def sign_out(self) -> None:
        self._clear()
        try:
            await self.client.auth.sign_out()
        except GatewayError as e:
            logger.error("Gateway sign-out failed: %s", e.message)
        self.navigator.navigate(LANDING_PATH)

    def close(self) -> None:
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
