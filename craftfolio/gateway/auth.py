"""
Auth half of the gateway client.

A session is a signed JWT access token plus the auth user it names,
persisted in the client's key-value storage. Listeners registered with
on_session_change hear every sign-in, sign-out and refresh.
"""

import asyncio
import enum
import inspect
import logging
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, Union

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from craftfolio.gateway import oauth
from craftfolio.gateway.backend import Backend
from craftfolio.gateway.errors import GatewayError, UNAUTHORIZED
from craftfolio.schema.auth_schema import AuthSession, GatewayUser
from craftfolio.utils.security import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, decode_access_token
from craftfolio.utils.storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "craftfolio-auth-token"


class AuthChangeEvent(str, enum.Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


SessionListener = Callable[[AuthChangeEvent, Optional[AuthSession]], Union[None, Awaitable[None]]]


class AuthClient:
    def __init__(self, backend: Backend, storage: KeyValueStorage):
        self._backend = backend
        self._storage = storage
        self._listeners: List[SessionListener] = []

    # ----------------- Listeners -----------------

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, event: AuthChangeEvent, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Auth listener failed on %s", event.value)

    # ----------------- Token storage -----------------

    def _issue(self, user: GatewayUser) -> AuthSession:
        expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token({"sub": user.id, "email": user.email}, expires_delta=expires)
        payload = decode_access_token(token)
        return AuthSession(access_token=token, expires_at=payload["exp"] if payload else None, user=user)

    def _persist(self, session: AuthSession) -> None:
        self._storage.set_item(STORAGE_KEY, session.model_dump_json())

    def _stored(self) -> Optional[AuthSession]:
        raw = self._storage.get_item(STORAGE_KEY)
        if raw is None:
            return None
        try:
            return AuthSession.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable stored auth session")
            self._storage.remove_item(STORAGE_KEY)
            return None

    async def _verify(self, access_token: str) -> Optional[GatewayUser]:
        payload = decode_access_token(access_token)
        if payload is None:
            return None
        return await run_in_threadpool(self._backend.get_user, payload["sub"])

    async def _start(self, user: GatewayUser) -> AuthSession:
        session = self._issue(user)
        self._persist(session)
        await self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    # ----------------- Contract -----------------

    async def get_session(self) -> Optional[AuthSession]:
        """Stored session, re-verified against the token signature and the auth user."""
        stored = self._stored()
        if stored is None:
            return None

        user = await self._verify(stored.access_token)
        if user is None:
            self._storage.remove_item(STORAGE_KEY)
            await self._notify(AuthChangeEvent.SIGNED_OUT, None)
            return None
        return stored.model_copy(update={"user": user})

    async def get_user(self) -> Optional[GatewayUser]:
        stored = self._stored()
        if stored is None:
            return None
        return await self._verify(stored.access_token)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        user = await run_in_threadpool(self._backend.authenticate, email, password)
        return await self._start(user)

    async def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthSession:
        """Create the auth user and sign straight in; metadata carries full_name and role."""
        user = await run_in_threadpool(self._backend.sign_up, email, password, metadata)
        return await self._start(user)

    async def sign_in_with_oauth(self, provider: str, redirect_to: Optional[str] = None) -> str:
        await asyncio.sleep(0)
        return oauth.authorize_url(provider, redirect_to)

    async def exchange_oauth_token(self, provider: str, access_token: str) -> AuthSession:
        info = await run_in_threadpool(oauth.fetch_user_info, provider, access_token)
        user = await run_in_threadpool(
            self._backend.oauth_user,
            email=info.get("email"),
            provider=provider,
            provider_id=info.get("provider_id"),
            metadata={"full_name": info.get("full_name"), "avatar_url": info.get("avatar_url")}
        )
        return await self._start(user)

    async def set_session(self, access_token: str) -> AuthSession:
        """Adopt an access token issued elsewhere (e.g. a bearer header)."""
        user = await self._verify(access_token)
        if user is None:
            raise GatewayError("Invalid or expired token", UNAUTHORIZED)
        payload = decode_access_token(access_token)
        session = AuthSession(access_token=access_token, expires_at=payload["exp"], user=user)
        self._persist(session)
        await self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def refresh_session(self) -> AuthSession:
        current = await self.get_session()
        if current is None:
            raise GatewayError("No active session", UNAUTHORIZED)
        session = self._issue(current.user)
        self._persist(session)
        await self._notify(AuthChangeEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self) -> None:
        await asyncio.sleep(0)
        self._storage.remove_item(STORAGE_KEY)
        await self._notify(AuthChangeEvent.SIGNED_OUT, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
