from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from craftfolio.database import SessionLocal
from craftfolio.exceptions import CraftfolioError, NotFound
from craftfolio.gateway.backend import Backend
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError, UNAUTHORIZED
from craftfolio.models.user import UserRole
from craftfolio.schema.identity_schema import Identity
from craftfolio.session.store import SessionStore
from craftfolio.utils.storage import MemoryStorage

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

_backend: Optional[Backend] = None


def get_backend() -> Backend:
    """Process-wide backend; tests override this dependency"""
    global _backend
    if _backend is None:
        _backend = Backend(SessionLocal)
    return _backend


def get_client(backend: Backend = Depends(get_backend)) -> GatewayClient:
    # request-scoped client; the bearer token stands in for browser storage
    return GatewayClient(backend, MemoryStorage())


async def get_session_store(
    token: Optional[str] = Depends(oauth2_scheme),
    client: GatewayClient = Depends(get_client)
) -> AsyncIterator[SessionStore]:
    if token:
        try:
            await client.auth.set_session(token)
        except GatewayError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"}
            )

    store = SessionStore(client, client.storage)
    await store.bootstrap()
    try:
        yield store
    finally:
        store.close()


def get_current_identity(store: SessionStore = Depends(get_session_store)) -> Identity:
    if store.identity is None or not store.is_verified:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return store.identity


def require_role(*roles: UserRole):
    """Dependency factory ensuring the verified identity has one of `roles`"""

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in roles:
            raise HTTPException(status_code=403, detail="You are not allowed to access this resource")
        return identity

    return dependency


require_admin = require_role(UserRole.ADMIN)


def http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, CraftfolioError):
        return HTTPException(status_code=400, detail=e.message)
    if isinstance(e, GatewayError):
        code = status.HTTP_401_UNAUTHORIZED if e.code == UNAUTHORIZED else 400
        return HTTPException(status_code=code, detail=e.message)
    return HTTPException(status_code=500, detail=str(e))


def confirmed(flag: bool):
    """Confirmation callback for deletes driven by a `confirm` query flag"""
    return lambda prompt: flag
