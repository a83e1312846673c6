from fastapi import APIRouter, Depends, HTTPException, status

from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.routes.deps import get_client, get_current_identity, get_session_store, http_error
from craftfolio.schema.auth_schema import LoginRequest, OAuthCallbackRequest, SignupRequest, Token
from craftfolio.schema.identity_schema import Identity
from craftfolio.session.store import SessionStore

router = APIRouter(prefix="/auth", tags=["auth"])


# --------------------------
# Email / password
# --------------------------
@router.post("/signup", response_model=Token, status_code=201)
async def signup(data: SignupRequest, client: GatewayClient = Depends(get_client)):
    try:
        session = await client.auth.sign_up(
            data.email,
            data.password,
            {"full_name": data.full_name, "role": data.role}
        )
    except GatewayError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"access_token": session.access_token, "token_type": "bearer"}


@router.post("/login", response_model=Token)
async def login(data: LoginRequest, client: GatewayClient = Depends(get_client)):
    try:
        session = await client.auth.sign_in_with_password(data.email, data.password)
    except GatewayError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    return {"access_token": session.access_token, "token_type": "bearer"}


# --------------------------
# OAuth
# --------------------------
@router.get("/oauth/{provider}")
async def oauth_authorize(provider: str, client: GatewayClient = Depends(get_client)):
    try:
        url = await client.auth.sign_in_with_oauth(provider)
    except GatewayError as e:
        raise http_error(e)
    return {"url": url}


@router.post("/oauth/{provider}/callback", response_model=Token)
async def oauth_callback(provider: str, data: OAuthCallbackRequest, client: GatewayClient = Depends(get_client)):
    """Exchange the provider access token for a session"""
    try:
        session = await client.auth.exchange_oauth_token(provider, data.access_token)
    except GatewayError as e:
        raise http_error(e)
    return {"access_token": session.access_token, "token_type": "bearer"}


# --------------------------
# Session
# --------------------------
@router.get("/me", response_model=Identity)
async def me(identity: Identity = Depends(get_current_identity)):
    return identity


@router.post("/refresh", response_model=Token)
async def refresh(
    identity: Identity = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store)
):
    try:
        session = await store.client.auth.refresh_session()
    except GatewayError as e:
        raise http_error(e)
    return {"access_token": session.access_token, "token_type": "bearer"}


@router.post("/logout")
async def logout(store: SessionStore = Depends(get_session_store)):
    await store.sign_out()
    return {"message": "Signed out"}
