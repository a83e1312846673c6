import threading

import pytest

from craftfolio.crud import auth_crud
from craftfolio.gateway import oauth
from craftfolio.gateway.auth import STORAGE_KEY, AuthChangeEvent
from craftfolio.gateway.errors import GatewayError
from craftfolio.utils.storage import MemoryStorage

PASSWORD = "secret123"


async def test_sign_up_signs_in_and_notifies(client):
    events = []
    client.auth.on_session_change(lambda event, session: events.append((event, session)))

    session = await client.auth.sign_up("ada@example.com", PASSWORD, {"full_name": "Ada", "role": "hirer"})

    assert session.user.email == "ada@example.com"
    assert session.user.user_metadata["role"] == "hirer"
    assert events[0][0] == AuthChangeEvent.SIGNED_IN
    assert client.storage.get_item(STORAGE_KEY) is not None


async def test_sign_up_hashes_off_the_event_loop(client, monkeypatch):
    loop_thread = threading.get_ident()
    hashing_threads = []
    hash_password = auth_crud.hash_password

    def recording_hash(password):
        hashing_threads.append(threading.get_ident())
        return hash_password(password)

    monkeypatch.setattr(auth_crud, "hash_password", recording_hash)
    await client.auth.sign_up("ada@example.com", PASSWORD)

    assert hashing_threads and loop_thread not in hashing_threads


async def test_duplicate_sign_up_fails(client):
    await client.auth.sign_up("ada@example.com", PASSWORD)
    with pytest.raises(GatewayError):
        await client.auth.sign_up("ada@example.com", PASSWORD)


async def test_password_sign_in(client, make_client):
    await client.auth.sign_up("ada@example.com", PASSWORD)

    other = make_client()
    session = await other.auth.sign_in_with_password("ADA@example.com", PASSWORD)
    assert session.user.email == "ada@example.com"

    with pytest.raises(GatewayError):
        await other.auth.sign_in_with_password("ada@example.com", "wrong-password")


async def test_get_session_verifies_stored_token(client, make_client):
    await client.auth.sign_up("ada@example.com", PASSWORD)
    session = await client.auth.get_session()
    assert session is not None
    assert (await client.auth.get_user()).id == session.user.id

    tampered = MemoryStorage({STORAGE_KEY: client.storage.get_item(STORAGE_KEY).replace(session.access_token, "bad.token.value")})
    stranger = make_client(tampered)
    events = []
    stranger.auth.on_session_change(lambda event, s: events.append(event))

    assert await stranger.auth.get_session() is None
    assert tampered.get_item(STORAGE_KEY) is None
    assert events == [AuthChangeEvent.SIGNED_OUT]


async def test_async_listeners_are_awaited_and_unsubscribe_works(client):
    seen = []

    async def listener(event, session):
        seen.append(event)

    unsubscribe = client.auth.on_session_change(listener)
    await client.auth.sign_up("ada@example.com", PASSWORD)
    unsubscribe()
    await client.auth.sign_out()

    assert seen == [AuthChangeEvent.SIGNED_IN]
    assert client.auth.listener_count == 0


async def test_sign_out_is_idempotent(client):
    await client.auth.sign_up("ada@example.com", PASSWORD)
    await client.auth.sign_out()
    await client.auth.sign_out()
    assert await client.auth.get_session() is None


async def test_refresh_and_set_session(client, make_client):
    created = await client.auth.sign_up("ada@example.com", PASSWORD)
    events = []
    client.auth.on_session_change(lambda event, s: events.append(event))

    refreshed = await client.auth.refresh_session()
    assert refreshed.user.id == created.user.id
    assert events == [AuthChangeEvent.TOKEN_REFRESHED]

    other = make_client()
    adopted = await other.auth.set_session(refreshed.access_token)
    assert adopted.user.id == created.user.id
    with pytest.raises(GatewayError):
        await other.auth.set_session("not-a-token")


async def test_oauth_authorize_url(client, monkeypatch):
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "google-client")
    url = await client.auth.sign_in_with_oauth("google")
    assert url.startswith("https://accounts.google.com/")
    assert "client_id=google-client" in url

    with pytest.raises(GatewayError):
        await client.auth.sign_in_with_oauth("myspace")


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


async def test_oauth_exchange_creates_user_on_first_login(client, backend, monkeypatch):
    def fake_get(url, headers=None):
        assert headers["Authorization"] == "Bearer provider-token"
        return FakeResponse({"email": "gina@example.com", "sub": "g-1", "name": "Gina", "picture": "http://img/g.png"})

    monkeypatch.setattr(oauth.requests, "get", fake_get)

    session = await client.auth.exchange_oauth_token("google", "provider-token")
    again = await client.auth.exchange_oauth_token("google", "provider-token")

    assert session.user.id == again.user.id
    assert session.user.provider == "google"
    profile = await client.table("profiles").select("*").eq("id", session.user.id).single().execute()
    assert profile.data["full_name"] == "Gina"
    assert profile.data["role"] == "seeker"


async def test_github_exchange_uses_primary_email(client, monkeypatch):
    def fake_get(url, headers=None):
        if url.endswith("/user/emails"):
            return FakeResponse([{"email": "old@example.com", "primary": False}, {"email": "dev@example.com", "primary": True}])
        return FakeResponse({"id": 42, "login": "dev", "name": None, "email": None, "avatar_url": "http://img/d.png"})

    monkeypatch.setattr(oauth.requests, "get", fake_get)
    session = await client.auth.exchange_oauth_token("github", "gh-token")
    assert session.user.email == "dev@example.com"
    assert session.user.user_metadata["full_name"] == "dev"


async def test_rejected_provider_token(client, monkeypatch):
    monkeypatch.setattr(oauth.requests, "get", lambda url, headers=None: FakeResponse({}, status_code=401))
    with pytest.raises(GatewayError) as exc:
        await client.auth.exchange_oauth_token("linkedin", "bad")
    assert exc.value.code == "401"
