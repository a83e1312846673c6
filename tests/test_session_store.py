import pytest

from craftfolio.exceptions import InvariantViolation
from craftfolio.gateway.errors import GatewayError
from craftfolio.models.user import UserRole
from craftfolio.session.router import Navigator
from craftfolio.session.store import CACHE_KEY, SessionFreshness, SessionStore
from craftfolio.utils.storage import MemoryStorage

PASSWORD = "secret123"


def new_store(client, path="/"):
    return SessionStore(client, client.storage, Navigator(lambda: None, path))


async def signed_in_storage(make_client, email="ada@example.com", role="seeker"):
    """Storage left behind by an earlier run: auth token plus cached identity"""
    storage = MemoryStorage()
    client = make_client(storage)
    await client.auth.sign_up(email, PASSWORD, {"full_name": "Ada", "role": role})
    store = new_store(client)
    await store.bootstrap()
    store.close()
    return storage


async def test_cached_identity_never_flips_to_absent(make_client):
    storage = await signed_in_storage(make_client)
    assert storage.get_item(CACHE_KEY) is not None

    store = new_store(make_client(storage), "/dashboard")
    published = []
    store.subscribe(lambda identity, freshness: published.append((identity, freshness)))
    await store.bootstrap()

    assert published[0][1] == SessionFreshness.CACHED
    assert all(identity is not None for identity, _ in published)
    assert published[-1][1] == SessionFreshness.VERIFIED
    assert published[-1][0].id == published[0][0].id
    assert store.navigator.current_path == "/dashboard"


async def test_no_cache_and_no_session_publishes_absent(client):
    store = new_store(client, "/jobs")
    published = []
    store.subscribe(lambda identity, freshness: published.append(identity))

    assert await store.bootstrap() is None
    assert published == [None]
    assert store.is_verified
    assert store.navigator.current_path == "/auth"


async def test_corrupt_cache_is_discarded(client):
    client.storage.set_item(CACHE_KEY, "{not json")
    store = new_store(client)
    await store.bootstrap()

    assert store.identity is None
    assert client.storage.get_item(CACHE_KEY) is None


async def test_cache_without_session_is_cleared(make_client):
    storage = await signed_in_storage(make_client)
    cached_only = MemoryStorage({CACHE_KEY: storage.get_item(CACHE_KEY)})

    store = new_store(make_client(cached_only), "/portfolio")
    await store.bootstrap()

    assert store.identity is None
    assert cached_only.get_item(CACHE_KEY) is None
    assert store.navigator.current_path == "/"


async def test_sign_in_from_auth_page_goes_to_role_home(client, register):
    await register("boss@example.com", role="hirer")
    store = new_store(client, "/auth")
    await store.bootstrap()

    await client.auth.sign_in_with_password("boss@example.com", PASSWORD)

    assert store.identity.role == UserRole.HIRER
    assert store.navigator.current_path == "/hirer"
    assert client.storage.get_item(CACHE_KEY) is not None


async def test_deep_link_survives_refresh(make_client):
    storage = await signed_in_storage(make_client, email="boss@example.com", role="hirer")
    store = new_store(make_client(storage), "/post-job")
    await store.bootstrap()
    assert store.navigator.current_path == "/post-job"


async def test_deep_link_for_wrong_role_goes_home(make_client):
    storage = await signed_in_storage(make_client)
    store = new_store(make_client(storage), "/post-job")
    await store.bootstrap()
    assert store.navigator.current_path == "/dashboard"


async def test_token_refresh_for_same_user_does_not_refetch(client, backend, register, monkeypatch):
    await register("ada@example.com")
    store = new_store(client)
    await store.bootstrap()
    await client.auth.sign_in_with_password("ada@example.com", PASSWORD)

    def fail(*args, **kwargs):
        raise AssertionError("profile fetched again")

    monkeypatch.setattr(backend, "select", fail)
    await client.auth.refresh_session()
    assert store.identity is not None


async def test_missing_profile_is_created_with_seeker_role(client, backend):
    backend.profile_trigger = False
    await client.auth.sign_up("new@example.com", PASSWORD, {"full_name": "Newbie", "avatar_url": "http://img/n.png"})

    store = new_store(client)
    identity = await store.bootstrap()

    assert identity.role == UserRole.SEEKER
    assert identity.full_name == "Newbie"
    assert identity.avatar_url == "http://img/n.png"
    row = await client.table("profiles").select("*").eq("id", identity.id).single().execute()
    assert row.data["email"] == "new@example.com"


async def test_default_profile_name_falls_back_to_email(client, backend):
    backend.profile_trigger = False
    await client.auth.sign_up("grace.hopper@example.com", PASSWORD)
    identity = await new_store(client).bootstrap()
    assert identity.full_name == "grace.hopper"


async def test_profile_fetch_error_leaves_user_signed_out(make_client, backend, monkeypatch):
    storage = await signed_in_storage(make_client)
    original = backend.select

    def broken(table, *args, **kwargs):
        if table == "profiles":
            raise GatewayError("connection reset", "500")
        return original(table, *args, **kwargs)

    monkeypatch.setattr(backend, "select", broken)
    store = new_store(make_client(storage), "/dashboard")
    await store.bootstrap()

    assert store.identity is None
    assert storage.get_item(CACHE_KEY) is None


async def test_sign_out_clears_and_goes_to_landing(make_client):
    storage = await signed_in_storage(make_client)
    client = make_client(storage)
    store = new_store(client, "/portfolio")
    await store.bootstrap()

    await store.sign_out()
    await store.sign_out()

    assert store.identity is None
    assert storage.get_item(CACHE_KEY) is None
    assert await client.auth.get_session() is None
    assert store.navigator.current_path == "/"


async def test_sign_out_completes_locally_when_gateway_fails(make_client, monkeypatch):
    storage = await signed_in_storage(make_client)
    client = make_client(storage)
    store = new_store(client, "/portfolio")
    await store.bootstrap()
    assert store.identity is not None

    async def unreachable():
        raise GatewayError("Network request failed", "503")

    monkeypatch.setattr(client.auth, "sign_out", unreachable)
    await store.sign_out()

    assert store.identity is None
    assert store.is_verified
    assert storage.get_item(CACHE_KEY) is None
    assert store.navigator.current_path == "/"


async def test_external_sign_out_keeps_public_pages(make_client):
    storage = await signed_in_storage(make_client)
    client = make_client(storage)
    store = new_store(client, "/p/someone")
    await store.bootstrap()

    await client.auth.sign_out()

    assert store.identity is None
    assert store.navigator.current_path == "/p/someone"


async def test_require_verified(make_client):
    storage = await signed_in_storage(make_client)
    store = new_store(make_client(storage))
    await store.bootstrap()
    assert store.require_verified(UserRole.SEEKER).email == "ada@example.com"

    store.close()
    await store.sign_out()
    with pytest.raises(InvariantViolation):
        store.require_verified()
