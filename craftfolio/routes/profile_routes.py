from fastapi import APIRouter, Depends

from craftfolio.exceptions import CraftfolioError
from craftfolio.routes.deps import get_current_identity, get_session_store, http_error
from craftfolio.schema.identity_schema import Identity, ProfileUpdate
from craftfolio.session.store import SessionStore
from craftfolio.viewmodels.settings import ProfileSettings

router = APIRouter(prefix="/profile", tags=["profile"])


@router.patch("", response_model=Identity)
async def update_profile(
    update: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store)
):
    settings = ProfileSettings(store)
    try:
        await settings.mount(live=False)
        return await settings.save(update)
    except CraftfolioError as e:
        raise http_error(e)
