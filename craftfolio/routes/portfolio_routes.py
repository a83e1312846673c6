from fastapi import APIRouter, Depends

from craftfolio.exceptions import CraftfolioError
from craftfolio.models.user import UserRole
from craftfolio.routes.deps import get_client, http_error, require_role
from craftfolio.gateway.client import GatewayClient
from craftfolio.schema.identity_schema import Identity
from craftfolio.schema.portfolio_schema import Portfolio, PortfolioContent
from craftfolio.viewmodels.portfolio import PortfolioEditor

router = APIRouter(prefix="/portfolio", tags=["portfolio"])

require_seeker = require_role(UserRole.SEEKER)


@router.get("", response_model=Portfolio)
async def get_my_portfolio(
    identity: Identity = Depends(require_seeker),
    client: GatewayClient = Depends(get_client)
):
    """Own portfolio, or the defaults shown before the first save"""
    editor = await PortfolioEditor(client, identity).mount(live=False)
    return editor.portfolio


@router.put("", response_model=Portfolio)
async def save_portfolio(
    content: PortfolioContent,
    identity: Identity = Depends(require_seeker),
    client: GatewayClient = Depends(get_client)
):
    editor = await PortfolioEditor(client, identity).mount(live=False)
    try:
        return await editor.save(content)
    except CraftfolioError as e:
        raise http_error(e)
