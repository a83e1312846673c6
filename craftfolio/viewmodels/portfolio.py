import logging
from typing import Any, Dict, Optional

from craftfolio.database import utcnow
from craftfolio.exceptions import NotFound
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.models.user import UserRole
from craftfolio.schema.identity_schema import Identity
from craftfolio.schema.portfolio_schema import Portfolio, PortfolioContent
from craftfolio.viewmodels.base import ViewModel

logger = logging.getLogger(__name__)


async def fetch_portfolio(client: GatewayClient, user_id: str) -> Optional[Portfolio]:
    """The user's portfolio, or None when it has not been created yet"""
    result = await client.table("portfolios").select("*").eq("user_id", user_id).maybe_single().execute()
    return Portfolio.model_validate(result.data) if result.data else None


class PortfolioEditor(ViewModel):
    """Owner's editor; shows defaults until the first save creates the row."""

    name = "portfolio-editor"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.portfolio = self._default()

    def _default(self) -> Portfolio:
        return Portfolio(
            user_id=self.identity.id,
            title=self.identity.title or "",
            bio=self.identity.bio or "",
            email=self.identity.email or "",
            website=self.identity.website_url or "",
            github=self.identity.github_url or "",
            linkedin=self.identity.linkedin_url or ""
        )

    async def load(self) -> None:
        try:
            portfolio = await fetch_portfolio(self.client, self.identity.id)
        except GatewayError as e:
            logger.error("Error fetching portfolio: %s", e.message)
            self._commit(error="Failed to load portfolio")
            return
        self._commit(portfolio=portfolio or self._default())

    async def save(self, content: PortfolioContent) -> Portfolio:
        """Upsert keyed on user_id; repeating a save never creates a second row."""
        identity = self._require_role(UserRole.SEEKER, message="Only job seekers can build a portfolio")

        row = content.model_dump(mode="json")
        row["user_id"] = identity.id
        row["updated_at"] = utcnow()

        query = self.client.table("portfolios").upsert(row, on_conflict="user_id")
        result = await self._write(query, "Failed to save portfolio")

        saved = Portfolio.model_validate(result.data[0])
        self._commit(portfolio=saved)
        return saved

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "exists": self.portfolio.exists,
            "portfolio": self.portfolio.model_dump(mode="json"),
        }


class PublicPortfolio(ViewModel):
    """Anyone holding the owner's id; an owner without a portfolio is an empty state."""

    name = "public-portfolio"

    def __init__(self, client: GatewayClient, user_id: str):
        super().__init__(client)
        self.user_id = user_id
        self.profile: Optional[Identity] = None
        self.portfolio: Optional[Portfolio] = None

    async def load(self) -> None:
        result = await self.client.table("profiles").select("*").eq("id", self.user_id).maybe_single().execute()
        if result.data is None:
            raise NotFound("Portfolio not found")

        try:
            portfolio = await fetch_portfolio(self.client, self.user_id)
        except GatewayError as e:
            logger.error("Error fetching portfolio for %s: %s", self.user_id, e.message)
            portfolio = None

        self._commit(profile=Identity.model_validate(result.data), portfolio=portfolio)

    def snapshot(self) -> Dict[str, Any]:
        profile = self.profile
        return {
            **super().snapshot(),
            "profile": {
                "id": profile.id,
                "full_name": profile.full_name,
                "avatar_url": profile.avatar_url,
                "title": profile.title,
            } if profile else None,
            "portfolio": self.portfolio.model_dump(mode="json") if self.portfolio else None,
        }
