import asyncio
import logging
from typing import Any, Dict, List

from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.gateway.realtime import ChangeSpec
from craftfolio.schema.application_schema import Application
from craftfolio.schema.identity_schema import Identity
from craftfolio.viewmodels.applications import job_details
from craftfolio.viewmodels.base import ViewModel

logger = logging.getLogger(__name__)


class SeekerDashboard(ViewModel):
    name = "seeker-dashboard"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.stats = {"applications": 0, "active_jobs": 0, "portfolio_views": 0}
        self.has_portfolio = False

    async def load(self) -> None:
        user_id = self.identity.id
        applications, active_jobs, portfolio = await asyncio.gather(
            self._optional(
                self.client.table("applications").select("*", count="exact", head=True).eq("seeker_id", user_id),
                0,
                "application count"
            ),
            self._optional(
                self.client.table("jobs").select("*", count="exact", head=True).eq("is_active", True),
                0,
                "active job count"
            ),
            self._optional(
                self.client.table("portfolios").select("id, views").eq("user_id", user_id).maybe_single(),
                None,
                "portfolio views"
            ),
        )
        self._commit(
            stats={
                "applications": applications,
                "active_jobs": active_jobs,
                "portfolio_views": portfolio["views"] if portfolio else 0,
            },
            has_portfolio=portfolio is not None
        )

    def subscribe(self) -> None:
        self.live.refetch_on(ChangeSpec("applications", "*", f"seeker_id=eq.{self.identity.id}"), self.load)
        self.live.refetch_on(ChangeSpec("jobs"), self.load)

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "stats": dict(self.stats),
            "has_portfolio": self.has_portfolio,
            "public_url": f"/p/{self.identity.id}",
        }


class HirerDashboard(ViewModel):
    """Stat cards plus the three most recent applications across the hirer's jobs."""

    name = "hirer-dashboard"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.stats = {"active_jobs": 0, "total_applications": 0}
        self.recent: List[Application] = []

    async def load(self) -> None:
        hirer_id = self.identity.id
        active_jobs, jobs = await asyncio.gather(
            self._optional(
                self.client.table("jobs").select("*", count="exact", head=True).eq("hirer_id", hirer_id).eq("is_active", True),
                0,
                "active job count"
            ),
            self._optional(self.client.table("jobs").select("id").eq("hirer_id", hirer_id), [], "hirer jobs"),
        )

        job_ids = [job["id"] for job in jobs]
        total, recent = 0, []
        if job_ids:
            total, recent_rows = await asyncio.gather(
                self._optional(
                    self.client.table("applications").select("*", count="exact", head=True).in_("job_id", job_ids),
                    0,
                    "application count"
                ),
                self._optional(
                    self.client.table("applications").select("*").in_("job_id", job_ids).order("created_at", desc=True).limit(3),
                    [],
                    "recent applications"
                ),
            )
            recent = await self._with_titles([Application.model_validate(row) for row in recent_rows])

        self._commit(stats={"active_jobs": active_jobs, "total_applications": total}, recent=recent)

    async def _with_titles(self, applications: List[Application]) -> List[Application]:
        try:
            jobs = await job_details(self.client, list({app.job_id for app in applications}))
        except GatewayError as e:
            logger.warning("Could not load job titles: %s", e.message)
            return applications
        return [
            app.model_copy(update={"job_title": jobs.get(app.job_id, {}).get("title")})
            for app in applications
        ]

    def subscribe(self) -> None:
        self.live.refetch_on(ChangeSpec("applications"), self.load)
        self.live.refetch_on(ChangeSpec("jobs", "*", f"hirer_id=eq.{self.identity.id}"), self.load)

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "stats": dict(self.stats),
            "recent_applications": [app.model_dump(mode="json") for app in self.recent],
        }
