import logging
from typing import Any, Dict, List, Optional

from craftfolio.exceptions import InvariantViolation, MutationFailed, NotFound
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.gateway.realtime import ChangeEvent, ChangeSpec, ChangeType
from craftfolio.models.application import ApplicationStatus
from craftfolio.models.user import UserRole
from craftfolio.schema.application_schema import Application, ApplicationDetail
from craftfolio.schema.identity_schema import Identity
from craftfolio.viewmodels.base import Confirm, ViewModel, ask
from craftfolio.viewmodels.realtime import apply_change

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    ApplicationStatus.ACCEPTED: "Congratulations! Your application has been accepted. The employer will contact you soon.",
    ApplicationStatus.REJECTED: "Unfortunately, your application was not successful this time. Keep applying!",
}


async def job_details(client: GatewayClient, job_ids: List[str]) -> Dict[str, dict]:
    """id -> {title, company_name} for the given jobs"""
    if not job_ids:
        return {}
    result = await client.table("jobs").select("id, title, company_name").in_("id", job_ids).execute()
    return {row["id"]: row for row in result.data}


class MyApplications(ViewModel):
    """Seeker's application tracker, patched in place from the applications feed."""

    name = "my-applications"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.applications: List[Application] = []
        self.status_filter: Optional[ApplicationStatus] = None

    async def load(self) -> None:
        try:
            result = await (
                self.client.table("applications")
                .select("*")
                .eq("seeker_id", self.identity.id)
                .order("created_at", desc=True)
                .execute()
            )
        except GatewayError as e:
            logger.error("Error fetching applications: %s", e.message)
            self._commit(error="Failed to load applications")
            return

        applications = [Application.model_validate(row) for row in result.data]
        self._commit(applications=await self._with_jobs(applications), error=None)

    async def _with_jobs(self, applications: List[Application]) -> List[Application]:
        try:
            jobs = await job_details(self.client, list({app.job_id for app in applications}))
        except GatewayError as e:
            logger.warning("Could not load job details: %s", e.message)
            return applications
        return [
            app.model_copy(update={
                "job_title": jobs.get(app.job_id, {}).get("title"),
                "company_name": jobs.get(app.job_id, {}).get("company_name"),
            })
            for app in applications
        ]

    def subscribe(self) -> None:
        spec = ChangeSpec("applications", "*", f"seeker_id=eq.{self.identity.id}")
        self.live.watch(spec, self.on_change)

    def on_change(self, event: ChangeEvent) -> None:
        rows = apply_change(
            self.applications,
            event,
            Application,
            accepts=lambda row: row.get("seeker_id") == self.identity.id
        )
        self._commit(applications=rows)
        if event.event_type == ChangeType.INSERT and any(app.job_title is None for app in rows):
            self.live.schedule(self._hydrate())

    async def _hydrate(self) -> None:
        self._commit(applications=await self._with_jobs(self.applications))

    async def delete(self, application_id: str, confirm: Optional[Confirm]) -> bool:
        if not await ask(confirm, "Are you sure you want to delete this application?"):
            return False
        identity = self._require_role(UserRole.SEEKER, message="Only job seekers can withdraw applications")

        query = self.client.table("applications").delete().eq("id", application_id).eq("seeker_id", identity.id)
        result = await self._write(query, "Failed to delete application")
        if not result.data:
            raise NotFound("Application not found")

        self._commit(applications=[app for app in self.applications if app.id != application_id])
        return True

    def set_filter(self, status: Optional[ApplicationStatus]) -> None:
        self._commit(status_filter=status)

    @property
    def filtered(self) -> List[Application]:
        if self.status_filter is None:
            return list(self.applications)
        return [app for app in self.applications if app.status == self.status_filter]

    @property
    def counts(self) -> Dict[str, int]:
        counts = {"all": len(self.applications)}
        for status in ApplicationStatus:
            counts[status.value] = sum(1 for app in self.applications if app.status == status)
        return counts

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "status_filter": self.status_filter.value if self.status_filter else None,
            "counts": self.counts,
            "applications": [
                {**app.model_dump(mode="json"), "message": STATUS_MESSAGES.get(app.status)}
                for app in self.filtered
            ],
        }


class ApplicantReview(ViewModel):
    """
    Hirer's view of a single application.

    Opening a pending application marks it reviewed; once the status has
    moved on, loading again issues no further status writes.
    """

    name = "applicant-review"

    def __init__(self, client: GatewayClient, identity: Identity, application_id: str):
        super().__init__(client, identity)
        self.application_id = application_id
        self.detail: Optional[ApplicationDetail] = None

    async def load(self) -> None:
        try:
            detail = await self._fetch()
        except GatewayError as e:
            logger.error("Error fetching application: %s", e.message)
            self._commit(error="Failed to load application")
            return

        if not self._may_decide(detail):
            raise InvariantViolation("You are not allowed to review this application")
        if not self._commit(detail=detail):
            return

        if detail.status == ApplicationStatus.PENDING:
            try:
                await self._mark_reviewed()
            except (MutationFailed, NotFound, GatewayError) as e:
                logger.error("Error marking application reviewed: %s", e.message)
                self._commit(error="Failed to update status")

    async def _mark_reviewed(self) -> None:
        """Move pending to reviewed unless a decision landed since the fetch."""
        query = (
            self.client.table("applications")
            .update({"status": ApplicationStatus.REVIEWED.value})
            .eq("id", self.application_id)
            .eq("status", ApplicationStatus.PENDING.value)
        )
        result = await self._write(query, "Failed to update status")
        if result.data:
            self._commit(detail=self.detail.model_copy(update={"status": ApplicationStatus.REVIEWED}))
        else:
            self._commit(detail=await self._fetch())

    async def _fetch(self) -> ApplicationDetail:
        result = await self.client.table("applications").select("*").eq("id", self.application_id).maybe_single().execute()
        if result.data is None:
            raise NotFound("Application not found")
        row = dict(result.data)

        job = await self.client.table("jobs").select("title, company_name, hirer_id").eq("id", row["job_id"]).maybe_single().execute()
        applicant = await self.client.table("profiles").select("full_name, email, avatar_url").eq("id", row["seeker_id"]).maybe_single().execute()
        portfolio = await self.client.table("portfolios").select("id").eq("user_id", row["seeker_id"]).maybe_single().execute()

        job_row = job.data or {}
        applicant_row = applicant.data or {}
        row.update(
            job_title=job_row.get("title"),
            company_name=job_row.get("company_name"),
            hirer_id=job_row.get("hirer_id"),
            applicant_name=applicant_row.get("full_name"),
            applicant_email=applicant_row.get("email"),
            applicant_avatar_url=applicant_row.get("avatar_url"),
            portfolio_id=portfolio.data["id"] if portfolio.data else None
        )
        return ApplicationDetail.model_validate(row)

    def _may_decide(self, detail: ApplicationDetail) -> bool:
        if self.identity is None:
            return False
        if self.identity.role == UserRole.ADMIN:
            return True
        return self.identity.role == UserRole.HIRER and detail.hirer_id == self.identity.id

    async def update_status(self, status: ApplicationStatus) -> ApplicationDetail:
        if self.detail is None:
            raise NotFound("Application not found")
        if not self._may_decide(self.detail):
            raise InvariantViolation("Only the job's hirer can update this application")

        status = ApplicationStatus(status)
        query = self.client.table("applications").update({"status": status.value}).eq("id", self.application_id)
        result = await self._write(query, "Failed to update status")
        if not result.data:
            raise NotFound("Application not found")

        updated = self.detail.model_copy(update={"status": status})
        self._commit(detail=updated)
        return updated

    async def accept(self) -> ApplicationDetail:
        return await self.update_status(ApplicationStatus.ACCEPTED)

    async def reject(self) -> ApplicationDetail:
        return await self.update_status(ApplicationStatus.REJECTED)

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "application": self.detail.model_dump(mode="json") if self.detail else None,
        }
