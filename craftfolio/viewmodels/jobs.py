import logging
from typing import Any, Dict, List, Optional, Set

from craftfolio.exceptions import InvariantViolation, MutationFailed
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError, UNIQUE_VIOLATION
from craftfolio.gateway.realtime import ChangeSpec
from craftfolio.models.application import ApplicationStatus
from craftfolio.models.user import UserRole
from craftfolio.schema.application_schema import Application
from craftfolio.schema.identity_schema import Identity
from craftfolio.schema.job_schema import JobForm, JobListing
from craftfolio.viewmodels.base import ViewModel

logger = logging.getLogger(__name__)

PORTFOLIO_REQUIRED = "Please create your portfolio first before applying for jobs"
ALREADY_APPLIED = "You have already applied for this job"
REQUIRED_FIELDS = "Please fill in all required fields"


def job_payload(form: JobForm) -> Dict[str, Any]:
    """Validated insert/update payload for a job form"""
    if not form.title.strip() or not form.company_name.strip():
        raise InvariantViolation(REQUIRED_FIELDS)
    payload = form.model_dump()
    payload["title"] = form.title.strip()
    payload["company_name"] = form.company_name.strip()
    return payload


class JobListings(ViewModel):
    """Active jobs, newest first, kept fresh by refetching on job changes."""

    name = "job-listings"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.jobs: List[JobListing] = []
        self.search = ""
        self.applied_job_ids: Set[str] = set()

    async def load(self) -> None:
        try:
            result = await (
                self.client.table("jobs")
                .select("*")
                .eq("is_active", True)
                .order("created_at", desc=True)
                .execute()
            )
        except GatewayError as e:
            logger.error("Error fetching jobs: %s", e.message)
            self._commit(error="Failed to load jobs")
            return
        self._commit(jobs=[JobListing.model_validate(row) for row in result.data], error=None)

    def subscribe(self) -> None:
        self.live.refetch_on(ChangeSpec("jobs", "*", "is_active=eq.true"), self.load)

    def set_search(self, term: str) -> None:
        self._commit(search=term or "")

    @property
    def visible_jobs(self) -> List[JobListing]:
        return [job for job in self.jobs if job.matches(self.search)]

    async def apply(self, job_id: str, cover_letter: Optional[str] = None) -> Application:
        """
        Submit an application.

        Requires an existing portfolio and no earlier application to the
        same job; both checks run before the insert is issued. A conflict
        reported by the store is treated the same as the pre-check.
        """
        identity = self._require_role(UserRole.SEEKER, message="Only job seekers can apply for jobs")

        try:
            portfolio = await (
                self.client.table("portfolios")
                .select("id")
                .eq("user_id", identity.id)
                .maybe_single()
                .execute()
            )
            if portfolio.data is None:
                raise InvariantViolation(PORTFOLIO_REQUIRED)

            existing = await (
                self.client.table("applications")
                .select("id")
                .eq("job_id", job_id)
                .eq("seeker_id", identity.id)
                .maybe_single()
                .execute()
            )
        except GatewayError as e:
            logger.error("Error checking application prerequisites: %s", e.message)
            raise MutationFailed("Failed to submit application")

        if existing.data is not None:
            raise InvariantViolation(ALREADY_APPLIED)

        try:
            result = await self.client.table("applications").insert({
                "job_id": job_id,
                "seeker_id": identity.id,
                "cover_letter": cover_letter,
                "status": ApplicationStatus.PENDING.value,
            }).execute()
        except GatewayError as e:
            if e.code == UNIQUE_VIOLATION:
                raise InvariantViolation(ALREADY_APPLIED)
            logger.error("Error submitting application: %s", e.message)
            raise MutationFailed("Failed to submit application")

        self._commit(applied_job_ids=self.applied_job_ids | {job_id})
        return Application.model_validate(result.data[0])

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "search": self.search,
            "jobs": [job.model_dump(mode="json") for job in self.visible_jobs],
        }


class PostJob(ViewModel):
    name = "post-job"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.posted: Optional[JobListing] = None

    async def load(self) -> None:
        return None

    async def submit(self, form: JobForm) -> JobListing:
        identity = self._require_role(UserRole.HIRER, message="Only hirers can post jobs")
        payload = job_payload(form)
        payload.update(hirer_id=identity.id, is_active=True)

        result = await self._write(self.client.table("jobs").insert(payload), "Failed to post job")
        job = JobListing.model_validate(result.data[0])
        self._commit(posted=job)
        return job

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "posted": self.posted.model_dump(mode="json") if self.posted else None,
        }
