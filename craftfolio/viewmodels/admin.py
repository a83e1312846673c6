import asyncio
import logging
from typing import Any, Dict, List, Optional

from craftfolio.exceptions import InvariantViolation
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.gateway.query import TableQuery
from craftfolio.models.user import UserRole
from craftfolio.schema.contact_schema import ContactMessage
from craftfolio.schema.identity_schema import Identity
from craftfolio.schema.job_schema import JobForm, JobListing
from craftfolio.viewmodels.base import Confirm, ViewModel, ask
from craftfolio.viewmodels.jobs import job_payload

logger = logging.getLogger(__name__)


class AdminPanel(ViewModel):
    """
    Users, jobs and inbound messages with platform-wide counts.

    Users and jobs are required for the panel; messages and the
    portfolio/application counts load independently and fall back to
    empty/zero when they fail.
    """

    name = "admin-panel"

    def __init__(self, client: GatewayClient, identity: Identity):
        super().__init__(client, identity)
        self.users: List[Identity] = []
        self.jobs: List[JobListing] = []
        self.messages: List[ContactMessage] = []
        self.counts = {"portfolios": 0, "applications": 0}

    async def _rows(self, query: TableQuery, what: str) -> Optional[List[dict]]:
        try:
            return (await query.execute()).data
        except GatewayError as e:
            logger.error("Error fetching %s: %s", what, e.message)
            return None

    async def load(self) -> None:
        users, jobs, messages, portfolios, applications = await asyncio.gather(
            self._rows(self.client.table("profiles").select("*").order("created_at", desc=True), "users"),
            self._rows(self.client.table("jobs").select("*").order("created_at", desc=True), "jobs"),
            self._optional(self.client.table("contact_messages").select("*").order("created_at", desc=True), [], "messages"),
            self._optional(self.client.table("portfolios").select("*", count="exact", head=True), 0, "portfolio count"),
            self._optional(self.client.table("applications").select("*", count="exact", head=True), 0, "application count"),
        )

        changes: Dict[str, Any] = {
            "messages": [ContactMessage.model_validate(row) for row in messages],
            "counts": {"portfolios": portfolios, "applications": applications},
            "error": None,
        }
        if users is not None:
            changes["users"] = [Identity.model_validate(row) for row in users]
        if jobs is not None:
            changes["jobs"] = [JobListing.model_validate(row) for row in jobs]
        if users is None or jobs is None:
            changes["error"] = "Failed to load admin data"
        self._commit(**changes)

    def _require_admin(self) -> Identity:
        return self._require_role(UserRole.ADMIN, message="Admin access required")

    # ----------------- Users -----------------

    async def delete_user(self, user_id: str, confirm: Optional[Confirm]) -> bool:
        """Delete a profile; the store cascades its portfolio, jobs and applications."""
        if not await ask(confirm, "Are you sure you want to delete this user? This will remove their profile and portfolio."):
            return False
        admin = self._require_admin()
        if user_id == admin.id:
            raise InvariantViolation("You cannot delete your own account")

        await self._write(self.client.table("profiles").delete().eq("id", user_id), "Failed to delete user")
        self._commit(
            users=[user for user in self.users if user.id != user_id],
            jobs=[job for job in self.jobs if job.hirer_id != user_id]
        )
        return True

    async def change_role(self, user_id: str, role: UserRole) -> Identity:
        admin = self._require_admin()
        role = UserRole(role)
        if user_id == admin.id and role != UserRole.ADMIN:
            raise InvariantViolation("You cannot remove your own admin access")

        query = self.client.table("profiles").update({"role": role.value}).eq("id", user_id)
        result = await self._write(query, "Failed to update role")
        if not result.data:
            raise InvariantViolation("User not found")

        updated = Identity.model_validate(result.data[0])
        self._commit(users=[updated if user.id == user_id else user for user in self.users])
        return updated

    # ----------------- Jobs -----------------

    async def delete_job(self, job_id: str, confirm: Optional[Confirm]) -> bool:
        if not await ask(confirm, "Are you sure you want to delete this job?"):
            return False
        self._require_admin()

        await self._write(self.client.table("jobs").delete().eq("id", job_id), "Failed to delete job")
        self._commit(jobs=[job for job in self.jobs if job.id != job_id])
        return True

    async def save_job(self, form: JobForm, job_id: Optional[str] = None) -> JobListing:
        """Edit any job, or create one owned by the admin; the panel reloads afterwards."""
        admin = self._require_admin()
        payload = job_payload(form)

        if job_id:
            query = self.client.table("jobs").update(payload).eq("id", job_id)
        else:
            payload.update(hirer_id=admin.id, is_active=True)
            query = self.client.table("jobs").insert(payload)

        result = await self._write(query, "Failed to save job")
        if not result.data:
            raise InvariantViolation("Job not found")

        await self.load()
        return JobListing.model_validate(result.data[0])

    # ----------------- Messages -----------------

    async def delete_message(self, message_id: str, confirm: Optional[Confirm]) -> bool:
        if not await ask(confirm, "Are you sure you want to delete this message?"):
            return False
        self._require_admin()

        await self._write(self.client.table("contact_messages").delete().eq("id", message_id), "Failed to delete message")
        self._commit(messages=[msg for msg in self.messages if msg.id != message_id])
        return True

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "jobs": len(self.jobs),
            "active_jobs": sum(1 for job in self.jobs if job.is_active),
            "portfolios": self.counts["portfolios"],
            "applications": self.counts["applications"],
            "messages": len(self.messages),
        }

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "stats": self.stats,
            "users": [user.model_dump(mode="json") for user in self.users],
            "jobs": [job.model_dump(mode="json") for job in self.jobs],
            "messages": [msg.model_dump(mode="json") for msg in self.messages],
        }
