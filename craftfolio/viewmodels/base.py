import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from craftfolio.exceptions import InvariantViolation, MutationFailed
from craftfolio.gateway.backend import QueryResult
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError
from craftfolio.gateway.query import TableQuery
from craftfolio.models.user import UserRole
from craftfolio.schema.identity_schema import Identity
from craftfolio.viewmodels.realtime import LiveQuery

logger = logging.getLogger(__name__)

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


async def ask(confirm: Optional[Confirm], prompt: str) -> bool:
    """Run a confirmation callback; no callback means no confirmation."""
    if confirm is None:
        return False
    answer = confirm(prompt)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


class ViewModel:
    """
    Per-view state holder.

    mount() loads the view's slice and, when live, subscribes to its
    change feeds. After unmount() every state commit is a no-op, so
    fetches still in flight resolve without touching disposed state.
    """

    name = "view"

    def __init__(self, client: GatewayClient, identity: Optional[Identity] = None):
        self.client = client
        self.identity = identity
        self.mounted = False
        self.loading = False
        self.error: Optional[str] = None
        self.live = LiveQuery(client, self.name)

    async def mount(self, live: bool = True) -> "ViewModel":
        self.mounted = True
        self._commit(loading=True)
        try:
            await self.load()
        finally:
            self._commit(loading=False)
        if live and self.mounted:
            self.subscribe()
        return self

    async def load(self) -> None:
        raise NotImplementedError

    def subscribe(self) -> None:
        pass

    def unmount(self) -> None:
        self.live.close()
        self.mounted = False

    async def settle(self) -> None:
        await self.live.settle()

    def snapshot(self) -> Dict[str, Any]:
        return {"loading": self.loading, "error": self.error}

    # ----------------- Helpers -----------------

    def _commit(self, **changes: Any) -> bool:
        if not self.mounted:
            return False
        for name, value in changes.items():
            setattr(self, name, value)
        return True

    def _require_role(self, *roles: UserRole, message: str = "You are not allowed to perform this action") -> Identity:
        if self.identity is None or self.identity.role not in roles:
            raise InvariantViolation(message)
        return self.identity

    async def _write(self, query: TableQuery, failure: str) -> QueryResult:
        """Execute a mutating query; backend errors become MutationFailed."""
        try:
            return await query.execute()
        except GatewayError as e:
            logger.error("%s: %s", failure, e.message)
            raise MutationFailed(failure)

    async def _optional(self, query: TableQuery, default: Any, what: str) -> Any:
        """Non-critical fetch: failures are logged and replaced by `default`."""
        try:
            result = await query.execute()
        except GatewayError as e:
            logger.warning("Could not load %s: %s", what, e.message)
            return default
        if result.count is not None and result.data is None:
            return result.count
        return result.data if result.data is not None else default
