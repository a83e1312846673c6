from typing import Optional

from craftfolio.gateway.auth import AuthClient
from craftfolio.gateway.backend import Backend
from craftfolio.gateway.query import TableQuery
from craftfolio.gateway.realtime import Channel
from craftfolio.utils.storage import KeyValueStorage, MemoryStorage


class GatewayClient:
    """
    One client per running app instance.

    Every client sharing a Backend sees the same rows and the same
    realtime feed; auth state is private to the client's storage.
    """

    def __init__(self, backend: Backend, storage: Optional[KeyValueStorage] = None):
        self.backend = backend
        self.storage = storage if storage is not None else MemoryStorage()
        self.auth = AuthClient(backend, self.storage)

    def table(self, name: str) -> TableQuery:
        return TableQuery(self.backend, name)

    def channel(self, name: str) -> Channel:
        return Channel(self.backend.hub, name)

    def remove_channel(self, channel: Channel) -> None:
        channel.unsubscribe()
