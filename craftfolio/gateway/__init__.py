from craftfolio.gateway.backend import Backend, QueryResult
from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.errors import GatewayError, NO_ROWS, UNIQUE_VIOLATION
from craftfolio.gateway.realtime import ChangeEvent, ChangeSpec, ChangeType

__all__ = [
    "Backend",
    "ChangeEvent",
    "ChangeSpec",
    "ChangeType",
    "GatewayClient",
    "GatewayError",
    "NO_ROWS",
    "QueryResult",
    "UNIQUE_VIOLATION",
]
