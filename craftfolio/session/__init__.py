from craftfolio.session.router import Navigator, RouteDecision, View, decide, role_home
from craftfolio.session.store import CACHE_KEY, SessionFreshness, SessionStore

__all__ = [
    "CACHE_KEY",
    "Navigator",
    "RouteDecision",
    "SessionFreshness",
    "SessionStore",
    "View",
    "decide",
    "role_home",
]
