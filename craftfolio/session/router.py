"""
Role Router.

`decide(identity, path)` is a pure function: it only says which view a
path renders for the given identity, or where to redirect instead. The
Navigator applies it after every identity change and every navigation.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional

from craftfolio.models.user import UserRole
from craftfolio.schema.identity_schema import Identity

logger = logging.getLogger(__name__)

LANDING_PATH = "/"
AUTH_PATH = "/auth"
MAX_REDIRECTS = 5


class View(str, enum.Enum):
    LANDING = "landing"
    AUTH = "auth"
    PUBLIC_PORTFOLIO = "public_portfolio"
    CONTACT = "contact"
    SEEKER_DASHBOARD = "seeker_dashboard"
    HIRER_DASHBOARD = "hirer_dashboard"
    ADMIN_PANEL = "admin_panel"
    SETTINGS = "settings"
    PORTFOLIO_EDITOR = "portfolio_editor"
    JOB_LISTINGS = "job_listings"
    MY_APPLICATIONS = "my_applications"
    POST_JOB = "post_job"
    APPLICATION_REVIEW = "application_review"


@dataclass(frozen=True)
class Route:
    pattern: str
    view: View
    public: bool = False
    # None: any signed-in role
    roles: Optional[FrozenSet[UserRole]] = None


def _only(*roles: UserRole) -> FrozenSet[UserRole]:
    return frozenset(roles)


ROUTES: List[Route] = [
    Route("/", View.LANDING, public=True),
    Route("/auth", View.AUTH, public=True),
    Route("/p/{user_id}", View.PUBLIC_PORTFOLIO, public=True),
    Route("/contact", View.CONTACT, public=True),
    Route("/dashboard", View.SEEKER_DASHBOARD, roles=_only(UserRole.SEEKER)),
    Route("/hirer", View.HIRER_DASHBOARD, roles=_only(UserRole.HIRER)),
    Route("/admin", View.ADMIN_PANEL, roles=_only(UserRole.ADMIN)),
    Route("/settings", View.SETTINGS),
    Route("/portfolio", View.PORTFOLIO_EDITOR, roles=_only(UserRole.SEEKER)),
    Route("/jobs", View.JOB_LISTINGS),
    Route("/applications", View.MY_APPLICATIONS, roles=_only(UserRole.SEEKER)),
    Route("/post-job", View.POST_JOB, roles=_only(UserRole.HIRER)),
    Route("/review-application/{application_id}", View.APPLICATION_REVIEW, roles=_only(UserRole.HIRER)),
]

ROLE_HOMES: Dict[UserRole, str] = {
    UserRole.ADMIN: "/admin",
    UserRole.HIRER: "/hirer",
    UserRole.SEEKER: "/dashboard",
}

# Views a signed-in user is bounced away from
GUEST_ONLY = {View.LANDING, View.AUTH}


@dataclass(frozen=True)
class RouteDecision:
    view: Optional[View] = None
    params: Dict[str, str] = field(default_factory=dict)
    redirect_to: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return self.redirect_to is not None


def role_home(role: UserRole) -> str:
    return ROLE_HOMES.get(role, ROLE_HOMES[UserRole.SEEKER])


def normalize_path(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def match(path: str):
    """(Route, params) for the first route matching `path`, or (None, {})"""
    parts = normalize_path(path).strip("/").split("/")
    for route in ROUTES:
        pattern = route.pattern.strip("/").split("/")
        if len(pattern) != len(parts):
            continue
        params = {}
        for expected, actual in zip(pattern, parts):
            if expected.startswith("{") and expected.endswith("}"):
                if not actual:
                    break
                params[expected[1:-1]] = actual
            elif expected != actual:
                break
        else:
            return route, params
    return None, {}


def is_public_path(path: str) -> bool:
    route, _ = match(path)
    return route is not None and route.public


def decide(identity: Optional[Identity], path: str) -> RouteDecision:
    route, params = match(path)
    if route is None:
        return RouteDecision(redirect_to=LANDING_PATH)

    if identity is None:
        if route.public:
            return RouteDecision(view=route.view, params=params)
        return RouteDecision(redirect_to=AUTH_PATH)

    if route.view in GUEST_ONLY:
        return RouteDecision(redirect_to=role_home(identity.role))
    if route.roles is not None and identity.role not in route.roles:
        return RouteDecision(redirect_to=role_home(identity.role))
    return RouteDecision(view=route.view, params=params)


class Navigator:
    """Current location plus history; every move goes through the router."""

    def __init__(self, identity_source: Callable[[], Optional[Identity]], path: str = LANDING_PATH):
        self._identity_source = identity_source
        self.current_path = normalize_path(path)
        self.history: List[str] = [self.current_path]
        self.decision: Optional[RouteDecision] = None

    def navigate(self, path: str) -> RouteDecision:
        target = normalize_path(path)
        identity = self._identity_source()
        for _ in range(MAX_REDIRECTS + 1):
            decision = decide(identity, target)
            if not decision.is_redirect:
                break
            logger.debug("Redirecting %s -> %s", target, decision.redirect_to)
            target = decision.redirect_to
        else:
            raise RuntimeError(f"Too many redirects navigating to {path}")

        if target != self.current_path:
            self.history.append(target)
        self.current_path = target
        self.decision = decision
        return decision

    def refresh(self) -> RouteDecision:
        """Re-run the router on the current path after an identity change"""
        return self.navigate(self.current_path)

    def bind(self, identity_source: Callable[[], Optional[Identity]]) -> None:
        self._identity_source = identity_source
