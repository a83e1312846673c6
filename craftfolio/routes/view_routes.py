from typing import Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query

from craftfolio.exceptions import CraftfolioError
from craftfolio.gateway.errors import GatewayError
from craftfolio.models.application import ApplicationStatus
from craftfolio.routes.deps import get_session_store, http_error
from craftfolio.session.router import RouteDecision, View, decide
from craftfolio.session.store import SessionStore
from craftfolio.viewmodels import (
    AdminPanel,
    ApplicantReview,
    ContactForm,
    HirerDashboard,
    JobListings,
    MyApplications,
    PortfolioEditor,
    ProfileSettings,
    PostJob,
    PublicPortfolio,
    SeekerDashboard,
)
from craftfolio.viewmodels.base import ViewModel


router = APIRouter(prefix="/views", tags=["views"])

ViewFactory = Callable[[SessionStore, Dict[str, str]], ViewModel]

VIEW_MODELS: Dict[View, ViewFactory] = {
    View.PUBLIC_PORTFOLIO: lambda store, params: PublicPortfolio(store.client, params["user_id"]),
    View.CONTACT: lambda store, params: ContactForm(store.client),
    View.SEEKER_DASHBOARD: lambda store, params: SeekerDashboard(store.client, store.identity),
    View.HIRER_DASHBOARD: lambda store, params: HirerDashboard(store.client, store.identity),
    View.ADMIN_PANEL: lambda store, params: AdminPanel(store.client, store.identity),
    View.SETTINGS: lambda store, params: ProfileSettings(store),
    View.PORTFOLIO_EDITOR: lambda store, params: PortfolioEditor(store.client, store.identity),
    View.JOB_LISTINGS: lambda store, params: JobListings(store.client, store.identity),
    View.MY_APPLICATIONS: lambda store, params: MyApplications(store.client, store.identity),
    View.POST_JOB: lambda store, params: PostJob(store.client, store.identity),
    View.APPLICATION_REVIEW: lambda store, params: ApplicantReview(store.client, store.identity, params["application_id"]),
}


@router.get("/{path:path}")
async def render_view(
    path: str,
    search: Optional[str] = Query(None),
    status: Optional[ApplicationStatus] = Query(None),
    store: SessionStore = Depends(get_session_store)
):
    """Role Router decision for `path`; rendered views return their view-model state"""
    decision: RouteDecision = decide(store.identity, "/" + path)
    if decision.is_redirect:
        return {"redirect": decision.redirect_to}

    factory = VIEW_MODELS.get(decision.view)
    if factory is None:
        return {"view": decision.view.value, "params": decision.params, "state": None}

    view_model = factory(store, decision.params)
    try:
        await view_model.mount(live=False)
        if search and isinstance(view_model, JobListings):
            view_model.set_search(search)
        if status and isinstance(view_model, MyApplications):
            view_model.set_filter(status)
        state = view_model.snapshot()
    except (CraftfolioError, GatewayError) as e:
        raise http_error(e)
    finally:
        view_model.unmount()

    return {"view": decision.view.value, "params": decision.params, "state": state}
