from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from craftfolio.exceptions import CraftfolioError
from craftfolio.gateway.client import GatewayClient
from craftfolio.models.user import UserRole
from craftfolio.routes.deps import get_client, get_current_identity, http_error, require_role
from craftfolio.schema.application_schema import Application, ApplicationCreate
from craftfolio.schema.identity_schema import Identity
from craftfolio.schema.job_schema import JobForm, JobListing
from craftfolio.viewmodels.jobs import JobListings, PostJob

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=List[JobListing])
async def list_jobs(
    search: Optional[str] = Query(None),
    identity: Identity = Depends(get_current_identity),
    client: GatewayClient = Depends(get_client)
):
    listings = await JobListings(client, identity).mount(live=False)
    listings.set_search(search or "")
    return listings.visible_jobs


@router.post("", response_model=JobListing, status_code=201)
async def post_job(
    form: JobForm,
    identity: Identity = Depends(require_role(UserRole.HIRER)),
    client: GatewayClient = Depends(get_client)
):
    view = await PostJob(client, identity).mount(live=False)
    try:
        return await view.submit(form)
    except CraftfolioError as e:
        raise http_error(e)


@router.post("/{job_id}/apply", response_model=Application, status_code=201)
async def apply_to_job(
    job_id: str,
    data: ApplicationCreate,
    identity: Identity = Depends(get_current_identity),
    client: GatewayClient = Depends(get_client)
):
    """Seeker applies to a job; requires an existing portfolio"""
    listings = JobListings(client, identity)
    try:
        await listings.mount(live=False)
        return await listings.apply(job_id, data.cover_letter)
    except CraftfolioError as e:
        raise http_error(e)
