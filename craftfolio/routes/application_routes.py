from fastapi import APIRouter, Depends, HTTPException, Query

from craftfolio.exceptions import CraftfolioError
from craftfolio.gateway.client import GatewayClient
from craftfolio.routes.deps import confirmed, get_client, get_current_identity, http_error
from craftfolio.schema.application_schema import ApplicationDetail, ApplicationStatusUpdate
from craftfolio.schema.identity_schema import Identity
from craftfolio.viewmodels.applications import ApplicantReview, MyApplications

router = APIRouter(prefix="/applications", tags=["applications"])


@router.patch("/{application_id}/status", response_model=ApplicationDetail)
async def update_application_status(
    application_id: str,
    data: ApplicationStatusUpdate,
    identity: Identity = Depends(get_current_identity),
    client: GatewayClient = Depends(get_client)
):
    """Job's hirer or an admin sets the application status"""
    review = ApplicantReview(client, identity, application_id)
    try:
        await review.mount(live=False)
        return await review.update_status(data.status)
    except CraftfolioError as e:
        raise http_error(e)


@router.delete("/{application_id}")
async def delete_application(
    application_id: str,
    confirm: bool = Query(False),
    identity: Identity = Depends(get_current_identity),
    client: GatewayClient = Depends(get_client)
):
    tracker = MyApplications(client, identity)
    try:
        await tracker.mount(live=False)
        deleted = await tracker.delete(application_id, confirmed(confirm))
    except CraftfolioError as e:
        raise http_error(e)
    if not deleted:
        raise HTTPException(status_code=400, detail="Deletion not confirmed")
    return {"message": "Application deleted"}
