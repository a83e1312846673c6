from fastapi import APIRouter, Depends, HTTPException, Query

from craftfolio.exceptions import CraftfolioError
from craftfolio.gateway.client import GatewayClient
from craftfolio.routes.deps import confirmed, get_client, http_error, require_admin
from craftfolio.schema.identity_schema import Identity, RoleChange
from craftfolio.schema.job_schema import JobForm, JobListing
from craftfolio.viewmodels.admin import AdminPanel

router = APIRouter(prefix="/admin", tags=["admin"])


async def _panel(client: GatewayClient, admin: Identity) -> AdminPanel:
    return await AdminPanel(client, admin).mount(live=False)


def _require_confirmed(deleted: bool) -> None:
    if not deleted:
        raise HTTPException(status_code=400, detail="Deletion not confirmed")


# ===== USERS =====

@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    confirm: bool = Query(False),
    admin: Identity = Depends(require_admin),
    client: GatewayClient = Depends(get_client)
):
    """Delete a user's profile; their portfolio, jobs and applications go with it"""
    panel = await _panel(client, admin)
    try:
        deleted = await panel.delete_user(user_id, confirmed(confirm))
    except CraftfolioError as e:
        raise http_error(e)
    _require_confirmed(deleted)
    return {"message": "User deleted", "stats": panel.stats}


@router.patch("/users/{user_id}/role", response_model=Identity)
async def change_user_role(
    user_id: str,
    data: RoleChange,
    admin: Identity = Depends(require_admin),
    client: GatewayClient = Depends(get_client)
):
    panel = await _panel(client, admin)
    try:
        return await panel.change_role(user_id, data.role)
    except CraftfolioError as e:
        raise http_error(e)


# ===== JOBS =====

@router.post("/jobs", response_model=JobListing, status_code=201)
async def create_job(
    form: JobForm,
    admin: Identity = Depends(require_admin),
    client: GatewayClient = Depends(get_client)
):
    panel = await _panel(client, admin)
    try:
        return await panel.save_job(form)
    except CraftfolioError as e:
        raise http_error(e)


@router.put("/jobs/{job_id}", response_model=JobListing)
async def update_job(
    job_id: str,
    form: JobForm,
    admin: Identity = Depends(require_admin),
    client: GatewayClient = Depends(get_client)
):
    panel = await _panel(client, admin)
    try:
        return await panel.save_job(form, job_id=job_id)
    except CraftfolioError as e:
        raise http_error(e)


@router.delete("/jobs/{job_id}")
async def delete_job(
    job_id: str,
    confirm: bool = Query(False),
    admin: Identity = Depends(require_admin),
    client: GatewayClient = Depends(get_client)
):
    panel = await _panel(client, admin)
    try:
        deleted = await panel.delete_job(job_id, confirmed(confirm))
    except CraftfolioError as e:
        raise http_error(e)
    _require_confirmed(deleted)
    return {"message": "Job deleted"}


# ===== MESSAGES =====

@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    confirm: bool = Query(False),
    admin: Identity = Depends(require_admin),
    client: GatewayClient = Depends(get_client)
):
    panel = await _panel(client, admin)
    try:
        deleted = await panel.delete_message(message_id, confirmed(confirm))
    except CraftfolioError as e:
        raise http_error(e)
    _require_confirmed(deleted)
    return {"message": "Message deleted"}
