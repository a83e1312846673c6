from fastapi import APIRouter, Depends

from craftfolio.exceptions import CraftfolioError
from craftfolio.gateway.client import GatewayClient
from craftfolio.routes.deps import get_client, http_error
from craftfolio.schema.contact_schema import ContactMessage, ContactMessageCreate
from craftfolio.viewmodels.contact import ContactForm

router = APIRouter(prefix="/contact", tags=["contact"])


@router.post("", response_model=ContactMessage, status_code=201)
async def send_contact_message(message: ContactMessageCreate, client: GatewayClient = Depends(get_client)):
    form = await ContactForm(client).mount(live=False)
    try:
        return await form.submit(message)
    except CraftfolioError as e:
        raise http_error(e)
