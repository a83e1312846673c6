from typing import Any, Dict, Optional

from pydantic import ValidationError

from craftfolio.exceptions import InvariantViolation
from craftfolio.gateway.client import GatewayClient
from craftfolio.schema.contact_schema import ContactMessage, ContactMessageCreate
from craftfolio.viewmodels.base import ViewModel

REQUIRED_FIELDS = "Please fill in all required fields"
INVALID_EMAIL = "Please enter a valid email address"


class ContactForm(ViewModel):
    """Public contact form; anonymous visitors may submit."""

    name = "contact"

    def __init__(self, client: GatewayClient):
        super().__init__(client)
        self.sent: Optional[ContactMessage] = None

    @staticmethod
    def compose(name: str, email: str, message: str, phone: Optional[str] = None) -> ContactMessageCreate:
        """Build a message from raw form fields"""
        if not name.strip() or not email.strip() or not message.strip():
            raise InvariantViolation(REQUIRED_FIELDS)
        try:
            return ContactMessageCreate(name=name, email=email.strip(), message=message, phone=phone)
        except ValidationError:
            raise InvariantViolation(INVALID_EMAIL)

    async def load(self) -> None:
        return None

    async def submit(self, message: ContactMessageCreate) -> ContactMessage:
        if not message.name.strip() or not message.email.strip() or not message.message.strip():
            raise InvariantViolation(REQUIRED_FIELDS)

        payload = message.model_dump()
        payload["phone"] = payload.get("phone") or None
        result = await self._write(self.client.table("contact_messages").insert(payload), "Failed to send message")

        sent = ContactMessage.model_validate(result.data[0])
        self._commit(sent=sent)
        return sent

    def snapshot(self) -> Dict[str, Any]:
        return {**super().snapshot(), "sent": self.sent is not None}
