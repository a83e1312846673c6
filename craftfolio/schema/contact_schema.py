from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class ContactMessageCreate(BaseModel):
    name: str = ""
    email: EmailStr
    phone: Optional[str] = None
    message: str = ""


class ContactMessage(ContactMessageCreate):
    id: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
