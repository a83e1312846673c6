from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


# ----------------- Gateway auth objects -----------------
class GatewayUser(BaseModel):
    id: str
    email: str
    provider: str = "email"
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[int] = None
    user: GatewayUser


# ----------------- Requests -----------------
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1)
    role: Literal["seeker", "hirer"] = "seeker"


class LoginRequest(BaseModel):
    email: str
    password: str


class OAuthCallbackRequest(BaseModel):
    access_token: str


# ----------------- Tokens -----------------
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
