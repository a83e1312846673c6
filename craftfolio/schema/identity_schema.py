from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from craftfolio.models.user import UserRole


class Identity(BaseModel):
    """The signed-in subject's profile row"""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole = UserRole.SEEKER
    avatar_url: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    website_url: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Fields a user may edit on their own profile"""
    full_name: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    website_url: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None


class RoleChange(BaseModel):
    role: UserRole
