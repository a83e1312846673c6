from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from craftfolio.models.application import ApplicationStatus


class ApplicationCreate(BaseModel):
    cover_letter: Optional[str] = Field(None, max_length=5000)


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


class Application(BaseModel):
    id: str
    job_id: str
    seeker_id: str
    cover_letter: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    created_at: Optional[datetime] = None

    # Job details for the seeker's tracker
    job_title: Optional[str] = None
    company_name: Optional[str] = None

    model_config = {"from_attributes": True}


class ApplicationDetail(Application):
    """Review view: application with job and applicant details"""
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None
    applicant_avatar_url: Optional[str] = None
    hirer_id: Optional[str] = None
    portfolio_id: Optional[str] = None
