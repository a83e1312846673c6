from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class JobForm(BaseModel):
    title: str = ""
    company_name: str = ""
    location: Optional[str] = ""
    job_type: Optional[str] = "Full-time"
    salary_range: Optional[str] = ""
    description: Optional[str] = ""
    requirements: List[str] = Field(default_factory=list)

    @field_validator("requirements")
    @classmethod
    def drop_blank_requirements(cls, v: List[str]) -> List[str]:
        """Blank requirement lines are never stored"""
        return [req.strip() for req in v if req and req.strip()]


class JobListing(BaseModel):
    id: str
    hirer_id: str
    title: str
    company_name: str
    location: Optional[str] = None
    job_type: Optional[str] = None
    salary_range: Optional[str] = None
    description: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    def matches(self, term: str) -> bool:
        term = term.strip().lower()
        if not term:
            return True
        return any(
            term in (value or "").lower()
            for value in (self.title, self.company_name, self.location)
        )
