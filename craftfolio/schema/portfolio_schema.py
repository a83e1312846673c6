from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from craftfolio.models.portfolio import PortfolioTemplate


class Project(BaseModel):
    title: str = ""
    description: str = ""
    technologies: str = ""
    link: str = ""


class ExperienceEntry(BaseModel):
    company: str = ""
    position: str = ""
    duration: str = ""
    description: str = ""


class EducationEntry(BaseModel):
    institution: str = ""
    degree: str = ""
    year: str = ""


class PortfolioContent(BaseModel):
    """Editable portfolio payload; order of every list is preserved"""
    bio: Optional[str] = ""
    title: Optional[str] = ""
    location: Optional[str] = ""
    email: Optional[str] = ""
    phone: Optional[str] = ""
    website: Optional[str] = ""
    linkedin: Optional[str] = ""
    github: Optional[str] = ""
    skills: List[str] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    template: PortfolioTemplate = PortfolioTemplate.MODERN


class Portfolio(PortfolioContent):
    id: Optional[str] = None
    user_id: str
    views: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def exists(self) -> bool:
        """False for the default shown before the first save"""
        return self.id is not None
