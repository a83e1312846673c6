from craftfolio.models.user import AuthUser, Profile, UserRole
from craftfolio.models.portfolio import Portfolio, PortfolioTemplate
from craftfolio.models.job import Job
from craftfolio.models.application import Application, ApplicationStatus
from craftfolio.models.contact_message import ContactMessage

__all__ = [
    "AuthUser",
    "Profile",
    "UserRole",
    "Portfolio",
    "PortfolioTemplate",
    "Job",
    "Application",
    "ApplicationStatus",
    "ContactMessage",
]
