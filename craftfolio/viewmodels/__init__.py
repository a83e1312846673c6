from craftfolio.viewmodels.admin import AdminPanel
from craftfolio.viewmodels.applications import ApplicantReview, MyApplications
from craftfolio.viewmodels.contact import ContactForm
from craftfolio.viewmodels.dashboards import HirerDashboard, SeekerDashboard
from craftfolio.viewmodels.jobs import JobListings, PostJob
from craftfolio.viewmodels.portfolio import PortfolioEditor, PublicPortfolio
from craftfolio.viewmodels.realtime import LiveQuery, apply_change
from craftfolio.viewmodels.settings import ProfileSettings

__all__ = [
    "AdminPanel",
    "ApplicantReview",
    "ContactForm",
    "HirerDashboard",
    "JobListings",
    "LiveQuery",
    "MyApplications",
    "PortfolioEditor",
    "ProfileSettings",
    "PublicPortfolio",
    "SeekerDashboard",
    "apply_change",
]
