import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from sqlalchemy.pool import StaticPool

from craftfolio.crud.table_crud import Filter
from craftfolio.database import build_engine
from craftfolio.gateway.backend import Backend
from craftfolio.gateway.client import GatewayClient
from craftfolio.schema.identity_schema import Identity
from craftfolio.schema.job_schema import JobForm
from craftfolio.schema.portfolio_schema import PortfolioContent
from craftfolio.utils.storage import MemoryStorage

PASSWORD = "secret123"


@pytest.fixture
def backend():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    backend = Backend.from_engine(engine)
    backend.create_all()
    yield backend
    engine.dispose()


@pytest.fixture
def client(backend):
    return GatewayClient(backend, MemoryStorage())


@pytest.fixture
def make_client(backend):
    def make(storage=None):
        return GatewayClient(backend, storage if storage is not None else MemoryStorage())
    return make


@pytest.fixture
def register(backend, make_client):
    """Sign a user up on a throwaway client and return their profile as an Identity"""

    async def register(email, role="seeker", full_name=None):
        signup_client = make_client()
        metadata = {"full_name": full_name or email.split("@")[0].title(), "role": "seeker" if role == "admin" else role}
        session = await signup_client.auth.sign_up(email, PASSWORD, metadata)
        if role == "admin":
            backend.update("profiles", {"role": "admin"}, [Filter("id", "eq", session.user.id)])
        row = backend.select("profiles", filters=[Filter("id", "eq", session.user.id)])[0]
        return Identity.model_validate(row)

    return register


@pytest.fixture
def job_form():
    return JobForm(
        title="Backend Engineer",
        company_name="Acme",
        location="Remote",
        job_type="Full-time",
        salary_range="$100k-$120k",
        description="Build APIs",
        requirements=["Python", "  ", "SQL"]
    )


@pytest.fixture
def portfolio_content():
    return PortfolioContent(
        title="Data Engineer",
        bio="I move data around",
        skills=["Go", "SQL"],
        projects=[{"title": "Pipeline", "description": "ETL", "technologies": "Go", "link": ""}]
    )
