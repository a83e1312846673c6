import pytest

from craftfolio.exceptions import InvariantViolation
from craftfolio.gateway.errors import GatewayError
from craftfolio.models.user import UserRole
from craftfolio.schema.contact_schema import ContactMessageCreate
from craftfolio.viewmodels.admin import AdminPanel
from craftfolio.viewmodels.contact import ContactForm
from craftfolio.viewmodels.dashboards import HirerDashboard, SeekerDashboard
from craftfolio.viewmodels.jobs import JobListings, PostJob
from craftfolio.viewmodels.portfolio import PortfolioEditor


def always(prompt):
    return True


@pytest.fixture
def world(client, register, job_form, portfolio_content):
    """Admin, hirer with one job, seeker with a portfolio who applied to it"""

    async def build():
        admin = await register("root@example.com", role="admin")
        hirer = await register("boss@example.com", role="hirer")
        seeker = await register("ada@example.com")
        job = await (await PostJob(client, hirer).mount(live=False)).submit(job_form)
        await (await PortfolioEditor(client, seeker).mount(live=False)).save(portfolio_content)
        application = await (await JobListings(client, seeker).mount(live=False)).apply(job.id, "Hello")
        return admin, hirer, seeker, job, application

    return build


async def test_admin_panel_loads_everything(client, world):
    admin, hirer, seeker, job, _ = await world()
    await (await ContactForm(client).mount(live=False)).submit(ContactMessageCreate(name="Visitor", email="v@example.com", message="Hi"))

    panel = await AdminPanel(client, admin).mount(live=False)
    stats = panel.stats
    assert stats["users"] == 3
    assert stats["jobs"] == 1
    assert stats["portfolios"] == 1
    assert stats["applications"] == 1
    assert stats["messages"] == 1


async def test_admin_delete_user_cascades(client, world):
    admin, hirer, seeker, job, _ = await world()
    panel = await AdminPanel(client, admin).mount(live=False)

    assert await panel.delete_user(seeker.id, lambda prompt: False) is False
    assert seeker.id in [user.id for user in panel.users]

    assert await panel.delete_user(seeker.id, always) is True
    assert seeker.id not in [user.id for user in panel.users]

    portfolio = await client.table("portfolios").select("*").eq("user_id", seeker.id).maybe_single().execute()
    applications = await client.table("applications").select("*").eq("seeker_id", seeker.id).execute()
    assert portfolio.data is None
    assert applications.data == []


async def test_admin_cannot_delete_self(client, world):
    admin, *_ = await world()
    panel = await AdminPanel(client, admin).mount(live=False)
    with pytest.raises(InvariantViolation):
        await panel.delete_user(admin.id, always)


async def test_message_failure_does_not_abort_panel(client, backend, world, monkeypatch):
    admin, *_ = await world()
    original = backend.select

    def flaky(table, *args, **kwargs):
        if table == "contact_messages":
            raise GatewayError("permission denied", "42501")
        return original(table, *args, **kwargs)

    monkeypatch.setattr(backend, "select", flaky)
    panel = await AdminPanel(client, admin).mount(live=False)

    assert panel.error is None
    assert panel.messages == []
    assert len(panel.users) == 3


async def test_admin_role_change_and_job_management(client, world, job_form):
    admin, hirer, seeker, job, _ = await world()
    panel = await AdminPanel(client, admin).mount(live=False)

    promoted = await panel.change_role(seeker.id, UserRole.HIRER)
    assert promoted.role == UserRole.HIRER
    assert next(user for user in panel.users if user.id == seeker.id).role == UserRole.HIRER

    created = await panel.save_job(job_form.model_copy(update={"title": "Ops"}))
    assert created.hirer_id == admin.id
    edited = await panel.save_job(job_form.model_copy(update={"title": "Staff Engineer"}), job_id=job.id)
    assert edited.title == "Staff Engineer"
    assert len(panel.jobs) == 2

    assert await panel.delete_job(created.id, always) is True
    assert [j.id for j in panel.jobs] == [job.id]


async def test_non_admin_cannot_use_panel_actions(client, world):
    _, hirer, seeker, job, _ = await world()
    panel = await AdminPanel(client, hirer).mount(live=False)
    with pytest.raises(InvariantViolation):
        await panel.delete_job(job.id, always)


async def test_admin_deletes_message(client, world):
    admin, *_ = await world()
    sent = await (await ContactForm(client).mount(live=False)).submit(ContactMessageCreate(name="V", email="v@example.com", message="Hi"))
    panel = await AdminPanel(client, admin).mount(live=False)

    assert await panel.delete_message(sent.id, always) is True
    assert panel.messages == []


async def test_contact_form_validates(client):
    form = await ContactForm(client).mount(live=False)
    with pytest.raises(InvariantViolation, match="required fields"):
        await form.submit(ContactMessageCreate(name="", email="v@example.com", message="Hi"))
    with pytest.raises(InvariantViolation, match="required fields"):
        ContactForm.compose(name="V", email="  ", message="Hi")


@pytest.mark.parametrize("email", ["not-an-email", "not an email @", "v@"])
async def test_contact_form_rejects_malformed_email(client, backend, email):
    with pytest.raises(InvariantViolation, match="valid email"):
        ContactForm.compose(name="Ann", email=email, message="hi")
    assert backend.count("contact_messages") == 0


def test_contact_form_compose_builds_message():
    message = ContactForm.compose(name="Ann", email=" ann@example.com ", message="hi")
    assert message.email == "ann@example.com"
    assert message.phone is None


async def test_hirer_dashboard(client, world):
    _, hirer, *_ = await world()
    dashboard = await HirerDashboard(client, hirer).mount(live=False)

    assert dashboard.stats == {"active_jobs": 1, "total_applications": 1}
    assert dashboard.recent[0].job_title == "Backend Engineer"


async def test_hirer_dashboard_without_jobs(client, register):
    hirer = await register("new-boss@example.com", role="hirer")
    dashboard = await HirerDashboard(client, hirer).mount(live=False)
    assert dashboard.stats == {"active_jobs": 0, "total_applications": 0}
    assert dashboard.recent == []


async def test_seeker_dashboard_refetches_on_changes(client, world, job_form):
    _, hirer, seeker, *_ = await world()
    dashboard = await SeekerDashboard(client, seeker).mount()
    assert dashboard.stats == {"applications": 1, "active_jobs": 1, "portfolio_views": 0}
    assert dashboard.has_portfolio

    await (await PostJob(client, hirer).mount(live=False)).submit(job_form)
    await dashboard.settle()
    assert dashboard.stats["active_jobs"] == 2
    dashboard.unmount()
