import pytest

from craftfolio.exceptions import InvariantViolation, NotFound
from craftfolio.models.portfolio import PortfolioTemplate
from craftfolio.schema.portfolio_schema import PortfolioContent
from craftfolio.viewmodels.portfolio import PortfolioEditor, PublicPortfolio


async def test_editor_falls_back_to_defaults(client, register):
    seeker = await register("ada@example.com")
    editor = await PortfolioEditor(client, seeker).mount(live=False)

    assert editor.error is None
    assert not editor.portfolio.exists
    assert editor.portfolio.email == "ada@example.com"
    assert editor.snapshot()["exists"] is False


async def test_saved_skills_keep_their_order(client, register, portfolio_content):
    seeker = await register("ada@example.com")
    editor = await PortfolioEditor(client, seeker).mount(live=False)
    await editor.save(portfolio_content)

    fresh = await PortfolioEditor(client, seeker).mount(live=False)
    assert fresh.portfolio.exists
    assert fresh.portfolio.skills == ["Go", "SQL"]
    assert fresh.portfolio.projects[0].title == "Pipeline"


async def test_repeated_saves_leave_one_row_with_last_payload(client, register):
    seeker = await register("ada@example.com")
    editor = await PortfolioEditor(client, seeker).mount(live=False)

    for n in range(5):
        await editor.save(PortfolioContent(title=f"Version {n}", skills=[f"skill-{n}"], template=PortfolioTemplate.MINIMAL))

    rows = await client.table("portfolios").select("*").eq("user_id", seeker.id).execute()
    assert len(rows.data) == 1
    assert rows.data[0]["title"] == "Version 4"
    assert rows.data[0]["skills"] == ["skill-4"]
    assert rows.data[0]["template"] == "minimal"
    assert editor.portfolio.id == rows.data[0]["id"]


async def test_only_seekers_save_portfolios(client, register, portfolio_content):
    hirer = await register("boss@example.com", role="hirer")
    editor = await PortfolioEditor(client, hirer).mount(live=False)

    with pytest.raises(InvariantViolation):
        await editor.save(portfolio_content)
    count = await client.table("portfolios").select("*", count="exact", head=True).execute()
    assert count.count == 0


async def test_public_portfolio(client, register, portfolio_content):
    seeker = await register("ada@example.com", full_name="Ada Lovelace")

    empty = await PublicPortfolio(client, seeker.id).mount(live=False)
    assert empty.portfolio is None
    assert empty.snapshot()["profile"]["full_name"] == "Ada Lovelace"

    await (await PortfolioEditor(client, seeker).mount(live=False)).save(portfolio_content)
    public = await PublicPortfolio(client, seeker.id).mount(live=False)
    assert public.snapshot()["portfolio"]["skills"] == ["Go", "SQL"]


async def test_public_portfolio_for_unknown_user(client):
    with pytest.raises(NotFound):
        await PublicPortfolio(client, "no-such-user").mount(live=False)
