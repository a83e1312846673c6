import asyncio
import threading

import pytest

from craftfolio.crud.table_crud import Filter
from craftfolio.gateway.errors import GatewayError, NO_ROWS, UNIQUE_VIOLATION
from craftfolio.gateway.realtime import ChangeEvent, ChangeSpec, ChangeType, parse_filter, row_matches


async def test_single_without_rows_raises_no_rows(client):
    with pytest.raises(GatewayError) as exc:
        await client.table("profiles").select("*").eq("id", "missing").single().execute()
    assert exc.value.code == NO_ROWS
    assert exc.value.is_no_rows


async def test_maybe_single_without_rows_returns_none(client):
    result = await client.table("profiles").select("*").eq("id", "missing").maybe_single().execute()
    assert result.data is None


async def test_select_columns_order_and_limit(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    for title in ("First", "Second", "Third"):
        await client.table("jobs").insert({"hirer_id": hirer.id, "title": title, "company_name": "Acme"}).execute()

    result = await client.table("jobs").select("id, title").order("created_at", desc=True).limit(2).execute()
    assert [row["title"] for row in result.data] == ["Third", "Second"]
    assert set(result.data[0]) == {"id", "title"}


async def test_head_count_returns_no_rows(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    await client.table("jobs").insert([
        {"hirer_id": hirer.id, "title": "Open", "company_name": "Acme", "is_active": True},
        {"hirer_id": hirer.id, "title": "Closed", "company_name": "Acme", "is_active": False},
    ]).execute()

    result = await client.table("jobs").select("*", count="exact", head=True).eq("is_active", True).execute()
    assert result.data is None
    assert result.count == 1


async def test_in_and_neq_filters(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    created = await client.table("jobs").insert([
        {"hirer_id": hirer.id, "title": title, "company_name": "Acme"} for title in ("A", "B", "C")
    ]).execute()
    ids = [row["id"] for row in created.data]

    result = await client.table("jobs").select("title").in_("id", ids[:2]).neq("title", "A").execute()
    assert [row["title"] for row in result.data] == ["B"]


async def test_update_and_delete_require_a_filter(client):
    with pytest.raises(GatewayError):
        await client.table("jobs").update({"is_active": False}).execute()
    with pytest.raises(GatewayError):
        await client.table("jobs").delete().execute()


async def test_unknown_table_and_column_raise_gateway_errors(client):
    with pytest.raises(GatewayError):
        await client.table("nope").select("*").execute()
    with pytest.raises(GatewayError):
        await client.table("jobs").select("nope").execute()


async def test_upsert_updates_row_sharing_conflict_key(client, register):
    seeker = await register("seeker@example.com")
    first = await client.table("portfolios").upsert({"user_id": seeker.id, "title": "One"}, on_conflict="user_id").execute()
    second = await client.table("portfolios").upsert({"user_id": seeker.id, "title": "Two"}, on_conflict="user_id").execute()

    assert first.data[0]["id"] == second.data[0]["id"]
    count = await client.table("portfolios").select("*", count="exact", head=True).execute()
    assert count.count == 1


async def test_duplicate_application_is_a_unique_violation(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    seeker = await register("seeker@example.com")
    job = await client.table("jobs").insert({"hirer_id": hirer.id, "title": "Dev", "company_name": "Acme"}).execute()
    row = {"job_id": job.data[0]["id"], "seeker_id": seeker.id, "status": "pending"}

    await client.table("applications").insert(row).execute()
    with pytest.raises(GatewayError) as exc:
        await client.table("applications").insert(row).execute()
    assert exc.value.code == UNIQUE_VIOLATION


async def test_writes_publish_change_events_in_commit_order(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    events = []
    channel = client.channel("jobs-feed").on(ChangeSpec("jobs"), events.append).subscribe()

    created = await client.table("jobs").insert({"hirer_id": hirer.id, "title": "Dev", "company_name": "Acme"}).execute()
    job_id = created.data[0]["id"]
    await client.table("jobs").update({"title": "Senior Dev"}).eq("id", job_id).execute()
    await client.table("jobs").delete().eq("id", job_id).execute()

    assert [e.event_type for e in events] == [ChangeType.INSERT, ChangeType.UPDATE, ChangeType.DELETE]
    assert events[1].old["title"] == "Dev"
    assert events[1].new["title"] == "Senior Dev"
    assert events[2].old["id"] == job_id

    channel.unsubscribe()
    await client.table("jobs").insert({"hirer_id": hirer.id, "title": "Other", "company_name": "Acme"}).execute()
    assert len(events) == 3


async def test_profile_delete_cascades_without_events(client, backend, register):
    hirer = await register("hirer@example.com", role="hirer")
    await client.table("jobs").insert({"hirer_id": hirer.id, "title": "Dev", "company_name": "Acme"}).execute()
    job_events = []
    client.channel("jobs").on(ChangeSpec("jobs"), job_events.append).subscribe()

    await client.table("profiles").delete().eq("id", hirer.id).execute()

    assert backend.select("jobs", filters=[Filter("hirer_id", "eq", hirer.id)]) == []
    assert job_events == []


async def test_failing_callback_does_not_break_the_write(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    client.channel("a").on(ChangeSpec("jobs", "INSERT"), broken).subscribe()
    client.channel("b").on(ChangeSpec("jobs", "INSERT"), seen.append).subscribe()

    result = await client.table("jobs").insert({"hirer_id": hirer.id, "title": "Dev", "company_name": "Acme"}).execute()
    assert result.data
    assert len(seen) == 1


async def test_queries_run_off_the_event_loop(client, backend, register, monkeypatch):
    hirer = await register("hirer@example.com", role="hirer")
    loop_thread = threading.get_ident()
    store_threads = []
    select = backend.select

    def recording_select(*args, **kwargs):
        store_threads.append(threading.get_ident())
        return select(*args, **kwargs)

    monkeypatch.setattr(backend, "select", recording_select)
    await client.table("profiles").select("*").eq("id", hirer.id).single().execute()

    assert store_threads and loop_thread not in store_threads


async def test_change_events_are_delivered_on_the_subscribing_loop(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    loop_thread = threading.get_ident()
    delivered = []

    async def refetch(event):
        delivered.append((event.event_type, threading.get_ident()))

    client.channel("jobs").on(ChangeSpec("jobs"), refetch).subscribe()
    await client.table("jobs").insert({"hirer_id": hirer.id, "title": "Dev", "company_name": "Acme"}).execute()
    await asyncio.sleep(0)

    assert delivered == [(ChangeType.INSERT, loop_thread)]


async def test_gathered_queries_share_the_store(client, register):
    hirer = await register("hirer@example.com", role="hirer")
    await client.table("jobs").insert([
        {"hirer_id": hirer.id, "title": f"Job {i}", "company_name": "Acme", "is_active": True} for i in range(5)
    ]).execute()

    counts = await asyncio.gather(*[
        client.table("jobs").select("*", count="exact", head=True).eq("hirer_id", hirer.id).execute()
        for _ in range(10)
    ])
    assert [c.count for c in counts] == [5] * 10


def test_filter_expressions():
    assert parse_filter("seeker_id=eq.abc") == ("seeker_id", "eq", "abc")
    assert parse_filter("status=in.(pending, reviewed)") == ("status", "in", ["pending", "reviewed"])
    assert row_matches({"is_active": True}, "is_active=eq.true")
    assert not row_matches({"is_active": False}, "is_active=eq.true")
    assert row_matches({"status": "pending"}, "status=neq.accepted")

    with pytest.raises(ValueError):
        parse_filter("nonsense")
    with pytest.raises(ValueError):
        ChangeSpec("jobs", event="UPSERT")


def test_update_leaving_the_filter_is_still_delivered():
    spec = ChangeSpec("jobs", "*", "is_active=eq.true")
    event = ChangeEvent("jobs", ChangeType.UPDATE, new={"id": "1", "is_active": False}, old={"id": "1", "is_active": True})
    assert spec.matches(event)

    inactive = ChangeEvent("jobs", ChangeType.INSERT, new={"id": "2", "is_active": False})
    assert not spec.matches(inactive)
    assert not ChangeSpec("applications").matches(inactive)
