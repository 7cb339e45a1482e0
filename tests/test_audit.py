"""Tests for the audit log recorder: suppression, dedup, search and clearing."""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from portal.models.audit_log import AuditAction, AuditModule, is_listing_action
from portal.services.audit import AuditLogFilter, AuditRecorder

T0 = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _actor(uid: int = 1, name: str = "Alice Admin"):
    return SimpleNamespace(id=uid, name=name)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder(session_factory, clock) -> AuditRecorder:
    return AuditRecorder(session_factory, clock=clock)


def test_listing_marker():
    assert is_listing_action("list")
    assert is_listing_action("list-users")
    assert not is_listing_action("login")
    assert AuditAction.LIST.is_listing
    assert not AuditAction.DELETE.is_listing


async def test_listing_actions_are_never_stored(recorder, audit_entries):
    assert await recorder.record(_actor(), AuditAction.LIST, AuditModule.USERS, "listed") is None
    assert await audit_entries() == []


async def test_entry_fields(recorder, audit_entries):
    entry = await recorder.record(_actor(5, "Bob"), AuditAction.CREATE, AuditModule.CITIES, "made it")
    assert entry is not None
    stored = (await audit_entries())[0]
    assert (stored.user_id, stored.user_name, stored.action, stored.module, stored.details) == (
        5, "Bob", "create", "cities", "made it",
    )


async def test_anonymous_entry_uses_sentinel_name(recorder, audit_entries):
    await recorder.record(None, AuditAction.LOGIN_FAILED, AuditModule.ACCESS, "who?")
    stored = (await audit_entries())[0]
    assert stored.user_id is None
    assert stored.user_name == "Unknown user"


async def test_dedup_window(recorder, clock, audit_entries):
    actor = _actor()
    assert await recorder.record(actor, AuditAction.DELETE, AuditModule.LOGS, "first")
    clock.advance(2)
    assert await recorder.record(actor, AuditAction.DELETE, AuditModule.LOGS, "second") is None
    clock.advance(6)
    assert await recorder.record(actor, AuditAction.DELETE, AuditModule.LOGS, "third")

    assert [e.details for e in await audit_entries()] == ["first", "third"]


async def test_dedup_treats_anonymous_actors_as_the_same(recorder, audit_entries):
    await recorder.record(None, AuditAction.AUTH_FAILED, AuditModule.ACCESS, "one")
    await recorder.record(None, AuditAction.AUTH_FAILED, AuditModule.ACCESS, "two")
    assert len(await audit_entries()) == 1


async def test_dedup_distinguishes_actor_action_and_module(recorder, audit_entries):
    await recorder.record(_actor(1), AuditAction.UPDATE, AuditModule.MENUS)
    await recorder.record(_actor(2), AuditAction.UPDATE, AuditModule.MENUS)
    await recorder.record(_actor(1), AuditAction.DELETE, AuditModule.MENUS)
    await recorder.record(_actor(1), AuditAction.UPDATE, AuditModule.CITIES)
    await recorder.record(None, AuditAction.UPDATE, AuditModule.MENUS)
    assert len(await audit_entries()) == 5


async def test_record_never_raises(caplog):
    def broken_factory():
        raise RuntimeError("database is gone")

    recorder = AuditRecorder(broken_factory)
    assert await recorder.record(_actor(), AuditAction.CREATE, AuditModule.USERS) is None
    assert "Failed to record audit entry create/users" in caplog.text


async def test_append_bypasses_suppression(recorder, audit_entries):
    await recorder.append(_actor(), AuditAction.LIST, AuditModule.USERS, "a")
    await recorder.append(_actor(), AuditAction.LIST, AuditModule.USERS, "b")
    assert len(await audit_entries("list")) == 2


async def test_append_propagates_errors():
    def broken_factory():
        raise RuntimeError("database is gone")

    with pytest.raises(RuntimeError):
        await AuditRecorder(broken_factory).append(_actor(), AuditAction.CREATE, AuditModule.USERS)


# ── search ──────────────────────────────────────────────────────────
async def _seed(recorder: AuditRecorder, clock: FakeClock) -> None:
    rows = [
        (_actor(1, "Alice Admin"), AuditAction.LOGIN, AuditModule.ACCESS),
        (_actor(2, "Bob Builder"), AuditAction.CREATE, AuditModule.MENUS),
        (_actor(1, "Alice Admin"), AuditAction.DELETE, AuditModule.MENUS),
        (_actor(3, "Carla"), AuditAction.UPDATE, AuditModule.CITIES),
    ]
    for actor, action, module in rows:
        await recorder.append(actor, action, module, f"{actor.name} {action.value}")
        clock.advance(3600)


async def test_search_newest_first_with_pagination(recorder, clock):
    await _seed(recorder, clock)
    page = await recorder.search(AuditLogFilter(page=1, limit=3))
    assert page.total == 4
    assert page.pages == 2
    assert [e.user_name for e in page.logs] == ["Carla", "Alice Admin", "Bob Builder"]

    second = await recorder.search(AuditLogFilter(page=2, limit=3))
    assert [e.action for e in second.logs] == ["login"]


async def test_search_user_substring_is_case_insensitive(recorder, clock):
    await _seed(recorder, clock)
    page = await recorder.search(AuditLogFilter(user="alice"))
    assert page.total == 2
    assert {e.user_name for e in page.logs} == {"Alice Admin"}


async def test_search_exact_action_and_module(recorder, clock):
    await _seed(recorder, clock)
    assert (await recorder.search(AuditLogFilter(module="menus"))).total == 2
    assert (await recorder.search(AuditLogFilter(action="create"))).total == 1
    assert (await recorder.search(AuditLogFilter(action="creat"))).total == 0


async def test_search_single_day_is_inclusive(recorder, clock):
    clock.now = datetime(2026, 3, 10, 0, 0, 0, tzinfo=timezone.utc)
    await recorder.append(_actor(), AuditAction.CREATE, AuditModule.USERS, "start of day")
    clock.now = datetime(2026, 3, 10, 23, 59, 59, tzinfo=timezone.utc)
    await recorder.append(_actor(), AuditAction.CREATE, AuditModule.USERS, "end of day")
    clock.now = datetime(2026, 3, 11, 0, 0, 1, tzinfo=timezone.utc)
    await recorder.append(_actor(), AuditAction.CREATE, AuditModule.USERS, "next day")

    page = await recorder.search(AuditLogFilter(date=date(2026, 3, 10)))
    assert {e.details for e in page.logs} == {"start of day", "end of day"}


async def test_search_explicit_range(recorder, clock):
    await _seed(recorder, clock)
    page = await recorder.search(
        AuditLogFilter(date_start=T0 + timedelta(minutes=30), date_end=T0 + timedelta(hours=2))
    )
    assert [e.action for e in page.logs] == ["delete", "create"]


async def test_search_with_no_results_has_zero_pages(recorder):
    page = await recorder.search(AuditLogFilter())
    assert (page.total, page.pages, page.logs) == (0, 0, [])


# ── clear_listing ───────────────────────────────────────────────────
async def test_clear_listing_deletes_only_listing_entries(recorder, audit_entries):
    for _ in range(3):
        await recorder.append(_actor(2), AuditAction.LIST, AuditModule.MENUS)
    await recorder.append(_actor(2), AuditAction.CREATE, AuditModule.MENUS)

    deleted = await recorder.clear_listing(_actor(1))

    assert deleted == 3
    remaining = await audit_entries()
    assert [e.action for e in remaining] == ["create", "delete"]
    assert remaining[-1].module == "logs"
    assert remaining[-1].details == "Deleted 3 listing log entries"
