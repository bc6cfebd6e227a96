import asyncio
from datetime import timedelta

import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from tickr.connectors.errors import NetworkError, ServerError
from tickr.models.time_entry import TimeEntry
from tickr.services.credentials import CredentialNotFoundError
from tickr.services.timer_manager import (
    TICK_JOB_ID,
    AccountNotFoundError,
    NoActiveTimerError,
    TimerEvent,
    format_elapsed,
)

from conftest import T0


def test_format_elapsed():
    assert format_elapsed(0) == "00:00:00"
    assert format_elapsed(5.9) == "00:00:05"
    assert format_elapsed(3725) == "01:02:05"


def test_start_creates_running_entry(manager, account, db, scheduler):
    entry = manager.start("PROJ-1", "Fix login", account)

    assert manager.is_active("PROJ-1")
    assert manager.get_elapsed("PROJ-1") == "00:00:00"
    stored = db.get(TimeEntry, entry.id)
    assert stored.end_time is None
    assert stored.start_time == T0
    assert stored.account_id == account.id
    assert scheduler.get_job(TICK_JOB_ID) is not None


def test_start_twice_is_a_no_op(manager, account, db):
    first = manager.start("PROJ-1", "Fix login", account)
    second = manager.start("PROJ-1", "Fix login", account)

    assert second is first
    assert len(manager.active_timers) == 1
    assert db.query(TimeEntry).count() == 1


def test_start_accepts_account_id(manager, account):
    entry = manager.start("PROJ-2", "Docs", account.id)
    assert entry.account_id == account.id


def test_start_rejects_unknown_account(manager, db, scheduler):
    with pytest.raises(AccountNotFoundError):
        manager.start("PROJ-1", "Fix login", "missing-account")

    assert not manager.is_active("PROJ-1")
    assert db.query(TimeEntry).count() == 0
    assert scheduler.get_job(TICK_JOB_ID) is None


def test_failed_insert_aborts_start(manager, account, store, scheduler):
    with patch.object(store, "insert", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
        with pytest.raises(OperationalError):
            manager.start("PROJ-1", "Fix login", account)

    assert manager.active_timers == []
    assert not manager.is_ticking
    assert scheduler.get_job(TICK_JOB_ID) is None


@pytest.mark.asyncio
async def test_tick_updates_elapsed(manager, account, clock):
    manager.start("PROJ-1", "Fix login", account)

    clock.advance(5)
    await manager.tick()

    assert manager.get_elapsed("PROJ-1") == "00:00:05"


def test_get_elapsed_for_unknown_key(manager):
    assert manager.get_elapsed("NOPE-1") == "00:00:00"
    assert not manager.is_active("NOPE-1")


@pytest.mark.asyncio
async def test_start_then_stop_scenario(manager, account, clock, jira_client, db):
    entry = manager.start("PROJ-1", "Fix login", account)

    clock.advance(5)
    await manager.tick()
    assert manager.get_elapsed("PROJ-1") == "00:00:05"

    clock.advance(85)
    stopped = await manager.stop("PROJ-1")

    assert stopped.end_time == T0 + timedelta(seconds=90)
    assert stopped.is_synced is True
    assert stopped.worklog_id == "10001"
    assert stopped.synced_at == T0 + timedelta(seconds=90)
    assert not manager.is_active("PROJ-1")

    args = jira_client.submit_worklog.call_args
    assert args.args[0] == "PROJ-1"
    assert args.args[1] == 90
    assert args.args[2] == T0
    assert args.args[4] == "cloud-token"

    db.expire_all()
    persisted = db.get(TimeEntry, entry.id)
    assert persisted.is_synced is True
    assert persisted.worklog_id == "10001"


@pytest.mark.asyncio
async def test_stop_clamps_short_sessions_to_one_minute(manager, account, clock, jira_client):
    manager.start("PROJ-1", "Fix login", account)
    clock.advance(10)

    await manager.stop("PROJ-1")

    assert jira_client.submit_worklog.call_args.args[1] == 60


@pytest.mark.asyncio
async def test_stop_rounds_to_nearest_second(manager, account, clock, jira_client):
    manager.start("PROJ-1", "Fix login", account)
    clock.advance(125.6)

    await manager.stop("PROJ-1")

    assert jira_client.submit_worklog.call_args.args[1] == 126


@pytest.mark.asyncio
async def test_stop_without_active_timer(manager, account, db, jira_client):
    with pytest.raises(NoActiveTimerError):
        await manager.stop("PROJ-1")

    assert db.query(TimeEntry).count() == 0
    jira_client.submit_worklog.assert_not_called()


@pytest.mark.asyncio
async def test_failed_submission_keeps_unsynced_entry(manager, account, clock, jira_client, db, scheduler):
    jira_client.submit_worklog.side_effect = ServerError(500, "boom")
    entry = manager.start("PROJ-1", "Fix login", account)
    clock.advance(300)

    with pytest.raises(ServerError):
        await manager.stop("PROJ-1")

    assert not manager.is_active("PROJ-1")
    assert scheduler.get_job(TICK_JOB_ID) is None
    db.expire_all()
    persisted = db.get(TimeEntry, entry.id)
    assert persisted.end_time == T0 + timedelta(seconds=300)
    assert persisted.is_synced is False
    assert persisted.worklog_id is None


@pytest.mark.asyncio
async def test_stop_without_stored_token(manager, account, credentials, clock, jira_client, db):
    entry = manager.start("PROJ-1", "Fix login", account)
    credentials.delete(account.credential_key)
    clock.advance(120)

    with pytest.raises(CredentialNotFoundError):
        await manager.stop("PROJ-1")

    jira_client.submit_worklog.assert_not_called()
    assert not manager.is_active("PROJ-1")
    assert db.get(TimeEntry, entry.id).end_time is not None


@pytest.mark.asyncio
async def test_second_stop_while_submitting_fails(manager, account, clock, jira_client):
    release = asyncio.Event()

    async def slow_submit(*args, **kwargs):
        await release.wait()
        return "10002"

    jira_client.submit_worklog.side_effect = slow_submit
    manager.start("PROJ-1", "Fix login", account)
    clock.advance(90)

    first = asyncio.create_task(manager.stop("PROJ-1"))
    await asyncio.sleep(0)

    with pytest.raises(NoActiveTimerError):
        await manager.stop("PROJ-1")

    release.set()
    entry = await first
    assert entry.worklog_id == "10002"
    assert jira_client.submit_worklog.call_count == 1


@pytest.mark.asyncio
async def test_cancelled_caller_lets_submission_finish(manager, account, clock, jira_client):
    release = asyncio.Event()

    async def slow_submit(*args, **kwargs):
        await release.wait()
        return "10003"

    jira_client.submit_worklog.side_effect = slow_submit
    entry = manager.start("PROJ-1", "Fix login", account)
    clock.advance(90)

    caller = asyncio.create_task(manager.stop("PROJ-1"))
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    assert manager.has_pending_work(account.id)

    release.set()
    for _ in range(5):
        await asyncio.sleep(0)

    assert entry.is_synced is True
    assert entry.worklog_id == "10003"
    assert not manager.has_pending_work(account.id)


def test_cancel_removes_all_trace(manager, account, db, scheduler):
    entry = manager.start("PROJ-1", "Fix login", account)
    entry_id = entry.id

    manager.cancel("PROJ-1")

    assert not manager.is_active("PROJ-1")
    assert db.get(TimeEntry, entry_id) is None
    assert scheduler.get_job(TICK_JOB_ID) is None


def test_cancel_unknown_key_is_harmless(manager, account):
    manager.start("PROJ-1", "Fix login", account)
    manager.cancel("NOPE-9")
    assert manager.is_active("PROJ-1")


def test_tick_loop_runs_while_any_timer_is_active(manager, account, scheduler):
    manager.start("PROJ-1", "One", account)
    manager.start("PROJ-2", "Two", account)

    manager.cancel("PROJ-1")
    assert manager.is_ticking
    assert scheduler.get_job(TICK_JOB_ID) is not None

    manager.cancel("PROJ-2")
    assert not manager.is_ticking
    assert scheduler.get_job(TICK_JOB_ID) is None

    manager.start("PROJ-3", "Three", account)
    assert scheduler.get_job(TICK_JOB_ID) is not None


def test_running_timers_are_recovered_on_restart(make_manager, account, db, clock, scheduler):
    db.add(TimeEntry(
        id="restored-entry",
        issue_key="PROJ-7",
        issue_summary="Survives restarts",
        start_time=T0,
        account_id=account.id,
    ))
    db.add(TimeEntry(
        id="finished-entry",
        issue_key="PROJ-8",
        issue_summary="Already done",
        start_time=T0,
        end_time=T0 + timedelta(minutes=5),
        account_id=account.id,
    ))
    db.commit()
    clock.advance(120)

    manager = make_manager()

    assert manager.is_active("PROJ-7")
    assert not manager.is_active("PROJ-8")
    assert manager.get_elapsed("PROJ-7") == "00:02:00"
    assert scheduler.get_job(TICK_JOB_ID) is not None


def test_running_timers_recovered_newest_first(make_manager, account, db):
    for i, key in enumerate(["OLD-1", "NEW-1"]):
        db.add(TimeEntry(
            issue_key=key,
            issue_summary="",
            start_time=T0 + timedelta(minutes=i),
            account_id=account.id,
        ))
    db.commit()

    manager = make_manager()

    assert [e.issue_key for e in manager.active_timers] == ["NEW-1", "OLD-1"]


@pytest.mark.asyncio
async def test_events_are_emitted(manager, account, clock):
    events = []
    manager.subscribe(events.append)

    manager.start("PROJ-1", "Fix login", account)
    await manager.tick()
    manager.start("PROJ-2", "Other", account)
    clock.advance(60)
    await manager.stop("PROJ-2")
    manager.cancel("PROJ-1")

    assert events == [
        TimerEvent("started", "PROJ-1"),
        TimerEvent("tick"),
        TimerEvent("started", "PROJ-2"),
        TimerEvent("stopped", "PROJ-2"),
        TimerEvent("cancelled", "PROJ-1"),
    ]


@pytest.mark.asyncio
async def test_sync_failure_event_and_bad_subscriber(manager, account, jira_client):
    events = []

    def broken(event):
        raise RuntimeError("view crashed")

    manager.subscribe(broken)
    unsubscribe = manager.subscribe(events.append)
    jira_client.submit_worklog.side_effect = NetworkError(OSError("offline"))

    manager.start("PROJ-1", "Fix login", account)
    with pytest.raises(NetworkError):
        await manager.stop("PROJ-1")

    assert events[-1] == TimerEvent("sync_failed", "PROJ-1")

    unsubscribe()
    manager.start("PROJ-2", "Other", account)
    assert events[-1] == TimerEvent("sync_failed", "PROJ-1")


@pytest.mark.asyncio
async def test_failed_end_time_write_keeps_timer_running(manager, account, clock, jira_client, db, scheduler):
    entry = manager.start("PROJ-1", "Fix login", account)
    clock.advance(90)

    with patch.object(db, "commit", side_effect=OperationalError("UPDATE", {}, Exception("disk full"))):
        with pytest.raises(OperationalError):
            await manager.stop("PROJ-1")

    assert manager.is_active("PROJ-1")
    assert scheduler.get_job(TICK_JOB_ID) is not None
    jira_client.submit_worklog.assert_not_called()
    db.expire_all()
    assert db.get(TimeEntry, entry.id).end_time is None

    stopped = await manager.stop("PROJ-1")
    assert stopped.is_synced is True


def test_failed_delete_keeps_cancelled_timer_running(manager, account, db):
    entry = manager.start("PROJ-1", "Fix login", account)
    entry_id = entry.id

    with patch.object(db, "commit", side_effect=OperationalError("DELETE", {}, Exception("disk full"))):
        with pytest.raises(OperationalError):
            manager.cancel("PROJ-1")

    assert manager.is_active("PROJ-1")
    db.expire_all()
    assert db.get(TimeEntry, entry_id) is not None


@pytest.mark.asyncio
async def test_unsaved_sync_mark_is_logged_not_raised(manager, account, clock, jira_client, db, caplog):
    failing_commit = patch.object(db, "commit", side_effect=OperationalError("UPDATE", {}, Exception("locked")))

    async def submit_then_lock(*args, **kwargs):
        failing_commit.start()
        return "10005"

    jira_client.submit_worklog.side_effect = submit_then_lock
    entry_id = manager.start("PROJ-1", "Fix login", account).id
    clock.advance(90)

    try:
        await manager.stop("PROJ-1")
    finally:
        failing_commit.stop()

    assert f"Worklog 10005 for PROJ-1 was created in Jira but entry {entry_id}" in caplog.text
    assert not manager.has_pending_work(account.id)
    db.expire_all()
    assert db.get(TimeEntry, entry_id).is_synced is False


def test_duplicate_running_entries_are_closed_on_restart(make_manager, account, db, clock):
    for minute, entry_id in enumerate(["older", "newer"]):
        db.add(TimeEntry(
            id=entry_id,
            issue_key="PROJ-7",
            issue_summary="",
            start_time=T0 + timedelta(minutes=minute),
            account_id=account.id,
        ))
    db.commit()
    clock.advance(600)

    manager = make_manager()

    assert [e.id for e in manager.active_timers] == ["newer"]
    db.expire_all()
    closed = db.get(TimeEntry, "older")
    assert closed.end_time == T0 + timedelta(seconds=600)
    assert closed.is_synced is False
    assert [e.id for e in make_manager().active_timers] == ["newer"]
