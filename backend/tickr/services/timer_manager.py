"""
Timer lifecycle: start, tick, stop-and-submit and cancel.

All mutations of the active set run on the asyncio event loop. ``start`` and
``cancel`` never suspend, and ``stop`` takes its entry out of the active set
before its only await, so a tick and a user action never interleave
mid-mutation and a second ``stop`` for the same issue finds nothing to stop.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from tickr.config import settings
from tickr.connectors.errors import JiraAPIError
from tickr.connectors.jira_client import JiraClient
from tickr.database import utcnow
from tickr.models.account import Account
from tickr.models.time_entry import TimeEntry
from tickr.services.credentials import CredentialNotFoundError, CredentialStore
from tickr.services.session_store import SessionStore

log = logging.getLogger(__name__)

TICK_JOB_ID = "timer_tick"


class NoActiveTimerError(LookupError):
    def __init__(self, issue_key: str):
        super().__init__(f"No active timer to submit for {issue_key}")
        self.issue_key = issue_key


class AccountNotFoundError(LookupError):
    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} does not exist")
        self.account_id = account_id


@dataclass(frozen=True)
class TimerEvent:
    """State-change notification: started, stopped, sync_failed, cancelled or tick."""

    kind: str
    issue_key: Optional[str] = None


def format_elapsed(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 3600:02d}:{total // 60 % 60:02d}:{total % 60:02d}"


class SessionManager:
    """
    Owns the set of running timers and pushes finished ones to Jira.

    At most one timer runs per issue key. Running timers survive a restart:
    on construction every persisted entry without an end time is adopted
    back into the active set.
    """

    def __init__(
        self,
        store: SessionStore,
        client: JiraClient,
        credentials: CredentialStore,
        scheduler,
        clock: Callable[[], datetime] = utcnow,
        tick_interval: Optional[float] = None,
        min_worklog_seconds: Optional[int] = None,
    ):
        self.store = store
        self.client = client
        self.credentials = credentials
        self.scheduler = scheduler
        self._clock = clock
        self.tick_interval = tick_interval or settings.tick_interval_seconds
        self.min_worklog_seconds = min_worklog_seconds or settings.min_worklog_seconds

        self._active: List[TimeEntry] = []
        self._submitting: List[TimeEntry] = []
        self._elapsed: Dict[str, float] = {}
        self._subscribers: List[Callable[[TimerEvent], None]] = []
        self._ticking = False

        self._load_active_timers()

    # -- observable state -------------------------------------------------

    @property
    def active_timers(self) -> List[TimeEntry]:
        return list(self._active)

    @property
    def is_ticking(self) -> bool:
        return self._ticking

    def is_active(self, issue_key: str) -> bool:
        return self._find(issue_key) is not None

    def has_pending_work(self, account_id: str) -> bool:
        """True while the account has a running timer or a worklog still being submitted."""
        return any(e.account_id == account_id for e in self._active + self._submitting)

    def get_elapsed(self, issue_key: str) -> str:
        """Elapsed time as ``HH:MM:SS``, as of the last tick."""
        entry = self._find(issue_key)
        if entry is None or entry.id not in self._elapsed:
            return "00:00:00"
        return format_elapsed(self._elapsed[entry.id])

    def subscribe(self, callback: Callable[[TimerEvent], None]) -> Callable[[], None]:
        """Register ``callback`` for every state change; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -- commands ---------------------------------------------------------

    def start(self, issue_key: str, issue_summary: str, account: Union[Account, str]) -> TimeEntry:
        """
        Start a timer for ``issue_key``. Starting an issue that is already
        running returns the running entry unchanged.
        """
        existing = self._find(issue_key)
        if existing is not None:
            log.debug(f"Timer for {issue_key} already running; ignoring start")
            return existing

        account_id = account if isinstance(account, str) else account.id
        persisted = self.store.fetch_account(account_id)
        if persisted is None:
            raise AccountNotFoundError(account_id)

        entry = TimeEntry(
            id=str(uuid.uuid4()),
            issue_key=issue_key,
            issue_summary=issue_summary,
            start_time=self._clock(),
            end_time=None,
            is_synced=False,
            account_id=persisted.id,
        )
        # A failed insert propagates before the entry joins the active set.
        self.store.insert(entry)

        self._active.append(entry)
        self._elapsed[entry.id] = 0.0
        self._ensure_ticking()
        log.info(f"Started timer for {issue_key} on account '{persisted.name}'")
        self._emit(TimerEvent("started", issue_key))
        return entry

    async def stop(self, issue_key: str) -> TimeEntry:
        """
        Stop the timer for ``issue_key`` and submit it as a Jira worklog.

        The end time is committed before the network call. If submission
        fails the entry stays persisted but unsynced, the timer is still
        stopped, and the error propagates to the caller.
        """
        entry = self._find(issue_key)
        if entry is None:
            raise NoActiveTimerError(issue_key)
        account = self.store.fetch_account(entry.account_id)
        if account is None:
            raise NoActiveTimerError(issue_key)

        entry.end_time = self._clock()
        # On failure the rollback expires the entry, which reloads as still running.
        self.store.save(entry)
        self._release(entry)
        self._submitting.append(entry)
        entry_id = entry.id

        seconds = max(round(entry.duration()), self.min_worklog_seconds)
        detached = False
        try:
            token = self.credentials.get(account.credential_key)
            worklog_id = await self._submit(entry, account, token, seconds)
        except asyncio.CancelledError:
            # The background submission settles the entry when it completes.
            detached = True
            raise
        except (JiraAPIError, CredentialNotFoundError) as e:
            log.warning(f"Worklog for {issue_key} not synced, entry {entry_id} kept for retry: {e}")
            self._emit(TimerEvent("sync_failed", issue_key))
            raise
        else:
            self._mark_synced(entry, worklog_id)
        finally:
            if not detached:
                self._settle(entry)

        log.info(f"Stopped timer for {issue_key}: {seconds}s logged as worklog {worklog_id}")
        self._emit(TimerEvent("stopped", issue_key))
        return entry

    def cancel(self, issue_key: str) -> None:
        """Discard the running timer for ``issue_key``. Unknown keys are ignored."""
        entry = self._find(issue_key)
        if entry is None:
            return
        self.store.delete(entry)
        self._release(entry)
        log.info(f"Cancelled timer for {issue_key}")
        self._emit(TimerEvent("cancelled", issue_key))

    async def tick(self) -> None:
        now = self._clock()
        for entry in self._active:
            self._elapsed[entry.id] = entry.duration(now)
        self._emit(TimerEvent("tick"))

    def close(self) -> None:
        self._stop_ticking()
        self._subscribers.clear()

    # -- internals --------------------------------------------------------

    def _find(self, issue_key: str) -> Optional[TimeEntry]:
        for entry in self._active:
            if entry.issue_key == issue_key:
                return entry
        return None

    def _load_active_timers(self) -> None:
        timers = self.store.query_running()
        now = self._clock()
        for entry in timers:
            if self._find(entry.issue_key) is not None:
                # Only the newest entry per issue keeps running; older ones are closed unsynced.
                log.warning(f"Closing duplicate running entry {entry.id} for {entry.issue_key}")
                entry.end_time = now
                self.store.save(entry)
                continue
            self._active.append(entry)
            self._elapsed[entry.id] = entry.duration(now)
        if self._active:
            log.info(f"Recovered {len(self._active)} running timer(s) from the database")
            self._ensure_ticking()

    def _release(self, entry: TimeEntry) -> None:
        self._active = [e for e in self._active if e is not entry]
        self._elapsed.pop(entry.id, None)
        if not self._active:
            self._stop_ticking()

    async def _submit(self, entry: TimeEntry, account: Account, token: str, seconds: int) -> str:
        issue_key = entry.issue_key
        task = asyncio.ensure_future(
            self.client.submit_worklog(
                issue_key,
                seconds,
                entry.start_time,
                account,
                token,
                comment=entry.comment,
            )
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # A half-sent worklog must not be left ambiguous, so the request runs on.
            log.warning(f"Caller cancelled while submitting {issue_key}; finishing in background")
            task.add_done_callback(lambda t: self._finish_detached(entry, issue_key, t))
            raise

    def _finish_detached(self, entry: TimeEntry, issue_key: str, task: asyncio.Future) -> None:
        try:
            if task.cancelled():
                log.warning(f"Background worklog submission for {issue_key} was cancelled")
                return
            error = task.exception()
            if error is not None:
                log.warning(f"Background worklog submission for {issue_key} failed: {error}")
                return
            self._mark_synced(entry, task.result())
        finally:
            self._settle(entry)
        self._emit(TimerEvent("stopped", issue_key))

    def _settle(self, entry: TimeEntry) -> None:
        self._submitting = [e for e in self._submitting if e is not entry]

    def _mark_synced(self, entry: TimeEntry, worklog_id: str) -> None:
        # A failed save rolls back and expires the entry, so read these first.
        issue_key, entry_id = entry.issue_key, entry.id
        entry.worklog_id = worklog_id
        entry.is_synced = True
        entry.synced_at = self._clock()
        try:
            self.store.save(entry)
        except SQLAlchemyError:
            log.error(
                f"Worklog {worklog_id} for {issue_key} was created in Jira "
                f"but entry {entry_id} could not be marked synced",
                exc_info=True,
            )

    def _ensure_ticking(self) -> None:
        if self._ticking:
            return
        self.scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.tick_interval),
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._ticking = True
        log.debug("Tick loop started")

    def _stop_ticking(self) -> None:
        if not self._ticking:
            return
        try:
            self.scheduler.remove_job(TICK_JOB_ID)
        except JobLookupError:
            log.debug("Tick job already gone")
        self._ticking = False
        log.debug("Tick loop stopped")

    def _emit(self, event: TimerEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                log.exception(f"Timer event subscriber failed on '{event.kind}'")
