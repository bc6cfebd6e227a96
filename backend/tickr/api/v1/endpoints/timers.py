import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tickr.api.deps import get_coordinator, get_timer_manager
from tickr.schemas.timer import ActiveTimer, ElapsedResponse, TimeEntryResponse, TimerStartRequest
from tickr.services.coordinator import SyncCoordinator
from tickr.services.timer_manager import SessionManager

log = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[ActiveTimer])
async def list_active_timers(timer_manager: SessionManager = Depends(get_timer_manager)):
    """Running timers with their elapsed time as of the last tick."""
    return [
        ActiveTimer(
            issue_key=entry.issue_key,
            issue_summary=entry.issue_summary,
            account_id=entry.account_id,
            start_time=entry.start_time,
            elapsed=timer_manager.get_elapsed(entry.issue_key),
        )
        for entry in timer_manager.active_timers
    ]


@router.post("/", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
async def start_timer(
    request: TimerStartRequest,
    timer_manager: SessionManager = Depends(get_timer_manager),
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    """Start a timer. Starting an issue that is already running returns its entry."""
    account_id = request.account_id
    if account_id is None:
        if coordinator.selected_account is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No account selected")
        account_id = coordinator.selected_account.id
    return timer_manager.start(request.issue_key, request.issue_summary, account_id)


@router.get("/entries", response_model=List[TimeEntryResponse])
async def list_entries(
    unsynced: bool = Query(False, description="Only stopped entries that never reached Jira"),
    limit: int = Query(100, ge=1, le=1000),
    timer_manager: SessionManager = Depends(get_timer_manager),
):
    """Persisted time entries, newest first."""
    return timer_manager.store.query_entries(unsynced_only=unsynced, limit=limit)


@router.post("/{issue_key}/stop", response_model=TimeEntryResponse)
async def stop_timer(
    issue_key: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    """Stop the timer and submit it to Jira as a worklog."""
    return await coordinator.stop_and_refresh(issue_key)


@router.delete("/{issue_key}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_timer(
    issue_key: str,
    timer_manager: SessionManager = Depends(get_timer_manager),
):
    """Discard a running timer without logging anything to Jira."""
    timer_manager.cancel(issue_key)


@router.get("/{issue_key}/elapsed", response_model=ElapsedResponse)
async def get_elapsed(
    issue_key: str,
    timer_manager: SessionManager = Depends(get_timer_manager),
):
    return ElapsedResponse(
        issue_key=issue_key,
        active=timer_manager.is_active(issue_key),
        elapsed=timer_manager.get_elapsed(issue_key),
    )
