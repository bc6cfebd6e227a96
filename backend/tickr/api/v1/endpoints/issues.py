from fastapi import APIRouter, Depends

from tickr.api.deps import get_coordinator
from tickr.schemas.timer import IssueListResponse
from tickr.services.coordinator import SyncCoordinator

router = APIRouter()


@router.get("/", response_model=IssueListResponse)
async def refresh_issues(coordinator: SyncCoordinator = Depends(get_coordinator)):
    """Fetch the issues assigned to the current user on the selected account."""
    issues = await coordinator.refresh_issues()
    account = coordinator.selected_account
    return IssueListResponse(
        account_id=account.id if account else None,
        issues=issues,
        error_message=coordinator.error_message,
    )
