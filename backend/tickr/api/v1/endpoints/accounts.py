import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tickr.api.deps import get_coordinator, get_jira_client, get_timer_manager
from tickr.connectors.errors import JiraAPIError
from tickr.connectors.jira_client import JiraClient
from tickr.database import get_db
from tickr.schemas.account import (
    AccountCreate,
    AccountInDB,
    ConnectionTestResult,
    CredentialsTestRequest,
)
from tickr.services.account_service import AccountInUseError, AccountService
from tickr.services.coordinator import SyncCoordinator
from tickr.services.timer_manager import SessionManager

log = logging.getLogger(__name__)

router = APIRouter()


def get_account_service(
    db: Session = Depends(get_db),
    client: JiraClient = Depends(get_jira_client),
) -> AccountService:
    return AccountService(db, client)


@router.get("/", response_model=List[AccountInDB])
async def list_accounts(service: AccountService = Depends(get_account_service)):
    """List configured Jira accounts, sorted by name."""
    return service.list_accounts()


@router.post("/", response_model=AccountInDB, status_code=status.HTTP_201_CREATED)
async def create_account(
    account: AccountCreate,
    service: AccountService = Depends(get_account_service),
):
    """Create an account and store its API token in the credential store."""
    return await service.create_account(
        name=account.name,
        base_url=account.base_url,
        email=account.email,
        token=account.api_token,
        account_type=account.account_type,
    )


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    service: AccountService = Depends(get_account_service),
    timer_manager: SessionManager = Depends(get_timer_manager),
):
    """Delete an account with all its time entries. Refused while one of its timers runs."""
    try:
        service.delete_account(account_id, timer_manager)
    except AccountInUseError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{account_id}/select", response_model=AccountInDB)
async def select_account(
    account_id: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    """Make this the active account."""
    return coordinator.select_account(account_id)


@router.post("/test", response_model=ConnectionTestResult)
async def test_credentials(
    request: CredentialsTestRequest,
    service: AccountService = Depends(get_account_service),
):
    """Test credentials from an unsaved account form."""
    try:
        valid = await service.test_credentials(
            request.base_url, request.email, request.api_token, request.account_type
        )
    except JiraAPIError as e:
        return ConnectionTestResult(valid=False, message=str(e))
    return ConnectionTestResult(
        valid=valid,
        message="Connection successful" if valid else "Connection failed. Check the URL and token.",
    )


@router.post("/{account_id}/test", response_model=ConnectionTestResult)
async def test_account_connection(
    account_id: str,
    service: AccountService = Depends(get_account_service),
):
    """Test the stored credentials of an account."""
    try:
        valid = await service.test_connection(account_id)
    except JiraAPIError as e:
        return ConnectionTestResult(valid=False, message=str(e))
    return ConnectionTestResult(
        valid=valid,
        message="Connection successful" if valid else "Connection failed. Check the URL and token.",
    )
