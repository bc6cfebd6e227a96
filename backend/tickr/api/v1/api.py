from fastapi import APIRouter, Depends

from tickr.api.v1.endpoints import accounts, issues, timers
from tickr.auth import get_current_user

api_router = APIRouter(dependencies=[Depends(get_current_user)])
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(issues.router, prefix="/issues", tags=["issues"])
api_router.include_router(timers.router, prefix="/timers", tags=["timers"])
