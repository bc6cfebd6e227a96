"""Request dependencies for the long-lived services created at startup."""

from fastapi import Request

from tickr.connectors.jira_client import JiraClient
from tickr.services.coordinator import SyncCoordinator
from tickr.services.timer_manager import SessionManager


def get_jira_client(request: Request) -> JiraClient:
    return request.app.state.jira_client


def get_timer_manager(request: Request) -> SessionManager:
    return request.app.state.timer_manager


def get_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.coordinator
