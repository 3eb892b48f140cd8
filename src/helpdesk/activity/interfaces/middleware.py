"""
Activity Log Middleware
=======================

Records one ``api_call`` activity entry per REST request.
"""

import time
from typing import Callable, Optional
from uuid import UUID

from fastapi import Request, Response
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from helpdesk.activity.application.dto import ActivityEntry
from helpdesk.config import ActivityAction

# Requests that record their own, more specific entry.
SELF_RECORDING_PATHS = ("/auth/login", "/auth/logout", "/activity-logs")


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def describe_path(path: str, prefix: str) -> tuple[Optional[str], Optional[str]]:
    """Split ``/api/tickets/<uuid>/comments`` into ``("tickets", "<uuid>")``."""
    segments = [segment for segment in path[len(prefix):].split("/") if segment]
    resource = segments[0] if segments else None
    resource_id = None
    for segment in segments[1:]:
        try:
            UUID(segment)
        except ValueError:
            continue
        resource_id = segment
        break
    return resource, resource_id


class ActivityLogMiddleware(BaseHTTPMiddleware):
    """
    Appends an activity entry after each API response.

    Uses the app's ActivityLogger, which writes in its own session and
    never raises.
    """

    def __init__(self, app: ASGIApp, prefix: str = "/api"):
        super().__init__(app)
        self.prefix = prefix.rstrip("/")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        activity_logger = getattr(request.app.state, "activity_logger", None)
        if (
            activity_logger is None
            or not activity_logger.enabled
            or not path.startswith(self.prefix + "/")
            or path[len(self.prefix):].startswith(SELF_RECORDING_PATHS)
        ):
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start_time) * 1000)

        principal = getattr(request.state, "principal", None)
        resource, resource_id = describe_path(path, self.prefix)
        success = response.status_code < 400

        entry = ActivityEntry(
            action=ActivityAction.API_CALL,
            user_id=principal.id if principal else None,
            resource=resource,
            resource_id=resource_id,
            method=request.method,
            endpoint=path,
            user_agent=request.headers.get("User-Agent"),
            ip_address=client_ip(request),
            correlation_id=getattr(request.state, "correlation_id", None),
            details={"status_code": response.status_code},
            success=success,
            error_message=None if success else f"HTTP {response.status_code}",
            duration_ms=duration_ms,
        )
        # Written once the body is sent and the request session has finished
        response.background = BackgroundTask(activity_logger.record, entry)
        return response
