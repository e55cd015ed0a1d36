"""
Domain exceptions for the OD workflow.

Every rejected transition raises one of these so the API layer can tell the
client *which* check failed (wrong actor, wrong status, bad input) instead of
a generic failure.

Usage:
    from odtrack.core.exceptions import PreconditionFailed

    if record.status != ODStatus.PENDING:
        raise PreconditionFailed(
            "Advisor decision requires a pending request",
            current_status=record.status,
            allowed_statuses=[ODStatus.PENDING],
        )
"""

from typing import Any, Dict, Iterable, Optional


class ODTrackError(Exception):
    """Base exception for all OD tracker errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class Unauthorized(ODTrackError):
    """Actor role or ownership does not match the record"""

    status_code = 403

    def __init__(self, message: str = "Not authorized", required: Optional[str] = None):
        details = {"required": required} if required else {}
        super().__init__(message, code="NOT_AUTHORIZED", details=details)


class NotFound(ODTrackError):
    """Record or referenced user missing"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class PreconditionFailed(ODTrackError):
    """Request is not in a state that allows the transition"""

    status_code = 409

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        allowed_statuses: Optional[Iterable[str]] = None,
        **extra: Any,
    ):
        details: Dict[str, Any] = dict(extra)
        if current_status is not None:
            details["current_status"] = str(getattr(current_status, "value", current_status))
        if allowed_statuses is not None:
            details["allowed_statuses"] = [str(getattr(s, "value", s)) for s in allowed_statuses]
        super().__init__(message, code="PRECONDITION_FAILED", details=details)


class ValidationError(ODTrackError):
    """Malformed input field"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConcurrencyConflict(ODTrackError):
    """Record kept changing underneath the transition"""

    status_code = 409

    def __init__(self, od_id: str, attempts: int):
        super().__init__(
            f"OD request '{od_id}' was modified concurrently, giving up after {attempts} attempts",
            code="CONCURRENT_MODIFICATION",
            details={"od_id": od_id, "attempts": attempts},
        )


class RenderError(ODTrackError):
    """OD letter could not be produced"""

    status_code = 500

    def __init__(self, message: str = "Failed to generate OD letter", od_id: Optional[str] = None):
        details = {"od_id": od_id} if od_id else {}
        super().__init__(message, code="RENDER_FAILED", details=details)


class NotifyError(ODTrackError):
    """Notification dispatch failed"""

    status_code = 502

    def __init__(self, message: str = "Notification delivery failed", kind: Optional[str] = None):
        details = {"kind": kind} if kind else {}
        super().__init__(message, code="NOTIFY_FAILED", details=details)
