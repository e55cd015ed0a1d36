"""
Ownership / role guards shared by every OD transition.

Usage:
    from odtrack.core.guards import require_class_advisor

    require_class_advisor(actor, record)   # raises Unauthorized

All guards fail closed: they raise before the caller touches the store.
"""

from typing import Tuple

from odtrack.core.exceptions import PreconditionFailed, Unauthorized
from odtrack.core.logging_config import logger
from odtrack.models.od_request import ODRequest
from odtrack.models.user import Actor, Role, UserRef


def _deny(actor: Actor, record: ODRequest, required: str, message: str):
    logger.warning(
        f"Denied {actor.role.value} {actor.user_id} on OD {record.id}: requires {required}",
        extra={"od_id": record.id, "required": required},
    )
    raise Unauthorized(message, required=required)


def require_student_owner(actor: Actor, record: ODRequest) -> None:
    if actor.role != Role.STUDENT or actor.user_id != record.student_id:
        _deny(actor, record, "student_owner", "Only the student who raised this request can do this")


def require_class_advisor(actor: Actor, record: ODRequest) -> None:
    if actor.role != Role.FACULTY or actor.user_id != record.class_advisor_id:
        _deny(actor, record, "class_advisor", "Only the class advisor bound to this request can do this")


def require_hod(actor: Actor, record: ODRequest) -> None:
    if actor.role != Role.HOD or actor.user_id != record.hod_id:
        _deny(actor, record, "hod", "Only the HOD bound to this request can do this")


def require_admin(actor: Actor, record: ODRequest) -> None:
    if not actor.is_admin:
        _deny(actor, record, "admin", "Only an admin can do this")


def is_party(actor: Actor, record: ODRequest) -> bool:
    """True for admins and for anyone bound to the record."""
    return actor.is_admin or actor.user_id in (
        record.student_id,
        record.class_advisor_id,
        record.hod_id,
        *record.notify_faculty,
    )


def require_party(actor: Actor, record: ODRequest) -> None:
    if not is_party(actor, record):
        _deny(actor, record, "party", "You are not a party to this request")


def resolve_bindings(student: UserRef, hod: UserRef | None) -> Tuple[str, str]:
    """
    Return (class_advisor_id, hod_id) for a new request.
    Missing bindings are a creation-time precondition failure.
    """
    if student.role != Role.STUDENT:
        raise Unauthorized("Only students can raise OD requests", required="student")
    if not student.faculty_advisor:
        raise PreconditionFailed(
            "Student must have a faculty advisor assigned",
            missing="faculty_advisor",
        )
    if not student.department:
        raise PreconditionFailed("Student has no department", missing="department")
    if hod is None:
        raise PreconditionFailed(
            f"HOD not found for department '{student.department}'",
            missing="hod",
        )
    return student.faculty_advisor, hod.id
