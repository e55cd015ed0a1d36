"""
OD request record — the persisted shape shared by every storage backend.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ODStatus(str, Enum):
    PENDING = "pending"
    APPROVED_BY_ADVISOR = "approved_by_advisor"
    APPROVED_BY_HOD = "approved_by_hod"
    REJECTED = "rejected"
    FORWARDED_TO_HOD = "forwarded_to_hod"
    FORWARDED_TO_ADMIN = "forwarded_to_admin"


class TimeType(str, Enum):
    FULL_DAY = "fullDay"
    PARTICULAR_HOURS = "particularHours"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Position along the approval chain. Escalation states sit with the stage
# that still has to act on them.
STATUS_RANK = {
    ODStatus.PENDING: 0,
    ODStatus.FORWARDED_TO_ADMIN: 0,
    ODStatus.APPROVED_BY_ADVISOR: 1,
    ODStatus.FORWARDED_TO_HOD: 1,
    ODStatus.APPROVED_BY_HOD: 2,
    ODStatus.REJECTED: 3,
}

TERMINAL_STATUSES = frozenset({ODStatus.APPROVED_BY_HOD, ODStatus.REJECTED})

STATUS_LABELS = {
    ODStatus.PENDING: "Pending Faculty Approval",
    ODStatus.APPROVED_BY_ADVISOR: "Approved by Faculty Advisor",
    ODStatus.APPROVED_BY_HOD: "Approved by HOD",
    ODStatus.REJECTED: "Rejected",
    ODStatus.FORWARDED_TO_HOD: "Forwarded to HOD",
    ODStatus.FORWARDED_TO_ADMIN: "Forwarded to Admin",
}


class ODRequest(BaseModel):
    id: str
    student_id: str
    class_advisor_id: str
    hod_id: str
    department: str
    year: str
    register_no: str = ""

    event_name: str
    event_date: date
    start_date: date
    end_date: date
    time_type: TimeType = TimeType.FULL_DAY
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: str
    brochure_path: str
    notify_faculty: List[str] = Field(default_factory=list)

    proof_document: Optional[str] = None
    proof_submitted: bool = False
    proof_verified: bool = False
    proof_verified_by: Optional[str] = None
    proof_verified_at: Optional[datetime] = None

    status: ODStatus = ODStatus.PENDING
    advisor_comment: str = ""
    hod_comment: str = ""
    last_status_change_at: datetime
    forwarded_to_admin_at: Optional[datetime] = None
    forwarded_to_hod_at: Optional[datetime] = None
    od_letter_path: Optional[str] = None

    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def to_row(self) -> dict:
        return self.model_dump(mode="json")
