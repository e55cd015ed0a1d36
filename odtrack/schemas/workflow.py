"""
Pydantic schemas for OD apply / decide / proof workflows.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, time

from odtrack.models.od_request import Decision, TimeType


# ---- Student ----
class ODApply(BaseModel):
    event_name: str
    event_date: date
    start_date: date
    end_date: date
    time_type: TimeType = TimeType.FULL_DAY
    start_time: Optional[time] = None  # particularHours only
    end_time: Optional[time] = None
    reason: str
    brochure_url: Optional[str] = None  # uploaded PDF reference
    notify_faculty: List[str] = []


class ProofSubmit(BaseModel):
    proof_document: str


# ---- Faculty / HOD ----
class ODAction(BaseModel):
    action: Decision
    comment: Optional[str] = None


class ProofVerify(BaseModel):
    verified: bool


# ---- Admin ----
class SystemSettingsUpdate(BaseModel):
    auto_forward_timeout_minutes: Optional[int] = Field(default=None, ge=1)
    auto_forward_enabled: Optional[bool] = None
    notification_enabled: Optional[bool] = None
