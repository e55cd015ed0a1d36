"""
Pydantic schemas for the authenticated caller.
"""

from pydantic import BaseModel
from typing import Optional


class UserProfile(BaseModel):
    user_id: str
    email: str
    name: str
    role: str
    department: Optional[str] = None
    year: Optional[str] = None
    register_no: Optional[str] = None
    faculty_advisor: Optional[str] = None
