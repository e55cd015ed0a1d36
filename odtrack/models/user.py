"""
Identity & role model. Users are owned by the identity component; the
workflow only ever reads them.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    HOD = "hod"
    ADMIN = "admin"


class UserRef(BaseModel):
    id: str
    role: Role
    name: str = ""
    email: str = ""
    department: Optional[str] = None
    # student-only
    year: Optional[str] = None
    register_no: Optional[str] = None
    faculty_advisor: Optional[str] = None


class Actor(BaseModel):
    """The authenticated caller of a transition."""

    user_id: str
    role: Role
    name: str = ""
    email: str = ""

    @classmethod
    def from_user(cls, user: dict) -> "Actor":
        # user dict as produced by core.security.get_current_user
        return cls(
            user_id=user.get("user_id", user.get("uid")),
            role=Role(user["role"]),
            name=user.get("name", ""),
            email=user.get("email", ""),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# The sweep acts on behalf of the system, not a person.
SYSTEM_ACTOR = Actor(user_id="system", role=Role.ADMIN, name="Auto-forward")
