"""
Identity resolver — read-only lookups of users by id, email and department.
"""

from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, Iterable, List, Optional

from odtrack.core.exceptions import NotFound
from odtrack.models.user import Role, UserRef


class IdentityResolver(ABC):

    @abstractmethod
    def get_user(self, user_id: str) -> UserRef:
        """Raise NotFound when the id is unknown."""

    @abstractmethod
    def get_user_by_email(self, email: str) -> UserRef:
        ...

    @abstractmethod
    def find_hod(self, department: str) -> Optional[UserRef]:
        ...

    @abstractmethod
    def list_admins(self) -> List[UserRef]:
        ...

    @abstractmethod
    def student_years(self) -> List[Optional[str]]:
        """Year of every active student, one entry per student."""

    def count_students_by_year(self) -> List[dict]:
        counts = Counter(self.student_years())
        return [
            {"year": year, "count": counts[year]}
            for year in sorted(counts, key=lambda y: (y is None, y or ""))
        ]


class InMemoryIdentityResolver(IdentityResolver):

    def __init__(self, users: Iterable[UserRef] = ()):
        self._users: Dict[str, UserRef] = {u.id: u for u in users}

    def add(self, user: UserRef) -> UserRef:
        self._users[user.id] = user
        return user

    def get_user(self, user_id: str) -> UserRef:
        user = self._users.get(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def get_user_by_email(self, email: str) -> UserRef:
        for user in self._users.values():
            if user.email == email:
                return user
        raise NotFound("User", email)

    def find_hod(self, department: str) -> Optional[UserRef]:
        for user in self._users.values():
            if user.role == Role.HOD and user.department == department:
                return user
        return None

    def list_admins(self) -> List[UserRef]:
        return [u for u in self._users.values() if u.role == Role.ADMIN]

    def student_years(self) -> List[Optional[str]]:
        return [u.year for u in self._users.values() if u.role == Role.STUDENT]


class SupabaseIdentityResolver(IdentityResolver):
    """Reads the `users` table maintained by institution admins."""

    COLUMNS = "id, role, name, email, department, year, register_no, faculty_advisor"

    def __init__(self, db):
        self.db = db

    def _one(self, column: str, value: str) -> UserRef:
        result = (
            self.db.table("users")
            .select(self.COLUMNS)
            .eq(column, value)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        if not result.data:
            raise NotFound("User", value)
        return UserRef.model_validate(result.data[0])

    def get_user(self, user_id: str) -> UserRef:
        return self._one("id", user_id)

    def get_user_by_email(self, email: str) -> UserRef:
        return self._one("email", email)

    def find_hod(self, department: str) -> Optional[UserRef]:
        result = (
            self.db.table("users")
            .select(self.COLUMNS)
            .eq("role", Role.HOD.value)
            .eq("department", department)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        return UserRef.model_validate(result.data[0]) if result.data else None

    def list_admins(self) -> List[UserRef]:
        result = (
            self.db.table("users")
            .select(self.COLUMNS)
            .eq("role", Role.ADMIN.value)
            .eq("is_active", True)
            .execute()
        )
        return [UserRef.model_validate(row) for row in result.data or []]

    def student_years(self) -> List[Optional[str]]:
        result = (
            self.db.table("users")
            .select("year")
            .eq("role", Role.STUDENT.value)
            .eq("is_active", True)
            .execute()
        )
        return [row.get("year") for row in result.data or []]
