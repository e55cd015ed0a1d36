"""
Request Store — sole owner of persisted OD request records.

Writes go through compare_and_set(): the caller states which version it read
and the write only lands if nobody else wrote in between. The workflow uses
this to serialize transitions per record without holding locks across
collaborator calls.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from odtrack.core.exceptions import NotFound
from odtrack.core.logging_config import logger
from odtrack.models.od_request import ODRequest, ODStatus

TABLE = "od_requests"


class RequestStore(ABC):

    @abstractmethod
    def get(self, od_id: str) -> ODRequest:
        """Return the record or raise NotFound."""

    @abstractmethod
    def insert(self, record: ODRequest) -> ODRequest:
        ...

    @abstractmethod
    def compare_and_set(self, od_id: str, expected_version: int, changes: dict) -> Optional[ODRequest]:
        """
        Apply `changes` if the stored version still equals `expected_version`.
        Bumps the version. Returns the updated record, or None on a lost race.
        """

    @abstractmethod
    def list(
        self,
        student_id: Optional[str] = None,
        class_advisor_id: Optional[str] = None,
        hod_id: Optional[str] = None,
        statuses: Optional[Iterable[ODStatus]] = None,
        year: Optional[str] = None,
        register_no: Optional[str] = None,
    ) -> List[ODRequest]:
        """Newest first."""

    @abstractmethod
    def list_stale_pending(self, cutoff: datetime) -> List[ODRequest]:
        """Pending records whose last status change is older than `cutoff`."""


class InMemoryRequestStore(RequestStore):
    """Process-local store used in mock deployments and tests."""

    def __init__(self):
        self._records: Dict[str, ODRequest] = {}
        self._lock = threading.Lock()

    def get(self, od_id: str) -> ODRequest:
        with self._lock:
            record = self._records.get(od_id)
            if record is None:
                raise NotFound("OD request", od_id)
            return record.model_copy(deep=True)

    def insert(self, record: ODRequest) -> ODRequest:
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        return record

    def compare_and_set(self, od_id: str, expected_version: int, changes: dict) -> Optional[ODRequest]:
        with self._lock:
            current = self._records.get(od_id)
            if current is None:
                raise NotFound("OD request", od_id)
            if current.version != expected_version:
                return None
            updated = current.model_copy(update={**changes, "version": expected_version + 1}, deep=True)
            self._records[od_id] = updated
            return updated.model_copy(deep=True)

    def list(self, student_id=None, class_advisor_id=None, hod_id=None, statuses=None,
             year=None, register_no=None) -> List[ODRequest]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            rows = [
                r.model_copy(deep=True)
                for r in self._records.values()
                if (student_id is None or r.student_id == student_id)
                and (class_advisor_id is None or r.class_advisor_id == class_advisor_id)
                and (hod_id is None or r.hod_id == hod_id)
                and (wanted is None or r.status in wanted)
                and (year is None or r.year == year)
                and (register_no is None or r.register_no == register_no)
            ]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    def list_stale_pending(self, cutoff: datetime) -> List[ODRequest]:
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._records.values()
                if r.status == ODStatus.PENDING and r.last_status_change_at < cutoff
            ]


class SupabaseRequestStore(RequestStore):
    """`od_requests` table; the version column carries the optimistic lock."""

    def __init__(self, db):
        self.db = db

    def get(self, od_id: str) -> ODRequest:
        result = self.db.table(TABLE).select("*").eq("id", od_id).execute()
        if not result.data:
            raise NotFound("OD request", od_id)
        return ODRequest.model_validate(result.data[0])

    def insert(self, record: ODRequest) -> ODRequest:
        result = self.db.table(TABLE).insert(record.to_row()).execute()
        return ODRequest.model_validate(result.data[0]) if result.data else record

    def compare_and_set(self, od_id: str, expected_version: int, changes: dict) -> Optional[ODRequest]:
        current = self.get(od_id)
        updated = current.model_copy(update={**changes, "version": expected_version + 1})
        row = updated.to_row()
        payload = {key: row[key] for key in (*changes.keys(), "version")}

        result = (
            self.db.table(TABLE)
            .update(payload)
            .eq("id", od_id)
            .eq("version", expected_version)
            .execute()
        )
        if not result.data:
            logger.debug(f"CAS miss on {od_id} at version {expected_version}")
            return None
        return ODRequest.model_validate(result.data[0])

    def list(self, student_id=None, class_advisor_id=None, hod_id=None, statuses=None,
             year=None, register_no=None) -> List[ODRequest]:
        query = self.db.table(TABLE).select("*")
        if student_id is not None:
            query = query.eq("student_id", student_id)
        if class_advisor_id is not None:
            query = query.eq("class_advisor_id", class_advisor_id)
        if hod_id is not None:
            query = query.eq("hod_id", hod_id)
        if statuses is not None:
            query = query.in_("status", [ODStatus(s).value for s in statuses])
        if year is not None:
            query = query.eq("year", year)
        if register_no is not None:
            query = query.eq("register_no", register_no)
        result = query.order("created_at", desc=True).execute()
        return [ODRequest.model_validate(row) for row in result.data or []]

    def list_stale_pending(self, cutoff: datetime) -> List[ODRequest]:
        result = (
            self.db.table(TABLE)
            .select("*")
            .eq("status", ODStatus.PENDING.value)
            .lt("last_status_change_at", cutoff.isoformat())
            .execute()
        )
        return [ODRequest.model_validate(row) for row in result.data or []]
