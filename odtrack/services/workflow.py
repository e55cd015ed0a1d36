"""
OD approval state machine.

    pending ──advisor──▶ approved_by_advisor ──hod──▶ approved_by_hod ──▶ proof submit / verify
       │
       │ auto-forward (stale)
       ▼
    forwarded_to_admin ──admin──▶ forwarded_to_hod ──hod──▶ approved_by_hod

    advisor or hod stage ──reject──▶ rejected (absorbing; only the admin
    forward-to-hod override leaves it)

Every transition follows the same steps: read the record, run the guard for
the acting role, compute the change set from the transition table, then
compare-and-set on the record version. A lost race re-reads and re-validates.
Notifications and letter rendering run only after the write committed and
never undo it.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple, Union

from odtrack.core import guards
from odtrack.core.exceptions import ConcurrencyConflict, NotFound, PreconditionFailed, Unauthorized, ValidationError
from odtrack.core.logging_config import logger
from odtrack.models.od_request import (
    STATUS_LABELS, STATUS_RANK, TERMINAL_STATUSES,
    Decision, ODRequest, ODStatus, TimeType,
)
from odtrack.models.user import SYSTEM_ACTOR, Actor, Role, UserRef
from odtrack.schemas.workflow import ODApply
from odtrack.services.identity import IdentityResolver
from odtrack.services.letters import ODLetterGenerator
from odtrack.services.notifications import NotificationDispatcher, NotificationKind
from odtrack.services.store import RequestStore
from odtrack.services.system_settings import SystemSettingsProvider

MAX_ATTEMPTS = 3

BROCHURE_EXTENSIONS = (".pdf",)
PROOF_EXTENSIONS = (".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png")

ALL_STATUSES = frozenset(ODStatus)
PROOF_OPEN_STATUSES = frozenset({
    ODStatus.APPROVED_BY_ADVISOR,
    ODStatus.FORWARDED_TO_HOD,
    ODStatus.APPROVED_BY_HOD,
})
HOD_QUEUE = (ODStatus.APPROVED_BY_ADVISOR, ODStatus.FORWARDED_TO_HOD)


@dataclass(frozen=True)
class Transition:
    name: str
    allowed_from: FrozenSet[ODStatus]
    target: Optional[ODStatus]  # None: status is left alone


TRANSITIONS: Dict[str, Transition] = {t.name: t for t in (
    Transition("advisor_approve", frozenset({ODStatus.PENDING}), ODStatus.APPROVED_BY_ADVISOR),
    Transition("advisor_reject", frozenset({ODStatus.PENDING}), ODStatus.REJECTED),
    Transition("hod_approve", frozenset(HOD_QUEUE), ODStatus.APPROVED_BY_HOD),
    Transition("hod_reject", frozenset(HOD_QUEUE), ODStatus.REJECTED),
    # admin override: any status, including rejected
    Transition("forward_to_hod", ALL_STATUSES, ODStatus.FORWARDED_TO_HOD),
    Transition("forward_to_admin", frozenset({ODStatus.PENDING}), ODStatus.FORWARDED_TO_ADMIN),
    Transition("submit_proof", frozenset({ODStatus.APPROVED_BY_HOD}), None),
    Transition("verify_proof", PROOF_OPEN_STATUSES, None),
)}


def check_allowed(transition: Transition, record: ODRequest) -> None:
    if record.status not in transition.allowed_from:
        raise PreconditionFailed(
            f"Cannot {transition.name.replace('_', ' ')} a request that is "
            f"{STATUS_LABELS[record.status].lower()}",
            current_status=record.status,
            allowed_statuses=sorted(transition.allowed_from, key=lambda s: STATUS_RANK[s]),
        )


def _has_extension(reference: str, allowed: Tuple[str, ...]) -> bool:
    return reference.lower().rsplit("?", 1)[0].endswith(allowed)


def validate_application(body: ODApply) -> None:
    if not body.brochure_url:
        raise ValidationError("Event brochure is required. Please upload a PDF brochure.", field="brochure_url")
    if not _has_extension(body.brochure_url, BROCHURE_EXTENSIONS):
        raise ValidationError("Only PDF files are allowed for brochures", field="brochure_url")
    if not body.event_name.strip():
        raise ValidationError("Event name is required", field="event_name")
    if not body.reason.strip():
        raise ValidationError("Reason is required", field="reason")
    if body.end_date < body.start_date:
        raise ValidationError("End date cannot be before start date", field="end_date")
    if body.time_type == TimeType.PARTICULAR_HOURS:
        if body.start_time is None or body.end_time is None:
            raise ValidationError("Start and end time are required for particular hours", field="start_time")
        if body.end_time <= body.start_time:
            raise ValidationError("End time must be after start time", field="end_time")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ODWorkflow:

    def __init__(
        self,
        store: RequestStore,
        identity: IdentityResolver,
        notifier: NotificationDispatcher,
        letters: ODLetterGenerator,
        system_settings: SystemSettingsProvider,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.identity = identity
        self.notifier = notifier
        self.letters = letters
        self.system_settings = system_settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def _apply(
        self,
        actor: Actor,
        od_id: str,
        guard: Callable[[Actor, ODRequest], None],
        plan: Callable[[ODRequest, datetime], Optional[dict]],
    ) -> Tuple[ODRequest, bool]:
        """
        Guard, plan and compare-and-set one record.
        `plan` returns the change set, or None when there is nothing to do.
        Returns (record, changed).
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            record = self.store.get(od_id)
            guard(actor, record)
            now = self.clock()
            changes = plan(record, now)
            if changes is None:
                return record, False

            changes["updated_at"] = now
            if "status" in changes and changes["status"] != record.status:
                changes["last_status_change_at"] = now

            updated = self.store.compare_and_set(od_id, record.version, changes)
            if updated is not None:
                if "status" in changes:
                    logger.info(
                        f"OD {od_id}: {record.status.value} -> {updated.status.value} by {actor.role.value} {actor.user_id}",
                        extra={"od_id": od_id, "from_status": record.status.value, "to_status": updated.status.value},
                    )
                return updated, True
            logger.info(f"OD {od_id} changed underneath {actor.user_id}, retrying ({attempt}/{MAX_ATTEMPTS})")
        raise ConcurrencyConflict(od_id, MAX_ATTEMPTS)

    @staticmethod
    def _status_plan(transition: Transition, extra: Optional[dict] = None):
        def plan(record: ODRequest, now: datetime) -> Optional[dict]:
            if record.status == transition.target:
                return None
            check_allowed(transition, record)
            return {"status": transition.target, **(extra or {})}
        return plan

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    async def create_request(self, actor: Actor, body: ODApply) -> ODRequest:
        if actor.role != Role.STUDENT:
            raise Unauthorized("Only students can raise OD requests", required="student")
        validate_application(body)

        student = self.identity.get_user(actor.user_id)
        hod = self.identity.find_hod(student.department) if student.department else None
        advisor_id, hod_id = guards.resolve_bindings(student, hod)
        try:
            advisor = self.identity.get_user(advisor_id)
        except NotFound:
            raise PreconditionFailed("Assigned faculty advisor no longer exists", missing="faculty_advisor")

        notify_faculty = []
        for faculty_id in dict.fromkeys(body.notify_faculty):
            try:
                faculty = self.identity.get_user(faculty_id)
            except NotFound:
                raise ValidationError(f"Unknown faculty '{faculty_id}'", field="notify_faculty")
            if faculty.role not in (Role.FACULTY, Role.HOD):
                raise ValidationError(f"User '{faculty_id}' is not faculty", field="notify_faculty")
            notify_faculty.append(faculty_id)

        now = self.clock()
        particular = body.time_type == TimeType.PARTICULAR_HOURS
        record = ODRequest(
            id=str(uuid.uuid4()),
            student_id=student.id,
            class_advisor_id=advisor_id,
            hod_id=hod_id,
            department=student.department,
            year=student.year or "",
            register_no=student.register_no or "",
            event_name=body.event_name.strip(),
            event_date=body.event_date,
            start_date=body.start_date,
            end_date=body.end_date,
            time_type=body.time_type,
            start_time=body.start_time if particular else None,
            end_time=body.end_time if particular else None,
            reason=body.reason.strip(),
            brochure_path=body.brochure_url,
            notify_faculty=notify_faculty,
            status=ODStatus.PENDING,
            last_status_change_at=now,
            created_at=now,
            updated_at=now,
        )
        self.store.insert(record)
        logger.info(f"OD {record.id} created by student {student.id}", extra={"od_id": record.id})

        await self._notify(
            NotificationKind.OD_SUBMITTED,
            [advisor.id, *notify_faculty],
            record,
            student=student,
        )
        return record

    async def advisor_decision(
        self, actor: Actor, od_id: str, decision: Decision, comment: Optional[str] = None,
    ) -> ODRequest:
        transition = TRANSITIONS[f"advisor_{decision.value}"]
        record, changed = self._apply(
            actor, od_id, guards.require_class_advisor,
            self._status_plan(transition, {"advisor_comment": comment or ""}),
        )
        if changed:
            record = await self._after_status_change(record, comment)
        return record

    async def hod_decision(
        self, actor: Actor, od_id: str, decision: Decision, comment: Optional[str] = None,
    ) -> ODRequest:
        transition = TRANSITIONS[f"hod_{decision.value}"]
        record, changed = self._apply(
            actor, od_id, guards.require_hod,
            self._status_plan(transition, {"hod_comment": comment or ""}),
        )
        if changed:
            record = await self._after_status_change(record, comment)
        return record

    async def forward_to_hod(self, actor: Actor, od_id: str) -> ODRequest:
        transition = TRANSITIONS["forward_to_hod"]

        def plan(record: ODRequest, now: datetime) -> Optional[dict]:
            if record.status == transition.target:
                return None
            if record.status != ODStatus.FORWARDED_TO_ADMIN:
                logger.warning(
                    f"Admin override: forwarding OD {record.id} to HOD from {record.status.value}",
                    extra={"od_id": record.id, "override": True},
                )
            return {"status": transition.target, "forwarded_to_hod_at": now}

        record, changed = self._apply(actor, od_id, guards.require_admin, plan)
        if changed:
            await self._notify(NotificationKind.FORWARDED_TO_HOD, [record.hod_id], record)
        return record

    async def forward_to_admin(self, od_id: str, cutoff: datetime) -> Tuple[ODRequest, bool]:
        """
        Escalate a stalled pending request. Re-checks staleness at write time;
        returns (record, False) when the record is no longer eligible.
        """
        transition = TRANSITIONS["forward_to_admin"]

        def plan(record: ODRequest, now: datetime) -> Optional[dict]:
            if record.status not in transition.allowed_from or record.last_status_change_at >= cutoff:
                return None
            return {"status": transition.target, "forwarded_to_admin_at": now}

        record, changed = self._apply(SYSTEM_ACTOR, od_id, guards.require_admin, plan)
        if changed:
            await self._notify(NotificationKind.FORWARDED_TO_ADMIN, self._admin_ids, record)
        return record, changed

    async def submit_proof(self, actor: Actor, od_id: str, proof_document: str) -> ODRequest:
        if not proof_document or not _has_extension(proof_document, PROOF_EXTENSIONS):
            raise ValidationError(
                "Only PDF, DOC, DOCX, JPEG, JPG & PNG files are allowed for proof documents",
                field="proof_document",
            )
        transition = TRANSITIONS["submit_proof"]

        def plan(record: ODRequest, now: datetime) -> Optional[dict]:
            if record.proof_submitted and record.proof_document == proof_document:
                return None
            check_allowed(transition, record)
            if record.proof_verified:
                raise PreconditionFailed(
                    "Proof has already been verified and cannot be replaced",
                    current_status=record.status,
                    proof_verified=True,
                )
            return {"proof_document": proof_document, "proof_submitted": True}

        record, changed = self._apply(actor, od_id, guards.require_student_owner, plan)
        if changed:
            logger.info(f"Proof submitted for OD {od_id}", extra={"od_id": od_id})
        return record

    async def verify_proof(self, actor: Actor, od_id: str, verified: bool) -> ODRequest:
        transition = TRANSITIONS["verify_proof"]

        def plan(record: ODRequest, now: datetime) -> Optional[dict]:
            check_allowed(transition, record)
            if not record.proof_submitted:
                raise PreconditionFailed(
                    "Proof has not been submitted yet",
                    current_status=record.status,
                    proof_submitted=False,
                )
            if verified and record.proof_verified:
                return None
            if not verified and not record.proof_verified and record.proof_verified_by == actor.user_id:
                return None

            changes = {
                "proof_verified": verified,
                "proof_verified_by": actor.user_id,
                "proof_verified_at": now,
            }
            if verified and STATUS_RANK[record.status] < STATUS_RANK[ODStatus.APPROVED_BY_ADVISOR]:
                changes["status"] = ODStatus.APPROVED_BY_ADVISOR
            return changes

        record, changed = self._apply(actor, od_id, guards.require_class_advisor, plan)
        if changed and verified:
            await self._notify(NotificationKind.PROOF_VERIFIED, [record.student_id], record)
        return record

    async def generate_letter(self, actor: Actor, od_id: str) -> str:
        """Render the OD letter at any status. Raises RenderError."""
        record = self.store.get(od_id)
        guards.require_student_owner(actor, record)
        path = await self._render(record)
        self._save_letter_path(od_id, path)
        return path

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_request(self, actor: Actor, od_id: str) -> ODRequest:
        record = self.store.get(od_id)
        guards.require_party(actor, record)
        return record

    def list_for_student(self, actor: Actor) -> List[ODRequest]:
        self._require_role(actor, Role.STUDENT)
        return self.store.list(student_id=actor.user_id)

    def list_for_advisor(self, actor: Actor, pending_only: bool = False) -> List[ODRequest]:
        self._require_role(actor, Role.FACULTY)
        statuses = [ODStatus.PENDING] if pending_only else None
        return self.store.list(class_advisor_id=actor.user_id, statuses=statuses)

    def list_for_hod(self, actor: Actor) -> List[ODRequest]:
        self._require_role(actor, Role.HOD)
        return self.store.list(hod_id=actor.user_id, statuses=HOD_QUEUE)

    def list_all(
        self, actor: Actor, year: Optional[str] = None, register_no: Optional[str] = None,
    ) -> List[ODRequest]:
        self._require_role(actor, Role.ADMIN)
        return self.store.list(year=year or None, register_no=register_no or None)

    def student_stats(self, actor: Actor) -> List[dict]:
        """Active students per year, ascending, unknown year last."""
        self._require_role(actor, Role.ADMIN)
        return self.identity.count_students_by_year()

    @staticmethod
    def _require_role(actor: Actor, role: Role) -> None:
        if actor.role != role:
            raise Unauthorized(f"Role '{actor.role.value}' not authorized. Required: {role.value}", required=role.value)

    # ------------------------------------------------------------------
    # Side effects (after commit, never propagate)
    # ------------------------------------------------------------------
    async def _after_status_change(self, record: ODRequest, comment: Optional[str]) -> ODRequest:
        await self._notify(NotificationKind.STATUS_CHANGED, [record.student_id], record, comment=comment)
        if record.status in TERMINAL_STATUSES:
            return await self._render_letter_quietly(record)
        return record

    async def _render(self, record: ODRequest) -> str:
        # reportlab blocks; render in the default executor
        student = self._student_or_none(record)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.letters.generate_letter, record, student)

    async def _render_letter_quietly(self, record: ODRequest) -> ODRequest:
        try:
            path = await self._render(record)
            return self._save_letter_path(record.id, path)
        except Exception as e:
            logger.warning(f"OD {record.id} committed as {record.status.value} but letter generation failed: {e}",
                           exc_info=True)
            return record

    def _save_letter_path(self, od_id: str, path: str) -> ODRequest:
        def plan(record: ODRequest, now: datetime) -> Optional[dict]:
            return None if record.od_letter_path == path else {"od_letter_path": path}

        record, _ = self._apply(SYSTEM_ACTOR, od_id, guards.require_admin, plan)
        return record

    def _admin_ids(self) -> List[str]:
        return [a.id for a in self.identity.list_admins()]

    def _student_or_none(self, record: ODRequest) -> Optional[UserRef]:
        try:
            return self.identity.get_user(record.student_id)
        except NotFound:
            logger.warning(f"Student {record.student_id} for OD {record.id} not found")
            return None

    async def _notify(
        self,
        kind: NotificationKind,
        user_ids: Union[List[str], Callable[[], List[str]]],
        record: ODRequest,
        student: Optional[UserRef] = None,
        comment: Optional[str] = None,
    ) -> None:
        """`user_ids` may be a callable so recipient lookups fail inside the guard."""
        try:
            if not self.system_settings.is_notification_enabled():
                logger.debug(f"Notifications disabled, not sending {kind.value} for OD {record.id}")
                return
            if callable(user_ids):
                user_ids = user_ids()
            recipients = []
            for user_id in user_ids:
                try:
                    recipients.append(self.identity.get_user(user_id).email)
                except NotFound:
                    logger.warning(f"Notification recipient {user_id} not found for OD {record.id}")
            student = student or self._student_or_none(record)
            await self.notifier.notify(kind, recipients, notification_payload(record, student, comment))
        except Exception as e:
            logger.warning(f"Failed to send {kind.value} for OD {record.id}: {e}", exc_info=True)


def notification_payload(record: ODRequest, student: Optional[UserRef], comment: Optional[str] = None) -> dict:
    return {
        "od_id": record.id,
        "student_name": student.name if student else "",
        "register_no": (student.register_no if student else None) or record.register_no,
        "department": record.department,
        "year": record.year,
        "event_name": record.event_name,
        "event_date": record.event_date.isoformat(),
        "start_date": record.start_date.isoformat(),
        "end_date": record.end_date.isoformat(),
        "time_type": record.time_type.value,
        "reason": record.reason,
        "status": record.status.value,
        "status_label": STATUS_LABELS[record.status],
        "comment": comment or "",
        "proof_document": record.proof_document or "",
        "od_letter_path": record.od_letter_path or "",
    }


def stale_cutoff(now: datetime, timeout_minutes: int) -> datetime:
    return now - timedelta(minutes=timeout_minutes)
