"""
Notification dispatcher — status-change emails through the EmailJS REST API.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from odtrack.core.config import Settings
from odtrack.core.exceptions import NotifyError
from odtrack.core.logging_config import logger

EMAILJS_URL = "https://api.emailjs.com/api/v1.0/email/send"


class NotificationKind(str, Enum):
    OD_SUBMITTED = "od_submitted"
    STATUS_CHANGED = "status_changed"
    PROOF_VERIFIED = "proof_verified"
    FORWARDED_TO_ADMIN = "forwarded_to_admin"
    FORWARDED_TO_HOD = "forwarded_to_hod"


SUBJECTS = {
    NotificationKind.OD_SUBMITTED: "New OD request from {student_name}",
    NotificationKind.STATUS_CHANGED: "Your OD request for {event_name} is now {status_label}",
    NotificationKind.PROOF_VERIFIED: "Proof verified for {event_name}",
    NotificationKind.FORWARDED_TO_ADMIN: "OD request for {event_name} auto-forwarded to admin",
    NotificationKind.FORWARDED_TO_HOD: "OD request for {event_name} forwarded to you",
}


class NotificationDispatcher:
    async def notify(self, kind: NotificationKind, recipients: List[str], payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class EmailJSNotifier(NotificationDispatcher):
    """
    One EmailJS template for every kind; the subject line and the payload
    fields are passed as template params.
    """

    def __init__(self, config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    @property
    def configured(self) -> bool:
        c = self.config
        return all([c.EMAILJS_SERVICE_ID, c.EMAILJS_PUBLIC_KEY, c.EMAILJS_TEMPLATE_ID, c.EMAILJS_PRIVATE_KEY])

    async def notify(self, kind: NotificationKind, recipients: List[str], payload: Dict[str, Any]) -> None:
        recipients = [r for r in recipients if r]
        if not recipients:
            logger.debug(f"[EmailJS] No recipients for {kind.value}, skipping")
            return
        if not self.configured:
            logger.info(f"[EmailJS] Credentials not configured. Skipping {kind.value} to {recipients}")
            return

        subject = SUBJECTS[kind].format_map(_Defaulting(payload))
        async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
            for to_email in recipients:
                body = {
                    "service_id": self.config.EMAILJS_SERVICE_ID,
                    "template_id": self.config.EMAILJS_TEMPLATE_ID,
                    "user_id": self.config.EMAILJS_PUBLIC_KEY,
                    "accessToken": self.config.EMAILJS_PRIVATE_KEY,
                    "template_params": {
                        "to_email": to_email,
                        "kind": kind.value,
                        "subject": subject,
                        **{k: str(v) for k, v in payload.items()},
                    },
                }
                try:
                    response = await client.post(EMAILJS_URL, json=body)
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    raise NotifyError(
                        f"EmailJS rejected {kind.value} to {to_email}: "
                        f"{e.response.status_code} {e.response.text}",
                        kind=kind.value,
                    ) from e
                except httpx.HTTPError as e:
                    raise NotifyError(f"EmailJS unreachable for {to_email}: {e}", kind=kind.value) from e
                logger.info(f"[EmailJS] Sent {kind.value} to {to_email}")


class _Defaulting(dict):
    def __missing__(self, key):
        return ""
