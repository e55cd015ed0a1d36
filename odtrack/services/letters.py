"""
OD letter generator — renders a request into a printable PDF with reportlab.

The letter can be produced at any status; the approval section and the
closing note reflect where the request currently is.
"""

import os
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from odtrack.core.exceptions import RenderError
from odtrack.core.logging_config import logger
from odtrack.models.od_request import STATUS_LABELS, ODRequest, ODStatus, TimeType
from odtrack.models.user import UserRef

NOT_PROVIDED = "Not provided"

STATUS_NOTES = {
    ODStatus.PENDING: ("#ff6b35", "Note: This request is pending faculty approval."),
    ODStatus.FORWARDED_TO_ADMIN: ("#ff6b35", "Note: This request was not acted on in time and has been forwarded to the admin."),
    ODStatus.APPROVED_BY_ADVISOR: ("#28a745", "Note: Approved by the faculty advisor and pending HOD approval."),
    ODStatus.FORWARDED_TO_HOD: ("#28a745", "Note: Forwarded to the HOD for a decision."),
    ODStatus.APPROVED_BY_HOD: ("#28a745", "Note: Fully approved. Proof of participation can now be submitted."),
    ODStatus.REJECTED: ("#dc3545", "Note: This request has been rejected. See the comments above for details."),
}

TERMS = [
    "This On-Duty leave is granted subject to the student's good conduct and academic performance.",
    "The student must submit proof of participation within 7 days of the event completion.",
    "Failure to submit proof may result in the cancellation of the granted leave.",
    "This leave does not exempt the student from any academic responsibilities or assignments.",
    "The institution reserves the right to modify or cancel this leave based on academic requirements.",
]


def _long_date(value) -> str:
    return value.strftime("%A, %B %d, %Y") if value else NOT_PROVIDED


def reference_number(record: ODRequest, year: int) -> str:
    return f"OD/{record.id.replace('-', '')[-6:].upper()}/{year}"


class ODLetterGenerator:

    def __init__(self, output_dir: str, institution_name: str = "INSTITUTION NAME", clock=None):
        self.output_dir = output_dir
        self.institution_name = institution_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name="LetterTitle", parent=self.styles["Title"],
            fontSize=20, alignment=TA_CENTER, fontName="Helvetica-Bold", spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name="LetterSubtitle", parent=self.styles["Normal"],
            fontSize=14, alignment=TA_CENTER, fontName="Helvetica", spaceAfter=4,
        ))
        self.styles.add(ParagraphStyle(
            name="RightSmall", parent=self.styles["Normal"],
            fontSize=10, alignment=TA_RIGHT,
        ))
        self.styles.add(ParagraphStyle(
            name="Section", parent=self.styles["Normal"],
            fontSize=13, fontName="Helvetica-Bold", spaceBefore=12, spaceAfter=6,
            textColor=HexColor("#2c3e50"),
        ))
        self.styles.add(ParagraphStyle(
            name="Body", parent=self.styles["Normal"],
            fontSize=11, alignment=TA_JUSTIFY, spaceAfter=4,
        ))
        self.styles.add(ParagraphStyle(
            name="Small", parent=self.styles["Normal"], fontSize=9, spaceAfter=2,
        ))
        self.styles.add(ParagraphStyle(
            name="Footer", parent=self.styles["Normal"], fontSize=8, alignment=TA_CENTER,
        ))

    def output_path(self, record: ODRequest) -> str:
        return os.path.join(self.output_dir, f"OD_Letter_{record.id}.pdf")

    def generate_letter(self, record: ODRequest, student: Optional[UserRef] = None) -> str:
        """Render the letter and return its path. Raises RenderError."""
        path = self.output_path(record)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            doc = SimpleDocTemplate(
                path, pagesize=A4,
                leftMargin=0.7 * inch, rightMargin=0.7 * inch,
                topMargin=0.7 * inch, bottomMargin=0.7 * inch,
                title=f"OD Letter {record.id}",
            )
            doc.build(self._story(record, student))
        except Exception as e:
            logger.error(f"Letter generation failed for OD {record.id}: {e}", exc_info=True)
            raise RenderError(f"Failed to generate OD letter: {e}", od_id=record.id) from e

        logger.info(f"Generated OD letter for {record.id} at {path}")
        return path

    def _story(self, record: ODRequest, student: Optional[UserRef]) -> list:
        s = self.styles
        now = self.clock()
        today = now.strftime("%B %d, %Y")
        story = [
            Paragraph(self.institution_name, s["LetterTitle"]),
            Paragraph(f"Department of {record.department or 'General'}", s["LetterSubtitle"]),
            Paragraph("On-Duty Leave Application Form", s["LetterSubtitle"]),
            Spacer(1, 8),
            Paragraph(f"Reference No: {reference_number(record, now.year)}", s["RightSmall"]),
            Paragraph(f"Date: {today}", s["RightSmall"]),
            HRFlowable(width="100%", color=colors.black, spaceBefore=6, spaceAfter=6),
        ]

        story.append(Paragraph("1. STUDENT INFORMATION", s["Section"]))
        story.append(self._table([
            ("Full Name", student.name if student else None),
            ("Register Number", (student.register_no if student else None) or record.register_no),
            ("Department", record.department),
            ("Year of Study", record.year),
            ("Email", student.email if student else None),
        ]))

        story.append(Paragraph("2. EVENT DETAILS", s["Section"]))
        event_rows = [
            ("Event Name", record.event_name),
            ("Event Date", _long_date(record.event_date)),
            ("OD Start Date", _long_date(record.start_date)),
            ("OD End Date", _long_date(record.end_date)),
            ("Duration", f"{record.duration_days} day(s)"),
            ("Time Type", "Full Day" if record.time_type == TimeType.FULL_DAY else "Particular Hours"),
        ]
        if record.time_type == TimeType.PARTICULAR_HOURS and record.start_time and record.end_time:
            event_rows.append(("Start Time", record.start_time.strftime("%I:%M %p")))
            event_rows.append(("End Time", record.end_time.strftime("%I:%M %p")))
        story.append(self._table(event_rows))

        story.append(Paragraph("3. REASON FOR ON-DUTY LEAVE", s["Section"]))
        story.append(Paragraph(_escape(record.reason) or NOT_PROVIDED, s["Body"]))

        story.append(Paragraph("4. SUPPORTING DOCUMENTS", s["Section"]))
        if record.proof_submitted:
            proof = "Verified" if record.proof_verified else "Submitted (Pending Verification)"
        else:
            proof = "Not Submitted"
        story.append(self._table([
            ("Event Brochure", "Submitted" if record.brochure_path else "Not Submitted"),
            ("Proof Document", proof),
        ]))

        story.append(Paragraph("5. APPROVAL STATUS", s["Section"]))
        status_rows = [
            ("Current Status", STATUS_LABELS.get(record.status, record.status.value)),
            ("Faculty Advisor", "Assigned" if record.class_advisor_id else "Not Assigned"),
            ("HOD", "Assigned" if record.hod_id else "Not Assigned"),
        ]
        if record.advisor_comment:
            status_rows.append(("Faculty Advisor Comments", record.advisor_comment))
        if record.hod_comment:
            status_rows.append(("HOD Comments", record.hod_comment))
        story.append(self._table(status_rows))

        color, note = STATUS_NOTES[record.status]
        story.append(Spacer(1, 6))
        story.append(Paragraph(f'<font color="{color}">{note}</font>', s["Small"]))

        story.append(Paragraph("TERMS AND CONDITIONS", s["Section"]))
        for i, term in enumerate(TERMS, start=1):
            story.append(Paragraph(f"{i}. {term}", s["Small"]))

        story.append(Spacer(1, 36))
        story.append(self._signatures(today))
        story.append(Spacer(1, 18))
        story.append(Paragraph(
            "This document is computer generated and does not require a physical signature.", s["Footer"],
        ))
        story.append(Paragraph(f"Generated on: {now.strftime('%Y-%m-%d %H:%M %Z')}", s["Footer"]))
        return story

    def _table(self, rows: List[Tuple[str, Optional[str]]]) -> Table:
        cell = self.styles["Body"]
        data = [["Field", "Details"]] + [
            [Paragraph(f"<b>{label}</b>", cell), Paragraph(_escape(value) or NOT_PROVIDED, cell)]
            for label, value in rows
        ]
        table = Table(data, colWidths=[2.4 * inch, 4.3 * inch])
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("GRID", (0, 0), (-1, -1), 0.5, HexColor("#dee2e6")),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [HexColor("#f8f9fa"), colors.white]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        return table

    def _signatures(self, today: str) -> Table:
        line = "____________________"
        data = [
            [line, line, line],
            ["Student's Signature", "Faculty Advisor's Signature", "HOD's Signature"],
            [f"Date: {today}"] * 3,
        ]
        table = Table(data, colWidths=[2.2 * inch] * 3)
        table.setStyle(TableStyle([
            ("FONTSIZE", (0, 1), (-1, 1), 10),
            ("FONTSIZE", (0, 2), (-1, 2), 8),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ]))
        return table


def _escape(value) -> str:
    if value is None:
        return ""
    return str(value).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
