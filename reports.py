"""Complaint reports: submission, moderation and listing."""
import secrets
import string
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from loguru import logger
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from config import settings
from errors import NotFoundError, ValidationError
from models import Report
from schemas import ReportRecord

REPORT_STATUSES = ("pending", "approved", "rejected")
REQUIRED_FIELDS = ("company_id", "company_name", "issue_type", "description")

# (uploaded filename, content)
Attachment = Tuple[str, bytes]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_report_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(11))
    return f"report_{int(time.time() * 1000)}_{suffix}"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def report_to_record(report: Report) -> ReportRecord:
    return ReportRecord(
        id=report.id,
        company_id=report.company_id,
        company_name=report.company_name,
        issue_type=report.issue_type,
        description=report.description,
        amount_lost=report.amount_lost or 0.0,
        date_of_incident=report.date_of_incident,
        evidence_description=report.evidence_description,
        status=report.status,
        created_at=_iso(report.created_at),
        updated_at=_iso(report.updated_at),
    )


def report_to_admin_dict(report: Report) -> Dict[str, Any]:
    """Full report including reporter contact, for moderators only."""
    data = report_to_record(report).to_dict()
    data.update({
        "companyLocation": report.company_location,
        "employeeName": report.employee_name,
        "reporterName": report.reporter_name,
        "reporterEmail": report.reporter_email,
        "reporterPhone": report.reporter_phone,
        "paymentReceiptPath": report.payment_receipt_path,
        "agreementCopyPath": report.agreement_copy_path,
        "adminNotes": report.admin_notes,
    })
    return data


class ReportService:
    """Persist and moderate complaint reports."""

    def __init__(self, db_session: Session, uploads_dir: Optional[str] = None):
        self.db = db_session
        self.uploads_dir = Path(uploads_dir or settings.uploads_dir)

    def _save_attachment(self, report_id: str, kind: str, attachment: Optional[Attachment]) -> Optional[str]:
        if not attachment:
            return None
        filename, content = attachment
        if not content:
            return None
        extension = Path(filename or "").suffix.lstrip(".").lower() or "bin"
        folder = "receipts" if kind == "receipt" else "agreements"
        target = self.uploads_dir / folder / f"{report_id}_{kind}.{extension}"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info(f"Saved {kind} attachment for {report_id}: {target.name}")
        return str(target)

    def submit(
        self,
        fields: Dict[str, Any],
        payment_receipt: Optional[Attachment] = None,
        agreement_copy: Optional[Attachment] = None,
    ) -> Dict[str, Any]:
        """
        Store a new report in the pending state.

        Args:
            fields: Snake-case report fields from the submission form
            payment_receipt: Optional (filename, bytes) attachment
            agreement_copy: Optional (filename, bytes) attachment

        Returns:
            Dict with reportId and which files were stored

        Raises:
            ValidationError: A required field is missing or amountLost is not a number
        """
        missing = [name for name in REQUIRED_FIELDS if not str(fields.get(name) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(to_camel(name) for name in missing)}")

        try:
            amount_lost = float(fields.get("amount_lost") or 0)
        except (TypeError, ValueError):
            raise ValidationError("amountLost must be a number")

        report_id = new_report_id()
        receipt_path = self._save_attachment(report_id, "receipt", payment_receipt)
        agreement_path = self._save_attachment(report_id, "agreement", agreement_copy)

        report = Report(
            id=report_id,
            company_id=fields["company_id"].strip(),
            company_name=fields["company_name"].strip(),
            company_location=fields.get("company_location"),
            issue_type=fields["issue_type"].strip(),
            description=fields["description"].strip(),
            amount_lost=amount_lost,
            date_of_incident=fields.get("date_of_incident"),
            evidence_description=fields.get("evidence_description") or "",
            employee_name=fields.get("employee_name") or "",
            reporter_name=fields.get("reporter_name"),
            reporter_email=fields.get("reporter_email"),
            reporter_phone=fields.get("reporter_phone"),
            payment_receipt_path=receipt_path,
            agreement_copy_path=agreement_path,
            status="pending",
        )
        self.db.add(report)
        try:
            self.db.commit()
        except Exception as e:
            logger.error(f"Error saving report {report_id}: {e}")
            self.db.rollback()
            raise

        logger.info(f"New report for {report.company_name}: {report.issue_type}")
        return {
            "reportId": report_id,
            "filesUploaded": {
                "paymentReceipt": receipt_path is not None,
                "agreementCopy": agreement_path is not None,
            },
        }

    def list_for_company(self, company_id: str, status: str = "approved") -> List[ReportRecord]:
        reports = (
            self.db.query(Report)
            .filter(Report.company_id == company_id, Report.status == status)
            .order_by(Report.created_at.desc(), Report.id.desc())
            .all()
        )
        return [report_to_record(r) for r in reports]

    def list_all(self, status: Optional[str] = "pending", limit: int = 50) -> List[Dict[str, Any]]:
        query = self.db.query(Report)
        if status and status != "all":
            query = query.filter(Report.status == status)
        reports = query.order_by(Report.created_at.desc(), Report.id.desc()).limit(limit).all()
        return [report_to_admin_dict(r) for r in reports]

    def update_status(self, report_id: str, status: str, admin_notes: Optional[str] = None) -> Report:
        if status not in REPORT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Expected one of: {', '.join(REPORT_STATUSES)}")

        report = self.db.get(Report, report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")

        report.status = status
        if admin_notes is not None:
            report.admin_notes = admin_notes
        self.db.commit()
        logger.info(f"Report {report_id} moved to {status}")
        return report
