"""Complaint report routes."""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from reports import REPORT_STATUSES, ReportService
from errors import ValidationError
from schemas import ReportStatusUpdate


async def _read_attachment(upload: Optional[UploadFile]):
    if upload is None or not upload.filename:
        return None
    return upload.filename, await upload.read()


def create_reports_router() -> APIRouter:
    router = APIRouter(prefix="/api/reports")

    @router.post("/submit")
    async def submit_report(
        companyId: str = Form(""),
        companyName: str = Form(""),
        issueType: str = Form(""),
        description: str = Form(""),
        companyLocation: Optional[str] = Form(None),
        amountLost: Optional[str] = Form(None),
        dateOfIncident: Optional[str] = Form(None),
        evidenceDescription: Optional[str] = Form(None),
        employeeName: Optional[str] = Form(None),
        reporterName: Optional[str] = Form(None),
        reporterEmail: Optional[str] = Form(None),
        reporterPhone: Optional[str] = Form(None),
        paymentReceipt: Optional[UploadFile] = File(None),
        agreementCopy: Optional[UploadFile] = File(None),
        db: Session = Depends(get_db),
    ):
        fields = {
            "company_id": companyId,
            "company_name": companyName,
            "issue_type": issueType,
            "description": description,
            "company_location": companyLocation,
            "amount_lost": amountLost,
            "date_of_incident": dateOfIncident,
            "evidence_description": evidenceDescription,
            "employee_name": employeeName,
            "reporter_name": reporterName,
            "reporter_email": reporterEmail,
            "reporter_phone": reporterPhone,
        }
        result = ReportService(db).submit(
            fields,
            payment_receipt=await _read_attachment(paymentReceipt),
            agreement_copy=await _read_attachment(agreementCopy),
        )
        return {"success": True, "message": "Report submitted successfully", **result}

    @router.get("/company/{company_id}")
    def company_reports(company_id: str, status: str = "approved", db: Session = Depends(get_db)):
        if status not in REPORT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        reports = ReportService(db).list_for_company(company_id, status)
        return {"reports": [r.to_dict() for r in reports], "total": len(reports)}

    @router.get("/all")
    def all_reports(
        status: str = "pending",
        limit: int = Query(50, ge=1, le=500),
        db: Session = Depends(get_db),
    ):
        reports = ReportService(db).list_all(status, limit)
        return {"reports": reports, "total": len(reports)}

    @router.put("/{report_id}/status")
    def update_report_status(report_id: str, update: ReportStatusUpdate, db: Session = Depends(get_db)):
        report = ReportService(db).update_status(report_id, update.status, update.admin_notes)
        return {"success": True, "message": f"Report status updated to {report.status}"}

    return router
