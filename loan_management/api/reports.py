"""
Reporting endpoints
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from .auth import LoanSystem, get_loan_system, require_access
from ..access import Operation, RequestContext, Resource
from ..export import XLSX_MEDIA_TYPE, rows_to_workbook
from ..reports import UnknownReport


router = APIRouter()

view_reports = require_access(Operation.VIEW, Resource.REPORT)

PERIOD_REPORTS = ("collections", "loans-by-period")


@router.get("/active-loans")
def active_loans(
    context: RequestContext = Depends(view_reports),
    system: LoanSystem = Depends(get_loan_system)
):
    """Active loans with count and total amount"""
    return system.reporting_engine.active_loans().to_dict()


@router.get("/outstanding-balance")
def outstanding_balance(
    context: RequestContext = Depends(view_reports),
    system: LoanSystem = Depends(get_loan_system)
):
    """Outstanding balance per customer"""
    return system.reporting_engine.outstanding_balance().to_dict()


@router.get("/collections")
def collections(
    period: str = "daily",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: RequestContext = Depends(view_reports),
    system: LoanSystem = Depends(get_loan_system)
):
    """Collections grouped by date and payment method"""
    try:
        return system.reporting_engine.collections(period, start_date, end_date).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/loans-by-period")
def loans_by_period(
    period: str = "daily",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: RequestContext = Depends(view_reports),
    system: LoanSystem = Depends(get_loan_system)
):
    """Loans by start date within a period"""
    try:
        return system.reporting_engine.loans_by_period(period, start_date, end_date).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/overdue")
def overdue(
    context: RequestContext = Depends(view_reports),
    system: LoanSystem = Depends(get_loan_system)
):
    """Overdue installments; Unpaid rows past due are marked Late"""
    return system.reporting_engine.overdue(user_id=context.user_id).to_dict()


@router.get("/{name}/export/excel")
def export_report(
    name: str,
    period: str = "daily",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: RequestContext = Depends(view_reports),
    system: LoanSystem = Depends(get_loan_system)
):
    """Export a report's rows as an Excel workbook"""
    params = {}
    if name in PERIOD_REPORTS:
        params = {"period": period, "start_date": start_date, "end_date": end_date}
    elif name == "overdue":
        params = {"user_id": context.user_id}

    try:
        result = system.reporting_engine.run_report(name, **params)
    except UnknownReport:
        raise HTTPException(status_code=404, detail="Report not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = rows_to_workbook(result.data, name.replace("-", " ").title())
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={name}.xlsx"}
    )
