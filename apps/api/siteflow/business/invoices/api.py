from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from siteflow.api.dependencies import get_invoice_workflow_service
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.invoices.schemas import Invoice, MarkInvoicePaidRequest, MarkOverdueResponse
from siteflow.business.invoices.service import InvoiceWorkflowService
from siteflow.core.auth import AuthUser, get_current_user


router = APIRouter(prefix="/invoices", tags=["invoices"])


def _found(invoice: Invoice | None) -> Invoice:
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="invoice not found")
    return invoice


@router.post("/{invoice_id}/issue", response_model=Invoice)
def issue_invoice(
    invoice_id: str,
    service: InvoiceWorkflowService = Depends(get_invoice_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Invoice:
    return _found(service.issue(invoice_id))


@router.post("/{invoice_id}/pay", response_model=Invoice)
def mark_invoice_paid(
    invoice_id: str,
    payload: MarkInvoicePaidRequest,
    service: InvoiceWorkflowService = Depends(get_invoice_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Invoice:
    paid_by = payload.paid_by
    if paid_by is None and not user.is_anonymous:
        paid_by = user.sub
    return _found(service.mark_paid(invoice_id, payload.paid_date, paid_by))


@router.post("/{invoice_id}/cancel", response_model=Invoice)
def cancel_invoice(
    invoice_id: str,
    service: InvoiceWorkflowService = Depends(get_invoice_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Invoice:
    return _found(service.cancel(invoice_id))


@router.post("/{invoice_id}/overdue", response_model=MarkOverdueResponse)
def mark_invoice_overdue(
    invoice_id: str,
    service: InvoiceWorkflowService = Depends(get_invoice_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> MarkOverdueResponse:
    fired = service.mark_overdue(invoice_id)
    if fired is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="invoice not found")
    invoice = _found(InvoiceRepository(service.store).get(invoice_id))
    return MarkOverdueResponse(invoice_id=invoice_id, status=invoice.status, overdue=fired)
