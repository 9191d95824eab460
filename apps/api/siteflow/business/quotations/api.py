from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from siteflow.api.dependencies import get_quote_workflow_service
from siteflow.business.invoices.schemas import Invoice
from siteflow.business.quotations.schemas import ClientDecisionRequest, PmRejectRequest, Quotation
from siteflow.business.quotations.service import QuoteWorkflowService
from siteflow.core.auth import AuthUser, get_current_user


router = APIRouter(prefix="/quotations", tags=["quotations"])


def _found(quotation: Quotation | None) -> Quotation:
    if quotation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="quotation not found")
    return quotation


@router.post("/{quotation_id}/submit", response_model=Quotation)
def submit_for_approval(
    quotation_id: str,
    service: QuoteWorkflowService = Depends(get_quote_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Quotation:
    return _found(service.submit_for_approval(quotation_id))


@router.post("/{quotation_id}/approve", response_model=Quotation)
def pm_approve(
    quotation_id: str,
    service: QuoteWorkflowService = Depends(get_quote_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Quotation:
    return _found(service.pm_approve(quotation_id))


@router.post("/{quotation_id}/reject", response_model=Quotation)
def pm_reject(
    quotation_id: str,
    payload: PmRejectRequest,
    service: QuoteWorkflowService = Depends(get_quote_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Quotation:
    return _found(service.pm_reject(quotation_id, payload.reason))


@router.post("/{quotation_id}/send", response_model=Quotation)
def send_to_client(
    quotation_id: str,
    service: QuoteWorkflowService = Depends(get_quote_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Quotation:
    return _found(service.send_to_client(quotation_id))


@router.post("/{quotation_id}/decision", response_model=Quotation)
def client_decision(
    quotation_id: str,
    payload: ClientDecisionRequest,
    service: QuoteWorkflowService = Depends(get_quote_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Quotation:
    return _found(service.client_decision(quotation_id, payload.accept, payload.note))


@router.post("/{quotation_id}/convert", response_model=Invoice)
def convert_to_invoice(
    quotation_id: str,
    service: QuoteWorkflowService = Depends(get_quote_workflow_service),
    user: AuthUser = Depends(get_current_user),
) -> Invoice:
    invoice = service.convert_to_invoice(quotation_id)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="quotation not found")
    return invoice
