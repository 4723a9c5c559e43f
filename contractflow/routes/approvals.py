"""Approval routing endpoints: starting a workflow, decisions, deadlines."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from contractflow.config import settings
from contractflow.database import get_db
from contractflow.schemas import (
    ApprovalCreate,
    ApprovalDecision,
    ApprovalListResponse,
    ApprovalResponse,
    ApprovalStatsResponse,
    ContractApprovalsResponse,
    StartApprovalRequest,
    StartApprovalResponse,
)
from contractflow.services.approvals import (
    add_approver,
    approval_stats,
    decide_approval,
    escalate_approval,
    escalate_overdue,
    get_approval,
    get_contract_approvals,
    list_approvals,
    start_approval,
)

router = APIRouter(tags=["approvals"])


@router.post(
    "/contracts/{contract_id}/start-approval",
    response_model=StartApprovalResponse,
    status_code=201,
)
def start_approval_endpoint(
    contract_id: int,
    data: StartApprovalRequest,
    user_id: str = Query(..., description="The ID of the user starting the approval"),
    db: Session = Depends(get_db),
):
    """Route a contract through a workflow and create its approvals."""
    contract, workflow, approvals = start_approval(db, contract_id, data, user_id)
    return {
        "contract_id": contract.id,
        "workflow_id": workflow.id,
        "workflow_name": workflow.name,
        "round": contract.approval_round,
        "approvals_created": len(approvals),
        "approvals": approvals,
    }


@router.post(
    "/contracts/{contract_id}/approvals",
    response_model=ApprovalResponse,
    status_code=201,
)
def add_approver_endpoint(
    contract_id: int,
    data: ApprovalCreate,
    user_id: str = Query(..., description="The ID of the user assigning the approver"),
    db: Session = Depends(get_db),
):
    """Assign an additional approver to a contract."""
    return add_approver(db, contract_id, data, user_id)


@router.get(
    "/contracts/{contract_id}/approvals", response_model=ContractApprovalsResponse
)
def contract_approvals_endpoint(
    contract_id: int,
    include_history: bool = Query(False),
    db: Session = Depends(get_db),
):
    approvals, history = get_contract_approvals(db, contract_id, include_history)
    return {"approvals": approvals, "history": history}


@router.get("/approvals", response_model=ApprovalListResponse)
def list_approvals_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    contract_id: Optional[int] = Query(None),
    approver_id: Optional[str] = Query(None),
    status: Optional[str] = Query(
        None, description="Comma-separated statuses, or 'all'"
    ),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    approvals, pagination = list_approvals(
        db, page, limit, contract_id, approver_id, status, search, sort_by, sort_order
    )
    return {"approvals": approvals, "pagination": pagination}


@router.get("/approvals/stats", response_model=ApprovalStatsResponse)
def approval_stats_endpoint(
    approver_id: Optional[str] = Query(None), db: Session = Depends(get_db)
):
    return approval_stats(db, approver_id)


@router.post("/approvals/escalate-overdue", response_model=List[ApprovalResponse])
def escalate_overdue_endpoint(db: Session = Depends(get_db)):
    """Escalate every overdue approval (called by scheduler)."""
    return escalate_overdue(db)


@router.get("/approvals/{approval_id}", response_model=ApprovalResponse)
def get_approval_endpoint(approval_id: int, db: Session = Depends(get_db)):
    return get_approval(db, approval_id)


@router.post("/approvals/{approval_id}/decision", response_model=ApprovalResponse)
def decide_approval_endpoint(
    approval_id: int,
    data: ApprovalDecision,
    user_id: str = Query(..., description="The ID of the approver deciding"),
    db: Session = Depends(get_db),
):
    """Approve or reject a pending approval."""
    return decide_approval(db, approval_id, data, user_id)


@router.post("/approvals/{approval_id}/escalate", response_model=ApprovalResponse)
def escalate_approval_endpoint(approval_id: int, db: Session = Depends(get_db)):
    """Extend an approval deadline and remind the approver."""
    return escalate_approval(db, approval_id)
