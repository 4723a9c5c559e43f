"""Approval routing: starting a workflow run, recording decisions, deadlines."""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from contractflow import engine
from contractflow.config import settings
from contractflow.models import (
    Approval,
    ApprovalStatus,
    Contract,
    ContractStatus,
    NotificationType,
    User,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
    WorkflowStepType,
    as_utc,
    utcnow,
)
from contractflow.schemas import ApprovalCreate, ApprovalDecision, StartApprovalRequest
from contractflow.services.common import (
    get_user,
    order_by_column,
    paginate,
    parse_csv_enum,
)
from contractflow.services.contracts import get_contract, record_history
from contractflow.services.notifications import notify

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Approval.created_at,
    "updated_at": Approval.updated_at,
    "due_date": Approval.due_date,
    "step_number": Approval.step_number,
    "status": Approval.status,
}

STARTABLE_STATUSES = (ContractStatus.DRAFT, ContractStatus.REJECTED)
CLOSED_STATUSES = (
    ContractStatus.APPROVED,
    ContractStatus.SIGNED,
    ContractStatus.ARCHIVED,
    ContractStatus.REJECTED,
)


def get_approval(db: Session, approval_id: int) -> Approval:
    """Retrieve an approval by ID or raise 404."""
    approval = db.get(Approval, approval_id)
    if not approval:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Approval {approval_id} not found",
        )
    return approval


def _resolve_step_users(db: Session, step: WorkflowStep, contract: Contract) -> List[User]:
    """Users who act on a step: the named user, else every holder of the step roles.

    The contract initiator is never one of them.
    """
    if step.user_id:
        user = db.get(User, step.user_id)
        candidates = [user] if user else []
    else:
        roles = engine.step_roles(step)
        if not roles:
            return []
        candidates = (
            db.query(User).filter(User.role.in_(roles)).order_by(User.id).all()
        )
    return [user for user in candidates if user.id != contract.initiator_id]


def _open_step(db: Session, contract: Contract, step_number: int) -> None:
    """Start the clock on a step and tell its approvers."""
    now = utcnow()
    for approval in contract.current_approvals:
        if approval.step_number != step_number or approval.status != ApprovalStatus.PENDING:
            continue
        if approval.due_date is None:
            approval.due_date = engine.due_date_for(approval.workflow_step, now)
        notify(
            db,
            approval.approver_id,
            NotificationType.APPROVAL_REQUESTED,
            "Contract awaiting your approval",
            f"Contract {contract.number} with {contract.counterparty} requires your approval",
            contract,
        )


def _fire_notification_steps(db: Session, contract: Contract) -> None:
    """Run the workflow's NOTIFICATION steps once the contract is approved."""
    workflow = contract.workflow
    if workflow is None:
        return
    for step in engine.applicable_steps(workflow, contract.amount):
        if step.type != WorkflowStepType.NOTIFICATION:
            continue
        for user in _resolve_step_users(db, step, contract):
            notify(
                db,
                user.id,
                NotificationType.CONTRACT_UPDATED,
                step.name,
                f"Contract {contract.number} has been approved and is ready for signing",
                contract,
            )


def _select_workflow(db: Session, contract: Contract, workflow_id: Optional[int]) -> Workflow:
    if workflow_id is not None:
        workflow = db.get(Workflow, workflow_id)
        if not workflow:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Workflow {workflow_id} not found",
            )
        if workflow.status != WorkflowStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Workflow '{workflow.name}' is not active",
            )
        return workflow

    workflow = engine.select_workflow(db.query(Workflow).all(), contract.amount)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"No active workflow applies to a contract amount of {contract.amount}",
        )
    return workflow


def start_approval(
    db: Session, contract_id: int, data: StartApprovalRequest, user_id: str
) -> Tuple[Contract, Workflow, List[Approval]]:
    """Route a contract through a workflow, opening a new approval round."""
    contract = get_contract(db, contract_id)
    get_user(db, user_id)

    if contract.status not in STARTABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot start approval: current status is '{contract.status.value}'",
        )

    workflow = _select_workflow(db, contract, data.workflow_id)

    planned: List[Tuple[WorkflowStep, List[User]]] = []
    for step in engine.applicable_steps(workflow, contract.amount):
        if step.type not in engine.APPROVING_STEP_TYPES:
            continue
        approvers = _resolve_step_users(db, step, contract)
        if not approvers:
            if step.is_required:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"No approvers available for required step '{step.name}'",
                )
            logger.info(
                "Skipping optional step '%s' for contract %s: no approvers",
                step.name,
                contract.id,
            )
            continue
        planned.append((step, approvers))

    if not planned:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Workflow '{workflow.name}' has no approval steps for this contract",
        )

    new_round = contract.approval_round + 1
    approvals: List[Approval] = []
    for step, approvers in planned:
        for approver in approvers:
            approval = Approval(
                approver_id=approver.id,
                workflow_step=step,
                step_number=step.order,
                round=new_round,
                status=ApprovalStatus.PENDING,
            )
            contract.approvals.append(approval)
            approvals.append(approval)

    contract.status = ContractStatus.IN_REVIEW
    contract.workflow = workflow
    contract.approval_round = new_round
    db.flush()

    _open_step(db, contract, engine.active_step_number(approvals))

    record_history(
        db,
        contract,
        "APPROVAL_PROCESS_STARTED",
        {
            "workflow_id": workflow.id,
            "workflow_name": workflow.name,
            "round": new_round,
            "steps_count": len(planned),
            "approvals_created": len(approvals),
        },
        user_id=user_id,
    )
    notify(
        db,
        contract.initiator_id,
        NotificationType.CONTRACT_UPDATED,
        "Contract sent for approval",
        f"Your contract {contract.number} was sent for approval via workflow '{workflow.name}'",
        contract,
    )
    db.commit()
    db.refresh(contract)
    logger.info(
        "Approval round %s started for contract %s via workflow %s (%s approvals)",
        new_round,
        contract.id,
        workflow.id,
        len(approvals),
    )
    return contract, workflow, approvals


def add_approver(
    db: Session, contract_id: int, data: ApprovalCreate, user_id: str
) -> Approval:
    """Assign an extra approver outside the workflow template."""
    contract = get_contract(db, contract_id)

    if contract.status in CLOSED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot add approver: current status is '{contract.status.value}'",
        )

    approver = get_user(db, data.approver_id)
    if approver.id == contract.initiator_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Self-approval is not permitted: approver is the contract initiator",
        )

    if contract.status == ContractStatus.DRAFT:
        # An ad hoc round runs outside any workflow template
        contract.approval_round += 1
        contract.status = ContractStatus.IN_REVIEW
        contract.workflow = None

    duplicate = any(
        a.approver_id == approver.id and a.step_number == data.step_number
        for a in contract.current_approvals
    )
    if duplicate:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Approver '{approver.id}' is already assigned to step {data.step_number}",
        )

    approval = Approval(
        approver_id=approver.id,
        step_number=data.step_number,
        round=contract.approval_round,
        status=ApprovalStatus.PENDING,
        due_date=data.due_date,
        comment=data.comment,
    )
    contract.approvals.append(approval)
    db.flush()

    if engine.active_step_number(contract.current_approvals) == approval.step_number:
        notify(
            db,
            approver.id,
            NotificationType.APPROVAL_REQUESTED,
            "Contract awaiting your approval",
            f"Contract {contract.number} with {contract.counterparty} requires your approval",
            contract,
        )

    record_history(
        db,
        contract,
        "APPROVAL_REQUESTED",
        {
            "approval_id": approval.id,
            "approver_id": approver.id,
            "step_number": approval.step_number,
            "due_date": data.due_date,
        },
        user_id=user_id,
    )
    db.commit()
    db.refresh(approval)
    return approval


def decide_approval(
    db: Session, approval_id: int, data: ApprovalDecision, user_id: str
) -> Approval:
    """Record an approver's decision and re-derive the contract status."""
    approval = get_approval(db, approval_id)
    contract = approval.contract

    if approval.approver_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User '{user_id}' is not the assigned approver",
        )
    if data.status == ApprovalStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Decision must be 'APPROVED' or 'REJECTED'",
        )
    if approval.status != ApprovalStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Approver '{approval.approver_id}' has already submitted a decision",
        )
    if contract.status != ContractStatus.IN_REVIEW or approval.round != contract.approval_round:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot decide: contract status is '{contract.status.value}'",
        )

    current = contract.current_approvals
    active_step = engine.active_step_number(current)
    if approval.step_number != active_step:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Step {approval.step_number} is not active yet; step {active_step} is awaiting approval",
        )

    approval.status = data.status
    approval.decided_at = utcnow()
    if data.comment is not None:
        approval.comment = data.comment

    new_status = engine.derive_contract_status(current)
    contract.status = new_status

    record_history(
        db,
        contract,
        f"APPROVAL_{data.status.value}",
        {
            "approval_id": approval.id,
            "approver_id": approval.approver_id,
            "step_number": approval.step_number,
            "comment": data.comment,
            "new_contract_status": new_status.value,
        },
        user_id=user_id,
    )

    if new_status == ContractStatus.REJECTED:
        notify(
            db,
            contract.initiator_id,
            NotificationType.REJECTED,
            "Contract rejected",
            f"Contract {contract.number} was rejected by '{approval.approver_id}'",
            contract,
        )
    elif new_status == ContractStatus.APPROVED:
        notify(
            db,
            contract.initiator_id,
            NotificationType.APPROVED,
            "Contract approved",
            f"Contract {contract.number} has been approved by all approvers",
            contract,
        )
        _fire_notification_steps(db, contract)
    else:
        next_step = engine.active_step_number(current)
        if next_step != active_step:
            _open_step(db, contract, next_step)

    db.commit()
    db.refresh(approval)
    logger.info(
        "Approval %s %s by %s; contract %s is now %s",
        approval.id,
        data.status.value,
        user_id,
        contract.id,
        new_status.value,
    )
    return approval


def list_approvals(
    db: Session,
    page: int,
    limit: int,
    contract_id: Optional[int] = None,
    approver_id: Optional[str] = None,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    query = db.query(Approval).join(Approval.contract).join(Approval.approver)
    if contract_id is not None:
        query = query.filter(Approval.contract_id == contract_id)
    if approver_id:
        query = query.filter(Approval.approver_id == approver_id)
    statuses = parse_csv_enum(status_filter, ApprovalStatus)
    if statuses:
        query = query.filter(Approval.status.in_(statuses))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Contract.number.ilike(pattern),
                Contract.counterparty.ilike(pattern),
                User.name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    query = order_by_column(query, SORTABLE_COLUMNS, sort_by, sort_order, Approval.id)
    return paginate(query, page, limit)


def get_contract_approvals(db: Session, contract_id: int, include_history: bool = False):
    contract = get_contract(db, contract_id)
    history = contract.history[:50] if include_history else None
    return contract.approvals, history


def approval_stats(db: Session, approver_id: Optional[str] = None) -> dict:
    query = db.query(Approval)
    if approver_id:
        query = query.filter(Approval.approver_id == approver_id)
    approvals = query.all()

    now = utcnow()
    recent_cutoff = now - timedelta(days=settings.RECENT_ACTIVITY_DAYS)
    recent = sorted(
        (a for a in approvals if as_utc(a.updated_at) >= recent_cutoff),
        key=lambda a: (as_utc(a.updated_at), a.id),
        reverse=True,
    )[:10]

    return {
        "total": len(approvals),
        "pending": sum(1 for a in approvals if a.status == ApprovalStatus.PENDING),
        "approved": sum(1 for a in approvals if a.status == ApprovalStatus.APPROVED),
        "rejected": sum(1 for a in approvals if a.status == ApprovalStatus.REJECTED),
        "overdue": sum(1 for a in approvals if engine.is_overdue(a, now)),
        "due_soon": sum(
            1 for a in approvals if engine.is_due_soon(a, now, settings.DUE_SOON_DAYS)
        ),
        "recent_activity": recent,
    }


# --- Escalation Operations ---


def _escalate(db: Session, approval: Approval) -> None:
    now = utcnow()
    base = as_utc(approval.due_date) if approval.due_date is not None else now
    approval.due_date = max(base, now) + timedelta(days=settings.ESCALATION_EXTENSION_DAYS)
    approval.escalated = True
    approval.escalation_count += 1

    contract = approval.contract
    notify(
        db,
        approval.approver_id,
        NotificationType.DEADLINE_APPROACHING,
        "Approval escalated",
        f"The approval deadline for contract {contract.number} was extended to "
        f"{approval.due_date:%Y-%m-%d}",
        contract,
    )
    record_history(
        db,
        contract,
        "APPROVAL_ESCALATED",
        {
            "approval_id": approval.id,
            "approver_id": approval.approver_id,
            "due_date": approval.due_date,
            "escalation_count": approval.escalation_count,
        },
    )


def escalate_approval(db: Session, approval_id: int) -> Approval:
    """Extend a pending approval's deadline and remind the approver."""
    approval = get_approval(db, approval_id)

    if approval.status != ApprovalStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only pending approvals can be escalated",
        )
    contract = approval.contract
    if contract.status != ContractStatus.IN_REVIEW or approval.round != contract.approval_round:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Escalation is only allowed for contracts under review",
        )
    active_step = engine.active_step_number(contract.current_approvals)
    if approval.step_number != active_step:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Step {approval.step_number} is not active yet; step {active_step} is awaiting approval",
        )

    _escalate(db, approval)
    db.commit()
    db.refresh(approval)
    logger.info("Approval %s escalated (count %s)", approval.id, approval.escalation_count)
    return approval


def escalate_overdue(db: Session) -> List[Approval]:
    """Escalate every overdue approval of the active step of contracts under review.

    Intended to be called periodically by an external scheduler.
    """
    now = utcnow()
    candidates = (
        db.query(Approval)
        .join(Approval.contract)
        .filter(
            Approval.status == ApprovalStatus.PENDING,
            Approval.due_date.is_not(None),
            Contract.status == ContractStatus.IN_REVIEW,
        )
        .order_by(Approval.id)
        .all()
    )
    overdue = [
        a
        for a in candidates
        if a.round == a.contract.approval_round
        and a.step_number == engine.active_step_number(a.contract.current_approvals)
        and engine.is_overdue(a, now)
    ]
    for approval in overdue:
        _escalate(db, approval)
    db.commit()
    for approval in overdue:
        db.refresh(approval)
    if overdue:
        logger.info("Escalated %s overdue approvals", len(overdue))
    return overdue
