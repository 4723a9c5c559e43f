"""Approval routing rules.

Pure functions over already-loaded rows: which workflow applies to a contract,
which of its steps are in play, who holds a step, and what the contract's
status is given its approvals. Nothing here touches the session.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from contractflow.models import (
    Approval,
    ApprovalStatus,
    ContractStatus,
    UserRole,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
    WorkflowStepType,
    as_utc,
)

# Step types that produce approval records; the rest only notify or gate.
APPROVING_STEP_TYPES = (WorkflowStepType.APPROVAL, WorkflowStepType.REVIEW)


def amount_matches(
    amount: float, min_amount: Optional[float], max_amount: Optional[float]
) -> bool:
    """Inclusive bounds check; a missing bound is open."""
    if min_amount is not None and amount < min_amount:
        return False
    if max_amount is not None and amount > max_amount:
        return False
    return True


def select_workflow(workflows: Iterable[Workflow], amount: float) -> Optional[Workflow]:
    """Pick the workflow that routes a contract of the given amount.

    Active workflows whose amount condition matches win over the default
    workflow. Among several matches the one with the highest lower bound is
    the most specific; ties go to the oldest workflow.
    """
    active = [w for w in workflows if w.status == WorkflowStatus.ACTIVE]

    conditional = [
        w
        for w in active
        if w.has_conditions and amount_matches(amount, w.min_amount, w.max_amount)
    ]
    if conditional:
        conditional.sort(
            key=lambda w: (
                -(w.min_amount if w.min_amount is not None else float("-inf")),
                w.id,
            )
        )
        return conditional[0]

    for workflow in sorted(active, key=lambda w: w.id):
        if workflow.is_default:
            return workflow
    return None


def applicable_steps(workflow: Workflow, amount: float) -> List[WorkflowStep]:
    """Steps in execution order whose own amount condition matches."""
    return [
        step
        for step in sorted(workflow.steps, key=lambda s: s.order)
        if amount_matches(amount, step.min_amount, step.max_amount)
    ]


def step_roles(step: WorkflowStep) -> List[UserRole]:
    """The step's primary role followed by its parallel roles, without duplicates."""
    roles: List[UserRole] = []
    candidates = [step.role] if step.role is not None else []
    candidates.extend(step.parallel_role_values)
    for role in candidates:
        if role not in roles:
            roles.append(role)
    return roles


def derive_contract_status(approvals: Sequence[Approval]) -> ContractStatus:
    """Aggregate status of one approval round.

    Any rejection rejects the contract; it is approved only once every
    approval in the round is approved.
    """
    if any(a.status == ApprovalStatus.REJECTED for a in approvals):
        return ContractStatus.REJECTED
    if approvals and all(a.status == ApprovalStatus.APPROVED for a in approvals):
        return ContractStatus.APPROVED
    return ContractStatus.IN_REVIEW


def active_step_number(approvals: Sequence[Approval]) -> Optional[int]:
    """Lowest step that still waits on someone; later steps are not open yet."""
    pending = [a.step_number for a in approvals if a.status == ApprovalStatus.PENDING]
    if not pending:
        return None
    return min(pending)


def due_date_for(step: Optional[WorkflowStep], now: datetime) -> Optional[datetime]:
    if step is None or not step.due_days:
        return None
    return now + timedelta(days=step.due_days)


def is_overdue(approval: Approval, now: datetime) -> bool:
    if approval.status != ApprovalStatus.PENDING or approval.due_date is None:
        return False
    return as_utc(approval.due_date) < now


def is_due_soon(approval: Approval, now: datetime, days: int) -> bool:
    if approval.status != ApprovalStatus.PENDING or approval.due_date is None:
        return False
    due = as_utc(approval.due_date)
    return now <= due <= now + timedelta(days=days)
