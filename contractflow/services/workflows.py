"""Workflow templates: ordered approval steps with amount conditions."""

import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from contractflow.models import (
    Approval,
    Contract,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
    WorkflowStepRole,
)
from contractflow.schemas import WorkflowCreate, WorkflowStepCreate, WorkflowUpdate
from contractflow.services.common import get_user

logger = logging.getLogger(__name__)


def get_workflow(db: Session, workflow_id: int) -> Workflow:
    """Retrieve a workflow by ID or raise 404."""
    workflow = db.get(Workflow, workflow_id)
    if not workflow:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workflow {workflow_id} not found",
        )
    return workflow


def list_workflows(
    db: Session,
    status_filter: Optional[WorkflowStatus] = None,
    is_default: Optional[bool] = None,
) -> List[Workflow]:
    query = db.query(Workflow)
    if status_filter is not None:
        query = query.filter(Workflow.status == status_filter)
    if is_default is not None:
        query = query.filter(Workflow.is_default == is_default)
    return query.order_by(Workflow.updated_at.desc(), Workflow.id.desc()).all()


def _build_steps(db: Session, steps: List[WorkflowStepCreate]) -> List[WorkflowStep]:
    built = []
    for index, step in enumerate(steps):
        if step.user_id:
            get_user(db, step.user_id)
        built.append(
            WorkflowStep(
                name=step.name,
                type=step.type,
                order=index + 1,
                description=step.description,
                is_required=step.is_required,
                due_days=step.due_days,
                role=step.role,
                user_id=step.user_id,
                min_amount=step.min_amount,
                max_amount=step.max_amount,
                parallel_roles=[
                    WorkflowStepRole(role=role)
                    for role in dict.fromkeys(step.parallel_roles)
                    if role != step.role
                ],
            )
        )
    return built


def create_workflow(db: Session, data: WorkflowCreate) -> Workflow:
    """Create a workflow; the first workflow ever created becomes the default."""
    is_first = db.query(Workflow).count() == 0

    workflow = Workflow(
        name=data.name,
        description=data.description,
        status=data.status,
        min_amount=data.min_amount,
        max_amount=data.max_amount,
        is_default=is_first,
        steps=_build_steps(db, data.steps),
    )
    db.add(workflow)
    db.commit()
    db.refresh(workflow)
    logger.info("Workflow %s '%s' created with %s steps", workflow.id, workflow.name, len(workflow.steps))
    return workflow


def update_workflow(db: Session, workflow_id: int, data: WorkflowUpdate) -> Workflow:
    """Partially update a workflow. Supplying steps replaces all of them."""
    workflow = get_workflow(db, workflow_id)
    changes = data.model_dump(exclude_unset=True, exclude={"steps"})

    min_amount = changes.get("min_amount", workflow.min_amount)
    max_amount = changes.get("max_amount", workflow.max_amount)
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="min_amount must not exceed max_amount",
        )

    if data.steps is not None:
        step_ids = [step.id for step in workflow.steps]
        in_use = bool(step_ids) and (
            db.query(Approval).filter(Approval.workflow_step_id.in_(step_ids)).first()
            is not None
        )
        if in_use:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot replace steps: they are referenced by existing approvals",
            )
        new_steps = _build_steps(db, data.steps)
        workflow.steps.clear()
        # Old rows must be gone before new ones reuse their (workflow_id, order)
        db.flush()
        workflow.steps.extend(new_steps)
        workflow.version += 1

    for key, value in changes.items():
        if key in ("name", "status") and value is None:
            continue
        setattr(workflow, key, value)

    if workflow.status != WorkflowStatus.ACTIVE and workflow.is_default:
        logger.warning("Default workflow %s is no longer active", workflow.id)

    db.commit()
    db.refresh(workflow)
    return workflow


def set_default_workflow(db: Session, workflow_id: int) -> Workflow:
    workflow = get_workflow(db, workflow_id)
    if workflow.status != WorkflowStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only an active workflow can be the default",
        )
    db.query(Workflow).filter(Workflow.id != workflow.id).update(
        {Workflow.is_default: False}, synchronize_session="fetch"
    )
    workflow.is_default = True
    db.commit()
    db.refresh(workflow)
    logger.info("Workflow %s is now the default", workflow.id)
    return workflow


def delete_workflow(db: Session, workflow_id: int) -> None:
    workflow = get_workflow(db, workflow_id)
    if db.query(Contract).filter(Contract.workflow_id == workflow.id).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete workflow that is used by contracts",
        )
    db.delete(workflow)
    db.commit()
    logger.info("Workflow %s deleted", workflow_id)
