"""Workflow template endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from contractflow.database import get_db
from contractflow.models import WorkflowStatus
from contractflow.schemas import WorkflowCreate, WorkflowResponse, WorkflowUpdate
from contractflow.services.workflows import (
    create_workflow,
    delete_workflow,
    get_workflow,
    list_workflows,
    set_default_workflow,
    update_workflow,
)

router = APIRouter(prefix="/workflows", tags=["workflows"])


@router.get("", response_model=List[WorkflowResponse])
def list_workflows_endpoint(
    status: Optional[WorkflowStatus] = Query(None),
    is_default: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
):
    return list_workflows(db, status, is_default)


@router.post("", response_model=WorkflowResponse, status_code=201)
def create_workflow_endpoint(data: WorkflowCreate, db: Session = Depends(get_db)):
    return create_workflow(db, data)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
def get_workflow_endpoint(workflow_id: int, db: Session = Depends(get_db)):
    return get_workflow(db, workflow_id)


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
def update_workflow_endpoint(
    workflow_id: int, data: WorkflowUpdate, db: Session = Depends(get_db)
):
    """Update a workflow; a steps list replaces the existing steps."""
    return update_workflow(db, workflow_id, data)


@router.post("/{workflow_id}/default", response_model=WorkflowResponse)
def set_default_endpoint(workflow_id: int, db: Session = Depends(get_db)):
    return set_default_workflow(db, workflow_id)


@router.delete("/{workflow_id}", status_code=204)
def delete_workflow_endpoint(workflow_id: int, db: Session = Depends(get_db)):
    delete_workflow(db, workflow_id)
    return Response(status_code=204)
