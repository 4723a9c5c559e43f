"""Contract document endpoints."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from contractflow.database import get_db
from contractflow.schemas import (
    DocumentCreate,
    DocumentResponse,
    DocumentVersionResponse,
)
from contractflow.services.documents import (
    list_documents,
    list_versions,
    register_document,
)

router = APIRouter(tags=["documents"])


@router.post(
    "/contracts/{contract_id}/documents",
    response_model=DocumentResponse,
    status_code=201,
)
def register_document_endpoint(
    contract_id: int, data: DocumentCreate, db: Session = Depends(get_db)
):
    """Register an uploaded file; a known filename gets a new version."""
    return register_document(db, contract_id, data)


@router.get(
    "/contracts/{contract_id}/documents", response_model=List[DocumentResponse]
)
def list_documents_endpoint(contract_id: int, db: Session = Depends(get_db)):
    return list_documents(db, contract_id)


@router.get(
    "/documents/{document_id}/versions",
    response_model=List[DocumentVersionResponse],
)
def list_versions_endpoint(document_id: int, db: Session = Depends(get_db)):
    return list_versions(db, document_id)
