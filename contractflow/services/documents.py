"""Document metadata and version history for contracts.

File bytes live outside the service; callers register a stored file by path.
Registering a filename that the contract already has adds a new version of
that document instead of a second document.
"""

import logging
from typing import List

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from contractflow.config import settings
from contractflow.models import Document, DocumentVersion, NotificationType
from contractflow.schemas import DocumentCreate
from contractflow.services.common import get_user
from contractflow.services.contracts import get_contract, record_history
from contractflow.services.notifications import notify

logger = logging.getLogger(__name__)


def get_document(db: Session, document_id: int) -> Document:
    """Retrieve a document by ID or raise 404."""
    document = db.get(Document, document_id)
    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found",
        )
    return document


def _validate_file(data: DocumentCreate) -> None:
    if data.mime_type not in settings.ALLOWED_DOCUMENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type '{data.mime_type}'",
        )
    if data.file_size > settings.MAX_DOCUMENT_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large: {data.file_size} bytes exceeds {settings.MAX_DOCUMENT_SIZE}",
        )


def register_document(db: Session, contract_id: int, data: DocumentCreate) -> Document:
    contract = get_contract(db, contract_id)
    _validate_file(data)
    author = get_user(db, data.author_id)

    document = (
        db.query(Document)
        .filter(Document.contract_id == contract.id, Document.filename == data.filename)
        .first()
    )
    if document is None:
        document = Document(
            contract_id=contract.id,
            filename=data.filename,
            type=data.type,
            mime_type=data.mime_type,
            file_size=data.file_size,
        )
        db.add(document)
        next_version = 1
    else:
        latest = document.latest_version
        next_version = latest.version + 1 if latest is not None else 1
        document.type = data.type
        document.mime_type = data.mime_type
        document.file_size = data.file_size

    document.versions.append(
        DocumentVersion(
            version=next_version,
            file_path=data.file_path,
            file_size=data.file_size,
            changes=data.changes or {},
            author_id=author.id,
        )
    )
    db.flush()

    record_history(
        db,
        contract,
        "DOCUMENT_UPLOADED",
        {
            "document_id": document.id,
            "filename": document.filename,
            "version": next_version,
            "file_size": data.file_size,
        },
        user_id=author.id,
    )
    if contract.initiator_id != author.id:
        notify(
            db,
            contract.initiator_id,
            NotificationType.DOCUMENT_UPLOADED,
            "Document uploaded",
            f"{document.filename} (version {next_version}) was added to contract {contract.number}",
            contract,
        )
    db.commit()
    db.refresh(document)
    logger.info(
        "Document %s version %s registered on contract %s",
        document.id,
        next_version,
        contract.id,
    )
    return document


def list_documents(db: Session, contract_id: int) -> List[Document]:
    """Documents of a contract, newest first."""
    get_contract(db, contract_id)
    return (
        db.query(Document)
        .filter(Document.contract_id == contract_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )


def list_versions(db: Session, document_id: int) -> List[DocumentVersion]:
    return get_document(db, document_id).versions
