"""Contract records, their edit lock and manual status transitions."""

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy import or_
from sqlalchemy.orm import Session

from contractflow import engine
from contractflow.models import (
    Contract,
    ContractHistory,
    ContractStatus,
    NotificationType,
)
from contractflow.schemas import ContractCreate, ContractUpdate, ShippingUpdate
from contractflow.services.common import get_user, order_by_column, paginate
from contractflow.services.notifications import notify

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Contract.created_at,
    "updated_at": Contract.updated_at,
    "amount": Contract.amount,
    "number": Contract.number,
    "counterparty": Contract.counterparty,
    "start_date": Contract.start_date,
    "end_date": Contract.end_date,
    "status": Contract.status,
}

# Status changes a user may request directly. IN_REVIEW, APPROVED and
# REJECTED are reached only through the approval process.
MANUAL_TRANSITIONS = {
    ContractStatus.DRAFT: {ContractStatus.ARCHIVED},
    ContractStatus.APPROVED: {ContractStatus.SIGNED},
    ContractStatus.SIGNED: {ContractStatus.ARCHIVED},
    ContractStatus.REJECTED: {ContractStatus.DRAFT, ContractStatus.ARCHIVED},
}

EDITABLE_STATUSES = (ContractStatus.DRAFT, ContractStatus.REJECTED)


def record_history(
    db: Session,
    contract: Contract,
    action: str,
    details: Dict[str, Any],
    user_id: Optional[str] = None,
) -> ContractHistory:
    entry = ContractHistory(
        action=action,
        details=jsonable_encoder(details),
        user_id=user_id,
    )
    contract.history.append(entry)
    return entry


def _ensure_unique_number(db: Session, number: str, exclude_id: Optional[int] = None):
    query = db.query(Contract).filter(Contract.number == number)
    if exclude_id is not None:
        query = query.filter(Contract.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Contract number '{number}' already exists",
        )


def create_contract(db: Session, data: ContractCreate) -> Contract:
    """Create a new contract in draft status."""
    get_user(db, data.initiator_id)
    _ensure_unique_number(db, data.number)

    contract = Contract(
        number=data.number,
        counterparty=data.counterparty,
        amount=data.amount,
        start_date=data.start_date,
        end_date=data.end_date,
        description=data.description,
        contract_type=data.contract_type,
        initiator_id=data.initiator_id,
        status=ContractStatus.DRAFT,
    )
    db.add(contract)
    db.flush()

    record_history(
        db,
        contract,
        "CREATED",
        data.model_dump(exclude={"initiator_id"}),
        user_id=data.initiator_id,
    )
    db.commit()
    db.refresh(contract)
    logger.info("Contract %s (%s) created by %s", contract.id, contract.number, contract.initiator_id)
    return contract


def get_contract(db: Session, contract_id: int) -> Contract:
    """Retrieve a contract by ID or raise 404."""
    contract = db.get(Contract, contract_id)
    if not contract:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Contract {contract_id} not found",
        )
    return contract


def list_contracts(
    db: Session,
    page: int,
    limit: int,
    status_filter: Optional[ContractStatus] = None,
    counterparty: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "updated_at",
    sort_order: str = "desc",
):
    query = db.query(Contract)
    if status_filter is not None:
        query = query.filter(Contract.status == status_filter)
    if counterparty:
        query = query.filter(Contract.counterparty == counterparty)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(Contract.number.ilike(pattern), Contract.counterparty.ilike(pattern))
        )
    query = order_by_column(query, SORTABLE_COLUMNS, sort_by, sort_order, Contract.id)
    return paginate(query, page, limit)


def update_contract(
    db: Session, contract_id: int, data: ContractUpdate, user_id: str
) -> Contract:
    """Update contract terms. Only the initiator may edit, and only before or after a failed review."""
    contract = get_contract(db, contract_id)

    if contract.status not in EDITABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot edit contract: current status is '{contract.status.value}'",
        )
    if contract.initiator_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the initiator can edit this contract",
        )

    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key in ("description", "contract_type")
    }

    start_date = changes.get("start_date", contract.start_date)
    end_date = changes.get("end_date", contract.end_date)
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )
    if "number" in changes and changes["number"] != contract.number:
        _ensure_unique_number(db, changes["number"], exclude_id=contract.id)

    for key, value in changes.items():
        setattr(contract, key, value)

    record_history(db, contract, "CONTRACT_UPDATED", {"changes": changes}, user_id=user_id)
    db.commit()
    db.refresh(contract)
    return contract


def change_contract_status(
    db: Session, contract_id: int, new_status: ContractStatus, user_id: str
) -> Contract:
    contract = get_contract(db, contract_id)
    old_status = contract.status

    if new_status not in MANUAL_TRANSITIONS.get(old_status, set()):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot change status from '{old_status.value}' to '{new_status.value}'",
        )

    contract.status = new_status
    record_history(
        db,
        contract,
        "STATUS_CHANGED",
        {"from": old_status.value, "to": new_status.value},
        user_id=user_id,
    )

    if new_status == ContractStatus.SIGNED:
        notify(
            db,
            contract.initiator_id,
            NotificationType.CONTRACT_SIGNED,
            "Contract signed",
            f"Contract {contract.number} with {contract.counterparty} has been signed",
            contract,
        )

    db.commit()
    db.refresh(contract)
    logger.info(
        "Contract %s status changed %s -> %s by %s",
        contract.id,
        old_status.value,
        new_status.value,
        user_id,
    )
    return contract


def update_shipping(
    db: Session, contract_id: int, data: ShippingUpdate, user_id: str
) -> Contract:
    """Replace the shipping details of a contract."""
    contract = get_contract(db, contract_id)
    get_user(db, user_id)

    for key, value in data.model_dump().items():
        setattr(contract, key, value)

    record_history(
        db,
        contract,
        "SHIPPING_UPDATED",
        data.model_dump(
            include={
                "shipping_method",
                "shipping_status",
                "tracking_number",
                "shipping_date",
                "delivery_date",
            }
        ),
        user_id=user_id,
    )
    db.commit()
    db.refresh(contract)
    logger.info(
        "Shipping for contract %s updated by %s (status %s)",
        contract.id,
        user_id,
        data.shipping_status.value if data.shipping_status else None,
    )
    return contract


# --- Helper for Response Building ---


def build_contract_detail(contract: Contract) -> dict:
    """Build a ContractDetailResponse dict with computed fields."""
    active_step = None
    if contract.status == ContractStatus.IN_REVIEW:
        active_step = engine.active_step_number(contract.current_approvals)

    return {
        "id": contract.id,
        "number": contract.number,
        "counterparty": contract.counterparty,
        "amount": contract.amount,
        "start_date": contract.start_date,
        "end_date": contract.end_date,
        "description": contract.description,
        "contract_type": contract.contract_type,
        "status": contract.status,
        "initiator_id": contract.initiator_id,
        "initiator": contract.initiator,
        "workflow_id": contract.workflow_id,
        "approval_round": contract.approval_round,
        "shipping_method": contract.shipping_method,
        "shipping_status": contract.shipping_status,
        "tracking_number": contract.tracking_number,
        "shipping_date": contract.shipping_date,
        "delivery_date": contract.delivery_date,
        "shipping_address": contract.shipping_address,
        "shipping_notes": contract.shipping_notes,
        "created_at": contract.created_at,
        "updated_at": contract.updated_at,
        "approvals": contract.approvals,
        "history": contract.history,
        "active_step": active_step,
    }
