"""Contract endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from contractflow.config import settings
from contractflow.database import get_db
from contractflow.models import ContractStatus
from contractflow.schemas import (
    ContractCreate,
    ContractDetailResponse,
    ContractListResponse,
    ContractStatusChange,
    ContractUpdate,
    ShippingUpdate,
)
from contractflow.services.contracts import (
    build_contract_detail,
    change_contract_status,
    create_contract,
    get_contract,
    list_contracts,
    update_contract,
    update_shipping,
)

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("", response_model=ContractDetailResponse, status_code=201)
def create_contract_endpoint(data: ContractCreate, db: Session = Depends(get_db)):
    """Create a new contract in draft status."""
    contract = create_contract(db, data)
    return build_contract_detail(contract)


@router.get("", response_model=ContractListResponse)
def list_contracts_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[ContractStatus] = Query(None),
    counterparty: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("updated_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    contracts, pagination = list_contracts(
        db, page, limit, status, counterparty, search, sort_by, sort_order
    )
    return {"contracts": contracts, "pagination": pagination}


@router.get("/{contract_id}", response_model=ContractDetailResponse)
def get_contract_endpoint(contract_id: int, db: Session = Depends(get_db)):
    """Retrieve a contract with its approvals and history."""
    return build_contract_detail(get_contract(db, contract_id))


@router.patch("/{contract_id}", response_model=ContractDetailResponse)
def update_contract_endpoint(
    contract_id: int,
    data: ContractUpdate,
    user_id: str = Query(..., description="The ID of the user making the edit"),
    db: Session = Depends(get_db),
):
    """Update contract terms (draft or rejected contracts, initiator only)."""
    contract = update_contract(db, contract_id, data, user_id)
    return build_contract_detail(contract)


@router.post("/{contract_id}/status", response_model=ContractDetailResponse)
def change_status_endpoint(
    contract_id: int,
    data: ContractStatusChange,
    user_id: str = Query(..., description="The ID of the user changing the status"),
    db: Session = Depends(get_db),
):
    contract = change_contract_status(db, contract_id, data.status, user_id)
    return build_contract_detail(contract)


@router.put("/{contract_id}/shipping", response_model=ContractDetailResponse)
def update_shipping_endpoint(
    contract_id: int,
    data: ShippingUpdate,
    user_id: str = Query(..., description="The ID of the user recording the shipment"),
    db: Session = Depends(get_db),
):
    """Replace the shipping method, status, tracking and delivery details."""
    contract = update_shipping(db, contract_id, data, user_id)
    return build_contract_detail(contract)
