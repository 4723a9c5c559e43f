"""SQLAlchemy database models for contract lifecycle management."""

import enum
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, List

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contractflow.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserRole(str, enum.Enum):
    INITIATOR = "INITIATOR"
    INITIATOR_MANAGER = "INITIATOR_MANAGER"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    CHIEF_LAWYER = "CHIEF_LAWYER"
    GENERAL_DIRECTOR = "GENERAL_DIRECTOR"
    OFFICE_MANAGER = "OFFICE_MANAGER"
    ADMINISTRATOR = "ADMINISTRATOR"


class ContractStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    SIGNED = "SIGNED"
    ARCHIVED = "ARCHIVED"
    REJECTED = "REJECTED"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class WorkflowStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DRAFT = "DRAFT"


class WorkflowStepType(str, enum.Enum):
    APPROVAL = "APPROVAL"
    REVIEW = "REVIEW"
    NOTIFICATION = "NOTIFICATION"
    CONDITION = "CONDITION"


class ShippingMethod(str, enum.Enum):
    RUSSIAN_POST = "RUSSIAN_POST"
    COURIER = "COURIER"
    SELF_PICKUP = "SELF_PICKUP"
    OTHER = "OTHER"


class ShippingStatus(str, enum.Enum):
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"
    LOST = "LOST"


class DocumentType(str, enum.Enum):
    CONTRACT = "CONTRACT"
    TENDER_SHEET = "TENDER_SHEET"
    COMMERCIAL_PROPOSAL = "COMMERCIAL_PROPOSAL"
    DISAGREEMENT_PROTOCOL = "DISAGREEMENT_PROTOCOL"
    OTHER = "OTHER"


class NotificationType(str, enum.Enum):
    CONTRACT_CREATED = "CONTRACT_CREATED"
    CONTRACT_UPDATED = "CONTRACT_UPDATED"
    APPROVAL_REQUESTED = "APPROVAL_REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMMENT_ADDED = "COMMENT_ADDED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    DEADLINE_APPROACHING = "DEADLINE_APPROACHING"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.INITIATOR, nullable=False
    )
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class Workflow(Base):
    __tablename__ = "workflows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[WorkflowStatus] = mapped_column(
        Enum(WorkflowStatus), default=WorkflowStatus.DRAFT, nullable=False
    )
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    version: Mapped[int] = mapped_column(Integer, default=1)

    # Amount condition; a missing bound is open
    min_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    steps: Mapped[List["WorkflowStep"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowStep.order",
    )
    contracts: Mapped[List["Contract"]] = relationship(back_populates="workflow")

    @property
    def has_conditions(self) -> bool:
        return self.min_amount is not None or self.max_amount is not None


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_id: Mapped[int] = mapped_column(ForeignKey("workflows.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[WorkflowStepType] = mapped_column(
        Enum(WorkflowStepType), default=WorkflowStepType.APPROVAL, nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)
    due_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Approver resolution: a specific user wins over roles
    role: Mapped[Optional[UserRole]] = mapped_column(Enum(UserRole), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )

    min_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    workflow: Mapped["Workflow"] = relationship(back_populates="steps")
    parallel_roles: Mapped[List["WorkflowStepRole"]] = relationship(
        back_populates="step", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("workflow_id", "order", name="uq_workflow_step_order"),
    )

    @property
    def parallel_role_values(self) -> List[UserRole]:
        return [link.role for link in self.parallel_roles]


class WorkflowStepRole(Base):
    """Extra role that approves a step in parallel with the step's primary role."""

    __tablename__ = "workflow_step_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    step_id: Mapped[int] = mapped_column(ForeignKey("workflow_steps.id"), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)

    step: Mapped["WorkflowStep"] = relationship(back_populates="parallel_roles")

    __table_args__ = (UniqueConstraint("step_id", "role", name="uq_step_role"),)


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    counterparty: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contract_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False
    )
    initiator_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    workflow_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("workflows.id"), nullable=True
    )
    approval_round: Mapped[int] = mapped_column(Integer, default=0)

    # Delivery of the signed paper copy
    shipping_method: Mapped[Optional[ShippingMethod]] = mapped_column(
        Enum(ShippingMethod), nullable=True
    )
    shipping_status: Mapped[Optional[ShippingStatus]] = mapped_column(
        Enum(ShippingStatus), nullable=True
    )
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    shipping_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    shipping_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    initiator: Mapped["User"] = relationship()
    workflow: Mapped[Optional["Workflow"]] = relationship(back_populates="contracts")
    approvals: Mapped[List["Approval"]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="(Approval.round, Approval.step_number, Approval.id)",
    )
    history: Mapped[List["ContractHistory"]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractHistory.id.desc()",
    )
    comments: Mapped[List["Comment"]] = relationship(
        back_populates="contract", cascade="all, delete-orphan"
    )
    documents: Mapped[List["Document"]] = relationship(
        back_populates="contract", cascade="all, delete-orphan"
    )

    @property
    def current_approvals(self) -> List["Approval"]:
        return [a for a in self.approvals if a.round == self.approval_round]


class Approval(Base):
    __tablename__ = "approvals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    approver_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    workflow_step_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("workflow_steps.id"), nullable=True
    )
    step_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    round: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False
    )
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    escalated: Mapped[bool] = mapped_column(Boolean, default=False)
    escalation_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    contract: Mapped["Contract"] = relationship(back_populates="approvals")
    approver: Mapped["User"] = relationship()
    workflow_step: Mapped[Optional["WorkflowStep"]] = relationship()

    __table_args__ = (
        UniqueConstraint(
            "contract_id",
            "approver_id",
            "step_number",
            "round",
            name="uq_contract_approver_step_round",
        ),
    )


class ContractHistory(Base):
    __tablename__ = "contract_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    contract: Mapped["Contract"] = relationship(back_populates="history")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    author_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("comments.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    contract: Mapped["Contract"] = relationship(back_populates="comments")
    author: Mapped["User"] = relationship()
    parent: Mapped[Optional["Comment"]] = relationship(
        back_populates="replies", remote_side="Comment.id"
    )
    replies: Mapped[List["Comment"]] = relationship(
        back_populates="parent", cascade="all, delete-orphan"
    )


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType), default=DocumentType.OTHER, nullable=False
    )
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    contract: Mapped["Contract"] = relationship(back_populates="documents")
    versions: Mapped[List["DocumentVersion"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentVersion.version.desc()",
    )

    __table_args__ = (
        UniqueConstraint("contract_id", "filename", name="uq_contract_filename"),
    )

    @property
    def latest_version(self) -> Optional["DocumentVersion"]:
        if self.versions:
            return self.versions[0]
        return None


class DocumentVersion(Base):
    __tablename__ = "document_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    changes: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    author_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    document: Mapped["Document"] = relationship(back_populates="versions")

    __table_args__ = (
        UniqueConstraint("document_id", "version", name="uq_document_version"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    contract_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("contracts.id"), nullable=True
    )
    action_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
