"""Pydantic schemas for request/response validation."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from contractflow.models import (
    ApprovalStatus,
    ContractStatus,
    DocumentType,
    NotificationType,
    ShippingMethod,
    ShippingStatus,
    UserRole,
    WorkflowStatus,
    WorkflowStepType,
)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UserSummary(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: UserRole

    model_config = {"from_attributes": True}


def _check_amount_bounds(min_amount: Optional[float], max_amount: Optional[float]):
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValueError("min_amount must not exceed max_amount")


# --- Contract Schemas ---


class ContractCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=100)
    counterparty: str = Field(..., min_length=1, max_length=500)
    amount: float = Field(..., gt=0)
    start_date: date
    end_date: date
    description: Optional[str] = None
    contract_type: Optional[str] = Field(None, max_length=100)
    initiator_id: str = Field(..., min_length=1, max_length=100)

    @model_validator(mode="after")
    def validate_dates(self) -> "ContractCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ContractUpdate(BaseModel):
    number: Optional[str] = Field(None, min_length=1, max_length=100)
    counterparty: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[float] = Field(None, gt=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    contract_type: Optional[str] = Field(None, max_length=100)


class ContractStatusChange(BaseModel):
    status: ContractStatus


class ShippingUpdate(BaseModel):
    """Full replacement of a contract's shipping details; omitted fields are cleared."""

    shipping_method: Optional[ShippingMethod] = None
    shipping_status: Optional[ShippingStatus] = None
    tracking_number: Optional[str] = Field(None, max_length=100)
    shipping_date: Optional[date] = None
    delivery_date: Optional[date] = None
    shipping_address: Optional[str] = None
    shipping_notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "ShippingUpdate":
        if self.shipping_date and self.delivery_date and self.delivery_date < self.shipping_date:
            raise ValueError("delivery_date must not be before shipping_date")
        return self


class HistoryResponse(BaseModel):
    id: int
    action: str
    details: Dict[str, Any] = {}
    user_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApprovalResponse(BaseModel):
    id: int
    contract_id: int
    approver_id: str
    approver: Optional[UserSummary] = None
    workflow_step_id: Optional[int] = None
    step_number: int
    round: int
    status: ApprovalStatus
    comment: Optional[str] = None
    due_date: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    escalated: bool = False
    escalation_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ContractResponse(BaseModel):
    id: int
    number: str
    counterparty: str
    amount: float
    start_date: date
    end_date: date
    description: Optional[str] = None
    contract_type: Optional[str] = None
    status: ContractStatus
    initiator_id: str
    initiator: Optional[UserSummary] = None
    workflow_id: Optional[int] = None
    approval_round: int
    shipping_method: Optional[ShippingMethod] = None
    shipping_status: Optional[ShippingStatus] = None
    tracking_number: Optional[str] = None
    shipping_date: Optional[date] = None
    delivery_date: Optional[date] = None
    shipping_address: Optional[str] = None
    shipping_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ContractDetailResponse(ContractResponse):
    approvals: List[ApprovalResponse] = []
    history: List[HistoryResponse] = []
    active_step: Optional[int] = None


class ContractListResponse(BaseModel):
    contracts: List[ContractResponse]
    pagination: Pagination


# --- Approval Schemas ---


class StartApprovalRequest(BaseModel):
    workflow_id: Optional[int] = None


class StartApprovalResponse(BaseModel):
    contract_id: int
    workflow_id: int
    workflow_name: str
    round: int
    approvals_created: int
    approvals: List[ApprovalResponse]


class ApprovalCreate(BaseModel):
    approver_id: str = Field(..., min_length=1)
    due_date: Optional[datetime] = None
    step_number: int = Field(default=1, ge=1)
    comment: Optional[str] = None


class ApprovalDecision(BaseModel):
    status: ApprovalStatus
    comment: Optional[str] = None


class ContractSummary(BaseModel):
    id: int
    number: str
    counterparty: str
    status: ContractStatus
    amount: float

    model_config = {"from_attributes": True}


class ApprovalWithContract(ApprovalResponse):
    contract: ContractSummary


class ApprovalListResponse(BaseModel):
    approvals: List[ApprovalWithContract]
    pagination: Pagination


class ContractApprovalsResponse(BaseModel):
    approvals: List[ApprovalResponse]
    history: Optional[List[HistoryResponse]] = None


class ApprovalStatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    overdue: int
    due_soon: int
    recent_activity: List[ApprovalWithContract] = []


# --- Workflow Schemas ---


class WorkflowStepCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: WorkflowStepType = WorkflowStepType.APPROVAL
    description: Optional[str] = None
    is_required: bool = True
    due_days: Optional[int] = Field(None, ge=1)
    role: Optional[UserRole] = None
    user_id: Optional[str] = None
    min_amount: Optional[float] = Field(None, ge=0)
    max_amount: Optional[float] = Field(None, ge=0)
    parallel_roles: List[UserRole] = []

    @model_validator(mode="after")
    def validate_step(self) -> "WorkflowStepCreate":
        _check_amount_bounds(self.min_amount, self.max_amount)
        return self


class WorkflowCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.DRAFT
    min_amount: Optional[float] = Field(None, ge=0)
    max_amount: Optional[float] = Field(None, ge=0)
    steps: List[WorkflowStepCreate] = []

    @model_validator(mode="after")
    def validate_conditions(self) -> "WorkflowCreate":
        _check_amount_bounds(self.min_amount, self.max_amount)
        return self


class WorkflowUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[WorkflowStatus] = None
    min_amount: Optional[float] = Field(None, ge=0)
    max_amount: Optional[float] = Field(None, ge=0)
    steps: Optional[List[WorkflowStepCreate]] = None


class WorkflowStepResponse(BaseModel):
    id: int
    name: str
    type: WorkflowStepType
    order: int
    description: Optional[str] = None
    is_required: bool
    due_days: Optional[int] = None
    role: Optional[UserRole] = None
    user_id: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    parallel_roles: List[UserRole] = Field(
        default=[], validation_alias="parallel_role_values"
    )

    model_config = {"from_attributes": True}


class WorkflowResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: WorkflowStatus
    is_default: bool
    version: int
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    steps: List[WorkflowStepResponse] = []

    model_config = {"from_attributes": True}


# --- Comment Schemas ---


class CommentCreate(BaseModel):
    author_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    parent_id: Optional[int] = None


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: int
    contract_id: int
    author_id: str
    author: Optional[UserSummary] = None
    content: str
    parent_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    is_edited: bool = False


class CommentListResponse(BaseModel):
    comments: List[CommentResponse]
    pagination: Pagination


# --- Document Schemas ---


class DocumentCreate(BaseModel):
    filename: str = Field(..., min_length=1, max_length=500)
    file_path: str = Field(..., min_length=1, max_length=1000)
    file_size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1)
    type: DocumentType = DocumentType.OTHER
    author_id: str = Field(..., min_length=1)
    changes: Optional[Dict[str, Any]] = None


class DocumentVersionResponse(BaseModel):
    id: int
    document_id: int
    version: int
    file_path: str
    file_size: int
    changes: Dict[str, Any] = {}
    author_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DocumentResponse(BaseModel):
    id: int
    contract_id: int
    filename: str
    type: DocumentType
    mime_type: str
    file_size: int
    created_at: datetime
    updated_at: datetime
    versions: List[DocumentVersionResponse] = []

    model_config = {"from_attributes": True}


# --- Notification Schemas ---


class NotificationCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=500)
    message: str = Field(..., min_length=1)
    contract_id: Optional[int] = None
    action_url: Optional[str] = None


class NotificationReadUpdate(BaseModel):
    read: bool = True


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    contract_id: Optional[int] = None
    action_url: Optional[str] = None
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MarkAllReadResponse(BaseModel):
    updated: int


# --- Report Schemas ---


class ReportOverview(BaseModel):
    total_contracts: int
    in_review: int
    approved: int
    rejected: int
    avg_approval_time: float
    overdue_contracts: int
    completion_rate: int


class DepartmentStat(BaseModel):
    name: str
    total: int
    approved: int
    rejected: int
    avg_time: float


class ApproverWorkload(BaseModel):
    approver_id: str
    name: str
    role: str
    pending: int
    completed: int
    avg_time: float


class KpiData(BaseModel):
    avg_approval_by_type: Dict[str, float]
    overdue_rate: float


class OverviewReport(BaseModel):
    time_range: str
    overview: ReportOverview
    department_stats: List[DepartmentStat]
    approver_workload: List[ApproverWorkload]
    kpi: KpiData


class TimelineEntry(BaseModel):
    group: str
    contracts: int
    overdue: int
    avg_days: float
    min_days: float
    max_days: float


class Bottleneck(BaseModel):
    step_number: int
    approvals: int
    avg_delay: float
    max_delay: float
    severity: str


class TimelineSummary(BaseModel):
    total_contracts: int
    avg_approval_time: float
    min_approval_time: float
    max_approval_time: float
    overdue_count: int


class TimelineReport(BaseModel):
    time_range: str
    group_by: str
    timeline: List[TimelineEntry]
    bottlenecks: List[Bottleneck]
    summary: TimelineSummary


class StatisticsOverview(BaseModel):
    total_departments: int
    total_contracts: int
    avg_efficiency: float
    best_department: Optional[str] = None
    worst_department: Optional[str] = None


class DepartmentDetail(BaseModel):
    name: str
    total_contracts: int
    approved: int
    rejected: int
    pending: int
    avg_approval_time: float
    efficiency: float
    overdue_rate: float
    workload: str
    trend: str
    top_users: List[str]


class PerformanceMetric(BaseModel):
    metric: str
    department: str
    value: float
    unit: str


class WorkloadDistribution(BaseModel):
    department: str
    current: int
    capacity: int
    utilization: int


class StatisticsReport(BaseModel):
    time_range: str
    overview: StatisticsOverview
    departments: List[DepartmentDetail]
    performance_metrics: List[PerformanceMetric]
    workload_distribution: List[WorkloadDistribution]
