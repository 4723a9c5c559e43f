"""Approval analytics over a time window of contracts.

Contracts and their approvals (every round) are flattened into pandas
DataFrames and aggregated per department, approver, contract type, month
and workflow step. Durations are reported in days with one decimal.
"""

import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from contractflow.models import (
    Approval,
    ApprovalStatus,
    Contract,
    ContractStatus,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)

TIME_RANGES = {"1month": 1, "3months": 3, "6months": 6, "1year": 12}
DEFAULT_TIME_RANGE = "6months"
GROUPINGS = ("month", "type", "department")
DEFAULT_GROUPING = "month"

COMPLETED_STATUSES = (ContractStatus.APPROVED.value, ContractStatus.SIGNED.value)
UNSPECIFIED_TYPE = "Unspecified"

CONTRACT_COLUMNS = ["id", "status", "contract_type", "department", "created_at"]
APPROVAL_COLUMNS = [
    "id",
    "contract_id",
    "approver_id",
    "approver_name",
    "approver_role",
    "step_number",
    "status",
    "due_date",
    "decided_at",
    "created_at",
]

SECONDS_PER_DAY = 24 * 60 * 60


def department_of(user: User) -> str:
    return user.department or user.role.value


def resolve_time_range(time_range: Optional[str]) -> str:
    return time_range if time_range in TIME_RANGES else DEFAULT_TIME_RANGE


def _round_agg(series: pd.Series, how: str = "mean") -> float:
    """Aggregate a series (days or percentages) to one decimal; empty gives 0.0."""
    value = getattr(series.dropna(), how)()
    if pd.isna(value):
        return 0.0
    return round(float(value), 1)


def _percent(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100, 1)


def _load(db: Session, time_range: str) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Contracts created inside the window and every approval they carry."""
    now = pd.Timestamp(utcnow())
    start = now - pd.DateOffset(months=TIME_RANGES[time_range])

    contracts = (
        db.query(Contract)
        .options(
            selectinload(Contract.initiator),
            selectinload(Contract.approvals).selectinload(Approval.approver),
        )
        .order_by(Contract.id)
        .all()
    )

    contract_rows = []
    approval_rows = []
    for contract in contracts:
        contract_rows.append(
            {
                "id": contract.id,
                "status": contract.status.value,
                "contract_type": contract.contract_type or UNSPECIFIED_TYPE,
                "department": department_of(contract.initiator),
                "created_at": contract.created_at,
            }
        )
        for approval in contract.approvals:
            approval_rows.append(
                {
                    "id": approval.id,
                    "contract_id": contract.id,
                    "approver_id": approval.approver_id,
                    "approver_name": approval.approver.name or approval.approver.email,
                    "approver_role": approval.approver.role.value,
                    "step_number": approval.step_number,
                    "status": approval.status.value,
                    "due_date": approval.due_date,
                    "decided_at": approval.decided_at,
                    "created_at": approval.created_at,
                }
            )

    contracts_df = pd.DataFrame(contract_rows, columns=CONTRACT_COLUMNS)
    contracts_df["created_at"] = pd.to_datetime(contracts_df["created_at"], utc=True)
    contracts_df = contracts_df[contracts_df["created_at"] >= start].copy()

    approvals_df = pd.DataFrame(approval_rows, columns=APPROVAL_COLUMNS)
    for column in ("due_date", "decided_at", "created_at"):
        approvals_df[column] = pd.to_datetime(approvals_df[column], utc=True)
    approvals_df = approvals_df[approvals_df["contract_id"].isin(contracts_df["id"])].copy()

    approvals_df["days"] = (
        approvals_df["decided_at"] - approvals_df["created_at"]
    ).dt.total_seconds() / SECONDS_PER_DAY
    approvals_df["overdue"] = (
        (approvals_df["status"] == ApprovalStatus.PENDING.value)
        & approvals_df["due_date"].notna()
        & (approvals_df["due_date"] < now)
    )

    approved = approvals_df[approvals_df["status"] == ApprovalStatus.APPROVED.value]
    approval_time = approved.groupby("contract_id")["days"].mean()
    contracts_df["approval_time"] = (
        contracts_df["id"].map(approval_time).astype(float).round(1)
    )
    contracts_df["completed"] = contracts_df["status"].isin(COMPLETED_STATUSES)
    contracts_df["overdue"] = contracts_df["id"].isin(
        approvals_df.loc[approvals_df["overdue"], "contract_id"]
    )
    return contracts_df, approvals_df


def _completed_times(contracts: pd.DataFrame) -> pd.Series:
    return contracts.loc[contracts["completed"], "approval_time"]


def _count(frame: pd.DataFrame, column: str, value: str) -> int:
    return int((frame[column] == value).sum())


# --- Overview ---


def _department_stats(contracts: pd.DataFrame) -> List[Dict]:
    stats = []
    for name, group in contracts.groupby("department", sort=True):
        stats.append(
            {
                "name": name,
                "total": len(group),
                "approved": _count(group, "status", ContractStatus.APPROVED.value),
                "rejected": _count(group, "status", ContractStatus.REJECTED.value),
                "avg_time": _round_agg(_completed_times(group)),
            }
        )
    return stats


def _approver_workload(approvals: pd.DataFrame) -> List[Dict]:
    workload = []
    for approver_id, group in approvals.groupby("approver_id", sort=True):
        approved = group[group["status"] == ApprovalStatus.APPROVED.value]
        first = group.iloc[0]
        workload.append(
            {
                "approver_id": approver_id,
                "name": first["approver_name"],
                "role": first["approver_role"],
                "pending": _count(group, "status", ApprovalStatus.PENDING.value),
                "completed": len(approved),
                "avg_time": _round_agg(approved["days"]),
            }
        )
    return workload


def overview_report(db: Session, time_range: Optional[str] = None) -> Dict:
    time_range = resolve_time_range(time_range)
    contracts, approvals = _load(db, time_range)

    total = len(contracts)
    completed = int(contracts["completed"].sum())
    overview = {
        "total_contracts": total,
        "in_review": _count(contracts, "status", ContractStatus.IN_REVIEW.value),
        "approved": _count(contracts, "status", ContractStatus.APPROVED.value),
        "rejected": _count(contracts, "status", ContractStatus.REJECTED.value),
        "avg_approval_time": _round_agg(_completed_times(contracts)),
        "overdue_contracts": int(contracts["overdue"].sum()),
        "completion_rate": int(round(completed / total * 100)) if total else 0,
    }

    by_type = {
        contract_type: _round_agg(_completed_times(group))
        for contract_type, group in contracts.groupby("contract_type", sort=True)
    }
    kpi = {
        "avg_approval_by_type": by_type,
        "overdue_rate": _percent(approvals["overdue"].sum(), len(approvals)),
    }

    return {
        "time_range": time_range,
        "overview": overview,
        "department_stats": _department_stats(contracts),
        "approver_workload": _approver_workload(approvals),
        "kpi": kpi,
    }


# --- Timelines ---


def _severity(avg_delay: float) -> str:
    if avg_delay > 2:
        return "high"
    if avg_delay > 1:
        return "medium"
    return "low"


def _bottlenecks(approvals: pd.DataFrame) -> List[Dict]:
    """Average lateness per workflow step, counted against every approval of the step."""
    late = (
        (approvals["status"] == ApprovalStatus.APPROVED.value)
        & approvals["due_date"].notna()
        & approvals["decided_at"].notna()
    )
    delay = (
        (approvals["decided_at"] - approvals["due_date"]).dt.total_seconds()
        / SECONDS_PER_DAY
    )
    approvals = approvals.assign(delay=delay.where(late, 0.0).clip(lower=0.0))

    bottlenecks = []
    for step_number, group in approvals.groupby("step_number", sort=True):
        avg_delay = _round_agg(group["delay"])
        bottlenecks.append(
            {
                "step_number": int(step_number),
                "approvals": len(group),
                "avg_delay": avg_delay,
                "max_delay": _round_agg(group["delay"], "max"),
                "severity": _severity(avg_delay),
            }
        )
    return bottlenecks


def timeline_report(
    db: Session, time_range: Optional[str] = None, group_by: Optional[str] = None
) -> Dict:
    time_range = resolve_time_range(time_range)
    group_by = group_by if group_by in GROUPINGS else DEFAULT_GROUPING
    contracts, approvals = _load(db, time_range)

    if group_by == "month":
        keys = contracts["created_at"].dt.strftime("%Y-%m")
    elif group_by == "type":
        keys = contracts["contract_type"]
    else:
        keys = contracts["department"]

    timeline = []
    for group_name, group in contracts.groupby(keys, sort=True):
        times = _completed_times(group)
        timeline.append(
            {
                "group": group_name,
                "contracts": len(group),
                "overdue": int(group["overdue"].sum()),
                "avg_days": _round_agg(times),
                "min_days": _round_agg(times, "min"),
                "max_days": _round_agg(times, "max"),
            }
        )

    times = _completed_times(contracts)
    summary = {
        "total_contracts": len(contracts),
        "avg_approval_time": _round_agg(times),
        "min_approval_time": _round_agg(times, "min"),
        "max_approval_time": _round_agg(times, "max"),
        "overdue_count": int(contracts["overdue"].sum()),
    }

    return {
        "time_range": time_range,
        "group_by": group_by,
        "timeline": timeline,
        "bottlenecks": _bottlenecks(approvals),
        "summary": summary,
    }


# --- Department statistics ---


def _workload_level(pending: int) -> str:
    if pending > 10:
        return "high"
    if pending > 5:
        return "medium"
    return "low"


def _trend(efficiency: float) -> str:
    if efficiency > 85:
        return "up"
    if efficiency < 70:
        return "down"
    return "stable"


def _users_by_department(db: Session) -> Dict[str, List[User]]:
    departments: Dict[str, List[User]] = {}
    for user in db.query(User).order_by(User.id).all():
        departments.setdefault(department_of(user), []).append(user)
    return departments


def _approval_counts(db: Session) -> Dict[str, int]:
    rows = (
        db.query(Approval.approver_id, func.count(Approval.id))
        .group_by(Approval.approver_id)
        .all()
    )
    return {approver_id: count for approver_id, count in rows}


def _performance_metrics(details: pd.DataFrame) -> List[Dict]:
    if details.empty:
        return []

    best = details.loc[details["efficiency"].idxmax()]
    fastest = details.loc[details["avg_approval_time"].idxmin()]
    punctual = details.loc[details["overdue_rate"].idxmin()]
    stable = details.loc[
        (details["efficiency"] - details["overdue_rate"] * 0.5).idxmax()
    ]
    return [
        {"metric": "efficiency", "department": best["name"], "value": float(best["efficiency"]), "unit": "%"},
        {"metric": "approval_speed", "department": fastest["name"], "value": float(fastest["avg_approval_time"]), "unit": "days"},
        {"metric": "overdue_rate", "department": punctual["name"], "value": float(punctual["overdue_rate"]), "unit": "%"},
        {"metric": "stability", "department": stable["name"], "value": float(stable["efficiency"]), "unit": "%"},
    ]


def statistics_report(db: Session, time_range: Optional[str] = None) -> Dict:
    time_range = resolve_time_range(time_range)
    contracts, approvals = _load(db, time_range)
    users = _users_by_department(db)
    approval_counts = _approval_counts(db)

    pending_by_contract = (
        approvals[approvals["status"] == ApprovalStatus.PENDING.value]
        .groupby("contract_id")
        .size()
    )

    departments = []
    distribution = []
    for name in sorted(users):
        group = contracts[contracts["department"] == name]
        total = len(group)
        completed = int(group["completed"].sum())
        pending_approvals = int(pending_by_contract.reindex(group["id"]).fillna(0).sum())
        efficiency = _percent(completed, total)

        members = sorted(
            users[name], key=lambda u: (-approval_counts.get(u.id, 0), u.id)
        )
        departments.append(
            {
                "name": name,
                "total_contracts": total,
                "approved": _count(group, "status", ContractStatus.APPROVED.value),
                "rejected": _count(group, "status", ContractStatus.REJECTED.value),
                "pending": _count(group, "status", ContractStatus.IN_REVIEW.value),
                "avg_approval_time": _round_agg(_completed_times(group)),
                "efficiency": efficiency,
                "overdue_rate": _percent(group["overdue"].sum(), total),
                "workload": _workload_level(pending_approvals),
                "trend": _trend(efficiency),
                "top_users": [u.name or u.email for u in members[:2]],
            }
        )

        capacity = max(5, len(users[name]) * 3)
        distribution.append(
            {
                "department": name,
                "current": pending_approvals,
                "capacity": capacity,
                "utilization": int(round(pending_approvals / capacity * 100)),
            }
        )

    details = pd.DataFrame(
        departments,
        columns=["name", "efficiency", "avg_approval_time", "overdue_rate"],
    )
    overview = {
        "total_departments": len(departments),
        "total_contracts": len(contracts),
        "avg_efficiency": _round_agg(details["efficiency"]),
        "best_department": None,
        "worst_department": None,
    }
    if not details.empty:
        overview["best_department"] = details.loc[details["efficiency"].idxmax(), "name"]
        overview["worst_department"] = details.loc[details["efficiency"].idxmin(), "name"]

    logger.debug("Statistics computed for %s departments", len(departments))
    return {
        "time_range": time_range,
        "overview": overview,
        "departments": departments,
        "performance_metrics": _performance_metrics(details),
        "workload_distribution": distribution,
    }
