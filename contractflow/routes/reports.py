"""Approval analytics endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from contractflow.database import get_db
from contractflow.schemas import OverviewReport, StatisticsReport, TimelineReport
from contractflow.services.reports import (
    DEFAULT_GROUPING,
    DEFAULT_TIME_RANGE,
    overview_report,
    statistics_report,
    timeline_report,
)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=OverviewReport)
def overview_endpoint(
    time_range: str = Query(DEFAULT_TIME_RANGE, description="1month, 3months, 6months or 1year"),
    db: Session = Depends(get_db),
):
    return overview_report(db, time_range)


@router.get("/timelines", response_model=TimelineReport)
def timelines_endpoint(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    group_by: str = Query(DEFAULT_GROUPING, description="month, type or department"),
    db: Session = Depends(get_db),
):
    return timeline_report(db, time_range, group_by)


@router.get("/statistics", response_model=StatisticsReport)
def statistics_endpoint(
    time_range: str = Query(DEFAULT_TIME_RANGE), db: Session = Depends(get_db)
):
    return statistics_report(db, time_range)
