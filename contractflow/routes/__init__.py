"""API routers, one per resource."""

from fastapi import APIRouter

from contractflow.routes import (
    approvals,
    comments,
    contracts,
    documents,
    notifications,
    reports,
    workflows,
)

api_router = APIRouter()
api_router.include_router(contracts.router)
api_router.include_router(approvals.router)
api_router.include_router(workflows.router)
api_router.include_router(comments.router)
api_router.include_router(documents.router)
api_router.include_router(notifications.router)
api_router.include_router(reports.router)
