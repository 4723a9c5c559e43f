"""Contract comment endpoints."""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from contractflow.database import get_db
from contractflow.schemas import (
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    CommentUpdate,
)
from contractflow.services.comments import (
    build_comment_response,
    create_comment,
    delete_comment,
    list_comments,
    update_comment,
)

router = APIRouter(tags=["comments"])


@router.get("/contracts/{contract_id}/comments", response_model=CommentListResponse)
def list_comments_endpoint(
    contract_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    comments, pagination = list_comments(
        db, contract_id, page, limit, sort_by, sort_order
    )
    return {
        "comments": [build_comment_response(c) for c in comments],
        "pagination": pagination,
    }


@router.post(
    "/contracts/{contract_id}/comments",
    response_model=CommentResponse,
    status_code=201,
)
def create_comment_endpoint(
    contract_id: int, data: CommentCreate, db: Session = Depends(get_db)
):
    comment = create_comment(db, contract_id, data)
    return build_comment_response(comment)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
def update_comment_endpoint(
    comment_id: int,
    data: CommentUpdate,
    user_id: str = Query(..., description="The ID of the comment author"),
    db: Session = Depends(get_db),
):
    comment = update_comment(db, comment_id, data, user_id)
    return build_comment_response(comment)


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment_endpoint(
    comment_id: int,
    user_id: str = Query(..., description="The ID of the comment author"),
    db: Session = Depends(get_db),
):
    """Delete a comment and its replies."""
    delete_comment(db, comment_id, user_id)
    return Response(status_code=204)
