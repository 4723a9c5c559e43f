"""Discussion threads attached to contracts."""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from contractflow.models import Comment, NotificationType, as_utc, utcnow
from contractflow.schemas import CommentCreate, CommentUpdate
from contractflow.services.common import get_user, order_by_column, paginate
from contractflow.services.contracts import get_contract, record_history
from contractflow.services.notifications import notify

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Comment.created_at,
    "updated_at": Comment.updated_at,
}

PREVIEW_LENGTH = 100


def _preview(content: str) -> str:
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def get_comment(db: Session, comment_id: int) -> Comment:
    """Retrieve a comment by ID or raise 404."""
    comment = db.get(Comment, comment_id)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found",
        )
    return comment


def list_comments(
    db: Session,
    contract_id: int,
    page: int,
    limit: int,
    sort_by: str = "created_at",
    sort_order: str = "desc",
):
    get_contract(db, contract_id)
    query = db.query(Comment).filter(Comment.contract_id == contract_id)
    query = order_by_column(query, SORTABLE_COLUMNS, sort_by, sort_order, Comment.id)
    return paginate(query, page, limit)


def create_comment(db: Session, contract_id: int, data: CommentCreate) -> Comment:
    """Add a comment (or a reply) to a contract and tell the initiator."""
    contract = get_contract(db, contract_id)
    author = get_user(db, data.author_id)

    if data.parent_id is not None:
        parent = get_comment(db, data.parent_id)
        if parent.contract_id != contract.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent comment belongs to another contract",
            )

    # Equal timestamps mark a comment as never edited
    now = utcnow()
    comment = Comment(
        contract_id=contract.id,
        author_id=author.id,
        content=data.content,
        parent_id=data.parent_id,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    db.flush()

    record_history(
        db,
        contract,
        "COMMENT_ADDED",
        {
            "comment_id": comment.id,
            "author_id": author.id,
            "content": _preview(data.content),
        },
        user_id=author.id,
    )
    if contract.initiator_id != author.id:
        notify(
            db,
            contract.initiator_id,
            NotificationType.COMMENT_ADDED,
            "New comment",
            f"{author.name or author.email} commented on contract {contract.number}",
            contract,
        )
    db.commit()
    db.refresh(comment)
    return comment


def _check_author(comment: Comment, user_id: str, action: str) -> None:
    if comment.author_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the author can {action} this comment",
        )


def update_comment(
    db: Session, comment_id: int, data: CommentUpdate, user_id: str
) -> Comment:
    comment = get_comment(db, comment_id)
    _check_author(comment, user_id, "edit")

    comment.content = data.content
    comment.updated_at = utcnow()
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, comment_id: int, user_id: str) -> None:
    """Delete a comment together with its replies."""
    comment = get_comment(db, comment_id)
    _check_author(comment, user_id, "delete")

    reply_count = len(comment.replies)
    db.delete(comment)
    db.commit()
    logger.info("Comment %s deleted by %s with %s replies", comment_id, user_id, reply_count)


def build_comment_response(comment: Comment) -> dict:
    """Build a CommentResponse dict with the computed edit flag."""
    return {
        "id": comment.id,
        "contract_id": comment.contract_id,
        "author_id": comment.author_id,
        "author": comment.author,
        "content": comment.content,
        "parent_id": comment.parent_id,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
        "is_edited": as_utc(comment.updated_at) != as_utc(comment.created_at),
    }
