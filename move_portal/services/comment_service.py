from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from move_portal.auth import Principal
from move_portal.exceptions import NotFound, ValidationFailed
from move_portal.models import Comment, CommentAuthor, EntityKind, MoveRequest

logger = logging.getLogger(__name__)


def _ensure_move_request(db: Session, move_id: str) -> None:
    exists = db.execute(select(MoveRequest.id).where(MoveRequest.id == move_id)).scalar_one_or_none()
    if not exists:
        raise NotFound(f'Move request {move_id} not found')


def append_comment(
    db: Session,
    *,
    entity_id: str,
    entity_kind: EntityKind,
    author: CommentAuthor,
    author_name: str,
    message: str,
    status_from: str | None = None,
    status_to: str | None = None,
    is_read: bool = False,
) -> Comment:
    """Append one entry to an entity's thread.

    This is the only writer of the comments table. Entries are never edited
    afterwards apart from the read flag, which starts cleared unless the
    caller says otherwise and is flipped by the other party via mark_read.
    """
    clean_message = (message or '').strip()
    if not clean_message:
        raise ValidationFailed('Comment message cannot be empty')

    comment = Comment(
        entity_id=entity_id,
        entity_kind=entity_kind,
        author=author,
        author_name=author_name,
        message=clean_message,
        is_read=is_read,
        status_from=status_from,
        status_to=status_to,
    )
    db.add(comment)
    db.flush()
    logger.debug('Comment %s appended to %s %s by %s', comment.id, entity_kind.value, entity_id, author.value)
    return comment


def add_comment(db: Session, *, move_id: str, message: str, actor: Principal) -> Comment:
    _ensure_move_request(db, move_id)
    return append_comment(
        db,
        entity_id=move_id,
        entity_kind=EntityKind.MOVE,
        author=actor.author,
        author_name=actor.name,
        message=message,
    )


def list_comments(db: Session, *, entity_id: str, entity_kind: EntityKind = EntityKind.MOVE) -> list[Comment]:
    return db.execute(
        select(Comment)
        .where(Comment.entity_id == entity_id, Comment.entity_kind == entity_kind)
        .order_by(Comment.id.asc())
    ).scalars().all()


def mark_read(db: Session, *, entity_id: str, entity_kind: EntityKind, reader: CommentAuthor) -> int:
    result = db.execute(
        update(Comment)
        .where(
            Comment.entity_id == entity_id,
            Comment.entity_kind == entity_kind,
            Comment.author != reader,
            Comment.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session='fetch')
    )
    return result.rowcount or 0


def unread_count(db: Session, *, entity_id: str, entity_kind: EntityKind, for_role: CommentAuthor) -> int:
    rows = db.execute(
        select(Comment.id).where(
            Comment.entity_id == entity_id,
            Comment.entity_kind == entity_kind,
            Comment.author != for_role,
            Comment.is_read.is_(False),
        )
    ).all()
    return len(rows)
