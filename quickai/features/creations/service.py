"""
Creation persistence service.

- record_creation(new)      append one row per successful generation (best-effort)
- list_user_creations(uid)  caller's history, newest first
- list_published_creations  community feed, newest first
- toggle_like(id, uid)      add/remove uid from the like set
"""

from typing import List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from quickai.core.database import creations, get_db_session
from quickai.core.errors import NotFoundError, PersistenceError
from quickai.core.logging import log_event
from quickai.models.creation import Creation, LikeToggleResult, NewCreation


def _normalize_likes(value) -> List[str]:
    if not value:
        return []
    seen: List[str] = []
    for uid in value:
        uid = str(uid)
        if uid not in seen:
            seen.append(uid)
    return seen


def _row_to_creation(row) -> Creation:
    return Creation(
        id=row.id,
        user_id=row.user_id,
        prompt=row.prompt,
        content=row.content,
        type=row.type,
        publish=bool(row.publish),
        likes=_normalize_likes(row.likes),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def insert_creation(new: NewCreation) -> int:
    """Insert a creation row and return its id. Raises PersistenceError."""
    try:
        with get_db_session() as session:
            result = session.execute(
                insert(creations).values(
                    user_id=new.user_id,
                    prompt=new.prompt,
                    content=new.content,
                    type=new.type.value,
                    publish=new.publish,
                    likes=[],
                )
            )
            return result.inserted_primary_key[0]
    except (SQLAlchemyError, ValueError) as e:
        raise PersistenceError(f"Failed to store creation: {e}")


def record_creation(new: NewCreation) -> Optional[int]:
    """
    Best-effort append of a generation result.

    The generated content has already been produced and is returned to the
    user regardless; a failed write is logged and yields None.
    """
    try:
        creation_id = insert_creation(new)
    except PersistenceError as e:
        log_event(
            "error",
            "creation.persist_failed",
            user_id=new.user_id,
            operation=new.type.value,
            error_code=e.code,
            extra={"error": e.message},
        )
        return None

    log_event("info", "creation.recorded", user_id=new.user_id, creation_id=creation_id, operation=new.type.value)
    return creation_id


def get_creation(creation_id: int) -> Creation:
    with get_db_session() as session:
        row = session.execute(select(creations).where(creations.c.id == creation_id)).first()
    if not row:
        raise NotFoundError(f"Creation {creation_id} not found")
    return _row_to_creation(row)


def list_user_creations(user_id: str) -> List[Creation]:
    with get_db_session() as session:
        rows = session.execute(
            select(creations)
            .where(creations.c.user_id == user_id)
            .order_by(creations.c.created_at.desc(), creations.c.id.desc())
        ).all()
    return [_row_to_creation(row) for row in rows]


def list_published_creations() -> List[Creation]:
    with get_db_session() as session:
        rows = session.execute(
            select(creations)
            .where(creations.c.publish.is_(True))
            .order_by(creations.c.created_at.desc(), creations.c.id.desc())
        ).all()
    return [_row_to_creation(row) for row in rows]


def toggle_like(creation_id: int, user_id: str) -> LikeToggleResult:
    """
    Like the creation if user_id has not liked it yet, otherwise unlike it.

    Applying the toggle twice restores the original like set.
    """
    with get_db_session() as session:
        row = session.execute(
            select(creations.c.id, creations.c.likes).where(creations.c.id == creation_id)
        ).first()
        if not row:
            raise NotFoundError(f"Creation {creation_id} not found")

        likes = _normalize_likes(row.likes)
        if user_id in likes:
            likes.remove(user_id)
            liked = False
        else:
            likes.append(user_id)
            liked = True

        session.execute(update(creations).where(creations.c.id == creation_id).values(likes=likes))

    log_event("info", "creation.like_toggled", user_id=user_id, creation_id=creation_id, extra={"liked": liked})
    return LikeToggleResult(creation_id=creation_id, liked=liked, likes=likes)
