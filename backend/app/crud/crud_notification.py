"""Notification persistence.

Rows are written with plain SQL so the same code works against legacy
``notifications`` tables whose primary key is ``notification_id``. Callers pass
the column name resolved once by the schema guard.
"""

from typing import Any, Dict, List

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from ..db_utils import DEFAULT_ID_COLUMN, SchemaState, ensure_admin_notifications_table, ensure_notifications_table, schema_state
from ..models.notification import NotificationSeverity

SEVERITIES = frozenset(s.value for s in NotificationSeverity)
_ID_COLUMNS = frozenset({"id", "notification_id"})


def _validate(type: str, link: str | None) -> None:
    if type not in SEVERITIES:
        raise ValueError(f"Unsupported notification type: {type!r}")
    if link is not None and not link.startswith("/"):
        raise ValueError(f"Notification link must be a relative path: {link!r}")


def _id_column(id_column: str) -> str:
    # Interpolated into SQL, so only the two known names are accepted
    if id_column not in _ID_COLUMNS:
        raise ValueError(f"Unknown notification id column: {id_column!r}")
    return id_column


def _insert_returning_id(db: Session, sql: str, params: Dict[str, Any], id_column: str) -> int:
    if db.get_bind().dialect.name == "postgresql":
        new_id = db.execute(text(f"{sql} RETURNING {id_column}"), params).scalar_one()
    else:
        new_id = db.execute(text(sql), params).lastrowid
    db.commit()
    return int(new_id)


def create_notification_fast(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type: str = NotificationSeverity.INFO.value,
    link: str | None = None,
    id_column: str = DEFAULT_ID_COLUMN,
) -> int:
    """Insert a notification without touching the schema guard.

    The ``notifications`` table must already exist in this process.
    """
    _validate(type, link)
    return _insert_returning_id(
        db,
        "INSERT INTO notifications (user_id, title, message, type, is_read, link) "
        "VALUES (:user_id, :title, :message, :type, :is_read, :link)",
        {
            "user_id": user_id,
            "title": title,
            "message": message,
            "type": type,
            "is_read": False,
            "link": link,
        },
        _id_column(id_column),
    )


def create_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type: str = NotificationSeverity.INFO.value,
    link: str | None = None,
    state: SchemaState = schema_state,
) -> int:
    """Ensure the table exists, then insert and return the new id."""
    ensure_notifications_table(db.get_bind(), state)
    return create_notification_fast(
        db, user_id, title, message, type=type, link=link, id_column=state.id_column
    )


def get_user_notifications(
    db: Session,
    user_id: int,
    limit: int = 10,
    offset: int = 0,
    unread_only: bool = False,
    id_column: str = DEFAULT_ID_COLUMN,
) -> List[Dict[str, Any]]:
    """Return a page of a user's notifications, newest first.

    The key column is always exposed as ``id``.
    """
    col = _id_column(id_column)
    sql = (
        f"SELECT {col} AS id, user_id, title, message, type, is_read, link, created_at "
        "FROM notifications WHERE user_id = :user_id"
    )
    params: Dict[str, Any] = {"user_id": user_id, "limit": limit, "offset": offset}
    if unread_only:
        sql += " AND is_read = :unread"
        params["unread"] = False
    sql += f" ORDER BY created_at DESC, {col} DESC LIMIT :limit OFFSET :offset"
    rows = db.execute(text(sql), params).mappings().all()
    items = []
    for row in rows:
        item = dict(row)
        item["is_read"] = bool(item["is_read"])
        items.append(item)
    return items


def mark_notification_as_read(
    db: Session, notification_id: int, user_id: int, id_column: str = DEFAULT_ID_COLUMN
) -> bool:
    """Mark one notification read if it belongs to ``user_id``.

    Returns ``True`` when an owned row matched, whether or not it was already
    read, and ``False`` when no such row exists for this user.
    """
    col = _id_column(id_column)
    result = db.execute(
        text(
            f"UPDATE notifications SET is_read = :is_read, updated_at = CURRENT_TIMESTAMP "
            f"WHERE {col} = :notification_id AND user_id = :user_id"
        ),
        {"is_read": True, "notification_id": notification_id, "user_id": user_id},
    )
    db.commit()
    return result.rowcount > 0


def mark_notifications_as_read(
    db: Session, notification_ids: List[int], user_id: int, id_column: str = DEFAULT_ID_COLUMN
) -> int:
    """Mark a batch of the user's notifications read.

    Ids that do not exist or belong to someone else are ignored. Returns the
    number of owned rows that matched.
    """
    if not notification_ids:
        return 0
    col = _id_column(id_column)
    stmt = text(
        f"UPDATE notifications SET is_read = :is_read, updated_at = CURRENT_TIMESTAMP "
        f"WHERE {col} IN :ids AND user_id = :user_id"
    ).bindparams(bindparam("ids", expanding=True))
    result = db.execute(stmt, {"is_read": True, "ids": list(notification_ids), "user_id": user_id})
    db.commit()
    return result.rowcount


def mark_all_notifications_as_read(db: Session, user_id: int) -> int:
    """Mark every unread notification for a user read and return the count."""
    result = db.execute(
        text(
            "UPDATE notifications SET is_read = :is_read, updated_at = CURRENT_TIMESTAMP "
            "WHERE user_id = :user_id AND is_read = :unread"
        ),
        {"is_read": True, "unread": False, "user_id": user_id},
    )
    db.commit()
    return result.rowcount


def count_unread_notifications(db: Session, user_id: int) -> int:
    return db.execute(
        text("SELECT COUNT(*) FROM notifications WHERE user_id = :user_id AND is_read = :unread"),
        {"user_id": user_id, "unread": False},
    ).scalar_one()


def create_admin_notification(
    db: Session,
    type: str,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    link: str | None = None,
) -> int:
    ensure_admin_notifications_table(db.get_bind())
    return _insert_returning_id(
        db,
        "INSERT INTO admin_notifications (type, title, message, entity_type, entity_id, link, is_read) "
        "VALUES (:type, :title, :message, :entity_type, :entity_id, :link, :is_read)",
        {
            "type": type,
            "title": title,
            "message": message,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "link": link,
            "is_read": False,
        },
        "id",
    )


def get_admin_notifications(db: Session, limit: int = 50, unread_only: bool = False) -> List[Dict[str, Any]]:
    ensure_admin_notifications_table(db.get_bind())
    sql = (
        "SELECT id, type, title, message, entity_type, entity_id, link, is_read, created_at "
        "FROM admin_notifications"
    )
    params: Dict[str, Any] = {"limit": limit}
    if unread_only:
        sql += " WHERE is_read = :unread"
        params["unread"] = False
    sql += " ORDER BY created_at DESC, id DESC LIMIT :limit"
    items = []
    for row in db.execute(text(sql), params).mappings().all():
        item = dict(row)
        item["is_read"] = bool(item["is_read"])
        items.append(item)
    return items


def mark_admin_notifications_as_read(
    db: Session,
    notification_ids: List[int] | None = None,
    mark_all: bool = False,
    type: str | None = None,
) -> int:
    """Mark admin notifications read, either by id or all at once.

    With ``mark_all`` the optional ``type`` narrows the update to one kind.
    Returns the number of rows that changed.
    """
    ensure_admin_notifications_table(db.get_bind())
    params: Dict[str, Any] = {"is_read": True, "unread": False}
    if mark_all:
        sql = "UPDATE admin_notifications SET is_read = :is_read WHERE is_read = :unread"
        if type:
            sql += " AND type = :type"
            params["type"] = type
        stmt = text(sql)
    elif notification_ids:
        stmt = text(
            "UPDATE admin_notifications SET is_read = :is_read WHERE is_read = :unread AND id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        params["ids"] = list(notification_ids)
    else:
        return 0
    result = db.execute(stmt, params)
    db.commit()
    return result.rowcount
