# src/tasko/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from ..errors import ValidationError
from ..timeutil import now_iso
from .task_models import (
    Notification,
    NotificationType,
    Priority,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class TaskStore:
    """
    SQLite store for tasks and their notifications.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection, so the HTTP threads and the
      scanner thread never share a cursor

    Duplicate suppression is done inside single INSERT statements
    (INSERT OR IGNORE on a unique dedup key, INSERT ... WHERE NOT EXISTS for
    occurrences), so concurrent sweeps cannot race a lookup against an insert.
    """

    def __init__(self, db_path: str | Path = "tasko.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    due_at TEXT,
                    reminder_time TEXT,
                    priority TEXT NOT NULL DEFAULT 'medium'
                        CHECK(priority IN ('low', 'medium', 'high')),
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK(status IN ('pending', 'in_progress', 'completed')),
                    category TEXT,
                    slot_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS notifications (
                    id TEXT PRIMARY KEY,
                    task_id TEXT REFERENCES tasks(id) ON DELETE CASCADE,
                    type TEXT NOT NULL
                        CHECK(type IN ('reminder', 'overdue', 'due_soon', 'activity_change')),
                    message TEXT NOT NULL,
                    is_read INTEGER NOT NULL DEFAULT 0,
                    dedup_key TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s.%s", table, name)

            add_col("tasks", "reminder_time", "TEXT")
            add_col("tasks", "category", "TEXT")
            add_col("tasks", "slot_id", "TEXT")
            add_col("notifications", "dedup_key", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_slot_due ON tasks(slot_id, due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_notifications_task ON notifications(task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_notifications_read ON notifications(is_read)")
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_notifications_dedup "
                "ON notifications(dedup_key) WHERE dedup_key IS NOT NULL"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=row["description"],
            due_at=row["due_at"],
            reminder_time=row["reminder_time"],
            priority=Priority.from_db(row["priority"]),
            status=TaskStatus.from_db(row["status"]),
            category=row["category"],
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
            slot_id=row["slot_id"],
        )

    @staticmethod
    def _row_to_notification(row: sqlite3.Row) -> Notification:
        return Notification(
            id=str(row["id"]),
            task_id=row["task_id"],
            type=NotificationType(row["type"]),
            message=str(row["message"]),
            is_read=bool(row["is_read"]),
            created_at=str(row["created_at"]),
            dedup_key=row["dedup_key"],
        )

    def _fetch_tasks(self, sql: str, params: tuple[Any, ...] = ()) -> list[Task]:
        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def _fetch_notifications(self, sql: str, params: tuple[Any, ...] = ()) -> list[Notification]:
        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_notification(r) for r in rows]
        finally:
            conn.close()

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        description: str | None = None,
        due_at: str | None = None,
        reminder_time: str | None = None,
        priority: Priority = Priority.MEDIUM,
        status: TaskStatus = TaskStatus.PENDING,
        category: str | None = None,
        slot_id: str | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValidationError("Title is required")

        now = now_iso()
        task = Task(
            id=str(uuid.uuid4()),
            title=title.strip(),
            description=description,
            due_at=due_at,
            reminder_time=reminder_time,
            priority=Priority(priority),
            status=TaskStatus(status),
            category=category,
            created_at=now,
            updated_at=now,
            slot_id=slot_id,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, description, due_at, reminder_time,
                    priority, status, category, slot_id, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.description,
                    task.due_at,
                    task.reminder_time,
                    task.priority.value,
                    task.status.value,
                    task.category,
                    task.slot_id,
                    task.created_at,
                    task.updated_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Task added id=%s title=%r due_at=%s", task.id, task.title, task.due_at)
        return task

    def add_occurrence(
        self,
        *,
        slot_id: str,
        title: str,
        description: str | None,
        due_at: str,
        reminder_time: str | None,
        priority: Priority,
        category: str,
        dedupe: bool = True,
    ) -> Task | None:
        """
        Insert a task generated from a recurring slot.

        With dedupe on, the insert is skipped atomically when a task for the same
        (slot_id, due_at) already exists; returns None in that case.
        """
        if not dedupe:
            return self.add_task(
                title=title,
                description=description,
                due_at=due_at,
                reminder_time=reminder_time,
                priority=priority,
                category=category,
                slot_id=slot_id,
            )

        now = now_iso()
        task_id = str(uuid.uuid4())
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO tasks(
                    id, title, description, due_at, reminder_time,
                    priority, status, category, slot_id, created_at, updated_at
                )
                SELECT ?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?, ?
                WHERE NOT EXISTS (
                    SELECT 1 FROM tasks WHERE slot_id = ? AND due_at = ?
                )
                """,
                (
                    task_id,
                    title.strip(),
                    description,
                    due_at,
                    reminder_time,
                    Priority(priority).value,
                    category,
                    slot_id,
                    now,
                    now,
                    slot_id,
                    due_at,
                ),
            )
            conn.commit()
            inserted = cur.rowcount == 1
        finally:
            conn.close()

        if not inserted:
            logger.debug("Occurrence already exists slot_id=%s due_at=%s", slot_id, due_at)
            return None
        return self.get_task(task_id)

    def get_task(self, task_id: str) -> Task | None:
        rows = self._fetch_tasks("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return rows[0] if rows else None

    def list_tasks(
        self,
        *,
        status: TaskStatus | None = None,
        priority: Priority | None = None,
        category: str | None = None,
        search: str | None = None,
    ) -> list[Task]:
        where: list[str] = []
        params: list[Any] = []

        if status is not None:
            where.append("status = ?")
            params.append(status.value)
        if priority is not None:
            where.append("priority = ?")
            params.append(priority.value)
        if category:
            where.append("category = ?")
            params.append(category)
        if search:
            where.append("(title LIKE ? OR COALESCE(description, '') LIKE ?)")
            like = f"%{search}%"
            params.extend([like, like])

        sql = "SELECT * FROM tasks"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC, rowid DESC"
        return self._fetch_tasks(sql, tuple(params))

    def update_task(
        self,
        task_id: str,
        *,
        title: Any = _UNSET,
        description: Any = _UNSET,
        due_at: Any = _UNSET,
        reminder_time: Any = _UNSET,
        priority: Any = _UNSET,
        status: Any = _UNSET,
        category: Any = _UNSET,
    ) -> Task | None:
        """Partial update. Returns the updated task, or None if the id is unknown."""
        fields: list[str] = []
        params: list[Any] = []

        if title is not _UNSET:
            if not title or not str(title).strip():
                raise ValidationError("Title is required")
            fields.append("title = ?")
            params.append(str(title).strip())
        if description is not _UNSET:
            fields.append("description = ?")
            params.append(description)
        if due_at is not _UNSET:
            fields.append("due_at = ?")
            params.append(due_at)
        if reminder_time is not _UNSET:
            fields.append("reminder_time = ?")
            params.append(reminder_time)
        if priority is not _UNSET:
            fields.append("priority = ?")
            params.append(Priority(priority).value)
        if status is not _UNSET:
            fields.append("status = ?")
            params.append(TaskStatus(status).value)
        if category is not _UNSET:
            fields.append("category = ?")
            params.append(category)

        fields.append("updated_at = ?")
        params.append(now_iso())
        params.append(task_id)

        conn = self._get_conn()
        try:
            cur = conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            if cur.rowcount == 0:
                return None
        finally:
            conn.close()
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    def list_overdue(self, *, now: str) -> list[Task]:
        return self._fetch_tasks(
            """
            SELECT * FROM tasks
            WHERE due_at IS NOT NULL AND due_at < ? AND status != 'completed'
            ORDER BY due_at ASC, rowid ASC
            """,
            (now,),
        )

    def list_due_between(self, *, after: str, until: str) -> list[Task]:
        """Open tasks with after < due_at <= until."""
        return self._fetch_tasks(
            """
            SELECT * FROM tasks
            WHERE due_at IS NOT NULL AND due_at > ? AND due_at <= ? AND status != 'completed'
            ORDER BY due_at ASC, rowid ASC
            """,
            (after, until),
        )

    def list_with_reminders(self) -> list[Task]:
        return self._fetch_tasks(
            """
            SELECT * FROM tasks
            WHERE reminder_time IS NOT NULL AND status != 'completed'
            ORDER BY reminder_time ASC, rowid ASC
            """
        )

    def stats(self, *, now: str) -> dict[str, int]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(status = 'pending'), 0) AS pending,
                    COALESCE(SUM(status = 'in_progress'), 0) AS in_progress,
                    COALESCE(SUM(status = 'completed'), 0) AS completed,
                    COALESCE(SUM(due_at IS NOT NULL AND due_at < ? AND status != 'completed'), 0)
                        AS overdue
                FROM tasks
                """,
                (now,),
            ).fetchone()
        finally:
            conn.close()
        return {
            "total": int(row["total"]),
            "pending": int(row["pending"]),
            "inProgress": int(row["in_progress"]),
            "completed": int(row["completed"]),
            "overdue": int(row["overdue"]),
        }

    # ---- notifications ----

    def create_notification(
        self,
        *,
        task_id: str | None,
        type: NotificationType,
        message: str,
        dedup_key: str | None = None,
    ) -> Notification | None:
        """
        Insert a notification.

        When dedup_key is given the insert is conditional: if a notification with
        the same key exists the call is a no-op and returns None.
        """
        if not message or not message.strip():
            raise ValidationError("Message is required")

        notification = Notification(
            id=str(uuid.uuid4()),
            task_id=task_id,
            type=NotificationType(type),
            message=message.strip(),
            is_read=False,
            created_at=now_iso(),
            dedup_key=dedup_key,
        )

        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO notifications(
                    id, task_id, type, message, is_read, dedup_key, created_at
                )
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    notification.id,
                    notification.task_id,
                    notification.type.value,
                    notification.message,
                    notification.dedup_key,
                    notification.created_at,
                ),
            )
            conn.commit()
            inserted = cur.rowcount == 1
        finally:
            conn.close()

        if not inserted:
            logger.debug("Notification suppressed dedup_key=%s", dedup_key)
            return None
        return notification

    def get_notification(self, notification_id: str) -> Notification | None:
        rows = self._fetch_notifications(
            "SELECT * FROM notifications WHERE id = ?", (notification_id,)
        )
        return rows[0] if rows else None

    def list_notifications(self) -> list[Notification]:
        return self._fetch_notifications(
            "SELECT * FROM notifications ORDER BY created_at DESC, rowid DESC"
        )

    def list_notifications_by_task(self, task_id: str) -> list[Notification]:
        return self._fetch_notifications(
            "SELECT * FROM notifications WHERE task_id = ? ORDER BY created_at DESC, rowid DESC",
            (task_id,),
        )

    def list_unread_notifications(self) -> list[Notification]:
        return self._fetch_notifications(
            "SELECT * FROM notifications WHERE is_read = 0 ORDER BY created_at DESC, rowid DESC"
        )

    def mark_notification_read(self, notification_id: str) -> Notification | None:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ?", (notification_id,)
            )
            conn.commit()
            if cur.rowcount == 0:
                return None
        finally:
            conn.close()
        return self.get_notification(notification_id)

    def mark_all_notifications_read(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute("UPDATE notifications SET is_read = 1 WHERE is_read = 0")
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    def delete_notification(self, notification_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM notifications WHERE id = ?", (notification_id,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    def delete_notifications_by_task(self, task_id: str) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM notifications WHERE task_id = ?", (task_id,))
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    def count_notifications(self) -> dict[str, int]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total, COALESCE(SUM(is_read = 0), 0) AS unread
                FROM notifications
                """
            ).fetchone()
        finally:
            conn.close()
        return {"total": int(row["total"]), "unread": int(row["unread"])}
