# src/tasko/schedules/schedule_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from ..errors import NotFoundError, ValidationError
from ..tasks.task_models import Priority
from ..timeutil import now_iso
from .schedule_models import Cadence, Slot, WeeklySchedule, validate_slot_fields

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class ScheduleStore:
    """
    SQLite store for weekly schedules and their slots.

    - slots reference their schedule with ON DELETE CASCADE
    - days_of_week is stored as a JSON array ("[1,3,5]")
    - list order is creation order (created_at, then rowid); the resolver's
      "first match" policy depends on it
    """

    def __init__(self, db_path: str | Path = "tasko.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("ScheduleStore ready db=%s", self._db_path)

    def close(self) -> None:
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
                CREATE TABLE IF NOT EXISTS weekly_schedules (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS slots (
                    id TEXT PRIMARY KEY,
                    schedule_id TEXT NOT NULL
                        REFERENCES weekly_schedules(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    description TEXT,
                    days_of_week TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    color TEXT,
                    is_recurring INTEGER NOT NULL DEFAULT 0,
                    cadence TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    CHECK(start_time < end_time)
                )
                """
            )

            cur.execute("PRAGMA table_info(slots)")
            cols = {row["name"] for row in cur.fetchall()}
            if "color" not in cols:
                cur.execute("ALTER TABLE slots ADD COLUMN color TEXT")
                logger.info("ScheduleStore migration: added column slots.color")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_slots_schedule ON slots(schedule_id)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_schedules_active ON weekly_schedules(is_active)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_schedule(row: sqlite3.Row) -> WeeklySchedule:
        return WeeklySchedule(
            id=str(row["id"]),
            name=str(row["name"]),
            description=row["description"],
            is_active=bool(row["is_active"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )

    @staticmethod
    def _row_to_slot(row: sqlite3.Row) -> Slot:
        try:
            days = json.loads(row["days_of_week"] or "[]")
        except json.JSONDecodeError:
            logger.warning("Slot %s has malformed days_of_week=%r", row["id"], row["days_of_week"])
            days = []
        return Slot(
            id=str(row["id"]),
            schedule_id=str(row["schedule_id"]),
            name=str(row["name"]),
            description=row["description"],
            days_of_week=tuple(sorted(int(d) for d in days)),
            start_time=str(row["start_time"]),
            end_time=str(row["end_time"]),
            priority=Priority.from_db(row["priority"]),
            color=row["color"],
            is_recurring=bool(row["is_recurring"]),
            cadence=Cadence.from_db(row["cadence"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )

    # ---- schedules ----

    def create_schedule(
        self, *, name: str, description: str | None = None, is_active: bool = True
    ) -> WeeklySchedule:
        if not name or not name.strip():
            raise ValidationError("Schedule name is required")

        now = now_iso()
        schedule = WeeklySchedule(
            id=str(uuid.uuid4()),
            name=name.strip(),
            description=description.strip() if description else None,
            is_active=bool(is_active),
            created_at=now,
            updated_at=now,
        )
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO weekly_schedules(id, name, description, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    schedule.id,
                    schedule.name,
                    schedule.description,
                    1 if schedule.is_active else 0,
                    schedule.created_at,
                    schedule.updated_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Schedule created id=%s name=%r", schedule.id, schedule.name)
        return schedule

    def get_schedule(self, schedule_id: str) -> WeeklySchedule | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM weekly_schedules WHERE id = ?", (schedule_id,)
            ).fetchone()
            return self._row_to_schedule(row) if row else None
        finally:
            conn.close()

    def list_schedules(self, *, active_only: bool = False) -> list[WeeklySchedule]:
        sql = "SELECT * FROM weekly_schedules"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at ASC, rowid ASC"
        conn = self._get_conn()
        try:
            return [self._row_to_schedule(r) for r in conn.execute(sql).fetchall()]
        finally:
            conn.close()

    def list_active_schedules(self) -> list[WeeklySchedule]:
        return self.list_schedules(active_only=True)

    def update_schedule(
        self,
        schedule_id: str,
        *,
        name: Any = _UNSET,
        description: Any = _UNSET,
        is_active: Any = _UNSET,
    ) -> WeeklySchedule | None:
        fields: list[str] = []
        params: list[Any] = []

        if name is not _UNSET:
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("Schedule name is required")
            fields.append("name = ?")
            params.append(name.strip())
        if description is not _UNSET:
            fields.append("description = ?")
            params.append(description)
        if is_active is not _UNSET:
            fields.append("is_active = ?")
            params.append(1 if is_active else 0)

        fields.append("updated_at = ?")
        params.append(now_iso())
        params.append(schedule_id)

        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"UPDATE weekly_schedules SET {', '.join(fields)} WHERE id = ?", params
            )
            conn.commit()
            if cur.rowcount == 0:
                return None
        finally:
            conn.close()
        return self.get_schedule(schedule_id)

    def delete_schedule(self, schedule_id: str) -> bool:
        """Delete a schedule; its slots go with it (FK cascade)."""
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM weekly_schedules WHERE id = ?", (schedule_id,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    # ---- slots ----

    def create_slot(self, schedule_id: str, **fields: Any) -> Slot:
        """
        Create a slot from internal field names (see normalize_slot_payload).

        Raises NotFoundError when the schedule does not exist.
        """
        if self.get_schedule(schedule_id) is None:
            raise NotFoundError("Schedule not found")

        f = validate_slot_fields(fields)
        color = f.get("color")
        now = now_iso()
        slot = Slot(
            id=str(uuid.uuid4()),
            schedule_id=schedule_id,
            name=f["name"],
            description=f["description"],
            days_of_week=f["days_of_week"],
            start_time=f["start_time"],
            end_time=f["end_time"],
            priority=f["priority"],
            color=color if isinstance(color, str) and color else None,
            is_recurring=f["is_recurring"],
            cadence=f["cadence"],
            created_at=now,
            updated_at=now,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO slots(
                    id, schedule_id, name, description, days_of_week, start_time, end_time,
                    priority, color, is_recurring, cadence, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._slot_params(slot),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug(
            "Slot created id=%s schedule=%s days=%s %s-%s",
            slot.id,
            schedule_id,
            slot.days_of_week,
            slot.start_time,
            slot.end_time,
        )
        return slot

    @staticmethod
    def _slot_params(slot: Slot) -> tuple[Any, ...]:
        return (
            slot.id,
            slot.schedule_id,
            slot.name,
            slot.description,
            json.dumps(list(slot.days_of_week)),
            slot.start_time,
            slot.end_time,
            slot.priority.value,
            slot.color,
            1 if slot.is_recurring else 0,
            slot.cadence.value if slot.cadence else None,
            slot.created_at,
            slot.updated_at,
        )

    def get_slot(self, slot_id: str) -> Slot | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM slots WHERE id = ?", (slot_id,)).fetchone()
            return self._row_to_slot(row) if row else None
        finally:
            conn.close()

    def list_slots(self, schedule_id: str) -> list[Slot]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM slots WHERE schedule_id = ? ORDER BY created_at ASC, rowid ASC",
                (schedule_id,),
            ).fetchall()
            return [self._row_to_slot(r) for r in rows]
        finally:
            conn.close()

    def list_recurring_slots(self) -> list[Slot]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM slots WHERE is_recurring = 1 ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
            return [self._row_to_slot(r) for r in rows]
        finally:
            conn.close()

    def update_slot(self, slot_id: str, **changes: Any) -> Slot | None:
        """
        Partial update. The merged result is re-validated as a whole, so an
        update can never leave start_time >= end_time.
        """
        current = self.get_slot(slot_id)
        if current is None:
            return None

        merged: dict[str, Any] = {
            "name": current.name,
            "description": current.description,
            "days_of_week": list(current.days_of_week),
            "start_time": current.start_time,
            "end_time": current.end_time,
            "priority": current.priority.value,
            "color": current.color,
            "is_recurring": current.is_recurring,
            "cadence": current.cadence.value if current.cadence else None,
        }
        merged.update(changes)
        f = validate_slot_fields(merged)
        color = f.get("color")

        updated = Slot(
            id=current.id,
            schedule_id=current.schedule_id,
            name=f["name"],
            description=f["description"],
            days_of_week=f["days_of_week"],
            start_time=f["start_time"],
            end_time=f["end_time"],
            priority=f["priority"],
            color=color if isinstance(color, str) and color else None,
            is_recurring=f["is_recurring"],
            cadence=f["cadence"],
            created_at=current.created_at,
            updated_at=now_iso(),
        )

        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE slots SET
                    name = ?, description = ?, days_of_week = ?, start_time = ?, end_time = ?,
                    priority = ?, color = ?, is_recurring = ?, cadence = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.name,
                    updated.description,
                    json.dumps(list(updated.days_of_week)),
                    updated.start_time,
                    updated.end_time,
                    updated.priority.value,
                    updated.color,
                    1 if updated.is_recurring else 0,
                    updated.cadence.value if updated.cadence else None,
                    updated.updated_at,
                    slot_id,
                ),
            )
            conn.commit()
            if cur.rowcount == 0:
                return None
        finally:
            conn.close()
        return updated

    def delete_slot(self, slot_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM slots WHERE id = ?", (slot_id,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()
