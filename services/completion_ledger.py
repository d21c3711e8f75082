"""Completion ledger: per-occurrence fulfillment state.

Holds at most one `MealReminder` row per (scheduled meal, calendar date).
Every write is an upsert on that pair: the row is created on first use and
updated in place afterwards. Writers for the same key are serialized by an
in-process lock, and the write itself is a single
``INSERT .. ON CONFLICT DO UPDATE`` on SQLite and PostgreSQL, so a food log
completion racing a reschedule pass can never produce a second row.
"""

import threading
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.clock import Clock, system_clock
from core.exceptions import PersistenceError, ValidationError
from core.logger import get_logger
from core.repository import BaseRepository
from database.models import MealReminder

logger = get_logger("services.completion_ledger")

LedgerKey = Tuple[int, date]

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

# Writers are serialized per key through a fixed pool of striped locks.
LOCK_STRIPES = 64
_key_locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(key: LedgerKey) -> threading.Lock:
    return _key_locks[hash(key) % LOCK_STRIPES]


class CompletionLedger(BaseRepository[MealReminder]):
    """Upsert-only store of occurrence completion state."""

    def __init__(self, session: Session, clock: Clock = system_clock):
        super().__init__(MealReminder, session)
        self.clock = clock

    # Reads -----------------------------------------------------------------

    def fetch(self, scheduled_meal_id: int, occurrence_date: date) -> Optional[MealReminder]:
        """Return the record for an occurrence, or None if it has no state yet."""
        return (
            self.session.query(MealReminder)
            .filter(
                MealReminder.scheduled_meal_id == scheduled_meal_id,
                MealReminder.occurrence_date == occurrence_date,
            )
            .one_or_none()
        )

    def get(self, record_id: int) -> MealReminder:
        """Fetch a record by id.

        Raises:
            NotFoundError: If the id is unknown.
        """
        return self.get_or_404(record_id)

    def fetch_for_date(self, occurrence_date: date) -> List[MealReminder]:
        return (
            self.session.query(MealReminder)
            .filter(MealReminder.occurrence_date == occurrence_date)
            .order_by(MealReminder.scheduled_meal_id)
            .all()
        )

    def fetch_range(
        self,
        scheduled_meal_ids: Iterable[int],
        start: date,
        end: date,
    ) -> Dict[LedgerKey, MealReminder]:
        """Records for the given scheduled meals within ``[start, end]``, by key."""
        ids = list(scheduled_meal_ids)
        if not ids:
            return {}
        rows = (
            self.session.query(MealReminder)
            .filter(
                MealReminder.scheduled_meal_id.in_(ids),
                MealReminder.occurrence_date >= start,
                MealReminder.occurrence_date <= end,
            )
            .all()
        )
        return {(r.scheduled_meal_id, r.occurrence_date): r for r in rows}

    def linked_meal_ids(self, meal_ids: Iterable[int]) -> Set[int]:
        """Subset of ``meal_ids`` referenced by any completion record."""
        ids = list(meal_ids)
        if not ids:
            return set()
        rows = (
            self.session.query(MealReminder.completed_meal_id)
            .filter(MealReminder.completed_meal_id.in_(ids))
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    # Writes ----------------------------------------------------------------

    def upsert_completion(
        self,
        scheduled_meal_id: int,
        occurrence_date: date,
        completed_meal_id: Optional[int],
    ) -> MealReminder:
        """Mark an occurrence completed, linking the logged meal that fulfilled it.

        A previous goal evaluation is cleared because it described the
        previously linked meal.
        """
        values = {
            "was_completed": True,
            "completed_meal_id": completed_meal_id,
            "completed_at": self.clock.now(),
            "goal_achieved": None,
            "goal_deviation": None,
        }
        record = self._upsert(scheduled_meal_id, occurrence_date, values, values, "upsert_completion")
        logger.info(
            "Occurrence %s/%s completed with meal %s",
            scheduled_meal_id, occurrence_date.isoformat(), completed_meal_id,
        )
        return record

    def upsert_skip(self, scheduled_meal_id: int, occurrence_date: date) -> MealReminder:
        """Mark an occurrence explicitly skipped."""
        record = self.upsert_completion(scheduled_meal_id, occurrence_date, None)
        logger.info("Occurrence %s/%s skipped", scheduled_meal_id, occurrence_date.isoformat())
        return record

    def upsert_reminder(self, scheduled_meal_id: int, occurrence_date: date, notification_id: str) -> MealReminder:
        """Record the alert requested for an occurrence; completion state is untouched."""
        return self._upsert(
            scheduled_meal_id,
            occurrence_date,
            {"notification_id": notification_id, "was_completed": False},
            {"notification_id": notification_id},
            "upsert_reminder",
        )

    def record_goal_evaluation(self, record: MealReminder, achieved: bool, deviation: float) -> MealReminder:
        """Store the goal verdict on a completed occurrence.

        Raises:
            ValidationError: If the record is not a completion linked to a meal.
        """
        if not record.is_completion:
            raise ValidationError("Goal evaluation requires a completed occurrence with a logged meal", field="completed_meal_id")
        with _lock_for((record.scheduled_meal_id, record.occurrence_date)):
            with self.transaction("record_goal_evaluation"):
                record.goal_achieved = achieved
                record.goal_deviation = float(deviation)
        return record

    def release_meal(self, meal_id: int) -> int:
        """Turn completions linked to a removed logged meal back into open occurrences.

        Runs inside the caller's transaction and does not commit, so the
        meal delete and the release land together or not at all.
        """
        return (
            self.session.query(MealReminder)
            .filter(MealReminder.completed_meal_id == meal_id)
            .update(
                {
                    MealReminder.was_completed: False,
                    MealReminder.completed_meal_id: None,
                    MealReminder.completed_at: None,
                    MealReminder.goal_achieved: None,
                    MealReminder.goal_deviation: None,
                },
                synchronize_session="fetch",
            )
        )

    def purge_pending(self, scheduled_meal_ids: Iterable[int]) -> int:
        """Delete never-completed rows of the given scheduled meals.

        Completed and skipped rows stay as history. Runs inside the caller's
        transaction and does not commit.
        """
        ids = list(scheduled_meal_ids)
        if not ids:
            return 0
        return (
            self.session.query(MealReminder)
            .filter(MealReminder.scheduled_meal_id.in_(ids), MealReminder.was_completed.is_(False))
            .delete(synchronize_session=False)
        )

    def _upsert(
        self,
        scheduled_meal_id: int,
        occurrence_date: date,
        insert_values: dict,
        update_values: dict,
        operation: str,
    ) -> MealReminder:
        key = (scheduled_meal_id, occurrence_date)
        with _lock_for(key):
            try:
                with self.transaction(operation):
                    self._apply_upsert(key, insert_values, update_values)
            except PersistenceError as exc:
                if not isinstance(exc.__cause__, IntegrityError):
                    raise
                # Another process inserted the row between our select and insert.
                with self.transaction(operation):
                    self._apply_upsert(key, insert_values, update_values)
            return self.fetch(scheduled_meal_id, occurrence_date)

    def _apply_upsert(self, key: LedgerKey, insert_values: dict, update_values: dict) -> None:
        scheduled_meal_id, occurrence_date = key
        dialect_insert = _DIALECT_INSERTS.get(self.session.get_bind().dialect.name)
        if dialect_insert is not None:
            stmt = dialect_insert(MealReminder).values(
                scheduled_meal_id=scheduled_meal_id,
                occurrence_date=occurrence_date,
                **insert_values,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["scheduled_meal_id", "occurrence_date"],
                set_=update_values,
            )
            self.session.execute(stmt)
            return

        record = self.fetch(scheduled_meal_id, occurrence_date)
        if record is None:
            record = MealReminder(scheduled_meal_id=scheduled_meal_id, occurrence_date=occurrence_date, **insert_values)
            self.session.add(record)
        else:
            for field, value in update_values.items():
                setattr(record, field, value)
        self.session.flush()


__all__ = ["CompletionLedger", "LedgerKey"]
