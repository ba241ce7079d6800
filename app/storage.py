"""Durable key/value storage shared by the cache, preloader and preferences.

Values are stored as strings in the ``storage_items`` table. When the
database is unreachable, writes and deletes are held in memory and served to
readers until the database answers again, at which point they are flushed.
"""
import json
import logging
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.database import SessionLocal
from app.db_models import StorageItem

logger = logging.getLogger(__name__)


class DurableStorage:
    """String key/value store backed by SQLAlchemy with a memory fallback."""

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        # Writes not yet persisted; None marks a pending delete.
        self._pending: dict[str, Optional[str]] = {}

    def _flush_pending(self, db) -> None:
        if not self._pending:
            return
        for key, value in self._pending.items():
            if value is None:
                row = db.get(StorageItem, key)
                if row is not None:
                    db.delete(row)
            else:
                db.merge(StorageItem(key=key, value=value))
        db.commit()
        logger.info("Flushed %d pending storage write(s)", len(self._pending))
        self._pending.clear()

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as db:
                self._flush_pending(db)
                row = db.get(StorageItem, key)
                return row.value if row is not None else None
        except SQLAlchemyError as e:
            logger.warning("Storage read failed for %s: %s", key, e)
        return self._pending.get(key)

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as db:
                self._flush_pending(db)
                db.merge(StorageItem(key=key, value=value))
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Storage write failed for %s, keeping value in memory: %s", key, e)
            self._pending[key] = value

    def remove_item(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                self._flush_pending(db)
                row = db.get(StorageItem, key)
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            logger.warning("Storage delete failed for %s, deferring: %s", key, e)
            self._pending[key] = None

    def keys(self) -> list[str]:
        """All stored keys, including writes still pending."""
        found: set[str] = set()
        try:
            with self._session_factory() as db:
                self._flush_pending(db)
                found.update(row[0] for row in db.query(StorageItem.key).all())
        except SQLAlchemyError as e:
            logger.warning("Storage key listing failed: %s", e)
        found.update(key for key, value in self._pending.items() if value is not None)
        found.difference_update(key for key, value in self._pending.items() if value is None)
        return sorted(found)

    def get_json(self, key: str) -> Any:
        raw = self.get_item(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value))

    def ping(self) -> bool:
        """Check that the durable backend answers."""
        with self._session_factory() as db:
            db.execute(text("SELECT 1"))
        return True
