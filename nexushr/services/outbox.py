"""
Outbox

Durable queue of local mutations that still have to reach the backend.
Entries are keyed by (entity type, record id); enqueueing a mutation for a
record that already has an unsent entry replaces that entry, so the queue
always carries the latest local state of each record.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from pydantic import BaseModel, ConfigDict
from sqlalchemy import or_
from sqlalchemy.orm import sessionmaker

from nexushr.core.dates import utc_now
from nexushr.models.outbox import OutboxEntry, OutboxOperation, OutboxStatus
from nexushr.schemas.entities import EntityType

logger = logging.getLogger(__name__)

CONFLICT = "CONFLICT"


class OutboxItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: EntityType
    record_id: str
    operation: OutboxOperation
    payload: Optional[Dict[str, Any]] = None
    version: int
    status: OutboxStatus
    attempts: int = 0
    error_code: Optional[str] = None
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None

    @property
    def is_conflict(self) -> bool:
        return self.status == OutboxStatus.FAILED and self.error_code == CONFLICT


class Outbox:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def enqueue(
        self,
        entity_type: EntityType,
        record_id: str,
        operation: OutboxOperation,
        version: int,
        payload: Optional[Dict[str, Any]] = None,
    ) -> OutboxItem:
        now = utc_now()
        with self._session_factory.begin() as session:
            entry = session.query(OutboxEntry).filter(
                OutboxEntry.entity_type == entity_type.value,
                OutboxEntry.record_id == record_id
            ).first()
            if entry is None:
                entry = OutboxEntry(
                    entity_type=entity_type.value,
                    record_id=record_id,
                    created_at=now
                )
                session.add(entry)
            entry.operation = operation.value
            entry.payload = payload
            entry.version = version
            entry.status = OutboxStatus.PENDING.value
            entry.attempts = 0
            entry.error_code = None
            entry.last_error = None
            entry.next_attempt_at = None
            entry.updated_at = now
            session.flush()
            return OutboxItem.model_validate(entry)

    def get(self, entity_type: EntityType, record_id: str) -> Optional[OutboxItem]:
        with self._session_factory() as session:
            entry = session.query(OutboxEntry).filter(
                OutboxEntry.entity_type == entity_type.value,
                OutboxEntry.record_id == record_id
            ).first()
            return OutboxItem.model_validate(entry) if entry is not None else None

    def pending(
        self,
        entity_type: Optional[EntityType] = None,
        include_failed: bool = True,
        due_at: Optional[datetime] = None,
    ) -> List[OutboxItem]:
        """
        Unsynced entries, oldest mutation first.

        include_failed adds entries that exhausted their retries (conflicts
        excluded); due_at restricts to entries whose backoff has elapsed.
        """
        statuses = [OutboxStatus.PENDING.value]
        if include_failed:
            statuses.append(OutboxStatus.FAILED.value)
        with self._session_factory() as session:
            query = session.query(OutboxEntry).filter(OutboxEntry.status.in_(statuses))
            if entity_type is not None:
                query = query.filter(OutboxEntry.entity_type == entity_type.value)
            if due_at is not None:
                query = query.filter(or_(
                    OutboxEntry.next_attempt_at.is_(None),
                    OutboxEntry.next_attempt_at <= due_at
                ))
            entries = query.order_by(OutboxEntry.updated_at, OutboxEntry.id).all()
            items = [OutboxItem.model_validate(e) for e in entries]
        return [item for item in items if not item.is_conflict]

    def count_pending(self) -> int:
        with self._session_factory() as session:
            return session.query(OutboxEntry).filter(
                OutboxEntry.status != OutboxStatus.SYNCED.value
            ).count()

    def conflicts(self) -> List[OutboxItem]:
        with self._session_factory() as session:
            entries = session.query(OutboxEntry).filter(
                OutboxEntry.status == OutboxStatus.FAILED.value,
                OutboxEntry.error_code == CONFLICT
            ).order_by(OutboxEntry.id).all()
            return [OutboxItem.model_validate(e) for e in entries]

    def mark_synced(self, item: OutboxItem) -> bool:
        """Returns False when a newer mutation replaced the entry while it was in flight."""
        with self._session_factory.begin() as session:
            entry = session.get(OutboxEntry, item.id)
            if entry is None or entry.version != item.version or entry.operation != item.operation.value:
                return False
            entry.status = OutboxStatus.SYNCED.value
            entry.error_code = None
            entry.last_error = None
            entry.next_attempt_at = None
            entry.updated_at = utc_now()
            return True

    def record_failure(
        self,
        item: OutboxItem,
        error_code: str,
        message: str,
        next_attempt_at: Optional[datetime] = None,
        give_up: bool = False,
    ) -> Optional[OutboxItem]:
        with self._session_factory.begin() as session:
            entry = session.get(OutboxEntry, item.id)
            if entry is None or entry.version != item.version or entry.operation != item.operation.value:
                return None
            entry.attempts += 1
            entry.error_code = error_code
            entry.last_error = message
            entry.next_attempt_at = next_attempt_at
            entry.status = (OutboxStatus.FAILED if give_up else OutboxStatus.PENDING).value
            entry.updated_at = utc_now()
            session.flush()
            return OutboxItem.model_validate(entry)

    def remove(self, entity_type: EntityType, record_id: str) -> bool:
        with self._session_factory.begin() as session:
            deleted = session.query(OutboxEntry).filter(
                OutboxEntry.entity_type == entity_type.value,
                OutboxEntry.record_id == record_id
            ).delete()
        if deleted:
            logger.info(f"Discarded outbox entry {entity_type.value}/{record_id}")
        return bool(deleted)
