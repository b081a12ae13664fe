"""
Local Store

Device-side persistence for the three record collections. Each public method
runs in its own session and transaction, so a single table operation is
atomic even when the scheduler threads and the caller interleave.

Tables are read by full scan; there are no secondary indices beyond the
synced flag.
"""

from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy.orm import Session, sessionmaker

from nexushr.core.dates import utc_now
from nexushr.models.local_record import TABLES
from nexushr.schemas.base import CamelModel, Versioned
from nexushr.schemas.entities import EntityType

logger = logging.getLogger(__name__)


class LocalStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _to_envelope(self, entity_type: EntityType, row) -> Versioned:
        record = entity_type.record_model.from_wire(row.data)
        return Versioned(
            data=record,
            synced=row.synced,
            updated_at=row.updated_at,
            version=row.version,
        )

    def _write(self, session: Session, entity_type: EntityType, record: CamelModel, synced: bool, version: int):
        table = TABLES[entity_type]
        row = session.get(table, record.id)
        if row is None:
            row = table(id=record.id)
            session.add(row)
        row.data = record.to_wire()
        row.synced = synced
        row.version = version
        row.updated_at = utc_now()
        return row

    # --- Reads ---

    def get_all(self, entity_type: EntityType) -> List[Versioned]:
        table = TABLES[entity_type]
        with self._session_factory() as session:
            rows = session.query(table).all()
            return [self._to_envelope(entity_type, row) for row in rows]

    def get(self, entity_type: EntityType, record_id: str) -> Optional[Versioned]:
        with self._session_factory() as session:
            row = session.get(TABLES[entity_type], record_id)
            return self._to_envelope(entity_type, row) if row is not None else None

    # --- Writes ---

    def put(
        self,
        entity_type: EntityType,
        record: CamelModel,
        synced: bool = False,
        version: Optional[int] = None,
        min_version: int = 0,
    ) -> Versioned:
        """
        Upsert one record. Without an explicit version the stored version is
        bumped by one, which is how local edits are numbered. min_version is a
        floor for that bump, used when the row itself is gone (deleted locally)
        but its last version is still known elsewhere.
        """
        with self._session_factory.begin() as session:
            if version is None:
                existing = session.get(TABLES[entity_type], record.id)
                current = existing.version if existing is not None else 0
                version = max(current, min_version) + 1
            row = self._write(session, entity_type, record, synced, version)
            return self._to_envelope(entity_type, row)

    def mark_synced(self, entity_type: EntityType, record_id: str, version: int) -> bool:
        """Flag the local copy as accepted remotely, unless a newer local edit replaced it."""
        with self._session_factory.begin() as session:
            row = session.get(TABLES[entity_type], record_id)
            if row is None or row.version != version:
                return False
            row.synced = True
            return True

    def delete(self, entity_type: EntityType, record_id: str) -> bool:
        with self._session_factory.begin() as session:
            row = session.get(TABLES[entity_type], record_id)
            if row is None:
                return False
            session.delete(row)
            return True

    def replace_all(self, entity_type: EntityType, records: Iterable[CamelModel], versions: Optional[Dict[str, int]] = None) -> List[Versioned]:
        """Overwrite a whole table with a fetched set, every row marked synced."""
        versions = versions or {}
        table = TABLES[entity_type]
        # Last occurrence wins if the backend repeats an id
        unique = {record.id: record for record in records}
        with self._session_factory.begin() as session:
            session.query(table).delete()
            rows = [
                self._write(session, entity_type, record, True, versions.get(record_id, 0))
                for record_id, record in unique.items()
            ]
            session.flush()
            result = [self._to_envelope(entity_type, row) for row in rows]
        logger.debug(f"Replaced local {entity_type.value} table with {len(result)} records")
        return result
