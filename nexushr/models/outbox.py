from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from nexushr.database import Base
import enum


class OutboxStatus(str, enum.Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class OutboxOperation(str, enum.Enum):
    UPSERT = "upsert"
    DELETE = "delete"


class OutboxEntry(Base):
    """
    Durable queue of local mutations waiting to reach the backend.
    One row per record: a newer mutation replaces the one not yet sent.
    """
    __tablename__ = "outbox"
    __table_args__ = (UniqueConstraint("entity_type", "record_id", name="uq_outbox_record"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String, nullable=False, index=True)
    record_id = Column(String, nullable=False)
    operation = Column(String, nullable=False)  # OutboxOperation value
    payload = Column(JSON, nullable=True)  # wire record for upserts
    version = Column(Integer, default=0, nullable=False)
    status = Column(String, default=OutboxStatus.PENDING.value, nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    error_code = Column(String, nullable=True)  # AppException.error_code of the last failure
    last_error = Column(String, nullable=True)
    next_attempt_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
