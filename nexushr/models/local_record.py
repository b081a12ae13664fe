from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
from nexushr.database import Base
from nexushr.schemas.entities import EntityType


class EnvelopeColumns:
    """
    Shared layout of the three record tables: the record itself as camelCase
    JSON plus the sync bookkeeping of its envelope.
    """
    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    synced = Column(Boolean, default=False, nullable=False, index=True)
    version = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class EmployeeRow(EnvelopeColumns, Base):
    __tablename__ = "employees"


class LeaveRow(EnvelopeColumns, Base):
    __tablename__ = "leaves"


class SalaryRow(EnvelopeColumns, Base):
    __tablename__ = "salaries"


TABLES = {
    EntityType.EMPLOYEES: EmployeeRow,
    EntityType.LEAVES: LeaveRow,
    EntityType.SALARIES: SalaryRow,
}
