# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import local_record, outbox

from .local_record import EmployeeRow, LeaveRow, SalaryRow, TABLES
from .outbox import OutboxEntry, OutboxOperation, OutboxStatus

__all__ = [
    "EmployeeRow",
    "LeaveRow",
    "SalaryRow",
    "TABLES",
    "OutboxEntry",
    "OutboxOperation",
    "OutboxStatus",
]
