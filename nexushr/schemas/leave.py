import enum
from datetime import date
from typing import Optional

from pydantic import Field

from nexushr.schemas.base import CamelModel


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LeaveRequest(CamelModel):
    id: str
    employee_id: str
    employee_name: str = ""
    start_date: date
    end_date: date
    days: int = Field(0, ge=0)
    reason: str = ""
    status: LeaveStatus = LeaveStatus.PENDING
    created_at: int  # epoch milliseconds
    rejection_reason: Optional[str] = None
