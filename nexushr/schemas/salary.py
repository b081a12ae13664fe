from typing import Optional

from pydantic import BaseModel, Field

from nexushr.core.dates import MONTH_PATTERN, previous_month
from nexushr.schemas.base import CamelModel


class SalaryRecord(CamelModel):
    id: str
    employee_id: str
    employee_name: str = ""
    month: str = Field(..., pattern=MONTH_PATTERN.pattern)  # payout month
    basic_salary: float = 0.0
    manual_work_days: Optional[float] = None
    standard_salary: float = 0.0
    leave_deduction: float = 0.0
    sales_amount: float = 0.0
    bonus_rate: float = 0.0
    bonus_amount: float = 0.0
    attendance_bonus: float = 0.0
    total_salary: float = 0.0
    updated_at: int = 0  # epoch milliseconds

    @staticmethod
    def make_id(employee_id: str, payout_month: str) -> str:
        return f"{employee_id}_{payout_month}"

    @property
    def work_month(self) -> str:
        return previous_month(self.month)


class PayrollInputs(BaseModel):
    """Manual figures an administrator enters on a payroll row."""
    sales_amount: float = 0.0
    bonus_rate: float = 0.0
    manual_work_days: Optional[float] = None
    attendance_bonus: float = 0.0
