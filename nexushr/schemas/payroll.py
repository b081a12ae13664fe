from typing import Optional

from pydantic import BaseModel


class Payslip(BaseModel):
    """Earnings and deductions of one saved salary record, as shown to the employee."""
    record_id: str
    employee_id: str
    employee_name: str
    work_month: str
    payout_month: str
    standard_salary: float
    basic_salary: float
    bonus_amount: float
    attendance_bonus: float
    leave_deduction: float
    # Gap between standard and basic pay not explained by leave (late joiners)
    late_joiner_deduction: float
    total_salary: float
    work_days: float
    standard_days: int


class TrendPoint(BaseModel):
    label: str  # work month
    payout_month: str
    value: float
    details: Optional[Payslip] = None
