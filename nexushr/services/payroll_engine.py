"""
Payroll Engine

Pure functions turning an employee, a work month, the employee's leave
history and the administrator's manual figures into a salary breakdown.
Nothing here touches storage; PayrollService persists the results.

Working-day rule: Monday to Friday, plus every other Saturday. Saturdays are
numbered from zero within the month and the odd ones (the 2nd and 4th) are
working days; the 1st, 3rd and 5th are off.

Pay is retrospective: the payout month is the work month plus one, and every
day count below is taken over the work month.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Set
import enum

from pydantic import BaseModel, ConfigDict

from nexushr.core.dates import iter_days, month_bounds, month_index, next_month, parse_month
from nexushr.core.exceptions import PayrollValidationError
from nexushr.schemas.employee import Employee
from nexushr.schemas.leave import LeaveRequest, LeaveStatus
from nexushr.schemas.salary import PayrollInputs, SalaryRecord


class EmploymentStatus(str, enum.Enum):
    NOT_JOINED = "NOT_JOINED"
    PROBATION = "PROBATION"
    OFFICIAL = "OFFICIAL"


class SalaryBreakdown(BaseModel):
    """Unrounded result of one payroll computation."""
    model_config = ConfigDict(frozen=True)

    employee_id: str
    work_month: str
    payout_month: str
    status: EmploymentStatus
    standard_days: int
    potential_days: int
    leave_days: int
    net_days: float
    manual_override: bool
    standard_salary: float
    daily_rate: float
    base_pay: float
    leave_deduction: float
    sales_amount: float
    bonus_rate: float
    bonus_amount: float
    attendance_bonus: float
    total: float


def round_currency(value: float) -> float:
    """Half-up rounding to whole currency units."""
    return float(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _require_join_date(employee: Employee) -> date:
    if employee.join_date is None:
        raise PayrollValidationError(
            f"Employee {employee.id} has no join date",
            details={"employee_id": employee.id, "field": "joinDate"}
        )
    return employee.join_date


def employment_status(employee: Employee, work_month: str) -> EmploymentStatus:
    """Compare months only; the day of joining does not matter here."""
    join = month_index(_require_join_date(employee))
    work = month_index(parse_month(work_month))
    if work < join:
        return EmploymentStatus.NOT_JOINED
    if work < join + employee.probation_months:
        return EmploymentStatus.PROBATION
    return EmploymentStatus.OFFICIAL


def saturday_ordinal(day: date) -> int:
    """0 for the first Saturday of the month, 1 for the second, ..."""
    return (day.day - 1) // 7


def is_work_day(day: date) -> bool:
    weekday = day.weekday()
    if weekday < 5:
        return True
    if weekday == 6:
        return False
    return saturday_ordinal(day) % 2 == 1


def count_work_days(start: date, end: date) -> int:
    return sum(1 for day in iter_days(start, end) if is_work_day(day))


def standard_work_days(work_month: str) -> int:
    first, last = month_bounds(work_month)
    return count_work_days(first, last)


def potential_work_days(employee: Employee, work_month: str) -> int:
    """Working days from the join date (when it falls inside the month) to month end."""
    first, last = month_bounds(work_month)
    start = max(first, _require_join_date(employee))
    if start > last:
        return 0
    return count_work_days(start, last)


def leave_work_days(leaves: Iterable[LeaveRequest], work_month: str, employee_id: Optional[str] = None) -> int:
    """
    Working days covered by approved leave inside the work month.
    A day covered by two overlapping requests counts once.
    """
    first, last = month_bounds(work_month)
    days: Set[date] = set()
    for leave in leaves:
        if leave.status != LeaveStatus.APPROVED:
            continue
        if employee_id is not None and leave.employee_id != employee_id:
            continue
        start = max(leave.start_date, first)
        end = min(leave.end_date, last)
        days.update(day for day in iter_days(start, end) if is_work_day(day))
    return len(days)


def validate_inputs(inputs: PayrollInputs) -> None:
    negative = [
        name for name in ("sales_amount", "bonus_rate", "manual_work_days", "attendance_bonus")
        if getattr(inputs, name) is not None and getattr(inputs, name) < 0
    ]
    if negative:
        raise PayrollValidationError(
            f"Payroll inputs must not be negative: {', '.join(negative)}",
            details={"fields": negative}
        )


def compute_salary(
    employee: Employee,
    work_month: str,
    leaves: Iterable[LeaveRequest],
    inputs: Optional[PayrollInputs] = None,
) -> SalaryBreakdown:
    inputs = inputs or PayrollInputs()
    validate_inputs(inputs)
    status = employment_status(employee, work_month)
    standard_days = standard_work_days(work_month)
    payout_month = next_month(work_month)

    if status == EmploymentStatus.NOT_JOINED:
        return SalaryBreakdown(
            employee_id=employee.id,
            work_month=work_month,
            payout_month=payout_month,
            status=status,
            standard_days=standard_days,
            potential_days=0,
            leave_days=0,
            net_days=0,
            manual_override=False,
            standard_salary=0.0,
            daily_rate=0.0,
            base_pay=0.0,
            leave_deduction=0.0,
            sales_amount=inputs.sales_amount,
            bonus_rate=inputs.bonus_rate,
            bonus_amount=0.0,
            attendance_bonus=0.0,
            total=0.0,
        )

    standard_salary = employee.probation_salary if status == EmploymentStatus.PROBATION else employee.full_salary
    potential_days = potential_work_days(employee, work_month)
    leave_days = leave_work_days(leaves, work_month, employee_id=employee.id)
    daily_rate = standard_salary / standard_days if standard_days else 0.0

    manual_override = bool(inputs.manual_work_days and inputs.manual_work_days > 0)
    if manual_override:
        net_days = inputs.manual_work_days
        leave_deduction = 0.0
    else:
        net_days = max(0, potential_days - leave_days)
        leave_deduction = daily_rate * (potential_days - net_days)

    base_pay = daily_rate * net_days
    bonus_amount = inputs.sales_amount * (inputs.bonus_rate / 100)
    total = base_pay + bonus_amount + inputs.attendance_bonus

    return SalaryBreakdown(
        employee_id=employee.id,
        work_month=work_month,
        payout_month=payout_month,
        status=status,
        standard_days=standard_days,
        potential_days=potential_days,
        leave_days=0 if manual_override else leave_days,
        net_days=net_days,
        manual_override=manual_override,
        standard_salary=standard_salary,
        daily_rate=daily_rate,
        base_pay=base_pay,
        leave_deduction=leave_deduction,
        sales_amount=inputs.sales_amount,
        bonus_rate=inputs.bonus_rate,
        bonus_amount=bonus_amount,
        attendance_bonus=inputs.attendance_bonus,
        total=total,
    )


def build_salary_record(employee: Employee, breakdown: SalaryBreakdown, updated_at: int) -> SalaryRecord:
    """Round the currency figures and shape them as the persisted record."""
    return SalaryRecord(
        id=SalaryRecord.make_id(employee.id, breakdown.payout_month),
        employee_id=employee.id,
        employee_name=employee.name,
        month=breakdown.payout_month,
        basic_salary=round_currency(breakdown.base_pay),
        manual_work_days=breakdown.net_days if breakdown.manual_override else None,
        standard_salary=round_currency(breakdown.standard_salary),
        leave_deduction=round_currency(breakdown.leave_deduction),
        sales_amount=breakdown.sales_amount,
        bonus_rate=breakdown.bonus_rate,
        bonus_amount=round_currency(breakdown.bonus_amount),
        attendance_bonus=round_currency(breakdown.attendance_bonus),
        total_salary=round_currency(breakdown.total),
        updated_at=updated_at,
    )
