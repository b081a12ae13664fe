"""
Payroll Service Layer

Connects the payroll engine to stored data: looks up the employee and their
leave history, computes the breakdown, and saves salary records through the
sync coordinator. Also answers the reporting questions the dashboards ask
(saved state of a row, monthly payout total, history, trend, payslip).

Architecture:
- Presentation -> Service (this module) -> Engine / SyncCoordinator
- Calculation rules live in payroll_engine; this module never re-derives them
"""

from datetime import date
from typing import Callable, List, Optional
import logging

from nexushr.core.config import Config
from nexushr.core.dates import format_month, next_month, now_ms, parse_month, previous_month, shift_month
from nexushr.core.exceptions import EmployeeNotFoundError, PayrollValidationError, ValidationError
from nexushr.schemas.employee import Employee
from nexushr.schemas.entities import EntityType
from nexushr.schemas.leave import LeaveRequest
from nexushr.schemas.payroll import Payslip, TrendPoint
from nexushr.schemas.salary import PayrollInputs, SalaryRecord
from nexushr.services import payroll_engine
from nexushr.services.payroll_engine import SalaryBreakdown
from nexushr.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

TREND_PERIODS = (6, 12)


class PayrollService:
    def __init__(self, sync: SyncCoordinator, settings: Config, clock: Callable[[], int] = now_ms):
        self.sync = sync
        self.settings = settings
        self._clock = clock

    def _employee(self, employee_id: str) -> Employee:
        envelope = self.sync.store.get(EntityType.EMPLOYEES, employee_id)
        if envelope is None:
            raise EmployeeNotFoundError(employee_id)
        return envelope.data

    def _leaves_for(self, employee_id: str) -> List[LeaveRequest]:
        return [
            leave for leave in self.sync.get_local(EntityType.LEAVES)
            if leave.employee_id == employee_id
        ]

    def _records_for(self, employee_id: str) -> List[SalaryRecord]:
        return [
            record for record in self.sync.get_local(EntityType.SALARIES)
            if record.employee_id == employee_id
        ]

    # --- Calculation ---

    def preview(self, employee_id: str, work_month: str, inputs: Optional[PayrollInputs] = None) -> SalaryBreakdown:
        employee = self._employee(employee_id)
        return payroll_engine.compute_salary(employee, work_month, self._leaves_for(employee_id), inputs)

    def build_record(self, employee_id: str, work_month: str, inputs: Optional[PayrollInputs] = None) -> SalaryRecord:
        employee = self._employee(employee_id)
        breakdown = payroll_engine.compute_salary(employee, work_month, self._leaves_for(employee_id), inputs)
        return payroll_engine.build_salary_record(employee, breakdown, updated_at=self._clock())

    def save_row(self, employee_id: str, work_month: str, inputs: Optional[PayrollInputs] = None) -> SalaryRecord:
        """
        Compute and store the salary record of one employee for one work month.
        Invalid inputs raise PayrollValidationError before anything is written.
        """
        record = self.build_record(employee_id, work_month, inputs)
        self.sync.save(EntityType.SALARIES, record)
        logger.info(f"Saved salary {record.id}: total {record.total_salary:.0f}")
        return record

    def get_record(self, employee_id: str, work_month: str) -> Optional[SalaryRecord]:
        record_id = SalaryRecord.make_id(employee_id, next_month(work_month))
        envelope = self.sync.store.get(EntityType.SALARIES, record_id)
        return envelope.data if envelope is not None else None

    def is_saved(self, employee_id: str, work_month: str, inputs: Optional[PayrollInputs] = None) -> bool:
        """True when the stored record matches what these inputs would produce now."""
        inputs = inputs or PayrollInputs()
        record = self.get_record(employee_id, work_month)
        if record is None:
            return False
        breakdown = self.preview(employee_id, work_month, inputs)
        stored_manual = record.manual_work_days or None
        wanted_manual = breakdown.net_days if breakdown.manual_override else None
        return (
            record.sales_amount == inputs.sales_amount
            and record.bonus_rate == inputs.bonus_rate
            and record.attendance_bonus == payroll_engine.round_currency(breakdown.attendance_bonus)
            and stored_manual == wanted_manual
            and abs(record.total_salary - payroll_engine.round_currency(breakdown.total)) < 1
        )

    # --- Reporting ---

    def total_payout(self, work_month: str) -> float:
        """Saved totals for the month, or the engine's default figure for unsaved rows."""
        total = 0.0
        for employee in self.sync.get_local(EntityType.EMPLOYEES):
            record = self.get_record(employee.id, work_month)
            if record is not None:
                total += record.total_salary
                continue
            try:
                breakdown = payroll_engine.compute_salary(employee, work_month, self._leaves_for(employee.id))
            except PayrollValidationError as e:
                logger.warning(f"Left {employee.id} out of the {work_month} payout: {e.message}")
                continue
            total += payroll_engine.round_currency(breakdown.total)
        return total

    def history(self, employee_id: str, work_month: Optional[str] = None) -> List[SalaryRecord]:
        """Salary records of an employee, newest payout first, optionally for one work month."""
        records = self._records_for(employee_id)
        if work_month:
            records = [record for record in records if record.work_month == work_month]
        return sorted(records, key=lambda record: record.month, reverse=True)

    def latest_work_month(self, employee_id: str) -> Optional[str]:
        records = self.history(employee_id)
        return records[0].work_month if records else None

    def payslip(self, record: SalaryRecord) -> Payslip:
        work_month = record.work_month
        standard_days = payroll_engine.standard_work_days(work_month)
        standard_salary = record.standard_salary or record.basic_salary
        leave_deduction = record.leave_deduction or 0.0
        late_gap = standard_salary - record.basic_salary
        late_joiner_deduction = late_gap if late_gap > 0 and leave_deduction == 0 else 0.0

        if record.manual_work_days:
            work_days = record.manual_work_days
        elif standard_salary:
            work_days = float(round(record.basic_salary / standard_salary * standard_days))
        else:
            work_days = float(standard_days)

        return Payslip(
            record_id=record.id,
            employee_id=record.employee_id,
            employee_name=record.employee_name,
            work_month=work_month,
            payout_month=record.month,
            standard_salary=standard_salary,
            basic_salary=record.basic_salary,
            bonus_amount=record.bonus_amount,
            attendance_bonus=record.attendance_bonus,
            leave_deduction=leave_deduction,
            late_joiner_deduction=late_joiner_deduction,
            total_salary=record.total_salary,
            work_days=work_days,
            standard_days=standard_days,
        )

    def trend(self, employee_id: str, period: int = 6, today: Optional[date] = None) -> List[TrendPoint]:
        """
        One point per payout month for the last ``period`` months up to the
        current one, labelled with the work month it pays for.
        """
        if period not in TREND_PERIODS:
            raise ValidationError(f"Trend period must be one of {TREND_PERIODS}", details={"period": period})
        current = format_month(today or date.today())
        by_month = {record.month: record for record in self._records_for(employee_id)}

        points = []
        for offset in range(period - 1, -1, -1):
            payout_month = shift_month(current, -offset)
            record = by_month.get(payout_month)
            points.append(TrendPoint(
                label=previous_month(payout_month),
                payout_month=payout_month,
                value=payroll_engine.round_currency(record.total_salary) if record else 0.0,
                details=self.payslip(record) if record else None,
            ))
        return points

    def pay_date(self, work_month: str) -> date:
        """Salaries for a work month are paid on the configured day of the following month."""
        return parse_month(next_month(work_month)).replace(day=self.settings.pay_day)
