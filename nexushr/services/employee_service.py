"""
Employee Service

Administrator actions on employee records: create, edit, password resets and
deletion. Deleting an employee also deletes their leave requests but keeps
their salary records, which stay available for historical reporting.
"""

from datetime import date
from typing import Callable, List, Optional
import logging

from nexushr.core.config import Config
from nexushr.core.dates import add_months
from nexushr.core.exceptions import EmployeeNotFoundError, ValidationError
from nexushr.core.security import get_password_hash
from nexushr.schemas.employee import Employee, EmployeeForm
from nexushr.schemas.entities import EntityType
from nexushr.schemas.leave import LeaveRequest
from nexushr.services.initials import pinyin_initials
from nexushr.services.payroll_engine import EmploymentStatus
from nexushr.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


class EmployeeService:
    def __init__(
        self,
        sync: SyncCoordinator,
        settings: Config,
        initials: Optional[Callable[[str], str]] = None,
    ):
        self.sync = sync
        self.settings = settings
        self._initials = initials or (lambda name: pinyin_initials(name, settings.ai))

    def list_employees(self, refresh: bool = True) -> List[Employee]:
        if refresh:
            return self.sync.get_all(EntityType.EMPLOYEES)
        return self.sync.get_local(EntityType.EMPLOYEES)

    def get(self, employee_id: str) -> Employee:
        envelope = self.sync.store.get(EntityType.EMPLOYEES, employee_id)
        if envelope is None:
            raise EmployeeNotFoundError(employee_id)
        return envelope.data

    def find(self, employee_id: str) -> Optional[Employee]:
        envelope = self.sync.store.get(EntityType.EMPLOYEES, employee_id)
        return envelope.data if envelope is not None else None

    def generate_id(self, name: str, join_date: date) -> str:
        """Name initials followed by the join month and day, e.g. ``lr0615``."""
        return f"{self._initials(name)}{join_date.month:02d}{join_date.day:02d}"

    def _validate_form(self, form: EmployeeForm):
        if not form.name.strip():
            raise ValidationError("Employee name is required", details={"field": "name"})
        if form.join_date is None:
            raise ValidationError("Join date is required", details={"field": "joinDate"})
        if form.probation_salary >= form.full_salary:
            raise ValidationError(
                "Probation salary must be lower than full salary",
                details={"probationSalary": form.probation_salary, "fullSalary": form.full_salary}
            )

    def add_employee(self, form: EmployeeForm) -> Employee:
        self._validate_form(form)
        employee_id = self.generate_id(form.name.strip(), form.join_date)
        if self.find(employee_id) is not None:
            raise ValidationError(
                f"Employee id {employee_id} is already taken",
                details={"id": employee_id}
            )

        employee = Employee(
            id=employee_id,
            name=form.name.strip(),
            job_title=form.job_title,
            gender=form.gender,
            join_date=form.join_date,
            probation_salary=form.probation_salary,
            full_salary=form.full_salary,
            probation_months=form.probation_months,
            password=get_password_hash(self.settings.default_employee_password),
            is_first_login=True,
        )
        self.sync.save(EntityType.EMPLOYEES, employee)
        logger.info(f"Created employee {employee_id}")
        return employee

    def update_employee(self, employee_id: str, form: EmployeeForm) -> Employee:
        self._validate_form(form)
        current = self.get(employee_id)
        updated = current.model_copy(update={
            "name": form.name.strip(),
            "job_title": form.job_title,
            "gender": form.gender,
            "join_date": form.join_date,
            "probation_salary": form.probation_salary,
            "full_salary": form.full_salary,
            "probation_months": form.probation_months,
        })
        self.sync.save(EntityType.EMPLOYEES, updated)
        logger.info(f"Updated employee {employee_id}")
        return updated

    def reset_password(self, employee_id: str) -> Employee:
        current = self.get(employee_id)
        updated = current.model_copy(update={
            "password": get_password_hash(self.settings.default_employee_password),
            "is_first_login": True,
        })
        self.sync.save(EntityType.EMPLOYEES, updated)
        logger.info(f"Password of {employee_id} reset to the default")
        return updated

    def change_password(self, employee_id: str, new_password: str) -> Employee:
        if len(new_password or "") < self.settings.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.settings.min_password_length} characters",
                details={"field": "password"}
            )
        current = self.get(employee_id)
        updated = current.model_copy(update={
            "password": get_password_hash(new_password),
            "is_first_login": False,
        })
        self.sync.save(EntityType.EMPLOYEES, updated)
        return updated

    def delete_employee(self, employee_id: str) -> List[LeaveRequest]:
        """
        Delete the employee and every leave request they filed.
        Salary records are left untouched. Returns the deleted leave requests.
        """
        self.get(employee_id)
        self.sync.delete(EntityType.EMPLOYEES, employee_id)

        leaves = [
            leave for leave in self.sync.get_local(EntityType.LEAVES)
            if leave.employee_id == employee_id
        ]
        for leave in leaves:
            self.sync.delete(EntityType.LEAVES, leave.id)
        logger.info(f"Deleted employee {employee_id} and {len(leaves)} leave requests")
        return leaves

    def probation_end(self, employee: Employee) -> date:
        if employee.join_date is None:
            raise ValidationError(f"Employee {employee.id} has no join date", details={"field": "joinDate"})
        return add_months(employee.join_date, employee.probation_months)

    def status_on(self, employee: Employee, day: date) -> EmploymentStatus:
        """Employment phase on a given calendar day (profile badges, previews)."""
        if employee.join_date is None or day < employee.join_date:
            return EmploymentStatus.NOT_JOINED
        if day < self.probation_end(employee):
            return EmploymentStatus.PROBATION
        return EmploymentStatus.OFFICIAL
