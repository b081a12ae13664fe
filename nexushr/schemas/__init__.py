from .base import CamelModel, Versioned
from .employee import Employee, EmployeeForm, Gender
from .leave import LeaveRequest, LeaveStatus
from .salary import PayrollInputs, SalaryRecord
from .entities import EntityType
from .auth import UserRole, UserSession
from .payroll import Payslip, TrendPoint

__all__ = [
    "CamelModel",
    "Versioned",
    "Employee",
    "EmployeeForm",
    "Gender",
    "LeaveRequest",
    "LeaveStatus",
    "PayrollInputs",
    "SalaryRecord",
    "EntityType",
    "UserRole",
    "UserSession",
    "Payslip",
    "TrendPoint",
]
