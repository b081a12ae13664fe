import enum
from typing import Dict, Type

from nexushr.schemas.base import CamelModel
from nexushr.schemas.employee import Employee
from nexushr.schemas.leave import LeaveRequest
from nexushr.schemas.salary import SalaryRecord


class EntityType(str, enum.Enum):
    """The three record collections, named after their REST paths and local tables."""
    EMPLOYEES = "employees"
    LEAVES = "leaves"
    SALARIES = "salaries"

    @property
    def record_model(self) -> Type[CamelModel]:
        return RECORD_MODELS[self]


RECORD_MODELS: Dict[EntityType, Type[CamelModel]] = {
    EntityType.EMPLOYEES: Employee,
    EntityType.LEAVES: LeaveRequest,
    EntityType.SALARIES: SalaryRecord,
}
