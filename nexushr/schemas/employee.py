import enum
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from nexushr.schemas.base import CamelModel


class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class Employee(CamelModel):
    id: str = Field(..., min_length=1)
    name: str
    job_title: str = ""
    gender: Gender = Gender.MALE
    # Optional so that incomplete legacy records still load; payroll rejects them
    join_date: Optional[date] = None
    probation_salary: float = Field(0.0, ge=0)
    full_salary: float = Field(0.0, ge=0)
    probation_months: int = Field(3, ge=0)
    password: str = ""
    is_first_login: bool = True


class EmployeeForm(BaseModel):
    """Fields an administrator fills in when creating or editing an employee."""
    name: str = ""
    job_title: str = ""
    gender: Gender = Gender.MALE
    join_date: Optional[date] = None
    probation_salary: float = Field(0.0, ge=0)
    full_salary: float = Field(0.0, ge=0)
    probation_months: int = Field(3, ge=0)
