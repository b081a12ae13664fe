import enum

from pydantic import BaseModel


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"


class UserSession(BaseModel):
    id: str
    role: UserRole
    name: str
    password_change_required: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
