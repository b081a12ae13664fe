import hmac
import logging

from nexushr.core.config import Config
from nexushr.core.exceptions import AuthenticationError
from nexushr.core.security import verify_password
from nexushr.schemas.auth import UserRole, UserSession
from nexushr.schemas.entities import EntityType
from nexushr.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

ADMIN_DISPLAY_NAME = "Administrator"


class AuthService:
    def __init__(self, sync: SyncCoordinator, settings: Config):
        self.sync = sync
        self.settings = settings

    def _is_admin_login(self, login_id: str, password: str) -> bool:
        return (
            hmac.compare_digest(login_id, self.settings.admin_user)
            and hmac.compare_digest(password, self.settings.admin_password)
        )

    def authenticate(self, login_id: str, password: str) -> UserSession:
        """
        Resolve credentials to a session.

        The administrator account comes from configuration. Employees log in
        with their id; a first login (or a reset password) must be followed
        by a password change before the session is fully usable.
        """
        login_id = (login_id or "").strip()
        password = password or ""
        if not login_id or not password:
            raise AuthenticationError("Login id and password are required")

        if self._is_admin_login(login_id, password):
            logger.info("Administrator logged in")
            return UserSession(id=login_id, role=UserRole.ADMIN, name=ADMIN_DISPLAY_NAME)

        envelope = self.sync.store.get(EntityType.EMPLOYEES, login_id)
        if envelope is None or not verify_password(password, envelope.data.password):
            logger.warning(f"Failed login for {login_id}")
            raise AuthenticationError("Incorrect login id or password")

        employee = envelope.data
        logger.info(f"Employee {employee.id} logged in")
        return UserSession(
            id=employee.id,
            role=UserRole.EMPLOYEE,
            name=employee.name,
            password_change_required=employee.is_first_login,
        )
