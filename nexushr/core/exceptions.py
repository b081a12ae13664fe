from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class ValidationError(AppException):
    """Rejected input. Nothing has been written when this is raised."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details
        )

class PayrollValidationError(ValidationError):
    pass

class NotFoundError(AppException):
    def __init__(self, message: str, error_code: str = "NOT_FOUND"):
        super().__init__(
            message=message,
            status_code=404,
            error_code=error_code
        )

class EmployeeNotFoundError(NotFoundError):
    def __init__(self, employee_id: str):
        super().__init__(f"Employee {employee_id} not found", error_code="EMPLOYEE_NOT_FOUND")
        self.employee_id = employee_id

class LeaveRequestNotFoundError(NotFoundError):
    def __init__(self, request_id: str):
        super().__init__(f"Leave request {request_id} not found", error_code="LEAVE_NOT_FOUND")
        self.request_id = request_id

class InvalidStateError(AppException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_STATE"
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class RemoteUnavailableError(AppException):
    """Backend unreachable, timed out or answered with a non-2xx status."""
    def __init__(self, message: str, status_code: int = 503):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code="REMOTE_UNAVAILABLE"
        )

class RemoteConflictError(AppException):
    """Backend refused a write because it holds a newer version of the record."""
    def __init__(self, message: str = "Remote record has a newer version"):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT"
        )

class AIError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=503,
            error_code="AI_SERVICE_UNAVAILABLE",
            details=details
        )
