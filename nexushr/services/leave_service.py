"""
Leave Service

Leave requests are filed by employees, edited by their owner while still
pending, and approved or rejected by an administrator. A request left
pending longer than the configured dwell time (6 hours by default) is
approved automatically by the scheduler's polling tick.
"""

from datetime import date
from typing import Callable, List, Optional
import logging

from nexushr.core.config import Config
from nexushr.core.dates import now_ms
from nexushr.core.exceptions import (
    AccessDeniedError,
    InvalidStateError,
    LeaveRequestNotFoundError,
    ValidationError,
)
from nexushr.schemas.auth import UserSession
from nexushr.schemas.entities import EntityType
from nexushr.schemas.leave import LeaveRequest, LeaveStatus
from nexushr.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


def leave_days(start: date, end: date) -> int:
    """Calendar days from start to end, both inclusive."""
    if end < start:
        raise ValidationError(
            "End date must be on or after the start date",
            details={"startDate": start.isoformat(), "endDate": end.isoformat()}
        )
    return (end - start).days + 1


class LeaveService:
    def __init__(self, sync: SyncCoordinator, settings: Config, clock: Callable[[], int] = now_ms):
        self.sync = sync
        self.settings = settings
        self._clock = clock

    @property
    def auto_approve_after_ms(self) -> int:
        return int(self.settings.auto_approve_hours * 60 * 60 * 1000)

    def list_requests(self, employee_id: Optional[str] = None, refresh: bool = True) -> List[LeaveRequest]:
        leaves = self.sync.get_all(EntityType.LEAVES) if refresh else self.sync.get_local(EntityType.LEAVES)
        if employee_id is not None:
            leaves = [leave for leave in leaves if leave.employee_id == employee_id]
        return sorted(leaves, key=lambda leave: leave.created_at, reverse=True)

    def get(self, request_id: str) -> LeaveRequest:
        envelope = self.sync.store.get(EntityType.LEAVES, request_id)
        if envelope is None:
            raise LeaveRequestNotFoundError(request_id)
        return envelope.data

    def _new_id(self, now: int) -> str:
        # Two submissions within the same millisecond must not collide
        while self.sync.store.get(EntityType.LEAVES, f"LR-{now}") is not None:
            now += 1
        return f"LR-{now}"

    def submit(self, session: UserSession, start: date, end: date, reason: str = "") -> LeaveRequest:
        if session.is_admin:
            raise AccessDeniedError("Only employees can file leave requests")
        days = leave_days(start, end)
        now = self._clock()
        request = LeaveRequest(
            id=self._new_id(now),
            employee_id=session.id,
            employee_name=session.name,
            start_date=start,
            end_date=end,
            days=days,
            reason=reason,
            status=LeaveStatus.PENDING,
            created_at=now,
        )
        self.sync.save(EntityType.LEAVES, request)
        logger.info(f"Leave request {request.id} filed by {session.id} for {days} days")
        return request

    def edit(self, session: UserSession, request_id: str, start: date, end: date, reason: str = "") -> LeaveRequest:
        """Owner edit of a pending request. Restarts the auto-approval clock."""
        current = self.get(request_id)
        if current.employee_id != session.id:
            raise AccessDeniedError("Leave requests can only be edited by their owner")
        if current.status != LeaveStatus.PENDING:
            raise InvalidStateError(f"Leave request {request_id} is {current.status.value} and can no longer be edited")

        updated = current.model_copy(update={
            "start_date": start,
            "end_date": end,
            "days": leave_days(start, end),
            "reason": reason,
            "created_at": self._clock(),
        })
        self.sync.save(EntityType.LEAVES, updated)
        return updated

    def set_status(self, request_id: str, status: LeaveStatus, rejection_reason: Optional[str] = None) -> LeaveRequest:
        current = self.get(request_id)
        updated = current.model_copy(update={
            "status": status,
            "rejection_reason": rejection_reason if status == LeaveStatus.REJECTED else None,
        })
        self.sync.save(EntityType.LEAVES, updated)
        logger.info(f"Leave request {request_id} set to {status.value}")
        return updated

    def approve(self, request_id: str) -> LeaveRequest:
        return self.set_status(request_id, LeaveStatus.APPROVED)

    def reject(self, request_id: str, reason: Optional[str] = None) -> LeaveRequest:
        return self.set_status(request_id, LeaveStatus.REJECTED, reason)

    def is_auto_approval_due(self, request: LeaveRequest, now: int) -> bool:
        return request.status == LeaveStatus.PENDING and now - request.created_at > self.auto_approve_after_ms

    def auto_approve_due(self, now: Optional[int] = None) -> List[LeaveRequest]:
        """Approve every pending request older than the dwell time. Returns the approved ones."""
        now = self._clock() if now is None else now
        approved = []
        for request in self.sync.get_local(EntityType.LEAVES):
            if not self.is_auto_approval_due(request, now):
                continue
            updated = request.model_copy(update={"status": LeaveStatus.APPROVED})
            self.sync.save(EntityType.LEAVES, updated)
            approved.append(updated)
            logger.info(f"Auto-approved pending request {request.id}")
        return approved
