import pytest
from datetime import date

from nexushr.core.exceptions import AccessDeniedError, InvalidStateError, LeaveRequestNotFoundError, ValidationError
from nexushr.schemas.auth import UserRole, UserSession
from nexushr.schemas.leave import LeaveStatus
from nexushr.services.leave_service import leave_days

SIX_HOURS_MS = 6 * 60 * 60 * 1000

employee_session = UserSession(id="lr0615", role=UserRole.EMPLOYEE, name="Li Ru")
admin_session = UserSession(id="admin", role=UserRole.ADMIN, name="Administrator")


def test_leave_days_are_inclusive():
    assert leave_days(date(2024, 7, 10), date(2024, 7, 12)) == 3
    assert leave_days(date(2024, 7, 10), date(2024, 7, 10)) == 1
    with pytest.raises(ValidationError):
        leave_days(date(2024, 7, 12), date(2024, 7, 10))


def test_submit_creates_pending_request(leaves, leave_clock, local_sync):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12), "family trip")

    assert request.id == f"LR-{leave_clock()}"
    assert request.status == LeaveStatus.PENDING
    assert request.days == 3
    assert request.employee_name == "Li Ru"
    assert request.created_at == leave_clock()
    assert local_sync.pending_count() == 1


def test_admin_cannot_file_leave(leaves):
    with pytest.raises(AccessDeniedError):
        leaves.submit(admin_session, date(2024, 7, 10), date(2024, 7, 12))


def test_same_millisecond_submissions_get_distinct_ids(leaves):
    first = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    second = leaves.submit(employee_session, date(2024, 8, 1), date(2024, 8, 2))
    assert first.id != second.id


def test_edit_restarts_the_approval_clock(leaves, leave_clock):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    leave_clock.state["now"] += 1000

    edited = leaves.edit(employee_session, request.id, date(2024, 7, 10), date(2024, 7, 15), "longer")

    assert edited.days == 6
    assert edited.reason == "longer"
    assert edited.created_at == request.created_at + 1000
    assert leaves.get(request.id).days == 6


def test_only_owner_can_edit(leaves):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    intruder = UserSession(id="zs0101", role=UserRole.EMPLOYEE, name="Zhang San")
    with pytest.raises(AccessDeniedError):
        leaves.edit(intruder, request.id, date(2024, 7, 10), date(2024, 7, 11))


def test_decided_requests_cannot_be_edited(leaves):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    leaves.approve(request.id)
    with pytest.raises(InvalidStateError):
        leaves.edit(employee_session, request.id, date(2024, 7, 10), date(2024, 7, 11))


def test_reject_records_reason(leaves):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    rejected = leaves.reject(request.id, "peak season")
    assert rejected.status == LeaveStatus.REJECTED
    assert rejected.rejection_reason == "peak season"

    approved = leaves.approve(request.id)
    assert approved.rejection_reason is None


def test_unknown_request(leaves):
    with pytest.raises(LeaveRequestNotFoundError):
        leaves.approve("LR-0")


def test_auto_approval_needs_strictly_more_than_six_hours(leaves, leave_clock):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))

    assert leaves.auto_approve_due(now=request.created_at + SIX_HOURS_MS) == []
    assert leaves.get(request.id).status == LeaveStatus.PENDING

    approved = leaves.auto_approve_due(now=request.created_at + SIX_HOURS_MS + 1)
    assert [r.id for r in approved] == [request.id]
    assert leaves.get(request.id).status == LeaveStatus.APPROVED


def test_auto_approval_skips_decided_requests(leaves):
    request = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    leaves.reject(request.id, "no")
    assert leaves.auto_approve_due(now=request.created_at + 2 * SIX_HOURS_MS) == []
    assert leaves.get(request.id).status == LeaveStatus.REJECTED


def test_list_requests_newest_first(leaves, leave_clock):
    older = leaves.submit(employee_session, date(2024, 7, 10), date(2024, 7, 12))
    leave_clock.state["now"] += 5000
    newer = leaves.submit(employee_session, date(2024, 8, 1), date(2024, 8, 2))
    other = UserSession(id="zs0101", role=UserRole.EMPLOYEE, name="Zhang San")
    leaves.submit(other, date(2024, 8, 1), date(2024, 8, 2))

    mine = leaves.list_requests(employee_id="lr0615")
    assert [r.id for r in mine] == [newer.id, older.id]
    assert len(leaves.list_requests()) == 3
