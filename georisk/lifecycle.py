"""Report status state machine.

``is_legal`` is the only authority on status changes; the report repository
consults it before touching ``status`` and nothing else writes that field.
"""

from __future__ import annotations

from georisk.errors import IllegalTransitionError
from georisk.models import ReportStatus, Role

INITIAL_STATUS = ReportStatus.PENDING

ALLOWED_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.CONFIRMED, ReportStatus.CANCELLED}),
    ReportStatus.CONFIRMED: frozenset(),
    ReportStatus.CANCELLED: frozenset(),
}

REVIEW_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.REVIEWER})


def can_review(role: Role) -> bool:
    return role in REVIEW_ROLES


def is_terminal(status: ReportStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def is_legal(current: ReportStatus, requested: ReportStatus, caller_role: Role) -> bool:
    if not can_review(caller_role):
        return False
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def allowed_targets(current: ReportStatus, caller_role: Role) -> list[ReportStatus]:
    """Legal next states for ``caller_role``, in declaration order."""
    return [status for status in ReportStatus if is_legal(current, status, caller_role)]


def assert_legal(current: ReportStatus, requested: ReportStatus, caller_role: Role) -> None:
    if not is_legal(current, requested, caller_role):
        raise IllegalTransitionError(current.name.capitalize(), requested.name.capitalize())
