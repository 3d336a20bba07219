"""Role-scoped projections over an already loaded report collection."""

from __future__ import annotations

from collections.abc import Sequence

from georisk.lifecycle import can_review
from georisk.models import ReportRecord
from georisk.security import Identity


def for_reporter(records: Sequence[ReportRecord], reporter_id: str) -> list[ReportRecord]:
    return [record for record in records if record.reporter_id == reporter_id]


def for_reviewer(records: Sequence[ReportRecord]) -> list[ReportRecord]:
    return list(records)


def for_identity(records: Sequence[ReportRecord], identity: Identity) -> list[ReportRecord]:
    if can_review(identity.role):
        return for_reviewer(records)
    return for_reporter(records, identity.id)
