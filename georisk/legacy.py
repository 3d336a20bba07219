"""Import of collections written by the original mobile app.

The app kept two AsyncStorage entries whose values are JSON strings. Their
records decode through the legacy key aliases on ``ReportRecord`` and the
legacy role tags on ``Role``; on write they are re-encoded in the current
layout. Reports without a date or with an unknown location are skipped and
counted as rejected.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, TypeAdapter

from georisk.models import ReportRecord, UserRecord
from georisk.repositories._collection import decode_collection, encode_collection
from georisk.service import ReportService

logger = logging.getLogger(__name__)

LEGACY_REPORTS_KEY = "@MedicalApp:appointments"
LEGACY_USERS_KEY = "@MedicalApp:users"

_REPORTS_ADAPTER = TypeAdapter(list[ReportRecord])
_USERS_ADAPTER = TypeAdapter(list[UserRecord])


def _raw_entry(dump: Mapping[str, Any], key: str) -> bytes | None:
    value = dump.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value, ensure_ascii=False).encode("utf-8")


def _is_importable(record: ReportRecord, service: ReportService) -> bool:
    # Same date and location rules as ReportRepository.create; the enums are checked on decode.
    return bool(record.date.strip()) and service.catalog.get(record.location_id) is not None


def _merge_into(service: ReportService, key: str, adapter: TypeAdapter[Any], incoming: list[BaseModel], write: bool) -> int:
    """Append records whose id is not stored yet; returns how many were new."""
    store = service.record_store
    with store.lock_for(key):
        current = decode_collection(adapter, key=key, raw=store.read_collection(key))
        known = {record.id for record in current}
        fresh = [record for record in incoming if record.id not in known]
        if fresh and write:
            store.write_collection(key, encode_collection([*current, *fresh]))
    return len(fresh)


def import_legacy_dump(dump: Mapping[str, Any], *, service: ReportService, write: bool = True) -> dict[str, int]:
    reports = decode_collection(_REPORTS_ADAPTER, key=LEGACY_REPORTS_KEY, raw=_raw_entry(dump, LEGACY_REPORTS_KEY))
    users = decode_collection(_USERS_ADAPTER, key=LEGACY_USERS_KEY, raw=_raw_entry(dump, LEGACY_USERS_KEY))
    accepted = [x for x in reports if _is_importable(x, service)]
    rejected = [x for x in reports if not _is_importable(x, service)]
    if rejected:
        logger.warning("legacy_import_rejected_reports ids=%s", ",".join(x.id for x in rejected))

    imported_reports = _merge_into(service, service.reports.key, _REPORTS_ADAPTER, accepted, write)
    imported_users = _merge_into(service, service.users.key, _USERS_ADAPTER, users, write)
    logger.info(
        "legacy_import_done reports=%d/%d rejected=%d users=%d/%d write=%s",
        imported_reports,
        len(reports),
        len(rejected),
        imported_users,
        len(users),
        write,
    )
    return {
        "reports_found": len(reports),
        "reports_imported": imported_reports,
        "reports_rejected": len(rejected),
        "users_found": len(users),
        "users_imported": imported_users,
    }
