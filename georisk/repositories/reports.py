from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import TypeAdapter

from georisk.errors import IllegalTransitionError, NotFoundError, ValidationError
from georisk.lifecycle import INITIAL_STATUS, assert_legal
from georisk.locations import LocationCatalog
from georisk.models import Location, ReportDraft, ReportRecord, ReportStatus, Role, SoilMoisture, SoilSlope
from georisk.record_store import RecordStore, validate_key
from georisk.repositories._collection import decode_collection, encode_collection

logger = logging.getLogger(__name__)

DEFAULT_REPORTS_KEY = "georisk.reports"

_REPORTS_ADAPTER = TypeAdapter(list[ReportRecord])


def _new_report_id() -> str:
    return f"rpt_{uuid.uuid4().hex[:12]}"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ReportRepository:
    """Typed access to the report collection of a record store.

    Every mutation re-reads the full collection, changes it in memory and
    writes it back while holding the store's lock for the key. Nothing is
    cached between calls.
    """

    def __init__(
        self,
        record_store: RecordStore,
        *,
        catalog: LocationCatalog,
        key: str = DEFAULT_REPORTS_KEY,
        id_factory: Callable[[], str] = _new_report_id,
        clock: Callable[[], str] = _utcnow_iso,
    ) -> None:
        self._store = record_store
        self._catalog = catalog
        self._key = validate_key(key)
        self._id_factory = id_factory
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    def list_all(self) -> list[ReportRecord]:
        return decode_collection(_REPORTS_ADAPTER, key=self._key, raw=self._store.read_collection(self._key))

    def get(self, report_id: str) -> ReportRecord:
        for record in self.list_all():
            if record.id == report_id:
                return record
        raise NotFoundError(report_id)

    def _validate_draft(self, draft: ReportDraft) -> tuple[SoilMoisture, SoilSlope, Location]:
        if not draft.date.strip():
            raise ValidationError("date", "date is required")
        moisture = SoilMoisture.parse(draft.soil_moisture)
        if moisture is None:
            raise ValidationError("soilMoisture", f"unsupported soil moisture: {draft.soil_moisture!r}")
        slope = SoilSlope.parse(draft.soil_slope)
        if slope is None:
            raise ValidationError("soilSlope", f"unsupported soil slope: {draft.soil_slope!r}")
        location = self._catalog.get(draft.location_id.strip())
        if location is None:
            raise ValidationError("location", f"unknown location: {draft.location_id!r}")
        return moisture, slope, location

    def create(self, draft: ReportDraft, *, reporter_id: str) -> ReportRecord:
        moisture, slope, location = self._validate_draft(draft)
        with self._store.lock_for(self._key):
            records = self.list_all()
            taken = {record.id for record in records}
            report_id = self._id_factory()
            while report_id in taken:
                report_id = self._id_factory()
            record = ReportRecord(
                id=report_id,
                reporter_id=reporter_id,
                location_id=location.id,
                location_name=location.name,
                region_label=location.region,
                date=draft.date.strip(),
                time=draft.time.strip(),
                soil_moisture=moisture,
                soil_slope=slope,
                status=INITIAL_STATUS,
                created_at=self._clock(),
            )
            records.append(record)
            self._store.write_collection(self._key, encode_collection(records))
        logger.info("report_created id=%s reporter=%s location=%s", record.id, reporter_id, location.id)
        return record

    def update_status(
        self,
        report_id: str,
        new_status: ReportStatus | str,
        *,
        caller_role: Role,
    ) -> ReportRecord:
        requested = ReportStatus.parse(new_status)
        if requested is None:
            raise ValidationError("status", f"unsupported status: {new_status!r}")
        with self._store.lock_for(self._key):
            records = self.list_all()
            for index, record in enumerate(records):
                if record.id == report_id:
                    break
            else:
                raise NotFoundError(report_id)
            try:
                assert_legal(record.status, requested, caller_role)
            except IllegalTransitionError as exc:
                logger.warning(
                    "report_transition_rejected id=%s from=%s to=%s role=%s",
                    report_id,
                    exc.from_status,
                    exc.to_status,
                    caller_role.value,
                )
                raise
            updated = record.model_copy(update={"status": requested})
            records[index] = updated
            self._store.write_collection(self._key, encode_collection(records))
        logger.info("report_transitioned id=%s from=%s to=%s", report_id, record.status.value, requested.value)
        return updated
