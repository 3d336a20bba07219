from __future__ import annotations

import itertools
import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from georisk.errors import IllegalTransitionError, NotFoundError, StorageError, ValidationError
from georisk.locations import DEFAULT_LOCATIONS, LocationCatalog
from georisk.models import ReportDraft, ReportStatus, Role, SoilMoisture, SoilSlope
from georisk.record_store import InMemoryRecordStore
from georisk.repositories import ReportRepository


def _draft(**overrides) -> ReportDraft:
    values = {
        "date": "10/05/2024",
        "soil_moisture": "Úmido",
        "soil_slope": "Íngreme",
        "location_id": "3",
    }
    values.update(overrides)
    return ReportDraft(**values)


@pytest.fixture
def repo(record_store: InMemoryRecordStore) -> ReportRepository:
    return ReportRepository(record_store, catalog=LocationCatalog(DEFAULT_LOCATIONS))


def test_list_all_is_empty_when_key_is_absent(repo: ReportRepository):
    assert repo.list_all() == []


def test_create_assigns_pending_status_and_denormalizes_location(repo: ReportRepository):
    record = repo.create(_draft(), reporter_id="p1")

    assert record.status is ReportStatus.PENDING
    assert record.reporter_id == "p1"
    assert record.location_name == "Zona Oeste"
    assert record.region_label == "São Paulo"
    assert record.soil_moisture is SoilMoisture.HUMID
    assert record.soil_slope is SoilSlope.STEEP
    assert record.time == ""
    assert record.created_at.endswith("Z")
    assert repo.list_all() == [record]


def test_create_accepts_english_member_names(repo: ReportRepository):
    record = repo.create(_draft(soil_moisture="waterlogged", soil_slope="Flat"), reporter_id="p1")
    assert record.soil_moisture is SoilMoisture.WATERLOGGED
    assert record.soil_slope is SoilSlope.FLAT


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"date": "   "}, "date"),
        ({"date": "", "soil_moisture": "Lamacento"}, "date"),
        ({"soil_moisture": "Lamacento"}, "soilMoisture"),
        ({"soil_moisture": "Lamacento", "soil_slope": "Vertical"}, "soilMoisture"),
        ({"soil_slope": "Vertical", "location_id": "99"}, "soilSlope"),
        ({"location_id": "99"}, "location"),
    ],
)
def test_create_reports_first_failing_field(repo: ReportRepository, record_store, overrides, field):
    with pytest.raises(ValidationError) as exc:
        repo.create(_draft(**overrides), reporter_id="p1")

    assert exc.value.field == field
    assert exc.value.http_status == 400
    assert record_store.read_collection(repo.key) is None


def test_create_preserves_insertion_order_and_unique_ids(repo: ReportRepository):
    created = [repo.create(_draft(date=f"0{i}/05/2024"), reporter_id="p1") for i in range(1, 6)]
    listed = repo.list_all()

    assert [x.id for x in listed] == [x.id for x in created]
    assert len({x.id for x in listed}) == 5


def test_create_retries_colliding_ids(record_store: InMemoryRecordStore):
    ids = itertools.chain(["rpt_fixed", "rpt_fixed", "rpt_other"])
    repo = ReportRepository(
        record_store,
        catalog=LocationCatalog(DEFAULT_LOCATIONS),
        id_factory=lambda: next(ids),
    )
    first = repo.create(_draft(), reporter_id="p1")
    second = repo.create(_draft(), reporter_id="p1")

    assert (first.id, second.id) == ("rpt_fixed", "rpt_other")


def test_round_trip_preserves_every_field(repo: ReportRepository, record_store: InMemoryRecordStore):
    originals = [
        repo.create(_draft(location_id=str(i), time="08:30"), reporter_id=f"p{i}") for i in range(1, 4)
    ]
    reloaded = ReportRepository(record_store, catalog=LocationCatalog(DEFAULT_LOCATIONS)).list_all()

    assert reloaded == originals
    stored = json.loads(record_store.read_collection(repo.key).decode("utf-8"))
    assert stored[0]["soilMoisture"] == "Úmido"
    assert stored[0]["status"] == "pending"
    assert stored[0]["reporterId"] == "p1"


def test_update_status_confirms_pending_report(repo: ReportRepository):
    record = repo.create(_draft(), reporter_id="p1")
    updated = repo.update_status(record.id, ReportStatus.CONFIRMED, caller_role=Role.REVIEWER)

    assert updated.status is ReportStatus.CONFIRMED
    assert updated.model_copy(update={"status": ReportStatus.PENDING}) == record
    assert repo.get(record.id).status is ReportStatus.CONFIRMED


def test_update_status_accepts_case_insensitive_names(repo: ReportRepository):
    record = repo.create(_draft(), reporter_id="p1")
    updated = repo.update_status(record.id, "Cancelled", caller_role=Role.ADMIN)
    assert updated.status is ReportStatus.CANCELLED


def test_update_status_rejects_terminal_transition_without_writing(repo: ReportRepository, record_store):
    record = repo.create(_draft(), reporter_id="p1")
    repo.update_status(record.id, ReportStatus.CONFIRMED, caller_role=Role.ADMIN)
    before = record_store.read_collection(repo.key)

    with pytest.raises(IllegalTransitionError) as exc:
        repo.update_status(record.id, ReportStatus.CONFIRMED, caller_role=Role.ADMIN)

    assert (exc.value.from_status, exc.value.to_status) == ("Confirmed", "Confirmed")
    assert exc.value.http_status == 409
    assert record_store.read_collection(repo.key) == before


def test_update_status_for_reporter_role_is_illegal(repo: ReportRepository):
    record = repo.create(_draft(), reporter_id="p1")
    with pytest.raises(IllegalTransitionError):
        repo.update_status(record.id, ReportStatus.CONFIRMED, caller_role=Role.REPORTER)
    assert repo.get(record.id).status is ReportStatus.PENDING


def test_update_status_unknown_id_raises_not_found(repo: ReportRepository):
    with pytest.raises(NotFoundError) as exc:
        repo.update_status("rpt_missing", ReportStatus.CONFIRMED, caller_role=Role.ADMIN)
    assert exc.value.resource_id == "rpt_missing"
    assert exc.value.code == "REPORT_NOT_FOUND"


def test_update_status_rejects_unknown_status(repo: ReportRepository):
    record = repo.create(_draft(), reporter_id="p1")
    with pytest.raises(ValidationError) as exc:
        repo.update_status(record.id, "archived", caller_role=Role.ADMIN)
    assert exc.value.field == "status"


def test_corrupt_collection_raises_and_is_never_overwritten(repo: ReportRepository, record_store):
    record_store.write_collection(repo.key, b"{not json")

    with pytest.raises(StorageError) as exc:
        repo.list_all()
    assert exc.value.code == "STORAGE_DECODE_FAILED"
    assert exc.value.retryable is False

    with pytest.raises(StorageError):
        repo.create(_draft(), reporter_id="p1")
    assert record_store.read_collection(repo.key) == b"{not json"


def test_collection_with_invalid_enum_is_a_decode_error(repo: ReportRepository, record_store):
    bad = [
        {
            "id": "rpt_1",
            "reporterId": "p1",
            "locationId": "1",
            "date": "01/01/2024",
            "soilMoisture": "Lamacento",
            "soilSlope": "Plano",
            "status": "pending",
        }
    ]
    record_store.write_collection(repo.key, json.dumps(bad).encode("utf-8"))
    with pytest.raises(StorageError):
        repo.list_all()


def test_legacy_record_keys_are_decoded(repo: ReportRepository, record_store):
    legacy = [
        {
            "id": "1715000000000",
            "patientId": "p9",
            "doctorId": "2",
            "doctorName": "Zona Norte",
            "date": "10/05/2024",
            "time": "",
            "specialty": "São Paulo",
            "status": "confirmed",
            "soilMoisture": "Seco",
            "soilSlope": "Leve",
        }
    ]
    record_store.write_collection(repo.key, json.dumps(legacy, ensure_ascii=False).encode("utf-8"))

    [record] = repo.list_all()
    assert record.reporter_id == "p9"
    assert record.location_id == "2"
    assert record.region_label == "São Paulo"
    assert record.status is ReportStatus.CONFIRMED
    assert record.to_json_dict()["locationName"] == "Zona Norte"


def test_concurrent_creates_keep_every_report(repo: ReportRepository):
    def _create_batch(worker: int) -> list[str]:
        return [repo.create(_draft(), reporter_id=f"p{worker}").id for _ in range(20)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        batches = list(pool.map(_create_batch, range(8)))

    created = [report_id for batch in batches for report_id in batch]
    stored = repo.list_all()
    assert len(stored) == 160
    assert {x.id for x in stored} == set(created)


def test_concurrent_transitions_of_one_report_apply_once(repo: ReportRepository):
    record = repo.create(_draft(), reporter_id="p1")

    def _confirm(_: int) -> bool:
        try:
            repo.update_status(record.id, ReportStatus.CONFIRMED, caller_role=Role.REVIEWER)
        except IllegalTransitionError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(_confirm, range(16)))

    assert outcomes.count(True) == 1
    assert repo.get(record.id).status is ReportStatus.CONFIRMED
