import pytest

from georisk.models import ReportStatus, Role, SoilMoisture, SoilSlope, UserRecord


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Úmido", SoilMoisture.HUMID),
        ("úmido", SoilMoisture.HUMID),
        ("U\u0301mido", SoilMoisture.HUMID),
        ("Humid", SoilMoisture.HUMID),
        (" dry ", SoilMoisture.DRY),
        ("Encharcado", SoilMoisture.WATERLOGGED),
    ],
)
def test_soil_moisture_parse_accepts_labels_and_names(raw, expected):
    assert SoilMoisture.parse(raw) is expected


def test_parse_returns_none_for_unknown_values():
    assert SoilSlope.parse("Vertical") is None
    assert SoilSlope.parse(None) is None
    assert ReportStatus.parse(3) is None


def test_status_parse_is_case_insensitive():
    assert ReportStatus.parse("Pending") is ReportStatus.PENDING
    assert ReportStatus.parse("CANCELLED") is ReportStatus.CANCELLED


def test_legacy_role_tags_map_to_current_roles():
    assert Role.parse("doctor") is Role.REVIEWER
    assert Role.parse("patient") is Role.REPORTER
    assert Role.parse("Admin") is Role.ADMIN
    assert Role.parse("superuser") is None


def test_user_record_decodes_legacy_role():
    user = UserRecord.model_validate({"id": "u1", "name": "Ana", "email": "ana@example.com", "role": "doctor"})
    assert user.role is Role.REVIEWER
    assert user.to_json_dict()["role"] == "reviewer"
