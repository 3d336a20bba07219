from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _fold(value: str) -> str:
    return unicodedata.normalize("NFC", value.strip()).casefold()


class _LabelledEnum(str, Enum):
    """String enum that also resolves its member names and stored labels case-insensitively."""

    @classmethod
    def _missing_(cls, value: object) -> Any:
        if not isinstance(value, str):
            return None
        needle = _fold(value)
        for member in cls:
            if needle in {_fold(member.name), _fold(member.value)}:
                return member
        return None

    @classmethod
    def parse(cls, value: object) -> Any:
        """Return the member for ``value`` or ``None``; never raises."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class SoilMoisture(_LabelledEnum):
    DRY = "Seco"
    HUMID = "Úmido"
    WATERLOGGED = "Encharcado"


class SoilSlope(_LabelledEnum):
    FLAT = "Plano"
    MILD = "Leve"
    STEEP = "Íngreme"


class ReportStatus(_LabelledEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# Role tags written by the original mobile app.
_LEGACY_ROLES = {"doctor": "reviewer", "patient": "reporter"}


class Role(_LabelledEnum):
    ADMIN = "admin"
    REVIEWER = "reviewer"
    REPORTER = "reporter"

    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str) and _fold(value) in _LEGACY_ROLES:
            return cls(_LEGACY_ROLES[_fold(value)])
        return super()._missing_(value)


class Location(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    region: str
    image_ref: str = Field(default="", alias="imageRef")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ReportRecord(BaseModel):
    """One stored risk observation. Field aliases are the persisted JSON keys.

    The ``validation_alias`` choices also accept the key names written by the
    original app (``patientId``, ``doctorId``, ``doctorName``, ``specialty``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    reporter_id: str = Field(
        alias="reporterId",
        validation_alias=AliasChoices("reporterId", "reporter_id", "patientId"),
    )
    location_id: str = Field(
        alias="locationId",
        validation_alias=AliasChoices("locationId", "location_id", "doctorId"),
    )
    location_name: str = Field(
        default="",
        alias="locationName",
        validation_alias=AliasChoices("locationName", "location_name", "doctorName"),
    )
    region_label: str = Field(
        default="",
        alias="regionLabel",
        validation_alias=AliasChoices("regionLabel", "region_label", "specialty"),
    )
    date: str
    time: str = ""
    soil_moisture: SoilMoisture = Field(
        alias="soilMoisture",
        validation_alias=AliasChoices("soilMoisture", "soil_moisture"),
    )
    soil_slope: SoilSlope = Field(
        alias="soilSlope",
        validation_alias=AliasChoices("soilSlope", "soil_slope"),
    )
    status: ReportStatus = ReportStatus.PENDING
    created_at: str = Field(
        default="",
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UserRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str
    email: str
    role: Role

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class ReportDraft:
    """Unvalidated caller input for a new report; checked by the repository."""

    date: str = ""
    soil_moisture: str = ""
    soil_slope: str = ""
    location_id: str = ""
    time: str = ""
