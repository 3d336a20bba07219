from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from georisk.models import ReportDraft


class ReportCreateRequest(BaseModel):
    # Plain strings: enum and catalog checks belong to the report repository.
    date: str = ""
    time: str = ""
    soil_moisture: str = Field(default="", validation_alias=AliasChoices("soilMoisture", "soil_moisture"))
    soil_slope: str = Field(default="", validation_alias=AliasChoices("soilSlope", "soil_slope"))
    location_id: str = Field(default="", validation_alias=AliasChoices("locationId", "location_id"))

    def to_draft(self) -> ReportDraft:
        return ReportDraft(
            date=self.date,
            time=self.time,
            soil_moisture=self.soil_moisture,
            soil_slope=self.soil_slope,
            location_id=self.location_id,
        )


class TransitionRequest(BaseModel):
    new_status: str = Field(min_length=1, validation_alias=AliasChoices("new_status", "newStatus", "status"))


class UserUpsertRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    role: str


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }
