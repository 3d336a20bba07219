from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from georisk.lifecycle import allowed_targets
from georisk.models import ReportRecord
from georisk.routes._deps import identity_from_request, service_from_request, trace_id_from_request
from georisk.schemas import ReportCreateRequest, TransitionRequest, success_envelope
from georisk.security import Identity

router = APIRouter(prefix="/api/v1", tags=["reports"])


def _report_view(record: ReportRecord, identity: Identity | None) -> dict:
    data = record.to_json_dict()
    if identity is not None:
        data["allowedTransitions"] = [x.value for x in allowed_targets(record.status, identity.role)]
    return data


def _list_payload(records: list[ReportRecord], identity: Identity | None) -> dict:
    items = [_report_view(x, identity) for x in records]
    return {"items": items, "total": len(items)}


@router.post("/reports")
def create_report(payload: ReportCreateRequest, request: Request):
    identity = identity_from_request(request)
    record = service_from_request(request).create_report(payload.to_draft(), identity)
    return JSONResponse(
        status_code=201,
        content=success_envelope(_report_view(record, identity), trace_id_from_request(request)),
    )


@router.get("/reports")
def list_reports_for_caller(request: Request):
    identity = identity_from_request(request)
    records = service_from_request(request).list_reports_for_caller(identity)
    return success_envelope(_list_payload(records, identity), trace_id_from_request(request))


@router.get("/reports/all")
def list_all_reports(request: Request):
    identity = identity_from_request(request)
    records = service_from_request(request).list_all_reports(identity)
    return success_envelope(_list_payload(records, identity), trace_id_from_request(request))


@router.get("/reports/{report_id}")
def get_report(report_id: str, request: Request):
    identity = identity_from_request(request)
    record = service_from_request(request).get_report(report_id, identity)
    return success_envelope(_report_view(record, identity), trace_id_from_request(request))


@router.post("/reports/{report_id}/transition")
def transition_report(report_id: str, payload: TransitionRequest, request: Request):
    identity = identity_from_request(request)
    record = service_from_request(request).transition_report(report_id, payload.new_status, identity)
    return success_envelope(_report_view(record, identity), trace_id_from_request(request))
