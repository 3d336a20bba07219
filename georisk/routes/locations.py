from __future__ import annotations

from fastapi import APIRouter, Request

from georisk.routes._deps import service_from_request, trace_id_from_request
from georisk.schemas import success_envelope

router = APIRouter(prefix="/api/v1", tags=["locations"])


@router.get("/locations")
def list_locations(request: Request):
    items = [x.to_json_dict() for x in service_from_request(request).list_locations()]
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))
