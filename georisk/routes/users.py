from __future__ import annotations

from fastapi import APIRouter, Request

from georisk.routes._deps import identity_from_request, service_from_request, trace_id_from_request
from georisk.schemas import UserUpsertRequest, success_envelope

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.get("/users")
def list_users(request: Request):
    users = service_from_request(request).list_users(identity_from_request(request))
    items = [x.to_json_dict() for x in users]
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.put("/users/{user_id}")
def register_user(user_id: str, payload: UserUpsertRequest, request: Request):
    saved = service_from_request(request).register_user(
        user_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        identity=identity_from_request(request),
    )
    return success_envelope(saved.to_json_dict(), trace_id_from_request(request))
