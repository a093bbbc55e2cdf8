"""
Agreement API Routes

Public reads; create, update and delete require a bearer token.

Request bodies accept snake_case or camelCase field names. Responses are
snake_case unless ?case=camel is given.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from tradebarriers.api.common import OutputCase, dump, dump_all
from tradebarriers.core.timeline import build_timeline
from tradebarriers.schemas import AgreementInput
from tradebarriers.web.auth import AuthUser
from tradebarriers.web.deps import get_service, require_user


router = APIRouter(prefix="/api/agreements", tags=["Agreements"])


@router.get("")
def list_agreements(request: Request, case: OutputCase = "snake"):
    """All agreements, oldest first."""
    return dump_all(get_service(request).list_agreements(), case)


@router.post("", status_code=201)
def create_agreement(
    request: Request,
    body: AgreementInput,
    case: OutputCase = "snake",
    user: AuthUser = Depends(require_user),
):
    agreement = get_service(request).create_agreement(body)
    return {"message": "Agreement created successfully", "data": dump(agreement, case)}


@router.get("/{agreement_id}")
def get_agreement(request: Request, agreement_id: str, case: OutputCase = "snake"):
    return dump(get_service(request).get_agreement(agreement_id), case)


@router.put("/{agreement_id}")
def update_agreement(
    request: Request,
    agreement_id: str,
    body: AgreementInput,
    case: OutputCase = "snake",
    user: AuthUser = Depends(require_user),
):
    """Full-field update. Concurrent edits: last writer wins."""
    agreement = get_service(request).update_agreement(agreement_id, body)
    return {"message": "Agreement updated successfully", "data": dump(agreement, case)}


@router.delete("/{agreement_id}")
def delete_agreement(
    request: Request,
    agreement_id: str,
    user: AuthUser = Depends(require_user),
):
    get_service(request).delete_agreement(agreement_id)
    return {"message": "Agreement deleted successfully"}


@router.get("/{agreement_id}/timeline")
def agreement_timeline(request: Request, agreement_id: str):
    """
    Status-history timeline: label positions and progress-bar segments on a
    0-100 axis from the first history entry to now.
    """
    agreement = get_service(request).get_agreement(agreement_id)
    layout = build_timeline(agreement.agreement_history, datetime.now(timezone.utc))
    return {
        "agreement_id": agreement.id,
        "timeline": layout.to_dict() if layout else None,
    }
