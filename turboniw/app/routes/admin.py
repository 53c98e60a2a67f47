"""Administrative API: survey listing, export, and manual entitlement changes."""
from __future__ import annotations

import json
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...app_context import get_config
from ..auth import RequestPrincipal
from ..auth.dependencies import require_principal
from ..entitlements.exceptions import EntitlementStoreError
from ..schemas.accounts import AccountOut
from ..schemas.admin import EntitlementGrantRequest, PaymentPurgeResponse
from ..schemas.surveys import SurveyListResponse, SurveySummaryOut
from ..services.admin import get_admin_service, render_csv
from ..services.surveys import get_survey_service
from ..surveys import SurveyKind


def require_admin(principal: RequestPrincipal = Depends(require_principal)) -> RequestPrincipal:
    if principal.email not in get_config().admin_emails:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return principal


router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/surveys", response_model=SurveyListResponse)
def list_surveys(
    kind: Optional[SurveyKind] = Query(None),
    *,
    admin: RequestPrincipal = Depends(require_admin),
) -> SurveyListResponse:
    try:
        responses = get_survey_service().list_responses(kind)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return SurveyListResponse(surveys=[SurveySummaryOut.from_response(item) for item in responses])


@router.get("/export")
def export_accounts(
    format: Literal["json", "csv"] = Query("json"),
    *,
    admin: RequestPrincipal = Depends(require_admin),
) -> Response:
    try:
        records = get_admin_service().export_records()
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc

    if format == "csv":
        return Response(
            content=render_csv(records),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="turboniw-export.csv"'},
        )
    return Response(
        content=json.dumps({"accounts": records}),
        media_type="application/json",
    )


@router.post("/entitlements", response_model=AccountOut)
def grant_entitlement(
    payload: EntitlementGrantRequest,
    *,
    admin: RequestPrincipal = Depends(require_admin),
) -> AccountOut:
    try:
        principal = get_admin_service().grant_entitlement(
            str(payload.email),
            paid=payload.paid,
            package_type=payload.package_type,
            granted_by=admin.email,
        )
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return AccountOut.from_principal(
        principal, is_admin=principal.email in get_config().admin_emails
    )


@router.delete("/payments", response_model=PaymentPurgeResponse)
def purge_payments(
    email: Optional[str] = Query(None),
    purge_all: bool = Query(False, alias="all"),
    *,
    admin: RequestPrincipal = Depends(require_admin),
) -> PaymentPurgeResponse:
    if not email and not purge_all:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Pass email=<address> or all=true",
        )
    try:
        deleted = get_admin_service().purge_payments(email or None, purged_by=admin.email)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return PaymentPurgeResponse(deleted=deleted)
