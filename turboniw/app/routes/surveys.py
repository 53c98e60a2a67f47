"""API routes for questionnaire submission."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import RequestPrincipal
from ..auth.dependencies import get_request_principal, require_principal
from ..entitlements.exceptions import EntitlementStoreError
from ..schemas.surveys import SurveyResponseOut, SurveySubmission, SurveySubmissionResponse
from ..services.surveys import get_survey_service
from ..surveys import SurveyKind


router = APIRouter(prefix="/api/surveys", tags=["surveys"])


def _submitter_email(
    kind: SurveyKind,
    payload: SurveySubmission,
    principal: Optional[RequestPrincipal],
) -> str:
    if kind.required_package is None:
        if payload.email:
            return str(payload.email)
        if principal is not None:
            return principal.email
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid email is required")
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return principal.email


@router.post(
    "/{kind}",
    response_model=SurveySubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_survey(
    kind: SurveyKind,
    payload: SurveySubmission,
    *,
    principal: Optional[RequestPrincipal] = Depends(get_request_principal),
) -> SurveySubmissionResponse:
    email = _submitter_email(kind, payload, principal)
    if kind == SurveyKind.EVALUATION and not (payload.full_name or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please fill in all required fields.")

    try:
        stored = get_survey_service().submit(
            kind,
            email=email,
            answers=payload.responses,
            full_name=payload.full_name,
        )
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return SurveySubmissionResponse.from_response(stored)


@router.get("/{kind}/me", response_model=SurveyResponseOut)
def read_my_survey(
    kind: SurveyKind,
    *,
    principal: RequestPrincipal = Depends(require_principal),
) -> SurveyResponseOut:
    try:
        response = get_survey_service().get_latest(kind, principal.email)
    except EntitlementStoreError as exc:
        raise exc.to_http_exception() from exc
    return SurveyResponseOut.from_response(response)
