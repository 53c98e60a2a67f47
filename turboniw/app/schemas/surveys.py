"""API schemas for survey endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..surveys import SurveyKind, SurveyResponse


class SurveySubmission(BaseModel):
    responses: Dict[str, Any] = Field(default_factory=dict)
    full_name: Optional[str] = Field(alias="fullName", default=None, max_length=200)
    email: Optional[EmailStr] = None

    model_config = ConfigDict(populate_by_name=True)


class SurveySubmissionResponse(BaseModel):
    id: UUID
    kind: SurveyKind
    submitted_at: datetime = Field(alias="submittedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_response(cls, response: SurveyResponse) -> "SurveySubmissionResponse":
        return cls(id=response.id, kind=response.kind, submitted_at=response.created_at)


class SurveyResponseOut(BaseModel):
    id: UUID
    kind: SurveyKind
    email: str
    full_name: Optional[str] = Field(alias="fullName", default=None)
    submitted_at: datetime = Field(alias="submittedAt")
    responses: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_response(cls, response: SurveyResponse) -> "SurveyResponseOut":
        return cls(
            id=response.id,
            kind=response.kind,
            email=response.user_email,
            full_name=response.full_name,
            submitted_at=response.created_at,
            responses=dict(response.responses),
        )


class SurveySummaryOut(BaseModel):
    id: UUID
    kind: SurveyKind
    email: str
    full_name: Optional[str] = Field(alias="fullName", default=None)
    submitted_at: datetime = Field(alias="submittedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_response(cls, response: SurveyResponse) -> "SurveySummaryOut":
        return cls(
            id=response.id,
            kind=response.kind,
            email=response.user_email,
            full_name=response.full_name,
            submitted_at=response.created_at,
        )


class SurveyListResponse(BaseModel):
    surveys: List[SurveySummaryOut]
