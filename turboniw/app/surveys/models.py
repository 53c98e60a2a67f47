"""Survey kinds and stored questionnaire responses."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..entitlements.models import PackageType, normalize_email


class SurveyKind(str, Enum):
    """Questionnaires a principal can submit."""

    FIRST = "first"
    SECOND = "second"
    EVALUATION = "evaluation"

    @property
    def required_package(self) -> Optional[PackageType]:
        """Package that unlocks this questionnaire; ``None`` for public ones."""

        if self is SurveyKind.FIRST:
            return PackageType.FORM_FILLING
        if self is SurveyKind.SECOND:
            return PackageType.FULL
        return None

    @property
    def replaces_previous(self) -> bool:
        """Whether a submission replaces the principal's previous one.

        Public questionnaires are append-only.
        """

        return self.required_package is not None


class SurveyResponse(BaseModel):
    """One submission of answers to a questionnaire."""

    id: UUID = Field(default_factory=uuid4)
    kind: SurveyKind
    user_email: str
    full_name: Optional[str] = None
    responses: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("user_email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)
