"""Questionnaire responses gated by the caller's stored entitlement."""

from .exceptions import (
    PackageUpgradeRequired,
    PaymentRequired,
    SurveyAccessDenied,
    SurveyResponseNotFound,
)
from .models import SurveyKind, SurveyResponse
from .service import SurveyService, require_paid_principal
from .store import InMemorySurveyStore, SurveyStore

__all__ = [
    "InMemorySurveyStore",
    "PackageUpgradeRequired",
    "PaymentRequired",
    "SurveyAccessDenied",
    "SurveyKind",
    "SurveyResponse",
    "SurveyResponseNotFound",
    "SurveyService",
    "SurveyStore",
    "require_paid_principal",
]
