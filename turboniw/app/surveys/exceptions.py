"""Errors raised while storing or gating survey responses."""
from __future__ import annotations

from fastapi import status

from ..entitlements.exceptions import EntitlementStoreError
from ..entitlements.models import PackageType
from .models import SurveyKind


class SurveyAccessDenied(EntitlementStoreError):
    """The principal's stored entitlement does not unlock a questionnaire."""


class PaymentRequired(SurveyAccessDenied):
    def __init__(self, kind: SurveyKind) -> None:
        self.kind = kind
        super().__init__(
            code="payment_required",
            message="Payment is required before submitting this survey.",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"survey": kind.value},
        )


class PackageUpgradeRequired(SurveyAccessDenied):
    def __init__(self, kind: SurveyKind, required: PackageType) -> None:
        self.kind = kind
        self.required = required
        super().__init__(
            code="package_upgrade_required",
            message="Your package does not include this survey. Please upgrade.",
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"survey": kind.value, "requiredPackage": required.value},
        )


class SurveyResponseNotFound(EntitlementStoreError, LookupError):
    def __init__(self, kind: SurveyKind, email: str) -> None:
        self.kind = kind
        self.email = email
        super().__init__(
            code="survey_not_found",
            message="Survey not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


__all__ = [
    "PackageUpgradeRequired",
    "PaymentRequired",
    "SurveyAccessDenied",
    "SurveyResponseNotFound",
]
