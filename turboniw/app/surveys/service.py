"""Survey submission with entitlement gating."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from ..entitlements.models import Principal, normalize_email
from ..entitlements.store import EntitlementStore
from .exceptions import PackageUpgradeRequired, PaymentRequired, SurveyResponseNotFound
from .models import SurveyKind, SurveyResponse
from .store import SurveyStore


logger = logging.getLogger("surveys")

FULL_NAME_FIELD = "PERSONAL_FULL_NAME"


def require_paid_principal(store: EntitlementStore, email: str, kind: SurveyKind) -> Principal:
    """Load ``email`` from the store and check it unlocks ``kind``.

    The caller's token is only a cache of the entitlement, so the decision is
    always taken against the stored principal.
    """

    principal = store.get_principal(email)
    required = kind.required_package
    if required is None:
        return principal

    snapshot = principal.entitlement()
    if not snapshot.paid:
        raise PaymentRequired(kind)
    if not snapshot.grants(required):
        raise PackageUpgradeRequired(kind, required)
    return principal


@dataclass
class SurveyService:
    responses: SurveyStore
    entitlements: EntitlementStore

    def submit(
        self,
        kind: SurveyKind,
        *,
        email: str,
        answers: Mapping[str, Any],
        full_name: Optional[str] = None,
    ) -> SurveyResponse:
        key = normalize_email(email)
        if kind.required_package is not None:
            require_paid_principal(self.entitlements, key, kind)

        name = full_name or answers.get(FULL_NAME_FIELD) or None
        stored = self.responses.save_response(
            SurveyResponse(
                kind=kind,
                user_email=key,
                full_name=str(name).strip() if name else None,
                responses=dict(answers),
            )
        )
        logger.info(
            "Stored %s survey response %s for %s (%d answers)",
            kind.value,
            stored.id,
            key,
            len(stored.responses),
            extra={"survey_kind": kind.value, "email": key},
        )
        return stored

    def get_latest(self, kind: SurveyKind, email: str) -> SurveyResponse:
        response = self.responses.get_response(kind, email)
        if response is None:
            raise SurveyResponseNotFound(kind, normalize_email(email))
        return response

    def list_responses(self, kind: Optional[SurveyKind] = None) -> List[SurveyResponse]:
        return self.responses.list_responses(kind)


__all__ = ["FULL_NAME_FIELD", "SurveyService", "require_paid_principal"]
