"""Administrative operations: bulk export and audited entitlement changes."""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..billing import BillingAuditEvent, BillingAuditEventType, BillingEventLogger
from ..entitlements.models import PackageType, Principal
from ..entitlements.store import EntitlementStore
from ..surveys import SurveyStore
from .billing import LoggingBillingEventLogger, get_entitlement_store
from .surveys import get_survey_store


logger = logging.getLogger("admin")

CSV_COLUMNS = (
    "email",
    "paid",
    "package_type",
    "created_at",
    "payment_count",
    "total_paid_cents",
    "pending_payments",
    "surveys",
)


@dataclass
class AdminService:
    entitlements: EntitlementStore
    surveys: SurveyStore
    event_logger: BillingEventLogger

    def export_records(self) -> List[Dict[str, Any]]:
        """One record per principal with payments and survey answers attached."""

        responses_by_email: Dict[str, Dict[str, Any]] = {}
        for response in self.surveys.list_responses():
            surveys = responses_by_email.setdefault(response.user_email, {})
            if response.kind.value in surveys:
                continue
            surveys[response.kind.value] = {
                "id": str(response.id),
                "fullName": response.full_name,
                "submittedAt": response.created_at.isoformat(),
                "responses": dict(response.responses),
            }

        records = []
        for principal in self.entitlements.list_principals():
            payments = self.entitlements.list_payments(principal.email)
            records.append(
                {
                    "email": principal.email,
                    "paid": principal.paid,
                    "packageType": principal.package_type.value if principal.package_type else None,
                    "createdAt": principal.created_at.isoformat(),
                    "payments": [
                        {
                            "stripeSessionId": payment.stripe_session_id,
                            "amountCents": payment.amount_cents,
                            "amountDollars": str(payment.amount_dollars),
                            "packageType": payment.package_type.value,
                            "paymentType": payment.payment_type.value,
                            "paymentMethod": payment.payment_method.value,
                            "status": payment.status.value,
                            "createdAt": payment.created_at.isoformat(),
                        }
                        for payment in payments
                    ],
                    "surveys": responses_by_email.get(principal.email, {}),
                }
            )
        return records

    def grant_entitlement(
        self,
        email: str,
        *,
        paid: bool,
        package_type: Optional[PackageType],
        granted_by: str,
    ) -> Principal:
        principal = self.entitlements.set_entitlement(email, paid, package_type if paid else None)
        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.MANUAL_GRANT,
                email=principal.email,
                metadata={
                    "paid": str(principal.paid).lower(),
                    "package_type": principal.package_type.value if principal.package_type else "",
                    "granted_by": granted_by,
                },
            )
        )
        return principal

    def purge_payments(self, email: Optional[str], *, purged_by: str) -> int:
        removed = self.entitlements.purge_payments(email)
        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.PAYMENTS_PURGED,
                email=email,
                metadata={"removed": str(removed), "purged_by": purged_by},
            )
        )
        logger.warning(
            "Purged %d payment events for %s",
            removed,
            email or "all accounts",
            extra={"email": email, "purged_by": purged_by},
        )
        return removed


def render_csv(records: List[Dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for record in records:
        payments = record["payments"]
        writer.writerow(
            {
                "email": record["email"],
                "paid": "yes" if record["paid"] else "no",
                "package_type": record["packageType"] or "",
                "created_at": record["createdAt"],
                "payment_count": len(payments),
                "total_paid_cents": sum(
                    payment["amountCents"] for payment in payments if payment["status"] == "completed"
                ),
                "pending_payments": sum(1 for payment in payments if payment["status"] == "processing"),
                "surveys": ";".join(sorted(record["surveys"])),
            }
        )
    return buffer.getvalue()


def get_admin_service() -> AdminService:
    return AdminService(
        entitlements=get_entitlement_store(),
        surveys=get_survey_store(),
        event_logger=LoggingBillingEventLogger(),
    )


__all__ = ["AdminService", "CSV_COLUMNS", "get_admin_service", "render_csv"]
