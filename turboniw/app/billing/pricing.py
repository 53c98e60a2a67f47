"""Package pricing and payment classification."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Mapping, Optional, Sequence, Tuple

from ..entitlements.models import PackageType, PaymentMethodClass, PaymentType, Principal
from .exceptions import CheckoutNotAllowed, InvalidCheckoutMetadata
from .models import CheckoutQuote, PaymentClassification, ProviderCheckout


logger = logging.getLogger("billing")

BASE_PRICES_CENTS: Dict[PackageType, int] = {
    PackageType.FORM_FILLING: 29900,
    PackageType.FULL: 159900,
}
UPGRADE_PRICE_CENTS = 130000

PRODUCT_NAMES: Dict[Tuple[PackageType, PaymentType], str] = {
    (PackageType.FORM_FILLING, PaymentType.INITIAL): "Form Filling Package",
    (PackageType.FULL, PaymentType.INITIAL): "Complete NIW Prep",
    (PackageType.FULL, PaymentType.UPGRADE): "Upgrade to Complete NIW Prep",
}

# Provider payment method types offered for each method class.
METHOD_TYPES: Dict[PaymentMethodClass, Tuple[str, ...]] = {
    PaymentMethodClass.CARD: ("card",),
    PaymentMethodClass.BANK_TRANSFER: ("us_bank_account",),
}
_ASYNC_METHOD_TYPES = frozenset({"us_bank_account", "ach_debit", "customer_balance", "sepa_debit"})


@dataclass(frozen=True)
class PricingPolicy:
    """Surcharge rules applied on top of base prices."""

    card_surcharge_percent: float = 3.0
    bank_transfer_fee_cents: int = 500

    def fee_for(self, method: PaymentMethodClass, base_price_cents: int) -> int:
        if method == PaymentMethodClass.BANK_TRANSFER:
            return self.bank_transfer_fee_cents
        surcharge = Decimal(base_price_cents) * Decimal(str(self.card_surcharge_percent)) / Decimal(100)
        return int(surcharge.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote_checkout(
    principal: Principal,
    package_type: PackageType,
    method: PaymentMethodClass,
    policy: PricingPolicy,
) -> CheckoutQuote:
    """Price a checkout for ``principal`` based on what they already own."""

    current = principal.entitlement()
    if not current.paid:
        payment_type = PaymentType.INITIAL
        base_price = BASE_PRICES_CENTS[package_type]
    elif current.package_type == PackageType.FORM_FILLING and package_type == PackageType.FULL:
        payment_type = PaymentType.UPGRADE
        base_price = UPGRADE_PRICE_CENTS
    else:
        raise CheckoutNotAllowed("Your account already includes this package.")

    return CheckoutQuote(
        email=principal.email,
        package_type=package_type,
        payment_type=payment_type,
        payment_method=method,
        base_price_cents=base_price,
        fee_cents=policy.fee_for(method, base_price),
        product_name=PRODUCT_NAMES[(package_type, payment_type)],
    )


def infer_payment_method(
    metadata: Mapping[str, str], payment_method_types: Sequence[str]
) -> PaymentMethodClass:
    """Prefer the method recorded at checkout creation over the provider's list."""

    recorded = metadata.get("paymentMethod")
    if recorded:
        try:
            return PaymentMethodClass(recorded)
        except ValueError:
            logger.warning("Ignoring unknown paymentMethod metadata %r", recorded)
    if any(method_type in _ASYNC_METHOD_TYPES for method_type in payment_method_types):
        return PaymentMethodClass.BANK_TRANSFER
    return PaymentMethodClass.CARD


def _parse_cents(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def classify_payment(checkout: ProviderCheckout) -> PaymentClassification:
    """Derive package and payment type from what was recorded at checkout creation.

    A total that does not equal ``basePrice + fee`` is classified as an
    ``initial`` payment rather than rejected.
    """

    metadata = checkout.metadata
    raw_package = metadata.get("packageType")
    if not raw_package:
        raise InvalidCheckoutMetadata(checkout.id, "packageType missing from checkout metadata")
    try:
        package_type = PackageType(raw_package)
    except ValueError as exc:
        raise InvalidCheckoutMetadata(checkout.id, f"unknown packageType {raw_package!r}") from exc

    payment_method = infer_payment_method(metadata, checkout.payment_method_types)

    base_price = _parse_cents(metadata.get("basePrice"))
    fee = _parse_cents(metadata.get("fee"))
    amount_matched = (
        base_price is not None
        and fee is not None
        and checkout.amount_total is not None
        and base_price + fee == checkout.amount_total
    )

    payment_type = PaymentType.INITIAL
    recorded_type = metadata.get("paymentType")
    if amount_matched and recorded_type:
        try:
            payment_type = PaymentType(recorded_type)
        except ValueError:
            amount_matched = False

    if not amount_matched:
        logger.warning(
            "Checkout %s amount %s does not match recorded price %s + %s; classifying as initial",
            checkout.id,
            checkout.amount_total,
            metadata.get("basePrice"),
            metadata.get("fee"),
            extra={"provider_session_id": checkout.id},
        )

    return PaymentClassification(
        package_type=package_type,
        payment_type=payment_type,
        payment_method=payment_method,
        amount_matched=amount_matched,
    )


__all__ = [
    "BASE_PRICES_CENTS",
    "METHOD_TYPES",
    "PricingPolicy",
    "UPGRADE_PRICE_CENTS",
    "classify_payment",
    "infer_payment_method",
    "quote_checkout",
]
