"""Pricing ledger — invoice totals and sale-time fee calculation.

Pure functions, no I/O. The invariant every mutation must preserve:

    total_amount == sale_amount + buyer_premium_amount
                    + packaging_amount + shipping_amount + tax_amount

All amounts are Decimal quantized to cents (ROUND_HALF_UP).
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from auction_settlement.domain.exceptions import ValidationFailedError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
# Largest value the Numeric(12, 2) money columns hold
MAX_AMOUNT = Decimal("9999999999.99")

_INVOICE_NUMBER_RE = re.compile(r"^INV-\d{8}-[A-F0-9]{4}$")


class PricedInvoice(Protocol):
    """Anything carrying the five line items and the derived total."""

    sale_amount: Decimal
    buyer_premium_amount: Decimal
    packaging_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a value to a cent-quantized Decimal. None counts as zero."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() keeps float inputs like 0.1 from dragging binary noise along
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def ensure_within_limit(amount: Decimal, field: str) -> Decimal:
    """Raise ValidationFailedError when an amount is too large to be stored."""
    if amount > MAX_AMOUNT:
        raise ValidationFailedError(field, f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def line_item_sum(invoice: PricedInvoice) -> Decimal:
    return to_money(
        to_money(invoice.sale_amount)
        + to_money(invoice.buyer_premium_amount)
        + to_money(invoice.packaging_amount)
        + to_money(invoice.shipping_amount)
        + to_money(invoice.tax_amount)
    )


def recompute(invoice: PricedInvoice) -> Decimal:
    """Recompute and store total_amount from the line items.

    Idempotent: calling twice with unchanged line items yields the same total.
    """
    invoice.total_amount = line_item_sum(invoice)
    return invoice.total_amount


def reconciles(invoice: PricedInvoice) -> bool:
    """Return True when the stored total matches the line items."""
    return to_money(invoice.total_amount) == line_item_sum(invoice)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return to_money(to_money(amount) * Decimal(str(percent)) / HUNDRED)


@dataclass(frozen=True)
class SaleFees:
    """Fee breakdown computed once, when the sale is turned into an invoice.

    Attributes:
        buyer_premium_amount: Percentage fee charged to the buyer.
        seller_commission_amount: Percentage fee withheld from the seller.
        total_buyer_pays: Sale plus buyer premium (before packaging/shipping/tax).
        seller_payout_amount: Sale minus seller commission.
        platform_earnings: Buyer premium plus seller commission.
    """

    buyer_premium_amount: Decimal
    seller_commission_amount: Decimal
    total_buyer_pays: Decimal
    seller_payout_amount: Decimal
    platform_earnings: Decimal


def calculate_sale_fees(
    sale_amount: Decimal,
    buyer_premium_percent: Decimal,
    seller_commission_percent: Decimal,
) -> SaleFees:
    """Split a sale into buyer premium, seller commission and payout."""
    sale = to_money(sale_amount)
    premium = percent_of(sale, buyer_premium_percent)
    commission = percent_of(sale, seller_commission_percent)
    return SaleFees(
        buyer_premium_amount=premium,
        seller_commission_amount=commission,
        total_buyer_pays=to_money(sale + premium),
        seller_payout_amount=to_money(sale - commission),
        platform_earnings=to_money(premium + commission),
    )


# ---------------------------------------------------------------------------
# Invoice numbers: INV-YYYYMMDD-XXXX
# ---------------------------------------------------------------------------


def generate_invoice_number(now: datetime | None = None) -> str:
    """Generate an invoice number with a secure 4-hex-digit suffix."""
    now = now or datetime.now(UTC)
    suffix = secrets.token_hex(2).upper()
    return f"INV-{now:%Y%m%d}-{suffix}"


def is_valid_invoice_number(invoice_number: str) -> bool:
    return bool(_INVOICE_NUMBER_RE.match(invoice_number or ""))


def invoice_number_date(invoice_number: str) -> date | None:
    """Extract the issue date from an invoice number, or None if malformed."""
    if not is_valid_invoice_number(invoice_number):
        return None
    digits = invoice_number[4:12]
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:8]))
    except ValueError:
        return None
