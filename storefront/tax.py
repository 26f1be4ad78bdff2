"""
Tax — GST split.

Intra-state supply pays CGST + SGST (half the rate each); anything else,
including an unknown destination state, pays IGST.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from storefront.domain import TaxBreakdown


def _round(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def same_state(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a.strip().casefold() == b.strip().casefold()


def compute_gst(
    taxable: int,
    destination_state: str | None,
    business_state: str,
    rate: Decimal = Decimal("0.18"),
) -> TaxBreakdown:
    base = Decimal(max(taxable, 0))
    if same_state(destination_state, business_state):
        half = _round(base * rate / 2)
        return TaxBreakdown(cgst=half, sgst=half, igst=0)
    return TaxBreakdown(cgst=0, sgst=0, igst=_round(base * rate))


__all__ = ("same_state", "compute_gst")
