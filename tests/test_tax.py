# tests/test_tax.py
from decimal import Decimal

from storefront.domain import TaxBreakdown
from storefront.tax import compute_gst, same_state


def test_intra_state_splits_cgst_and_sgst():
    assert compute_gst(100000, "Maharashtra", "Maharashtra") == TaxBreakdown(cgst=9000, sgst=9000, igst=0)


def test_inter_state_pays_igst():
    assert compute_gst(100000, "Karnataka", "Maharashtra") == TaxBreakdown(cgst=0, sgst=0, igst=18000)


def test_unknown_destination_pays_igst():
    assert compute_gst(100000, None, "Maharashtra").igst == 18000
    assert compute_gst(100000, "", "Maharashtra").igst == 18000


def test_state_comparison_ignores_case_and_spaces():
    assert same_state(" maharashtra", "Maharashtra ")
    assert not same_state("Goa", "Maharashtra")


def test_rounding_is_half_up():
    # 18% of 25 paise = 4.5; 9% = 2.25
    assert compute_gst(25, "Delhi", "Maharashtra").igst == 5
    assert compute_gst(25, "Maharashtra", "Maharashtra") == TaxBreakdown(2, 2, 0)


def test_negative_taxable_is_zero():
    assert compute_gst(-100, "Delhi", "Maharashtra").total == 0


def test_custom_rate():
    assert compute_gst(10000, "Delhi", "Maharashtra", Decimal("0.05")).igst == 500
