from decimal import Decimal, ROUND_HALF_UP

import pytest

from marketplace.services.payment_escrow import compute_commission
from marketplace.services.payment_provider import from_minor_units, to_minor_units


def test_fifteen_percent_of_500():
    commission, payout = compute_commission(Decimal("500"), 15)
    assert commission == Decimal("75")
    assert payout == Decimal("425")


@pytest.mark.parametrize(
    "amount, commission, payout",
    [
        ("10", "2", "8"),  # 1.5 rounds half up
        ("333.33", "50", "283.33"),
        ("99.99", "15", "84.99"),
        ("1", "0", "1"),
        ("0", "0", "0"),
    ],
)
def test_commission_rounds_half_up_to_whole_units(amount, commission, payout):
    c, p = compute_commission(amount, 15)
    assert c == Decimal(commission)
    assert p == Decimal(payout)


def test_split_always_sums_to_amount():
    for cents in range(0, 200001, 1237):
        amount = Decimal(cents) / 100
        for pct in (0, 7.5, 15, 33.3, 100):
            c, p = compute_commission(amount, pct)
            assert c + p == amount.quantize(Decimal("0.01"))
            expected = (amount * Decimal(str(pct)) / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            assert c == expected


def test_default_percent_comes_from_settings():
    c, p = compute_commission(Decimal("200"))
    assert c == Decimal("30")
    assert p == Decimal("170")


def test_minor_unit_conversion():
    assert to_minor_units(Decimal("500")) == 50000
    assert to_minor_units("12.345") == 1235
    assert from_minor_units(42550) == Decimal("425.50")
