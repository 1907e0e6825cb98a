import math

import pytest

from app.core.token_units import (
    format_units,
    from_base_units,
    has_precision_loss,
    needs_approval,
    parse_base_units,
    to_base_units,
    to_wei_string,
)


def test_fractional_amount_is_padded_not_multiplied():
    assert to_wei_string(12.5) == "12500000000000000000"
    assert to_base_units(80.4) == 80_400_000_000_000_000_000


def test_cart_total_matches_exact_decimal():
    # 0.1 + 0.2 style error must not leak into the integer amount
    assert to_base_units(0.3) == 300_000_000_000_000_000
    assert to_base_units(1.005) == 1_005_000_000_000_000_000


def test_integer_and_string_inputs():
    assert to_base_units(0) == 0
    assert to_base_units(7) == 7 * 10**18
    assert to_base_units("1.000000000000000001") == 10**18 + 1


def test_digits_past_eighteen_are_truncated():
    assert to_base_units("0.0000000000000000019") == 1


def test_reconstruction_within_tolerance():
    wei = to_base_units(12.5)
    assert math.isclose(from_base_units(wei), 12.5, abs_tol=1e-6)
    assert not has_precision_loss(12.5)
    assert not has_precision_loss(80.4)


@pytest.mark.parametrize("bad", [-1, -0.01, float("nan"), float("inf"), "abc", True])
def test_invalid_amounts_rejected(bad):
    with pytest.raises(ValueError):
        to_base_units(bad)


def test_format_units_six_decimals():
    assert format_units(1_500_000_000_000_000_000) == "1.500000"
    assert format_units("0") == "0.000000"


def test_needs_approval_boundary():
    assert needs_approval(99, 100)
    assert not needs_approval(100, 100)
    assert not needs_approval(101, 100)


def test_parse_base_units():
    assert parse_base_units("80400000000000000000") == 80_400_000_000_000_000_000
    assert parse_base_units(5) == 5
    for bad in ("1.5", "-3", "", "0x10", False):
        with pytest.raises(ValueError):
            parse_base_units(bad)
