"""Tests for signature parsing and recovery-id normalization"""

import pytest

from x402_armory.exceptions import ValidationError
from x402_armory.utils.signature import (
    Signature,
    adjust_v,
    combine_signature,
    normalize_signature,
    parse_signature,
)

R = bytes(range(32))
S = bytes(range(32, 64))


def test_parse_splits_components():
    sig = "0x" + R.hex() + S.hex() + "1b"
    parts = parse_signature(sig)
    assert parts.r == R
    assert parts.s == S
    assert parts.v == 27


def test_parse_without_prefix():
    assert parse_signature(R.hex() + S.hex() + "1c").v == 28


def test_combine_is_inverse_of_parse():
    sig = "0x" + R.hex() + S.hex() + "1c"
    assert combine_signature(parse_signature(sig)) == sig


@pytest.mark.parametrize("sig", ["0x", "0x" + "ab" * 64, "0x" + "ab" * 66, "0x" + "zz" * 65, 42])
def test_parse_rejects_bad_length_or_hex(sig):
    with pytest.raises(ValidationError):
        parse_signature(sig)


def test_combine_rejects_short_r():
    with pytest.raises(ValidationError):
        combine_signature(Signature(r=b"\x00" * 31, s=S, v=27))


@pytest.mark.parametrize(
    "v,chain_id,expected",
    [
        (27, None, 27),
        (28, 8453, 28),
        (0, None, 27),
        (1, None, 28),
        (8453 * 2 + 35, 8453, 27),
        (8453 * 2 + 36, 8453, 28),
        (37, None, 27),
        (38, None, 28),
    ],
)
def test_adjust_v(v, chain_id, expected):
    assert adjust_v(v, chain_id) == expected


def test_adjust_v_rejects_foreign_chain():
    with pytest.raises(ValidationError):
        adjust_v(1 * 2 + 35, 8453)


def test_adjust_v_rejects_garbage():
    with pytest.raises(ValidationError):
        adjust_v(5)


def test_normalize_signature():
    sig = "0x" + R.hex() + S.hex() + "00"
    assert normalize_signature(sig).endswith("1b")
