import pytest

from tokenledger.encoding import address, cb58_decode, cb58_encode, parse_address
from tokenledger.errors import AddressError

HRP = "token"
KEY = bytes(range(32))


def test_address_round_trip():
    addr = address(KEY, HRP)
    assert parse_address(addr, HRP) == KEY


def test_address_starts_with_hrp_and_separator():
    addr = address(KEY, HRP)
    assert addr.startswith(HRP + "1")
    # 32 bytes -> 52 data characters plus 6 checksum characters
    assert len(addr) == len(HRP) + 1 + 52 + 6


def test_address_empty_key_round_trip():
    empty = bytes(32)
    assert parse_address(address(empty, HRP), HRP) == empty


def test_uppercase_address_parses():
    addr = address(KEY, HRP)
    assert parse_address(addr.upper(), HRP) == KEY


def test_mixed_case_rejected():
    addr = address(KEY, HRP)
    mixed = addr[:-1] + addr[-1].upper() if addr[-1].isalpha() else addr[:6].upper() + addr[6:]
    with pytest.raises(AddressError):
        parse_address(mixed, HRP)


def test_wrong_hrp_rejected():
    addr = address(KEY, "other")
    with pytest.raises(AddressError, match="incorrect hrp"):
        parse_address(addr, HRP)


def test_corrupted_checksum_rejected():
    addr = address(KEY, HRP)
    last = addr[-1]
    replacement = "q" if last != "q" else "p"
    with pytest.raises(AddressError, match="checksum"):
        parse_address(addr[:-1] + replacement, HRP)


def test_short_payload_rejected():
    short = address(KEY, HRP)
    # an address built from fewer bytes must not parse as a key
    from tokenledger import encoding

    data = encoding._convert_bits(KEY[:10], 8, 5, True)
    too_short = encoding._bech32_encode(HRP, data)
    assert parse_address(short, HRP) == KEY
    with pytest.raises(AddressError, match="invalid size"):
        parse_address(too_short, HRP)


def test_address_requires_32_bytes():
    with pytest.raises(ValueError):
        address(b"\x01" * 31, HRP)


def test_cb58_empty_id():
    assert cb58_encode(bytes(32)) == "11111111111111111111111111111111LpoYY"


def test_cb58_round_trip():
    assert cb58_decode(cb58_encode(KEY)) == KEY
    assert cb58_decode(cb58_encode(b"\x00\x00abc")) == b"\x00\x00abc"


def test_cb58_bad_checksum():
    text = cb58_encode(KEY)
    replacement = "2" if text[-1] != "2" else "3"
    with pytest.raises(AddressError):
        cb58_decode(text[:-1] + replacement)


def test_cb58_invalid_character():
    with pytest.raises(AddressError):
        cb58_decode("0OIl")