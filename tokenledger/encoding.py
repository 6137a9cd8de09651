"""Textual encodings for public keys (bech32 addresses) and identifiers (cb58)."""

from __future__ import annotations

import hashlib

from tokenledger.errors import AddressError

PUBLIC_KEY_LEN = 32

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_CHARSET_INDEX = {c: i for i, c in enumerate(_CHARSET)}
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_CHECKSUM_LEN = 6
_MIN_BECH32_LEN = 8
_MAX_BECH32_LEN = 90

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_INDEX = {c: i for i, c in enumerate(_B58_ALPHABET)}
_CB58_CHECKSUM_LEN = 4


def _polymod(values) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for i, gen in enumerate(_GENERATOR):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data, from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    maxv = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise AddressError("invalid data range")
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or (acc << (to_bits - bits)) & maxv:
        raise AddressError("invalid padding")
    return out


def _bech32_encode(hrp: str, data: list[int]) -> str:
    hrp = hrp.lower()
    polymod = _polymod(_hrp_expand(hrp) + data + [0] * _CHECKSUM_LEN) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(_CHECKSUM_LEN)]
    return hrp + "1" + "".join(_CHARSET[d] for d in data + checksum)


def _bech32_decode(text: str) -> tuple[str, list[int]]:
    if not _MIN_BECH32_LEN <= len(text) <= _MAX_BECH32_LEN:
        raise AddressError(f"invalid bech32 string length {len(text)}")
    if any(ord(c) < 33 or ord(c) > 126 for c in text):
        raise AddressError("invalid character in bech32 string")
    if text.lower() != text and text.upper() != text:
        raise AddressError("bech32 string has mixed case")
    text = text.lower()
    pos = text.rfind("1")
    if pos < 1 or pos + _CHECKSUM_LEN + 1 > len(text):
        raise AddressError("invalid separator position")
    hrp = text[:pos]
    try:
        data = [_CHARSET_INDEX[c] for c in text[pos + 1:]]
    except KeyError as exc:
        raise AddressError(f"invalid bech32 character {exc.args[0]!r}") from None
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise AddressError("invalid checksum")
    return hrp, data[:-_CHECKSUM_LEN]


def address(public_key: bytes, hrp: str) -> str:
    """Format a public key as a bech32 address with the given human-readable part."""
    public_key = bytes(public_key)
    if len(public_key) != PUBLIC_KEY_LEN:
        raise ValueError(f"public key must be {PUBLIC_KEY_LEN} bytes, got {len(public_key)}")
    return _bech32_encode(hrp, _convert_bits(public_key, 8, 5, True))


def parse_address(text: str, hrp: str) -> bytes:
    """Parse a bech32 address, checking its human-readable part, into a public key."""
    parsed_hrp, data = _bech32_decode(text)
    if parsed_hrp != hrp:
        raise AddressError("incorrect hrp")
    raw = bytes(_convert_bits(data, 5, 8, True))
    # Padding to whole 5-bit groups may leave a trailing byte beyond the key.
    if len(raw) < PUBLIC_KEY_LEN:
        raise AddressError("invalid size")
    return raw[:PUBLIC_KEY_LEN]


def _b58_encode(data: bytes) -> str:
    zeros = len(data) - len(data.lstrip(b"\0"))
    num = int.from_bytes(data, "big")
    chars = []
    while num:
        num, rem = divmod(num, 58)
        chars.append(_B58_ALPHABET[rem])
    return "1" * zeros + "".join(reversed(chars))


def _b58_decode(text: str) -> bytes:
    zeros = len(text) - len(text.lstrip("1"))
    num = 0
    for c in text:
        try:
            num = num * 58 + _B58_INDEX[c]
        except KeyError:
            raise AddressError(f"invalid base58 character {c!r}") from None
    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\0" * zeros + body


def cb58_encode(data: bytes) -> str:
    """Encode bytes as base58 with a four-byte sha256 checksum appended."""
    data = bytes(data)
    checksum = hashlib.sha256(data).digest()[-_CB58_CHECKSUM_LEN:]
    return _b58_encode(data + checksum)


def cb58_decode(text: str) -> bytes:
    """Decode a cb58 string, verifying its checksum."""
    raw = _b58_decode(text)
    if len(raw) < _CB58_CHECKSUM_LEN:
        raise AddressError("input string is smaller than the checksum size")
    data, checksum = raw[:-_CB58_CHECKSUM_LEN], raw[-_CB58_CHECKSUM_LEN:]
    if hashlib.sha256(data).digest()[-_CB58_CHECKSUM_LEN:] != checksum:
        raise AddressError("invalid input checksum")
    return data