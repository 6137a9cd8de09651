"""Key layout and value encoding for balances, assets, orders, loans and transactions.

Metadata:
    0x0/ (tx)      [txID] => timestamp|success|units
State:
    0x0/ (balance) [owner|asset] => balance
    0x1/ (assets)  [asset] => metadataLen|metadata|supply|owner|warp
    0x2/ (orders)  [txID] => in|inTick|out|outTick|remaining|owner
    0x3/ (loans)   [asset|destination] => amount
    0x4/ (height)
    0x5/ (incoming warp) [sourceChainID|msgID]
    0x6/ (outgoing warp) [txID]
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from tokenledger.encoding import cb58_encode
from tokenledger.errors import InvalidBalanceError, NotFoundError

ID_LEN = 32
PUBLIC_KEY_LEN = 32
UINT64_MAX = (1 << 64) - 1
UINT16_MAX = (1 << 16) - 1

TX_PREFIX = 0x0
BALANCE_PREFIX = 0x0
ASSET_PREFIX = 0x1
ORDER_PREFIX = 0x2
LOAN_PREFIX = 0x3
HEIGHT_PREFIX = 0x4
INCOMING_WARP_PREFIX = 0x5
OUTGOING_WARP_PREFIX = 0x6

_FAILURE_BYTE = 0x0
_SUCCESS_BYTE = 0x1
_HEIGHT_KEY = bytes([HEIGHT_PREFIX])

_TX_FORMAT = struct.Struct(">QBQ")
_U64 = struct.Struct(">Q")
_U16 = struct.Struct(">H")

ReadState = Callable[[Sequence[bytes]], Sequence[Optional[bytes]]]
"""Reads several keys at once; a missing key yields None."""


class Database(Protocol):
    def get_value(self, key: bytes) -> bytes: ...

    def insert(self, key: bytes, value: bytes) -> None: ...

    def remove(self, key: bytes) -> None: ...


class MemoryDatabase:
    """A dictionary-backed key-value store."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}

    def get_value(self, key: bytes) -> bytes:
        try:
            return self._data[bytes(key)]
        except KeyError:
            raise NotFoundError() from None

    def insert(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._data.pop(bytes(key), None)

    def read_state(self, keys: Sequence[bytes]) -> list[Optional[bytes]]:
        return [self._data.get(bytes(key)) for key in keys]

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


@dataclass(frozen=True)
class TransactionRecord:
    timestamp: int
    success: bool
    units: int


@dataclass(frozen=True)
class AssetRecord:
    metadata: bytes
    supply: int
    owner: bytes
    warp: bool


@dataclass(frozen=True)
class OrderRecord:
    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    remaining: int
    owner: bytes


def _fixed(value: bytes, length: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")
    return value


def _id(value: bytes, name: str = "id") -> bytes:
    return _fixed(value, ID_LEN, name)


def _pk(value: bytes) -> bytes:
    return _fixed(value, PUBLIC_KEY_LEN, "public key")


def _u64(value: int, name: str) -> int:
    if not 0 <= value <= UINT64_MAX:
        raise ValueError(f"{name} must fit in an unsigned 64-bit integer")
    return value


def _get_optional(db: Database, key: bytes) -> Optional[bytes]:
    try:
        return db.get_value(key)
    except NotFoundError:
        return None


def _decode_amount(value: Optional[bytes]) -> int:
    return 0 if value is None else _U64.unpack_from(value)[0]


# Transactions


def prefix_tx_key(tx_id: bytes) -> bytes:
    return bytes([TX_PREFIX]) + _id(tx_id, "tx id")


def store_transaction(db: Database, tx_id: bytes, timestamp: int, success: bool, units: int) -> None:
    """Record a transaction's timestamp, outcome and units consumed."""
    value = _TX_FORMAT.pack(
        timestamp & UINT64_MAX,
        _SUCCESS_BYTE if success else _FAILURE_BYTE,
        _u64(units, "units"),
    )
    db.insert(prefix_tx_key(tx_id), value)


def get_transaction(db: Database, tx_id: bytes) -> Optional[TransactionRecord]:
    """Return the stored transaction, or None if it is unknown."""
    value = _get_optional(db, prefix_tx_key(tx_id))
    if value is None:
        return None
    raw_time, flag, units = _TX_FORMAT.unpack_from(value)
    timestamp = raw_time - (1 << 64) if raw_time >> 63 else raw_time
    return TransactionRecord(timestamp, flag != _FAILURE_BYTE, units)


# Balances


def prefix_balance_key(public_key: bytes, asset: bytes) -> bytes:
    return bytes([BALANCE_PREFIX]) + _pk(public_key) + _id(asset, "asset")


def get_balance(db: Database, public_key: bytes, asset: bytes) -> int:
    """Return the balance, 0 when no record exists."""
    return _decode_amount(_get_optional(db, prefix_balance_key(public_key, asset)))


def get_balance_from_state(read_state: ReadState, public_key: bytes, asset: bytes) -> int:
    """Return a balance through a batch state reader (used to serve queries)."""
    return _decode_amount(read_state([prefix_balance_key(public_key, asset)])[0])


def set_balance(db: Database, public_key: bytes, asset: bytes, balance: int) -> None:
    db.insert(prefix_balance_key(public_key, asset), _U64.pack(_u64(balance, "balance")))


def delete_balance(db: Database, public_key: bytes, asset: bytes) -> None:
    db.remove(prefix_balance_key(public_key, asset))


def add_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    """Increase a balance, raising InvalidBalanceError on overflow."""
    _u64(amount, "amount")
    key = prefix_balance_key(public_key, asset)
    balance = _decode_amount(_get_optional(db, key))
    new_balance = balance + amount
    if new_balance > UINT64_MAX:
        raise InvalidBalanceError(
            f"invalid balance: could not add balance (asset={cb58_encode(asset)}, "
            f"bal={balance}, addr={bytes(public_key).hex()}, amount={amount})"
        )
    db.insert(key, _U64.pack(new_balance))


def sub_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    """Decrease a balance, deleting the record when it reaches zero."""
    _u64(amount, "amount")
    key = prefix_balance_key(public_key, asset)
    balance = _decode_amount(_get_optional(db, key))
    if amount > balance:
        raise InvalidBalanceError(
            f"invalid balance: could not subtract balance (asset={cb58_encode(asset)}, "
            f"bal={balance}, addr={bytes(public_key).hex()}, amount={amount})"
        )
    new_balance = balance - amount
    if new_balance == 0:
        db.remove(key)
    else:
        db.insert(key, _U64.pack(new_balance))


# Assets


def prefix_asset_key(asset: bytes) -> bytes:
    return bytes([ASSET_PREFIX]) + _id(asset, "asset")


def _decode_asset(value: Optional[bytes]) -> Optional[AssetRecord]:
    if value is None:
        return None
    (metadata_len,) = _U16.unpack_from(value)
    offset = _U16.size
    metadata = value[offset:offset + metadata_len]
    offset += metadata_len
    (supply,) = _U64.unpack_from(value, offset)
    offset += _U64.size
    owner = value[offset:offset + PUBLIC_KEY_LEN]
    offset += PUBLIC_KEY_LEN
    warp = value[offset] == 0x1
    return AssetRecord(bytes(metadata), supply, bytes(owner), warp)


def get_asset(db: Database, asset: bytes) -> Optional[AssetRecord]:
    """Return the asset, or None if it does not exist."""
    return _decode_asset(_get_optional(db, prefix_asset_key(asset)))


def get_asset_from_state(read_state: ReadState, asset: bytes) -> Optional[AssetRecord]:
    """Return an asset through a batch state reader (used to serve queries)."""
    return _decode_asset(read_state([prefix_asset_key(asset)])[0])


def set_asset(
    db: Database,
    asset: bytes,
    metadata: bytes,
    supply: int,
    owner: bytes,
    warp: bool,
) -> None:
    metadata = bytes(metadata or b"")
    if len(metadata) > UINT16_MAX:
        raise ValueError(f"metadata must be at most {UINT16_MAX} bytes")
    value = b"".join(
        (
            _U16.pack(len(metadata)),
            metadata,
            _U64.pack(_u64(supply, "supply")),
            _pk(owner),
            bytes([0x1 if warp else 0x0]),
        )
    )
    db.insert(prefix_asset_key(asset), value)


def delete_asset(db: Database, asset: bytes) -> None:
    db.remove(prefix_asset_key(asset))


# Orders


def prefix_order_key(tx_id: bytes) -> bytes:
    return bytes([ORDER_PREFIX]) + _id(tx_id, "tx id")


def set_order(
    db: Database,
    tx_id: bytes,
    in_asset: bytes,
    in_tick: int,
    out_asset: bytes,
    out_tick: int,
    supply: int,
    owner: bytes,
) -> None:
    value = b"".join(
        (
            _id(in_asset, "in asset"),
            _U64.pack(_u64(in_tick, "in tick")),
            _id(out_asset, "out asset"),
            _U64.pack(_u64(out_tick, "out tick")),
            _U64.pack(_u64(supply, "supply")),
            _pk(owner),
        )
    )
    db.insert(prefix_order_key(tx_id), value)


def get_order(db: Database, order: bytes) -> Optional[OrderRecord]:
    """Return the order, or None if it does not exist."""
    value = _get_optional(db, prefix_order_key(order))
    if value is None:
        return None
    in_asset = value[:ID_LEN]
    (in_tick,) = _U64.unpack_from(value, ID_LEN)
    out_start = ID_LEN + _U64.size
    out_asset = value[out_start:out_start + ID_LEN]
    out_tick, remaining = struct.unpack_from(">QQ", value, out_start + ID_LEN)
    owner_start = 2 * ID_LEN + 3 * _U64.size
    owner = value[owner_start:owner_start + PUBLIC_KEY_LEN]
    return OrderRecord(bytes(in_asset), in_tick, bytes(out_asset), out_tick, remaining, bytes(owner))


def delete_order(db: Database, order: bytes) -> None:
    db.remove(prefix_order_key(order))


# Loans


def prefix_loan_key(asset: bytes, destination: bytes) -> bytes:
    return bytes([LOAN_PREFIX]) + _id(asset, "asset") + _id(destination, "destination")


def get_loan(db: Database, asset: bytes, destination: bytes) -> int:
    """Return the amount loaned to a destination chain, 0 when none."""
    return _decode_amount(_get_optional(db, prefix_loan_key(asset, destination)))


def get_loan_from_state(read_state: ReadState, asset: bytes, destination: bytes) -> int:
    """Return a loan through a batch state reader (used to serve queries)."""
    return _decode_amount(read_state([prefix_loan_key(asset, destination)])[0])


def set_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    db.insert(prefix_loan_key(asset, destination), _U64.pack(_u64(amount, "amount")))


def add_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    """Increase a loan, raising InvalidBalanceError on overflow."""
    _u64(amount, "amount")
    loan = get_loan(db, asset, destination)
    new_loan = loan + amount
    if new_loan > UINT64_MAX:
        raise InvalidBalanceError(
            f"invalid balance: could not add loan (asset={cb58_encode(asset)}, "
            f"destination={cb58_encode(destination)}, amount={amount})"
        )
    set_loan(db, asset, destination, new_loan)


def sub_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    """Decrease a loan, deleting the record when it reaches zero."""
    _u64(amount, "amount")
    loan = get_loan(db, asset, destination)
    if amount > loan:
        raise InvalidBalanceError(
            f"invalid balance: could not subtract loan (asset={cb58_encode(asset)}, "
            f"destination={cb58_encode(destination)}, amount={amount})"
        )
    new_loan = loan - amount
    if new_loan == 0:
        db.remove(prefix_loan_key(asset, destination))
    else:
        set_loan(db, asset, destination, new_loan)


# Other keys


def height_key() -> bytes:
    return _HEIGHT_KEY


def incoming_warp_key_prefix(source_chain_id: bytes, msg_id: bytes) -> bytes:
    return (
        bytes([INCOMING_WARP_PREFIX])
        + _id(source_chain_id, "source chain id")
        + _id(msg_id, "message id")
    )


def outgoing_warp_key_prefix(tx_id: bytes) -> bytes:
    return bytes([OUTGOING_WARP_PREFIX]) + _id(tx_id, "tx id")