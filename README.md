# tokenledger

This package provides the building blocks for a token ledger chain:

- `tokenledger.storage` defines how transactions, balances, assets, orders,
  loans and warp messages are laid out as keys and values. It also
  provides `MemoryDatabase`, a key-value store kept in a dictionary.
- `tokenledger.encoding` handles bech32 addresses for 32-byte public keys
  (`address`, `parse_address`) and CB58 text for identifiers
  (`cb58_encode`, `cb58_decode`).
- `tokenledger.rpc_server` holds `JSONRPCServer`, which answers the
  `genesis`, `tx`, `asset`, `balance`, `orders` and `loan` calls. It reads
  its data from a `Controller` that you implement, and it can be mounted as
  a WSGI application.
- `tokenledger.rpc_client` holds `JSONRPCClient`, which makes those calls.
  It can also poll until a balance is reached or a transaction appears.
- `tokenledger.errors` holds the exceptions, all derived from
  `TokenLedgerError`.

The package uses only the standard library.

## Install

```
pip install .
pip install ".[test]"   # with pytest
```

## Storage

Identifiers and public keys are 32-byte `bytes` values. Amounts must fit in
an unsigned 64-bit integer.

```python
from tokenledger.storage import MemoryDatabase, add_balance, sub_balance, get_balance

db = MemoryDatabase()
owner = bytes(32)
asset = bytes(32)
add_balance(db, owner, asset, 100)
sub_balance(db, owner, asset, 40)
assert get_balance(db, owner, asset) == 60
```

A balance with no record reads as 0. Two operations raise
`InvalidBalanceError`:

- `add_balance` or `add_loan`, when the result would go past 2**64 - 1;
- `sub_balance` or `sub_loan`, when the result would drop below zero.

When a balance or loan reaches zero, its record is removed rather than
stored as zero.

Three functions return a record, or `None` when nothing is stored:

- `get_transaction` returns a `TransactionRecord`;
- `get_asset` returns an `AssetRecord`;
- `get_order` returns an `OrderRecord`.

The `*_from_state` functions do the same reads through a batch reader. A
batch reader takes a list of keys and returns a list of values, with `None`
for each missing key. `MemoryDatabase.read_state` is a batch reader.

## Addresses and identifiers

```python
from tokenledger.encoding import address, parse_address, cb58_encode, cb58_decode

addr = address(bytes(32), "token")
assert parse_address(addr, "token") == bytes(32)
assert cb58_decode(cb58_encode(b"\x01\x02")) == b"\x01\x02"
```

If the text is malformed, has a bad checksum or uses the wrong
human-readable part, `AddressError` is raised. `AddressError` is also a
`ValueError`.

## Server

Subclass `Controller` and implement these methods:

- `genesis`
- `get_transaction`
- `get_asset_from_state`
- `get_balance_from_state`
- `orders`
- `get_loan_from_state`

Then pass it to the server together with the address prefix and the service
name:

```python
from wsgiref.simple_server import make_server
from tokenledger.rpc_server import JSONRPCServer

server = JSONRPCServer(controller, hrp="token", name="tokenledger")
make_server("localhost", 8000, server.wsgi_app).serve_forever()
```

Method names take the form `<name>.<method>`, for example
`tokenledger.balance`. Identifiers go over the wire as CB58 strings, and
asset metadata as base64. `orders` returns at most `ORDERS_TO_SEND` (128)
orders.

Errors come back as JSON-RPC error objects:

- an unknown transaction or asset gives `"tx not found"` or
  `"asset not found"`;
- any other failure of a method gives code -32000;
- a bad request gives code -32700, -32600 or -32601.

`JSONRPCServer.handle` answers a single request, given either as a dict or
as JSON text, without any HTTP involved.

## Client

```python
from tokenledger.rpc_client import JSONRPCClient

client = JSONRPCClient("http://localhost:8000", chain_id, "tokenledger")
status = client.tx(tx_id)
if status.found:
    print(status.success, status.timestamp)
```

The client adds `/tokenapi` (`JSONRPC_ENDPOINT`) to the URI. It sends
requests with `urllib` unless you pass a `transport`, which is a callable
taking `(url, body)` and returning the response body.

The client's results work as follows:

- `tx` returns a `TxStatus`. An unknown transaction gives `found=False` and
  `timestamp=-1`.
- `asset` returns an `AssetInfo`, or `None` for an unknown asset.
- `genesis` is fetched once and then cached.
- Any other error from the service raises `RPCError`, which carries `code`
  and `data`.

`wait_for_balance` and `wait_for_transaction` poll every `interval` seconds.
If `timeout` is given and runs out, they raise `TimeoutError`.
`wait_for_transaction` returns whether the transaction succeeded.

## What it does not do

This package stores and serves ledger state, but it does not run a chain. It
has no transaction execution, no signing, no order matching, no genesis
format and no network node. The `Controller` must supply all of that. The
package also provides no command-line program.

## Tests

```
pytest
```