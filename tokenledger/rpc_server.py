"""JSON-RPC 2.0 service answering ledger queries: balances, assets, orders, loans and transactions."""

from __future__ import annotations

import abc
import base64
import dataclasses
import json
from typing import Any, Callable, Mapping, Optional

from tokenledger.encoding import address, cb58_decode, parse_address
from tokenledger.errors import AssetNotFoundError, TokenLedgerError, TxNotFoundError
from tokenledger.storage import ID_LEN, AssetRecord, TransactionRecord

JSONRPC_ENDPOINT = "/tokenapi"
ORDERS_TO_SEND = 128

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
SERVER_ERROR = -32000

_EMPTY_ID = bytes(ID_LEN)


class Controller(abc.ABC):
    """The view of the running chain that the RPC service reads from."""

    @abc.abstractmethod
    def genesis(self) -> Any:
        """Return the chain's genesis description (JSON-serialisable)."""

    @abc.abstractmethod
    def get_transaction(self, tx_id: bytes) -> Optional[TransactionRecord]:
        """Return the stored transaction, or None when it is unknown."""

    @abc.abstractmethod
    def get_asset_from_state(self, asset: bytes) -> Optional[AssetRecord]:
        """Return the asset, or None when it does not exist."""

    @abc.abstractmethod
    def get_balance_from_state(self, public_key: bytes, asset: bytes) -> int:
        """Return the balance of an account in an asset."""

    @abc.abstractmethod
    def orders(self, pair: str, limit: int) -> list:
        """Return up to ``limit`` open orders for a trading pair."""

    @abc.abstractmethod
    def get_loan_from_state(self, asset: bytes, destination: bytes) -> int:
        """Return the amount of an asset loaned to a destination chain."""


class _InvalidParams(TokenLedgerError):
    default_message = "invalid params"


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def _id_arg(args: Mapping[str, Any], key: str) -> bytes:
    value = args.get(key)
    if value is None:
        return _EMPTY_ID
    if not isinstance(value, str):
        raise _InvalidParams(f"{key} must be a string")
    try:
        raw = cb58_decode(value)
    except TokenLedgerError as exc:
        raise _InvalidParams(f"{key}: {exc}") from exc
    if len(raw) != ID_LEN:
        raise _InvalidParams(f"{key}: expected {ID_LEN} bytes, got {len(raw)}")
    return raw


def _str_arg(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key, "")
    if not isinstance(value, str):
        raise _InvalidParams(f"{key} must be a string")
    return value


def _error(code: int, message: str, request_id: Any, data: Any = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "error": error, "id": request_id}


class JSONRPCServer:
    """Serves ledger queries as ``<name>.<method>`` JSON-RPC 2.0 calls."""

    def __init__(self, controller: Controller, hrp: str, name: str) -> None:
        self._controller = controller
        self._hrp = hrp
        self._name = name
        self._methods: dict[str, Callable[[Mapping[str, Any]], dict]] = {
            "genesis": self.genesis,
            "tx": self.tx,
            "asset": self.asset,
            "balance": self.balance,
            "orders": self.orders,
            "loan": self.loan,
        }

    def genesis(self, args: Optional[Mapping[str, Any]] = None) -> dict:
        return {"genesis": _jsonable(self._controller.genesis())}

    def tx(self, args: Mapping[str, Any]) -> dict:
        record = self._controller.get_transaction(_id_arg(args, "txId"))
        if record is None:
            raise TxNotFoundError()
        return {"timestamp": record.timestamp, "success": record.success, "units": record.units}

    def asset(self, args: Mapping[str, Any]) -> dict:
        record = self._controller.get_asset_from_state(_id_arg(args, "asset"))
        if record is None:
            raise AssetNotFoundError()
        return {
            "metadata": base64.b64encode(record.metadata).decode("ascii"),
            "supply": record.supply,
            "owner": address(record.owner, self._hrp),
            "warp": record.warp,
        }

    def balance(self, args: Mapping[str, Any]) -> dict:
        asset = _id_arg(args, "asset")
        public_key = parse_address(_str_arg(args, "address"), self._hrp)
        return {"amount": self._controller.get_balance_from_state(public_key, asset)}

    def orders(self, args: Mapping[str, Any]) -> dict:
        pair = _str_arg(args, "pair")
        return {"orders": _jsonable(list(self._controller.orders(pair, ORDERS_TO_SEND)))}

    def loan(self, args: Mapping[str, Any]) -> dict:
        asset = _id_arg(args, "asset")
        destination = _id_arg(args, "destination")
        return {"amount": self._controller.get_loan_from_state(asset, destination)}

    def _lookup(self, method: Any) -> Optional[Callable[[Mapping[str, Any]], dict]]:
        if not isinstance(method, str):
            return None
        service, dot, name = method.partition(".")
        if not dot or service != self._name or not name:
            return None
        return self._methods.get(name[:1].lower() + name[1:])

    def handle(self, request: Any) -> dict:
        """Answer one JSON-RPC request, given as a mapping or as JSON text."""
        if isinstance(request, (bytes, bytearray, str)):
            try:
                request = json.loads(request)
            except ValueError as exc:
                return _error(PARSE_ERROR, f"parse error: {exc}", None)
        if not isinstance(request, Mapping):
            return _error(INVALID_REQUEST, "request must be an object", None)
        request_id = request.get("id")
        if request.get("jsonrpc") != "2.0":
            return _error(INVALID_REQUEST, "jsonrpc must be 2.0", request_id)
        method = self._lookup(request.get("method"))
        if method is None:
            return _error(METHOD_NOT_FOUND, f"method not found: {request.get('method')}", request_id)

        params = request.get("params")
        if params is None:
            params = {}
        elif isinstance(params, list) and len(params) == 1 and isinstance(params[0], Mapping):
            params = params[0]
        if not isinstance(params, Mapping):
            return _error(INVALID_REQUEST, "params must be an object", request_id, params)

        try:
            result = method(params)
        except _InvalidParams as exc:
            return _error(INVALID_REQUEST, str(exc), request_id, _jsonable(params))
        except Exception as exc:  # every method failure is reported to the caller
            return _error(SERVER_ERROR, str(exc), request_id)
        return {"jsonrpc": "2.0", "result": result, "id": request_id}

    def wsgi_app(self, environ: Mapping[str, Any], start_response: Callable) -> list[bytes]:
        """WSGI entry point accepting POSTed JSON-RPC requests."""
        if environ.get("REQUEST_METHOD") != "POST":
            start_response(
                "405 Method Not Allowed",
                [("Content-Type", "text/plain"), ("Allow", "POST")],
            )
            return [b"method not allowed"]
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""
        payload = json.dumps(self.handle(body)).encode("utf-8")
        start_response(
            "200 OK",
            [("Content-Type", "application/json"), ("Content-Length", str(len(payload)))],
        )
        return [payload]

    __call__ = wsgi_app