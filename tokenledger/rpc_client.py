"""Client for the ledger JSON-RPC service."""

from __future__ import annotations

import base64
import itertools
import json
import logging
import time
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tokenledger.encoding import cb58_encode
from tokenledger.errors import AssetNotFoundError, TokenLedgerError, TxNotFoundError
from tokenledger.rpc_server import JSONRPC_ENDPOINT

log = logging.getLogger(__name__)

Transport = Callable[[str, bytes], bytes]
"""Posts a JSON request body to a URL and returns the response body."""


def _http_transport(url: str, body: bytes) -> bytes:
    request = urllib.request.Request(
        url,
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(request) as response:
        return response.read()


class RPCError(TokenLedgerError):
    """The service answered a call with an error."""

    default_message = "rpc error"

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


@dataclass(frozen=True)
class TxStatus:
    found: bool
    success: bool
    timestamp: int


@dataclass(frozen=True)
class AssetInfo:
    metadata: bytes
    supply: int
    owner: str
    warp: bool


class JSONRPCClient:
    """Issues ledger queries against one chain's JSON-RPC endpoint."""

    def __init__(self, uri: str, chain_id: bytes, name: str, transport: Optional[Transport] = None) -> None:
        self.uri = uri.removesuffix("/") + JSONRPC_ENDPOINT
        self.chain_id = bytes(chain_id)
        self.name = name
        self._transport = transport or _http_transport
        self._request_ids = itertools.count(1)
        self._genesis: Any = None

    def _call(self, method: str, params: Any) -> Any:
        request = {
            "jsonrpc": "2.0",
            "method": f"{self.name}.{method}",
            "params": params,
            "id": next(self._request_ids),
        }
        raw = self._transport(self.uri, json.dumps(request).encode("utf-8"))
        try:
            response = json.loads(raw)
        except ValueError as exc:
            raise RPCError(f"invalid response: {exc}") from exc
        if not isinstance(response, dict):
            raise RPCError("invalid response: not an object")
        error = response.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RPCError(str(error.get("message", "")), error.get("code"), error.get("data"))
            raise RPCError(str(error))
        return response.get("result") or {}

    def genesis(self) -> Any:
        """Return the chain's genesis, fetched once and then cached."""
        if self._genesis is None:
            self._genesis = self._call("genesis", None).get("genesis")
        return self._genesis

    def tx(self, tx_id: bytes) -> TxStatus:
        """Look up a transaction; an unknown one reports found=False and timestamp -1."""
        try:
            result = self._call("tx", {"txId": cb58_encode(tx_id)})
        except RPCError as exc:
            # Errors only cross the wire as text, so match on the message.
            if TxNotFoundError.default_message in str(exc):
                return TxStatus(False, False, -1)
            raise
        return TxStatus(True, bool(result.get("success")), int(result.get("timestamp", 0)))

    def asset(self, asset: bytes) -> Optional[AssetInfo]:
        """Return the asset's details, or None when it does not exist."""
        try:
            result = self._call("asset", {"asset": cb58_encode(asset)})
        except RPCError as exc:
            if AssetNotFoundError.default_message in str(exc):
                return None
            raise
        return AssetInfo(
            metadata=base64.b64decode(result.get("metadata") or ""),
            supply=int(result.get("supply", 0)),
            owner=str(result.get("owner", "")),
            warp=bool(result.get("warp")),
        )

    def balance(self, address: str, asset: bytes) -> int:
        result = self._call("balance", {"address": address, "asset": cb58_encode(asset)})
        return int(result.get("amount", 0))

    def orders(self, pair: str) -> list:
        result = self._call("orders", {"pair": pair})
        return list(result.get("orders") or [])

    def loan(self, asset: bytes, destination: bytes) -> int:
        result = self._call(
            "loan",
            {"asset": cb58_encode(asset), "destination": cb58_encode(destination)},
        )
        return int(result.get("amount", 0))

    @staticmethod
    def _wait(check: Callable[[], bool], interval: float, timeout: Optional[float]) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while not check():
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError("condition not met before timeout")
            time.sleep(interval)

    def wait_for_balance(
        self,
        address: str,
        asset: bytes,
        minimum: int,
        interval: float = 1.0,
        timeout: Optional[float] = None,
    ) -> None:
        """Poll until the balance reaches ``minimum``."""

        def reached() -> bool:
            if self.balance(address, asset) >= minimum:
                return True
            log.info("waiting for %d balance: %s", minimum, address)
            return False

        self._wait(reached, interval, timeout)

    def wait_for_transaction(
        self,
        tx_id: bytes,
        interval: float = 1.0,
        timeout: Optional[float] = None,
    ) -> bool:
        """Poll until the transaction is known and return whether it succeeded."""
        outcome: list[bool] = []

        def found() -> bool:
            status = self.tx(tx_id)
            if status.found:
                outcome.append(status.success)
            return status.found

        self._wait(found, interval, timeout)
        return outcome[-1]