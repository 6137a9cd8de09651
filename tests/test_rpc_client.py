import json

import pytest

from tokenledger import storage
from tokenledger.encoding import address
from tokenledger.rpc_client import AssetInfo, JSONRPCClient, RPCError, TxStatus
from tokenledger.rpc_server import JSONRPC_ENDPOINT, SERVER_ERROR, Controller, JSONRPCServer

HRP = "token"
NAME = "tokenvm"
PK = bytes(range(32))
ASSET = bytes([7]) * 32
DEST = bytes([9]) * 32
TX_ID = bytes([3]) * 32
CHAIN_ID = bytes([1]) * 32
URI = "http://localhost:9650/ext/bc/chain"


class LedgerController(Controller):
    def __init__(self):
        self.db = storage.MemoryDatabase()
        self.order_book = {}

    def genesis(self):
        return {"symbol": "TKN"}

    def get_transaction(self, tx_id):
        return storage.get_transaction(self.db, tx_id)

    def get_asset_from_state(self, asset):
        return storage.get_asset_from_state(self.db.read_state, asset)

    def get_balance_from_state(self, public_key, asset):
        return storage.get_balance_from_state(self.db.read_state, public_key, asset)

    def orders(self, pair, limit):
        return self.order_book.get(pair, [])[:limit]

    def get_loan_from_state(self, asset, destination):
        return storage.get_loan_from_state(self.db.read_state, asset, destination)


class LoopbackTransport:
    def __init__(self, server, before_call=None):
        self.server = server
        self.urls = []
        self.before_call = before_call

    def __call__(self, url, body):
        self.urls.append(url)
        if self.before_call is not None:
            self.before_call(len(self.urls))
        return json.dumps(self.server.handle(body)).encode()


@pytest.fixture
def controller():
    return LedgerController()


@pytest.fixture
def transport(controller):
    return LoopbackTransport(JSONRPCServer(controller, HRP, NAME))


@pytest.fixture
def client(transport):
    return JSONRPCClient(URI, CHAIN_ID, NAME, transport)


def test_uri_trailing_slash_trimmed(transport):
    client = JSONRPCClient(URI + "/", CHAIN_ID, NAME, transport)
    client.balance(address(PK, HRP), ASSET)
    assert transport.urls == [URI + JSONRPC_ENDPOINT]


def test_genesis_is_cached(client, transport, controller):
    first = client.genesis()
    second = client.genesis()
    assert first == controller.genesis()
    assert second == first
    assert len(transport.urls) == 1


def test_tx_found(client, controller):
    storage.store_transaction(controller.db, TX_ID, 1234, True, 7)
    assert client.tx(TX_ID) == TxStatus(True, True, 1234)


def test_tx_missing(client):
    assert client.tx(TX_ID) == TxStatus(False, False, -1)


def test_other_errors_propagate():
    def failing(url, body):
        request = json.loads(body)
        error = {"code": SERVER_ERROR, "message": "boom"}
        return json.dumps({"jsonrpc": "2.0", "error": error, "id": request["id"]}).encode()

    client = JSONRPCClient(URI, CHAIN_ID, NAME, failing)
    with pytest.raises(RPCError, match="boom") as info:
        client.tx(TX_ID)
    assert info.value.code == SERVER_ERROR


def test_asset_round_trip(client, controller):
    storage.set_asset(controller.db, ASSET, b"meta", 50, PK, True)
    assert client.asset(ASSET) == AssetInfo(b"meta", 50, address(PK, HRP), True)


def test_asset_empty_metadata(client, controller):
    storage.set_asset(controller.db, ASSET, b"", 0, PK, False)
    assert client.asset(ASSET).metadata == b""


def test_asset_missing(client):
    assert client.asset(ASSET) is None


def test_balance(client, controller):
    storage.set_balance(controller.db, PK, ASSET, 5000)
    assert client.balance(address(PK, HRP), ASSET) == 5000
    assert client.balance(address(bytes(32), HRP), ASSET) == 0


def test_balance_bad_address(client):
    with pytest.raises(RPCError) as info:
        client.balance(address(PK, "other"), ASSET)
    assert info.value.code == SERVER_ERROR


def test_orders(client, controller):
    book = [{"remaining": 4, "owner": address(PK, HRP)}]
    controller.order_book["a-b"] = book
    assert client.orders("a-b") == book
    assert client.orders("c-d") == []


def test_loan(client, controller):
    storage.set_loan(controller.db, ASSET, DEST, 110)
    assert client.loan(ASSET, DEST) == 110
    assert client.loan(DEST, ASSET) == 0


def test_wait_for_transaction(controller):
    def store_later(calls):
        if calls == 2:
            storage.store_transaction(controller.db, TX_ID, 10, True, 1)

    transport = LoopbackTransport(JSONRPCServer(controller, HRP, NAME), store_later)
    client = JSONRPCClient(URI, CHAIN_ID, NAME, transport)
    assert client.wait_for_transaction(TX_ID, interval=0) is True
    assert len(transport.urls) == 2


def test_wait_for_failed_transaction(client, controller):
    storage.store_transaction(controller.db, TX_ID, 10, False, 1)
    assert client.wait_for_transaction(TX_ID, interval=0) is False


def test_wait_for_transaction_timeout(client):
    with pytest.raises(TimeoutError):
        client.wait_for_transaction(TX_ID, interval=0, timeout=0)


def test_wait_for_balance(controller):
    def fund_later(calls):
        if calls == 2:
            storage.set_balance(controller.db, PK, ASSET, 20)

    transport = LoopbackTransport(JSONRPCServer(controller, HRP, NAME), fund_later)
    client = JSONRPCClient(URI, CHAIN_ID, NAME, transport)
    client.wait_for_balance(address(PK, HRP), ASSET, 20, interval=0)
    assert len(transport.urls) == 2
    assert client.balance(address(PK, HRP), ASSET) == 20


def test_wait_for_balance_timeout(client):
    with pytest.raises(TimeoutError):
        client.wait_for_balance(address(PK, HRP), ASSET, 1, interval=0, timeout=0)