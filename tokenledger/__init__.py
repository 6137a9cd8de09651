"""Storage layout, address encoding and a JSON-RPC client and server for a token ledger chain."""

__version__ = "0.0.1"

__all__ = ["encoding", "errors", "rpc_client", "rpc_server", "storage"]