"""Exception types raised by the ledger storage, encoding and RPC layers."""


class TokenLedgerError(Exception):
    """Base class for every error raised by this package."""

    default_message = "token ledger error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class TxNotFoundError(TokenLedgerError):
    """The requested transaction is not known."""

    default_message = "tx not found"


class AssetNotFoundError(TokenLedgerError):
    """The requested asset is not known."""

    default_message = "asset not found"


class InvalidBalanceError(TokenLedgerError):
    """A balance or loan update would overflow or go below zero."""

    default_message = "invalid balance"


class NotFoundError(TokenLedgerError):
    """A key is absent from the database."""

    default_message = "not found"


class AddressError(TokenLedgerError, ValueError):
    """Text could not be decoded as an address or identifier."""

    default_message = "invalid address"