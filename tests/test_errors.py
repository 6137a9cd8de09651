import pytest

from tokenledger.errors import (
    AddressError,
    AssetNotFoundError,
    InvalidBalanceError,
    NotFoundError,
    TokenLedgerError,
    TxNotFoundError,
)


@pytest.mark.parametrize(
    "cls, message",
    [
        (TxNotFoundError, "tx not found"),
        (AssetNotFoundError, "asset not found"),
        (InvalidBalanceError, "invalid balance"),
    ],
)
def test_default_messages(cls, message):
    assert str(cls()) == message


@pytest.mark.parametrize(
    "cls",
    [TxNotFoundError, AssetNotFoundError, InvalidBalanceError, NotFoundError, AddressError],
)
def test_all_errors_share_base(cls):
    with pytest.raises(TokenLedgerError) as excinfo:
        raise cls("detail of the failure")
    assert excinfo.type is cls
    assert str(excinfo.value) == "detail of the failure"


def test_custom_message_is_kept():
    err = InvalidBalanceError("invalid balance: could not add balance")
    assert str(err) == "invalid balance: could not add balance"


def test_address_error_is_value_error():
    err = AddressError("incorrect hrp")
    assert issubclass(AddressError, ValueError)
    assert issubclass(AddressError, TokenLedgerError)
    assert err.args == ("incorrect hrp",)
    assert str(err) == "incorrect hrp"