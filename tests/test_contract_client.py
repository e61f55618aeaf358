"""
CarbonChain - Contract Client Tests
=====================================
CarbonCreditContract against a mocked web3 contract.
"""

from unittest.mock import MagicMock

import pytest
from web3 import Web3
from web3.exceptions import Web3Exception

from carbon_chain.blockchain.client import CarbonCreditContract
from carbon_chain.blockchain.wallet_provider import Web3WalletProvider
from carbon_chain.constants import CHAIN_ID
from carbon_chain.errors import (
    BlockchainError,
    ChainMismatchError,
    ContractCallError,
    InvalidAddressError,
    InvalidAmountError,
    TransactionRejectedError,
    ValidationError,
    WalletUnavailableError,
)


RECIPIENT = "0x1111111111111111111111111111111111111111"

# Nothing listens on port 1: every RPC call fails with a connection error
UNREACHABLE_RPC = "http://127.0.0.1:1"
SIGNER_KEY = "0x" + "11" * 32


@pytest.fixture
def client(wallet):
    w3 = MagicMock()
    return CarbonCreditContract(w3, wallet)


@pytest.fixture
def offline_client():
    w3 = Web3(Web3.HTTPProvider(
        UNREACHABLE_RPC,
        request_kwargs={"timeout": 2},
        exception_retry_configuration=None,
    ))
    return CarbonCreditContract(w3, Web3WalletProvider(w3, SIGNER_KEY))


def _functions(client):
    return client.contract.functions


class TestWritePath:
    """Test signed contract writes"""

    def test_mint_reads_token_id_from_event(self, client, wallet):
        client.contract.events.CreditMinted.return_value.process_receipt.return_value = [
            {"args": {"tokenId": 7}}
        ]

        tx_hash, token_id = client.mint_credit(RECIPIENT, 400, "https://storage.test/m.json")

        assert token_id == "7"
        assert tx_hash.startswith("0x")
        _functions(client).mintCredit.assert_called_once_with(RECIPIENT, 400, "https://storage.test/m.json")
        build_args = _functions(client).mintCredit.return_value.build_transaction.call_args.args[0]
        assert build_args["chainId"] == CHAIN_ID
        assert build_args["from"] == wallet.accounts[0]
        assert len(wallet.sent) == 1

    def test_mint_without_event_returns_zero(self, client):
        client.contract.events.CreditMinted.return_value.process_receipt.return_value = []

        _, token_id = client.mint_credit(RECIPIENT, 10, "uri")

        assert token_id == "0"

    def test_mint_validates_inputs(self, client, wallet):
        with pytest.raises(InvalidAddressError):
            client.mint_credit("0xabc", 10, "uri")
        with pytest.raises(InvalidAmountError):
            client.mint_credit(RECIPIENT, 0, "uri")

        assert wallet.sent == []

    def test_reverted_receipt(self, client, wallet):
        wallet.receipt_status = 0

        with pytest.raises(ContractCallError) as exc_info:
            client.retire_credit(3)

        assert exc_info.value.code == "TX_REVERTED"

    def test_user_rejection_propagates(self, client, wallet):
        wallet.reject = True

        with pytest.raises(TransactionRejectedError):
            client.list_credit(1, "0.5")

    def test_rpc_error_wrapped(self, client):
        _functions(client).retireCredit.return_value.build_transaction.side_effect = Web3Exception("nonce too low")

        with pytest.raises(ContractCallError) as exc_info:
            client.retire_credit(1)

        assert exc_info.value.code == "CONTRACT_CALL_FAILED"

    def test_requires_connected_wallet(self, client, wallet):
        wallet.accounts = []

        with pytest.raises(WalletUnavailableError):
            client.retire_credit(1)

    def test_wrong_chain(self, client, wallet):
        wallet.chain_ok = False

        with pytest.raises(ChainMismatchError):
            client.retire_credit(1)

    def test_list_price_converted_to_wei(self, client):
        client.list_credit("2", "0.25")

        _functions(client).listCredit.assert_called_once_with(2, 25 * 10**16)

    def test_list_rejects_non_positive_price(self, client, wallet):
        with pytest.raises(InvalidAmountError):
            client.list_credit(1, "0")

        assert wallet.sent == []

    def test_buy_sends_listing_price(self, client):
        _functions(client).getListingPrice.return_value.call.return_value = 5 * 10**17

        client.buy_credit(4)

        build_args = _functions(client).buyCredit.return_value.build_transaction.call_args.args[0]
        assert build_args["value"] == 5 * 10**17

    def test_delist_sends_transaction(self, client, wallet):
        tx_hash = client.delist_credit("5")

        _functions(client).delistCredit.assert_called_once_with(5)
        assert tx_hash.startswith("0x")
        assert len(wallet.sent) == 1

    @pytest.mark.parametrize("rating", [0, 6, 2.5])
    def test_rate_seller_range(self, client, rating):
        with pytest.raises(InvalidAmountError):
            client.rate_seller(RECIPIENT, rating)

    @pytest.mark.parametrize("token_id", [-1, "abc", None])
    def test_invalid_token_id(self, client, wallet, token_id):
        with pytest.raises(ValidationError):
            client.retire_credit(token_id)

        assert wallet.sent == []


class TestViews:
    """Test view calls and their fallbacks"""

    def test_listing_price_formatted(self, client):
        _functions(client).getListingPrice.return_value.call.return_value = 10**15

        assert client.get_listing_price(1) == "0.001"

    def test_seller_rating(self, client):
        _functions(client).getSellerRating.return_value.call.return_value = (9, 2)

        assert client.get_seller_rating(RECIPIENT) == {"total_rating": 9, "rating_count": 2}

    def test_views_fall_back_on_rpc_error(self, client):
        functions = _functions(client)
        for name in ("balanceOf", "isListed", "isRetired", "isVerifier", "getListingPrice", "getSellerRating"):
            getattr(functions, name).return_value.call.side_effect = Web3Exception("rpc down")

        assert client.balance_of(RECIPIENT) == 0
        assert client.is_listed(1) is False
        assert client.is_retired(1) is False
        assert client.is_verifier(RECIPIENT) is False
        assert client.get_listing_price(1) == "0"
        assert client.get_seller_rating(RECIPIENT) == {"total_rating": 0, "rating_count": 0}

    def test_owner_of_propagates(self, client):
        _functions(client).ownerOf.return_value.call.side_effect = Web3Exception("nonexistent token")

        with pytest.raises(ContractCallError):
            client.owner_of(99)

    def test_token_uri(self, client):
        _functions(client).tokenURI.return_value.call.return_value = "https://storage.test/m.json"

        assert client.token_uri("1") == "https://storage.test/m.json"


class TestUnreachableRpc:
    """Test a real web3 provider whose node refuses connections"""

    def test_views_return_defaults(self, offline_client):
        assert offline_client.balance_of(RECIPIENT) == 0
        assert offline_client.is_listed(1) is False
        assert offline_client.get_listing_price(1) == "0"
        assert offline_client.get_seller_rating(RECIPIENT) == {"total_rating": 0, "rating_count": 0}

    def test_owner_of_wrapped(self, offline_client):
        with pytest.raises(ContractCallError):
            offline_client.owner_of(1)

    def test_wallet_calls_raise_blockchain_error(self, offline_client):
        wallet = offline_client.wallet

        with pytest.raises(BlockchainError) as exc_info:
            wallet.switch_chain(CHAIN_ID)
        assert exc_info.value.code == "RPC_UNAVAILABLE"

        with pytest.raises(BlockchainError) as exc_info:
            wallet.get_balance(wallet.address)
        assert exc_info.value.code == "BALANCE_FAILED"

        with pytest.raises(BlockchainError):
            wallet.send_transaction({"to": RECIPIENT, "value": 1})

    @pytest.mark.parametrize("write", [
        lambda c: c.retire_credit(1),
        lambda c: c.buy_credit(1),
        lambda c: c.mint_credit(RECIPIENT, 10, "uri"),
    ])
    def test_writes_raise_blockchain_error(self, offline_client, write):
        with pytest.raises(BlockchainError):
            write(offline_client)
