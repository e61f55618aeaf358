"""
CarbonChain - Wallet Service Tests
====================================
Portfolio, token balances, refused transfers and explorer history.
"""

from unittest.mock import MagicMock

import pytest
import requests

from carbon_chain.constants import CONTRACT_ADDRESS
from carbon_chain.errors import (
    BlockchainError,
    InvalidAddressError,
    MissingFieldError,
    ValidationError,
)


ADDRESS = "0x2222222222222222222222222222222222222222"
OTHER = "0x3333333333333333333333333333333333333333"


def _record(db, buyer_id, tons, **overrides):
    fields = {
        "buyer_id": buyer_id,
        "amount_tons": tons,
        "total_amount": tons * 0.0005,
        "price_per_ton": 0.0005,
        "transaction_hash": f"0x{tons:064x}",
        "status": "completed",
    }
    fields.update(overrides)
    return db.insert_transaction(**fields)


class TestPortfolio:
    """Test buyer portfolio aggregation"""

    def test_empty_portfolio(self, platform, buyer_profile):
        summary = platform.wallets.portfolio(buyer_profile["id"])

        assert summary.total_value == 0
        assert summary.total_tokens == 0
        assert summary.transaction_count == 0
        assert summary.transactions == []

    def test_totals_and_project_enrichment(self, platform, test_database, buyer_profile, verified_project):
        _record(test_database, buyer_profile["id"], 10, project_id=verified_project["id"])
        _record(test_database, buyer_profile["id"], 5, project_id=verified_project["id"])

        summary = platform.wallets.portfolio(buyer_profile["id"])

        assert summary.total_tokens == 15
        assert summary.total_value == pytest.approx(0.0075)
        assert summary.transaction_count == 2
        assert summary.transactions[0].project_title == "Acre Riverbank Reforestation"
        assert summary.transactions[0].project_type == "reforestation"

    def test_legacy_row_resolved_through_credit_id(self, platform, test_database, buyer_profile, verified_project):
        _record(test_database, buyer_profile["id"], 3, credit_id=verified_project["id"])

        entry = platform.wallets.portfolio(buyer_profile["id"]).transactions[0]

        assert entry.project_id == verified_project["id"]
        assert entry.project_title == "Acre Riverbank Reforestation"

    def test_unknown_project_left_blank(self, platform, test_database, buyer_profile):
        _record(test_database, buyer_profile["id"], 2, project_id="gone")

        entry = platform.wallets.portfolio(buyer_profile["id"]).transactions[0]

        assert entry.project_title is None
        assert entry.amount_tons == 2


class TestTokenBalances:
    """Test CCT balance lookup"""

    def test_balance_from_contract(self, platform, contract):
        contract.balances[ADDRESS.lower()] = 4

        balances = platform.wallets.token_balances(ADDRESS)

        assert balances == [{
            "symbol": "CCT",
            "name": "Carbon Credit Token",
            "balance": 4,
            "decimals": 0,
            "contractAddress": CONTRACT_ADDRESS,
            "priceUSD": 25.5,
            "value": 102.0,
        }]

    def test_invalid_address(self, platform):
        with pytest.raises(InvalidAddressError):
            platform.wallets.token_balances("0x12")


class TestSendTokens:
    """Direct transfers are always refused after validation"""

    def test_refused(self, platform):
        with pytest.raises(BlockchainError) as exc_info:
            platform.wallets.send_tokens(CONTRACT_ADDRESS, OTHER, "5", ADDRESS)

        assert exc_info.value.code == "TRANSFER_NOT_SUPPORTED"

    def test_missing_fields(self, platform):
        with pytest.raises(MissingFieldError) as exc_info:
            platform.wallets.send_tokens(CONTRACT_ADDRESS, None, "", ADDRESS)

        assert exc_info.value.details["missing"] == ["recipientAddress", "amount"]

    def test_bad_amount(self, platform):
        with pytest.raises(ValidationError):
            platform.wallets.send_tokens(CONTRACT_ADDRESS, OTHER, "lots", ADDRESS)


class TestTransactionHistory:
    """Test explorer history lookup"""

    def _response(self, payload):
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        return response

    def test_history_maps_and_limits_entries(self, platform, monkeypatch):
        entries = [
            {
                "hash": f"0x{i:064x}",
                "from": ADDRESS,
                "to": OTHER,
                "value": str(10**15),
                "timeStamp": "1700000000",
                "isError": "0" if i % 2 else "1",
                "gasUsed": "21000",
                "gasPrice": "30000000000",
            }
            for i in range(1, 13)
        ]
        get = MagicMock(return_value=self._response({"status": "1", "result": entries}))
        monkeypatch.setattr(platform.wallets.session, "get", get)

        history = platform.wallets.transaction_history(ADDRESS)

        assert len(history) == 10
        assert history[0]["value"] == "0.001"
        assert history[0]["token"] == "MATIC"
        assert history[0]["status"] == "confirmed"
        assert history[1]["status"] == "failed"
        assert history[0]["timestamp"].startswith("2023-11-14")
        assert get.call_args.kwargs["params"]["address"] == ADDRESS

    def test_history_empty_on_request_error(self, platform, monkeypatch):
        get = MagicMock(side_effect=requests.exceptions.ConnectionError("offline"))
        monkeypatch.setattr(platform.wallets.session, "get", get)

        assert platform.wallets.transaction_history(ADDRESS) == []

    def test_history_empty_on_explorer_error_status(self, platform, monkeypatch):
        get = MagicMock(return_value=self._response({"status": "0", "result": "Invalid API Key"}))
        monkeypatch.setattr(platform.wallets.session, "get", get)

        assert platform.wallets.transaction_history(ADDRESS) == []
