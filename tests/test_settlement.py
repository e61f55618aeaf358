"""
CarbonChain - Settlement Tests
================================
Marketplace purchase: preconditions, payment, receipt, decrement.
"""

import threading
from decimal import Decimal

import pytest

from carbon_chain.constants import CHAIN_ID, FEE_RECIPIENT
from carbon_chain.errors import (
    AuthenticationRequiredError,
    ChainMismatchError,
    ContractCallError,
    InsufficientBalanceError,
    InsufficientCreditsError,
    InvalidAmountError,
    InvalidProjectStateError,
    ProjectNotFoundError,
    TransactionRejectedError,
    WalletUnavailableError,
)


class TestPurchase:
    """Test the happy path"""

    def test_purchase_pays_records_and_decrements(self, platform, wallet, buyer_profile, verified_project):
        receipt = platform.settlement.purchase(verified_project["id"], 10, buyer_profile["id"])

        assert receipt.quantity == 10
        assert receipt.total_native == Decimal("0.01")
        assert receipt.total_amount == pytest.approx(0.005)
        assert receipt.remaining_credits == 390
        assert receipt.recorded and receipt.inventory_updated

        assert wallet.sent == [{
            "from": wallet.accounts[0],
            "to": FEE_RECIPIENT,
            "value": 10 * 10**15,
            "chainId": CHAIN_ID,
        }]

        rows = platform.db.list_transactions_for_buyer(buyer_profile["id"])
        assert len(rows) == 1
        assert rows[0]["project_id"] == verified_project["id"]
        assert rows[0]["credit_id"] is None
        assert rows[0]["amount_tons"] == 10
        assert rows[0]["status"] == "completed"
        assert rows[0]["transaction_hash"] == receipt.transaction_hash

        assert platform.db.get_project(verified_project["id"])["available_credits"] == 390

    def test_purchase_all_credits(self, platform, buyer_profile, verified_project):
        receipt = platform.settlement.purchase(verified_project["id"], 400, buyer_profile["id"])

        assert receipt.remaining_credits == 0
        assert platform.projects.marketplace_listings()[0]["sold_out"] is True


class TestPurchasePreconditions:
    """No payment is attempted when a precondition fails"""

    def test_quantity_above_available(self, platform, wallet, buyer_profile, verified_project):
        with pytest.raises(InsufficientCreditsError) as exc_info:
            platform.settlement.purchase(verified_project["id"], 600, buyer_profile["id"])

        assert exc_info.value.details == {"requested": 600, "available": 400}
        assert wallet.sent == []
        assert platform.db.list_transactions_for_buyer(buyer_profile["id"]) == []

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "ten"])
    def test_invalid_quantity(self, platform, wallet, buyer_profile, verified_project, quantity):
        with pytest.raises(InvalidAmountError):
            platform.settlement.purchase(verified_project["id"], quantity, buyer_profile["id"])

        assert wallet.sent == []

    def test_requires_buyer(self, platform, wallet, verified_project):
        with pytest.raises(AuthenticationRequiredError):
            platform.settlement.purchase(verified_project["id"], 1, None)

        assert wallet.sent == []

    def test_unknown_project(self, platform, buyer_profile):
        with pytest.raises(ProjectNotFoundError):
            platform.settlement.purchase("missing", 1, buyer_profile["id"])

    def test_pending_project_not_for_sale(self, platform, wallet, buyer_profile, pending_project):
        with pytest.raises(InvalidProjectStateError):
            platform.settlement.purchase(pending_project["id"], 1, buyer_profile["id"])

        assert wallet.sent == []

    def test_no_wallet_connected(self, platform, wallet, buyer_profile, verified_project):
        wallet.accounts = []

        with pytest.raises(WalletUnavailableError):
            platform.settlement.purchase(verified_project["id"], 1, buyer_profile["id"])

    def test_wrong_chain(self, platform, wallet, buyer_profile, verified_project):
        wallet.chain_ok = False

        with pytest.raises(ChainMismatchError):
            platform.settlement.purchase(verified_project["id"], 1, buyer_profile["id"])

        assert wallet.sent == []

    def test_insufficient_balance(self, platform, wallet, buyer_profile, verified_project):
        wallet.balance = 10**15 - 1

        with pytest.raises(InsufficientBalanceError):
            platform.settlement.purchase(verified_project["id"], 1, buyer_profile["id"])

        assert wallet.sent == []


class TestPaymentFailures:
    """Payment rejected or reverted: nothing recorded"""

    def test_user_rejects_signature(self, platform, wallet, buyer_profile, verified_project):
        wallet.reject = True

        with pytest.raises(TransactionRejectedError):
            platform.settlement.purchase(verified_project["id"], 5, buyer_profile["id"])

        assert platform.db.list_transactions_for_buyer(buyer_profile["id"]) == []
        assert platform.db.get_project(verified_project["id"])["available_credits"] == 400

    def test_reverted_payment(self, platform, wallet, buyer_profile, verified_project):
        wallet.receipt_status = 0

        with pytest.raises(ContractCallError):
            platform.settlement.purchase(verified_project["id"], 5, buyer_profile["id"])

        assert platform.db.list_transactions_for_buyer(buyer_profile["id"]) == []


class TestConcurrentPurchases:
    """Two buyers racing for the same inventory"""

    def test_two_buyers_300_each_against_400(self, platform, wallet, test_database, verified_project):
        buyers = [
            test_database.upsert_profile(full_name=f"Buyer {i}", role="buyer")
            for i in range(2)
        ]
        # Both purchases pass their preconditions before either pays
        wallet.barrier = threading.Barrier(2, timeout=10)

        receipts = []
        errors = []
        lock = threading.Lock()

        def buy(buyer_id):
            try:
                receipt = platform.settlement.purchase(verified_project["id"], 300, buyer_id)
                with lock:
                    receipts.append(receipt)
            except Exception as e:
                with lock:
                    errors.append(e)

        threads = [threading.Thread(target=buy, args=(b["id"],)) for b in buyers]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(receipts) == 2
        assert sorted(r.inventory_updated for r in receipts) == [False, True]
        assert all(r.recorded for r in receipts)
        assert test_database.get_project(verified_project["id"])["available_credits"] == 100
