"""
CarbonChain - Storage Tests
=============================
Unit tests for the platform database.
"""

import threading

import pytest

from carbon_chain.constants import ProjectStatus
from carbon_chain.errors import (
    InvalidAmountError,
    InvalidProjectStateError,
    InventoryDecrementError,
    ProjectNotFoundError,
)


def _insert_project(db, submitter_id, **overrides):
    fields = {
        "title": "Mangrove Belt",
        "project_type": "reforestation",
        "description": "Coastal mangrove restoration",
        "planting_date": "2024-01-10",
        "location_name": "Khulna, Bangladesh",
        "latitude": 22.47,
        "longitude": 89.53,
        "area_hectares": 30.0,
        "tree_species": ["Rhizophora mucronata"],
        "estimated_co2_tons": 400,
        "status": ProjectStatus.VERIFIED.value,
        "submitted_by": submitter_id,
    }
    fields.update(overrides)
    return db.insert_project(**fields)


class TestProfiles:
    """Test profile persistence"""

    def test_upsert_creates_and_updates(self, test_database):
        profile = test_database.upsert_profile(full_name="Ana", role="ngo")
        assert profile["id"]
        assert profile["address"] is None

        updated = test_database.upsert_profile(
            profile_id=profile["id"],
            address="0x1111111111111111111111111111111111111111",
        )
        assert updated["full_name"] == "Ana"
        assert updated["address"] == "0x1111111111111111111111111111111111111111"

    def test_get_missing_profile(self, test_database):
        assert test_database.get_profile("does-not-exist") is None


class TestProjects:
    """Test project queries and transitions"""

    def test_insert_and_get(self, test_database, ngo_profile):
        project = _insert_project(test_database, ngo_profile["id"])

        loaded = test_database.get_project(project["id"], include_submitter=True, include_media=True)
        assert loaded["title"] == "Mangrove Belt"
        assert loaded["tree_species"] == ["Rhizophora mucronata"]
        assert loaded["available_credits"] is None
        assert loaded["submitter"]["organization"] == "Amazon Restoration Fund"
        assert loaded["media"] == []

    def test_list_filters(self, test_database, ngo_profile, ngo_without_wallet):
        _insert_project(test_database, ngo_profile["id"], title="Alpha")
        _insert_project(test_database, ngo_without_wallet["id"], title="Beta",
                        status=ProjectStatus.PENDING.value)

        assert [p["title"] for p in test_database.list_projects(status="pending")] == ["Beta"]
        assert len(test_database.list_projects(status=["pending", "verified"])) == 2
        assert [p["title"] for p in test_database.list_projects(submitted_by=ngo_profile["id"])] == ["Alpha"]

    def test_search_matches_organization(self, test_database, ngo_profile, ngo_without_wallet):
        _insert_project(test_database, ngo_profile["id"], title="Alpha")
        _insert_project(test_database, ngo_without_wallet["id"], title="Beta")

        results = test_database.list_projects(search="cerrado")
        assert [p["title"] for p in results] == ["Beta"]

    def test_transition_requires_expected_state(self, test_database, ngo_profile):
        project = _insert_project(test_database, ngo_profile["id"], status=ProjectStatus.PENDING.value)

        moved = test_database.transition_project(
            project["id"], ProjectStatus.PENDING, status=ProjectStatus.REJECTED.value
        )
        assert moved["status"] == "rejected"

        with pytest.raises(InvalidProjectStateError):
            test_database.transition_project(
                project["id"], ProjectStatus.PENDING, status=ProjectStatus.VERIFIED.value
            )

    def test_transition_missing_project(self, test_database):
        with pytest.raises(ProjectNotFoundError):
            test_database.transition_project("missing", ProjectStatus.PENDING, status="verified")

    def test_count_by_status(self, test_database, ngo_profile):
        _insert_project(test_database, ngo_profile["id"])
        _insert_project(test_database, ngo_profile["id"], status=ProjectStatus.PENDING.value)

        counts = test_database.count_projects_by_status()
        assert counts["verified"] == 1
        assert counts["pending"] == 1
        assert counts["tokenized"] == 0


class TestAtomicDecrement:
    """Test compare-and-decrement of available credits"""

    def test_lazy_default_from_estimate(self, test_database, ngo_profile):
        project = _insert_project(test_database, ngo_profile["id"])

        remaining = test_database.decrement_available_credits(project["id"], 150)

        assert remaining == 250
        assert test_database.get_project(project["id"])["available_credits"] == 250

    def test_decrement_to_zero(self, test_database, ngo_profile):
        project = _insert_project(test_database, ngo_profile["id"], available_credits=10)

        assert test_database.decrement_available_credits(project["id"], 10) == 0

    def test_rejects_overdraw_without_change(self, test_database, ngo_profile):
        project = _insert_project(test_database, ngo_profile["id"], available_credits=100)

        with pytest.raises(InventoryDecrementError) as exc_info:
            test_database.decrement_available_credits(project["id"], 101)

        assert exc_info.value.details["available"] == 100
        assert test_database.get_project(project["id"])["available_credits"] == 100

    @pytest.mark.parametrize("amount", [0, -5, 2.5, True])
    def test_rejects_invalid_amount(self, test_database, ngo_profile, amount):
        project = _insert_project(test_database, ngo_profile["id"])

        with pytest.raises(InvalidAmountError):
            test_database.decrement_available_credits(project["id"], amount)

    def test_missing_project(self, test_database):
        with pytest.raises(ProjectNotFoundError):
            test_database.decrement_available_credits("missing", 1)

    def test_concurrent_decrements_never_go_negative(self, test_database, ngo_profile):
        project = _insert_project(test_database, ngo_profile["id"])
        barrier = threading.Barrier(10)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                test_database.decrement_available_credits(project["id"], 50)
                outcome = "ok"
            except InventoryDecrementError:
                outcome = "rejected"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 8
        assert results.count("rejected") == 2
        assert test_database.get_project(project["id"])["available_credits"] == 0


class TestTransactions:
    """Test purchase receipts"""

    def test_buyer_transactions_newest_first(self, test_database, ngo_profile, buyer_profile):
        project = _insert_project(test_database, ngo_profile["id"])
        for tons in (1, 2):
            test_database.insert_transaction(
                buyer_id=buyer_profile["id"],
                project_id=project["id"],
                amount_tons=tons,
                total_amount=tons * 0.0005,
                price_per_ton=0.0005,
                transaction_hash=f"0x{tons:064x}",
                status="completed",
            )

        rows = test_database.list_transactions_for_buyer(buyer_profile["id"])
        assert [r["amount_tons"] for r in rows] == [2, 1]
        assert test_database.list_transactions_for_buyer(ngo_profile["id"]) == []
