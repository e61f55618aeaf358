"""
CarbonChain - Pytest Configuration
====================================
Fixtures e configurazione per testing.

Last Updated: 2026-10-19
Version: 1.0.0
"""

import itertools
import threading
from typing import Any, Dict, List, Optional

import pytest

# Internal imports
from carbon_chain.blockchain.wallet_provider import WalletProvider
from carbon_chain.config import override_settings
from carbon_chain.errors import ChainMismatchError, MetadataUploadError, TransactionRejectedError
from carbon_chain.metadata.store import MetadataStore
from carbon_chain.platform import build_platform
from carbon_chain.storage.db import PlatformDatabase


NGO_ADDRESS = "0x1111111111111111111111111111111111111111"
BUYER_ADDRESS = "0x2222222222222222222222222222222222222222"
ONE_NATIVE_WEI = 10**18


# ============================================================================
# TEST DOUBLES
# ============================================================================

def fake_tx_hash(n: int) -> str:
    return f"0x{n:064x}"


class FakeWalletProvider(WalletProvider):
    """
    Wallet in memoria.

    barrier: se impostata, send_transaction attende che tutti i thread
    arrivino al pagamento (precondizioni già superate).
    """

    def __init__(self, accounts: Optional[List[str]] = None, balance: int = 10 * ONE_NATIVE_WEI):
        self.accounts = [BUYER_ADDRESS] if accounts is None else accounts
        self.balance = balance
        self.chain_ok = True
        self.reject = False
        self.receipt_status = 1
        self.barrier: Optional[threading.Barrier] = None
        self.sent: List[Dict[str, Any]] = []
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def request_accounts(self) -> List[str]:
        return list(self.accounts)

    def switch_chain(self, chain_id: int) -> None:
        if not self.chain_ok:
            raise ChainMismatchError("Wrong network", code="CHAIN_MISMATCH")

    def send_transaction(self, tx: Dict[str, Any]) -> str:
        if self.barrier is not None:
            self.barrier.wait()
        if self.reject:
            raise TransactionRejectedError("User rejected", code="USER_REJECTED")
        with self._lock:
            self.sent.append(tx)
            return fake_tx_hash(next(self._counter))

    def get_balance(self, address: str) -> int:
        return self.balance

    def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        return {"transactionHash": tx_hash, "status": self.receipt_status, "blockNumber": 1}


class FakeCreditContract:
    """Contratto crediti in memoria (stessa interfaccia di CarbonCreditContract)"""

    def __init__(self):
        self.minted: List[Dict[str, Any]] = []
        self.balances: Dict[str, int] = {}
        self.listed: Dict[str, str] = {}
        self.retired: set = set()
        self.fail_with: Optional[Exception] = None
        self._counter = itertools.count(1)

    def _next_hash(self) -> str:
        return fake_tx_hash(1000 + next(self._counter))

    def mint_credit(self, to: str, amount: int, metadata_uri: str):
        if self.fail_with is not None:
            raise self.fail_with
        token_id = str(len(self.minted) + 1)
        self.minted.append({"to": to, "amount": amount, "uri": metadata_uri, "token_id": token_id})
        self.balances[to.lower()] = self.balances.get(to.lower(), 0) + 1
        return self._next_hash(), token_id

    def list_credit(self, token_id, price_native) -> str:
        self.listed[str(token_id)] = str(price_native)
        return self._next_hash()

    def buy_credit(self, token_id) -> str:
        self.listed.pop(str(token_id), None)
        return self._next_hash()

    def delist_credit(self, token_id) -> str:
        self.listed.pop(str(token_id), None)
        return self._next_hash()

    def retire_credit(self, token_id) -> str:
        self.retired.add(str(token_id))
        return self._next_hash()

    def rate_seller(self, seller: str, rating: int) -> str:
        return self._next_hash()

    def balance_of(self, address: str) -> int:
        return self.balances.get(address.lower(), 0)

    def owner_of(self, token_id) -> str:
        return self.minted[int(token_id) - 1]["to"]

    def token_uri(self, token_id) -> str:
        return self.minted[int(token_id) - 1]["uri"]

    def is_listed(self, token_id) -> bool:
        return str(token_id) in self.listed

    def is_retired(self, token_id) -> bool:
        return str(token_id) in self.retired

    def is_verifier(self, address: str) -> bool:
        return False

    def get_listing_price(self, token_id) -> str:
        return self.listed.get(str(token_id), "0")

    def get_seller_rating(self, seller: str) -> Dict[str, int]:
        return {"total_rating": 9, "rating_count": 2}


class FakeMetadataStore(MetadataStore):
    """Metadata store in memoria"""

    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.fail = False

    def upload_project_data(self, payload: Dict[str, Any]) -> str:
        if self.fail:
            raise MetadataUploadError("Upload failed", code="METADATA_UPLOAD_FAILED")
        uri = f"https://storage.test/carbon-credits/metadata-{len(self.objects) + 1}.json"
        self.objects[uri] = payload
        return uri

    def get_project_data(self, uri: str) -> Optional[Dict[str, Any]]:
        return self.objects.get(uri)


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def test_config(tmp_path):
    """Test configuration (file SQLite, no log files, no simulated latency)"""
    return override_settings(
        data_dir=tmp_path / "data",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        log_to_file=False,
        log_dir=tmp_path / "logs",
        metadata_backend="local",
        monitoring_latency_scale=0,
        dev_mode=True,
    )


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture
def test_database(test_config):
    """Test database"""
    db = PlatformDatabase(test_config)
    db.create_schema()
    yield db
    db.close()


# ============================================================================
# PLATFORM FIXTURES
# ============================================================================

@pytest.fixture
def wallet():
    return FakeWalletProvider()


@pytest.fixture
def contract():
    return FakeCreditContract()


@pytest.fixture
def metadata_store():
    return FakeMetadataStore()


@pytest.fixture
def platform(test_config, test_database, wallet, contract, metadata_store):
    """Platform con doubles per chain e metadata"""
    return build_platform(
        test_config,
        db=test_database,
        wallet=wallet,
        contract=contract,
        metadata_store=metadata_store,
    )


# ============================================================================
# PROFILE FIXTURES
# ============================================================================

@pytest.fixture
def ngo_profile(test_database):
    return test_database.upsert_profile(
        full_name="Ana Souza",
        organization="Amazon Restoration Fund",
        role="ngo",
        address=NGO_ADDRESS,
    )


@pytest.fixture
def ngo_without_wallet(test_database):
    return test_database.upsert_profile(
        full_name="Rafael Lima",
        organization="Cerrado Alive",
        role="ngo",
    )


@pytest.fixture
def admin_profile(test_database):
    return test_database.upsert_profile(full_name="Platform Admin", role="admin")


@pytest.fixture
def buyer_profile(test_database):
    return test_database.upsert_profile(
        full_name="Green Corp",
        organization="Green Corp Ltd",
        role="buyer",
        address=BUYER_ADDRESS,
    )


# ============================================================================
# PROJECT FIXTURES
# ============================================================================

@pytest.fixture
def sample_project_form():
    """Form progetto: 20 ha piantati -> 400 crediti"""
    return {
        "project_name": "Acre Riverbank Reforestation",
        "project_type": "reforestation",
        "description": "Native species planting along the Acre river",
        "start_date": "2024-03-15",
        "country": "Brazil",
        "region": "Acre",
        "latitude": -9.0238,
        "longitude": -70.812,
        "total_area": 25,
        "planted_area": 20,
        "species": "Bertholletia excelsa",
    }


@pytest.fixture
def pending_project(platform, ngo_profile, sample_project_form):
    return platform.projects.submit_project(ngo_profile["id"], sample_project_form)


@pytest.fixture
def verified_project(platform, ngo_without_wallet, sample_project_form):
    """Progetto verified senza token (submitter senza wallet)"""
    project = platform.projects.submit_project(ngo_without_wallet["id"], sample_project_form)
    platform.issuance.approve_project(project["id"], "Field audit passed")
    return platform.db.get_project(project["id"])
