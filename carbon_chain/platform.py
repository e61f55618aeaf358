"""
CarbonChain - Platform Assembly
=================================
Costruzione servizi piattaforma da PlatformSettings.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Un solo database, un solo client contratto e un solo MonitoringService
per processo: API e CLI ricevono tutto da build_platform().
"""

from dataclasses import dataclass
from typing import Optional

from web3 import Web3

# Internal imports
from carbon_chain.blockchain.client import CarbonCreditContract
from carbon_chain.blockchain.wallet_provider import WalletProvider, Web3WalletProvider
from carbon_chain.config import PlatformSettings, get_settings
from carbon_chain.logging_setup import get_logger, AuditLogger
from carbon_chain.metadata.store import MetadataStore, create_metadata_store
from carbon_chain.services.issuance_service import IssuanceService
from carbon_chain.services.monitoring_service import MonitoringService
from carbon_chain.services.project_service import ProjectService
from carbon_chain.services.settlement_service import SettlementService
from carbon_chain.services.wallet_service import WalletService
from carbon_chain.storage.db import PlatformDatabase


logger = get_logger("platform")


@dataclass
class Platform:
    """Servizi condivisi della piattaforma"""
    config: PlatformSettings
    db: PlatformDatabase
    wallet: WalletProvider
    contract: CarbonCreditContract
    metadata_store: MetadataStore
    audit: AuditLogger
    projects: ProjectService
    issuance: IssuanceService
    settlement: SettlementService
    wallets: WalletService
    monitoring: MonitoringService

    def close(self) -> None:
        """Rilascia connessioni database"""
        self.db.close()


def build_platform(
    config: Optional[PlatformSettings] = None,
    db: Optional[PlatformDatabase] = None,
    wallet: Optional[WalletProvider] = None,
    contract: Optional[CarbonCreditContract] = None,
    metadata_store: Optional[MetadataStore] = None,
) -> Platform:
    """
    Assembla la piattaforma.

    I componenti passati esplicitamente sostituiscono quelli di default
    (wallet/contratto web3 sul provider HTTP configurato).

    Args:
        config: Configurazione (default: get_settings())
        db: Database già inizializzato
        wallet: Wallet provider
        contract: Client contratto
        metadata_store: Storage metadata

    Returns:
        Platform: Servizi pronti all'uso
    """
    config = config or get_settings()

    if db is None:
        db = PlatformDatabase(config)
        db.create_schema()

    if wallet is None or contract is None:
        w3 = Web3(Web3.HTTPProvider(config.rpc_url))
        if wallet is None:
            private_key = (
                config.signer_private_key.get_secret_value()
                if config.has_signer() else None
            )
            wallet = Web3WalletProvider(w3, private_key, config.receipt_timeout_seconds)
        if contract is None:
            contract = CarbonCreditContract(w3, wallet)

    metadata_store = metadata_store or create_metadata_store(config)
    audit = AuditLogger(config.log_dir if config.log_to_file else None)

    platform = Platform(
        config=config,
        db=db,
        wallet=wallet,
        contract=contract,
        metadata_store=metadata_store,
        audit=audit,
        projects=ProjectService(db, metadata_store, config, audit),
        issuance=IssuanceService(db, contract, metadata_store, config, audit),
        settlement=SettlementService(db, wallet, config, audit),
        wallets=WalletService(db, contract, config),
        monitoring=MonitoringService(config.monitoring_latency_scale),
    )

    logger.info(
        "Platform initialized",
        extra_data={
            "database": "sqlite" if config.is_sqlite() else "external",
            "metadata_backend": config.metadata_backend,
            "signer": config.has_signer(),
        }
    )
    return platform


__all__ = ["Platform", "build_platform"]
