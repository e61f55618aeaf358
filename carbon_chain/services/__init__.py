"""
CarbonChain - Services Package
================================
High-level service layer.
"""

from carbon_chain.services.project_service import ProjectService
from carbon_chain.services.issuance_service import IssuanceService
from carbon_chain.services.settlement_service import SettlementService
from carbon_chain.services.wallet_service import WalletService
from carbon_chain.services.monitoring_service import MonitoringService

__all__ = [
    "ProjectService",
    "IssuanceService",
    "SettlementService",
    "WalletService",
    "MonitoringService",
]
