"""
CarbonChain - Blockchain Package
==================================
Client contratto crediti, capability wallet e ABI.
"""

from carbon_chain.blockchain.abi import CARBON_CREDIT_ABI
from carbon_chain.blockchain.wallet_provider import (
    WalletProvider,
    Web3WalletProvider,
    is_user_rejection,
)
from carbon_chain.blockchain.client import CarbonCreditContract

__all__ = [
    "CARBON_CREDIT_ABI",
    "WalletProvider",
    "Web3WalletProvider",
    "is_user_rejection",
    "CarbonCreditContract",
]
