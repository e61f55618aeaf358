"""
CarbonChain - Carbon Credit Platform
======================================
Progetti di riforestazione, emissione crediti ERC-721 e marketplace.

Version: 1.0.0
Author: CarbonChain Team
License: MIT
"""

__version__ = "1.0.0"
__author__ = "CarbonChain Team"
__license__ = "MIT"

# Configuration
from carbon_chain.config import PlatformSettings, get_settings

# Constants
from carbon_chain.constants import (
    CHAIN_ID,
    CONTRACT_ADDRESS,
    FEE_RECIPIENT,
    UNIT_PRICE_NATIVE,
    ProjectStatus,
    estimate_credits,
)

__all__ = [
    # Version
    "__version__",

    # Configuration
    "PlatformSettings",
    "get_settings",

    # Constants
    "CHAIN_ID",
    "CONTRACT_ADDRESS",
    "FEE_RECIPIENT",
    "UNIT_PRICE_NATIVE",
    "ProjectStatus",
    "estimate_credits",
]
