"""
CarbonChain - Storage Package
===============================
Persistenza relazionale: progetti, crediti, transazioni.
"""

from carbon_chain.storage.db import PlatformDatabase

__all__ = [
    "PlatformDatabase",
]
