"""
CarbonChain - API Package
==========================
REST API for the carbon credit platform.
"""

from carbon_chain.api.rest_api import app, initialize_api

__all__ = [
    "app",
    "initialize_api",
]
