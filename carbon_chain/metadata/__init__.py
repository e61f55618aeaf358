"""
CarbonChain - Metadata Package
================================
Storage off-chain dei metadata dei crediti.
"""

from carbon_chain.metadata.store import (
    MetadataStore,
    HttpMetadataStore,
    LocalMetadataStore,
    create_metadata_store,
)

__all__ = [
    "MetadataStore",
    "HttpMetadataStore",
    "LocalMetadataStore",
    "create_metadata_store",
]
