"""
CarbonChain - Utilities Package
=================================
Common utility functions and helpers.
"""

from carbon_chain.utils.validators import (
    is_evm_address,
    validate_evm_address,
    validate_tx_hash,
    validate_positive_int,
    validate_positive_number,
    require_fields,
)

__all__ = [
    # Validators
    "is_evm_address",
    "validate_evm_address",
    "validate_tx_hash",
    "validate_positive_int",
    "validate_positive_number",
    "require_fields",
]
