"""
CarbonChain - Input Validators
================================
Validation functions for wallet addresses, hashes and amounts.
"""

import math
import re
from typing import Any, Dict, Iterable, List, Optional

from carbon_chain.errors import (
    InvalidAddressError,
    InvalidAmountError,
    MissingFieldError,
    ValidationError,
)


# 20-byte hex address, 0x-prefixed
EVM_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
TX_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


# ============================================================================
# ADDRESS VALIDATION
# ============================================================================

def is_evm_address(address: Optional[str]) -> bool:
    """
    Check EVM address format without raising.

    Examples:
        >>> is_evm_address("0x087573bec726A13d77F521318b3FD7dE3c830988")
        True
        >>> is_evm_address("087573bec726A13d77F521318b3FD7dE3c830988")
        False
    """
    return isinstance(address, str) and bool(EVM_ADDRESS_PATTERN.fullmatch(address))


def validate_evm_address(address: Optional[str], field: str = "address") -> str:
    """
    Validate EVM address.

    Returns:
        str: The address unchanged

    Raises:
        InvalidAddressError: If missing or malformed
    """
    if not is_evm_address(address):
        raise InvalidAddressError(
            f"Invalid {field}: must be 0x followed by 40 hex characters",
            code="INVALID_ADDRESS",
            details={"field": field, "value": address}
        )
    return address


def validate_tx_hash(tx_hash: Optional[str]) -> str:
    """Validate 32-byte transaction hash (0x-prefixed)"""
    if not isinstance(tx_hash, str) or not TX_HASH_PATTERN.fullmatch(tx_hash):
        raise ValidationError(
            f"Invalid transaction hash: {tx_hash}",
            code="INVALID_TX_HASH"
        )
    return tx_hash


# ============================================================================
# AMOUNT VALIDATION
# ============================================================================

def validate_positive_int(value: Any, field: str = "amount") -> int:
    """
    Validate strictly positive integer.

    Integral floats (e.g. 400.0) are accepted and converted.

    Raises:
        InvalidAmountError: If not a positive integer
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid {field}: {value!r}", code="INVALID_AMOUNT")

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value) or not value.is_integer():
            raise InvalidAmountError(f"Invalid {field}: {value!r}", code="INVALID_AMOUNT")
        value = int(value)

    if not isinstance(value, int) or value <= 0:
        raise InvalidAmountError(
            f"Invalid {field}: must be a positive integer, got {value!r}",
            code="INVALID_AMOUNT",
            details={"field": field}
        )
    return value


def validate_positive_number(value: Any, field: str = "amount") -> float:
    """Validate strictly positive finite number"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidAmountError(f"Invalid {field}: {value!r}", code="INVALID_AMOUNT")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise InvalidAmountError(
            f"Invalid {field}: must be positive, got {value!r}",
            code="INVALID_AMOUNT",
            details={"field": field}
        )
    return float(value)


# ============================================================================
# REQUIRED FIELDS
# ============================================================================

def require_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    """
    Check required fields are present and non-blank.

    Raises:
        MissingFieldError: Listing every missing field
    """
    missing: List[str] = []
    for name in fields:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)

    if missing:
        raise MissingFieldError(
            "Missing required fields",
            code="MISSING_FIELDS",
            details={"missing": missing}
        )


__all__ = [
    "EVM_ADDRESS_PATTERN",
    "is_evm_address",
    "validate_evm_address",
    "validate_tx_hash",
    "validate_positive_int",
    "validate_positive_number",
    "require_fields",
]
