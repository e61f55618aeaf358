"""
CarbonChain - Platform Constants
==================================
Costanti fisse della piattaforma: rete, contratto, prezzi, stati.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

IMPORTANTE: rete, contratto, fee recipient e prezzo unitario sono
costanti hard-coded, non configurazione.
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Final
import math


# ============================================================================
# IDENTIFICAZIONE PIATTAFORMA
# ============================================================================

PLATFORM_NAME: Final[str] = "CarbonChain"
SOFTWARE_VERSION: Final[str] = "1.0.0"

CREDIT_TOKEN_SYMBOL: Final[str] = "CCT"
CREDIT_TOKEN_NAME: Final[str] = "Carbon Credit Token"


# ============================================================================
# RETE (Polygon Amoy testnet)
# ============================================================================

CHAIN_ID: Final[int] = 80002
CHAIN_NAME: Final[str] = "Polygon Amoy Testnet"

NATIVE_CURRENCY_SYMBOL: Final[str] = "MATIC"
NATIVE_CURRENCY_DECIMALS: Final[int] = 18

DEFAULT_RPC_URL: Final[str] = "https://rpc-amoy.polygon.technology/"
BLOCK_EXPLORER_URL: Final[str] = "https://amoy.polygonscan.com/"
EXPLORER_API_URL: Final[str] = "https://api-amoy.polygonscan.com/api"


# ============================================================================
# CONTRATTO E INDIRIZZI FISSI
# ============================================================================

CONTRACT_ADDRESS: Final[str] = "0xeb4cba4759bf91b0d3252564b951f1d577e744df"

VERIFIER_ADDRESS: Final[str] = "0x087573bec726A13d77F521318b3FD7dE3c830988"
FEE_RECIPIENT: Final[str] = "0x087573bec726A13d77F521318b3FD7dE3c830988"

PLATFORM_FEE_BP: Final[int] = 250  # 2.5%

# Codici errore wallet (EIP-1193)
WALLET_USER_REJECTED_CODE: Final[int] = 4001


# ============================================================================
# PREZZI E CONVERSIONI
# ============================================================================

WEI_PER_NATIVE: Final[int] = 10 ** NATIVE_CURRENCY_DECIMALS

# 0.001 MATIC per credito (1 credito = 1 tCO2e)
UNIT_PRICE_NATIVE: Final[Decimal] = Decimal("0.001")
UNIT_PRICE_WEI: Final[int] = int(UNIT_PRICE_NATIVE * WEI_PER_NATIVE)

# Conversione indicativa MATIC -> USD usata per le ricevute
NATIVE_TOKEN_USD_RATE: Final[Decimal] = Decimal("0.5")

# Prezzo di riferimento token CCT (manca un oracle)
CREDIT_TOKEN_PRICE_USD: Final[float] = 25.5


def native_to_wei(amount_native: Decimal) -> int:
    """
    Converte importo nativo (MATIC) in wei.

    Examples:
        >>> native_to_wei(Decimal("0.001"))
        1000000000000000
    """
    return int(Decimal(str(amount_native)) * WEI_PER_NATIVE)


def wei_to_native(amount_wei: int) -> Decimal:
    """
    Converte wei in importo nativo.

    Examples:
        >>> wei_to_native(10 ** 15)
        Decimal('0.001')
    """
    return Decimal(amount_wei) / WEI_PER_NATIVE


def settlement_price_wei(quantity: int) -> int:
    """Costo in wei di `quantity` crediti"""
    return quantity * UNIT_PRICE_WEI


# ============================================================================
# STIMA CREDITI
# ============================================================================

# ~20 tCO2e per ettaro piantato
CREDITS_PER_HECTARE: Final[int] = 20


def estimate_credits(planted_area_hectares: float) -> int:
    """
    Stima crediti (tCO2e) da area piantata.

    Arrotondamento half-up (0.5 -> 1).

    Examples:
        >>> estimate_credits(20)
        400
        >>> estimate_credits(0.025)
        1
    """
    if math.isnan(planted_area_hectares) or math.isinf(planted_area_hectares):
        raise ValueError(f"Invalid planted area: {planted_area_hectares}")

    raw = Decimal(str(planted_area_hectares)) * CREDITS_PER_HECTARE
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# STATI
# ============================================================================

class ProjectStatus(str, Enum):
    """Stato progetto"""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    TOKENIZED = "tokenized"


# Stati visibili nel marketplace
MARKETPLACE_STATUSES: Final[tuple] = (ProjectStatus.VERIFIED.value, ProjectStatus.TOKENIZED.value)


class CreditStatus(str, Enum):
    """Stato mirror locale del token"""
    AVAILABLE = "available"
    LISTED = "listed"
    SOLD = "sold"
    RETIRED = "retired"


class TransactionStatus(str, Enum):
    """Stato ricevuta acquisto"""
    PENDING = "pending"
    COMPLETED = "completed"


class MediaType(str, Enum):
    """Tipo media progetto"""
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class ProfileRole(str, Enum):
    """Ruolo profilo utente"""
    NGO = "ngo"
    ADMIN = "admin"
    BUYER = "buyer"


class IssuanceStatus(str, Enum):
    """Esito bridge emissione"""
    DEFERRED = "deferred"      # verified, nessun wallet
    TOKENIZED = "tokenized"    # mint completato


def media_type_for(mime_type: str) -> MediaType:
    """
    Classifica media da MIME type.

    Examples:
        >>> media_type_for("image/png")
        <MediaType.IMAGE: 'image'>
    """
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return MediaType.IMAGE
    if mime.startswith("video/"):
        return MediaType.VIDEO
    return MediaType.DOCUMENT


# ============================================================================
# FORMATTING
# ============================================================================

def format_address(address: str) -> str:
    """0x1234...abcd"""
    if not address:
        return "N/A"
    return f"{address[:6]}...{address[-4:]}"


def format_hash(tx_hash: str) -> str:
    """0x12345678...abcdef12"""
    if not tx_hash:
        return "N/A"
    return f"{tx_hash[:10]}...{tx_hash[-8:]}"


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PLATFORM_NAME",
    "SOFTWARE_VERSION",
    "CREDIT_TOKEN_SYMBOL",
    "CREDIT_TOKEN_NAME",
    "CHAIN_ID",
    "CHAIN_NAME",
    "NATIVE_CURRENCY_SYMBOL",
    "DEFAULT_RPC_URL",
    "BLOCK_EXPLORER_URL",
    "EXPLORER_API_URL",
    "CONTRACT_ADDRESS",
    "VERIFIER_ADDRESS",
    "FEE_RECIPIENT",
    "PLATFORM_FEE_BP",
    "WALLET_USER_REJECTED_CODE",
    "WEI_PER_NATIVE",
    "UNIT_PRICE_NATIVE",
    "UNIT_PRICE_WEI",
    "NATIVE_TOKEN_USD_RATE",
    "CREDIT_TOKEN_PRICE_USD",
    "CREDITS_PER_HECTARE",
    "MARKETPLACE_STATUSES",
    "ProjectStatus",
    "CreditStatus",
    "TransactionStatus",
    "MediaType",
    "ProfileRole",
    "IssuanceStatus",
    "native_to_wei",
    "wei_to_native",
    "settlement_price_wei",
    "estimate_credits",
    "media_type_for",
    "format_address",
    "format_hash",
]
