"""
CarbonChain - Custom Exceptions
=================================
Gerarchia completa di eccezioni per gestione errori granulare.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0
"""

from typing import Optional


# ============================================================================
# BASE EXCEPTION
# ============================================================================

class CarbonChainException(Exception):
    """
    Eccezione base per tutte le eccezioni CarbonChain.

    Attributes:
        message (str): Messaggio errore
        code (str): Codice errore (es. "MISSING_FIELD")
        details (dict): Dettagli aggiuntivi
        http_status (int): Status HTTP suggerito per le API
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializza eccezione per API/logging"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class ConfigError(CarbonChainException):
    """Errore configurazione sistema"""
    pass


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ValidationError(CarbonChainException):
    """Errore validazione (base)"""
    http_status = 400


class MissingFieldError(ValidationError):
    """Campo obbligatorio mancante"""
    pass


class InvalidAddressError(ValidationError):
    """Indirizzo wallet malformato"""
    pass


class InvalidAmountError(ValidationError):
    """Quantità non valida (<= 0 o non intera)"""
    pass


# ============================================================================
# IDENTITY ERRORS
# ============================================================================

class AuthenticationRequiredError(CarbonChainException):
    """Utente non autenticato"""
    http_status = 401


class PermissionDeniedError(CarbonChainException):
    """Ruolo non autorizzato"""
    http_status = 403


# ============================================================================
# RECORD / PROJECT ERRORS
# ============================================================================

class RecordNotFoundError(CarbonChainException):
    """Record non trovato"""
    http_status = 404


class ProjectNotFoundError(RecordNotFoundError):
    """Progetto non trovato"""
    pass


class ProfileNotFoundError(RecordNotFoundError):
    """Profilo non trovato"""
    pass


class InvalidProjectStateError(CarbonChainException):
    """Transizione di stato progetto non ammessa"""
    http_status = 409


# ============================================================================
# SETTLEMENT ERRORS
# ============================================================================

class SettlementError(CarbonChainException):
    """Errore acquisto crediti (base)"""
    http_status = 400


class InsufficientCreditsError(SettlementError):
    """Crediti disponibili insufficienti"""
    pass


class InsufficientBalanceError(SettlementError):
    """Saldo nativo del wallet insufficiente"""
    pass


class InventoryDecrementError(SettlementError):
    """Decremento atomico available_credits rifiutato"""
    http_status = 409


# ============================================================================
# STORAGE ERRORS
# ============================================================================

class StorageError(CarbonChainException):
    """Errore storage/database"""
    pass


class DatabaseError(StorageError):
    """Errore database generico"""
    pass


# ============================================================================
# BLOCKCHAIN ERRORS
# ============================================================================

class BlockchainError(CarbonChainException):
    """Errore generico interazione blockchain"""
    pass


class ContractCallError(BlockchainError):
    """Chiamata contratto fallita o revert"""
    pass


class TransactionRejectedError(BlockchainError):
    """Firma rifiutata dall'utente (codice 4001)"""
    http_status = 400


class ChainMismatchError(BlockchainError):
    """Wallet connesso a chain diversa"""
    pass


class WalletUnavailableError(BlockchainError):
    """Nessun wallet/account disponibile"""
    pass


# ============================================================================
# METADATA ERRORS
# ============================================================================

class MetadataError(CarbonChainException):
    """Errore storage metadata off-chain"""
    pass


class MetadataUploadError(MetadataError):
    """Upload metadata fallito"""
    pass


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "CarbonChainException",
    "ConfigError",
    "ValidationError",
    "MissingFieldError",
    "InvalidAddressError",
    "InvalidAmountError",
    "AuthenticationRequiredError",
    "PermissionDeniedError",
    "RecordNotFoundError",
    "ProjectNotFoundError",
    "ProfileNotFoundError",
    "InvalidProjectStateError",
    "SettlementError",
    "InsufficientCreditsError",
    "InsufficientBalanceError",
    "InventoryDecrementError",
    "StorageError",
    "DatabaseError",
    "BlockchainError",
    "ContractCallError",
    "TransactionRejectedError",
    "ChainMismatchError",
    "WalletUnavailableError",
    "MetadataError",
    "MetadataUploadError",
]
