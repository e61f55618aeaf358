"""
CarbonChain - Configuration Management
=======================================
Gestione centralizzata configurazione con Pydantic Settings.
Supporta environment variables, file .env, override runtime.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Validazione automatica tipi
- Environment variables con prefisso CARBONCHAIN_
- File .env support
- Profile multipli (dev/prod)
- Secrets management (chiave signer, token metadata store)

Rete, contratto, fee recipient e prezzo unitario NON sono configurabili:
vedi carbon_chain.constants.
"""

import os
from pathlib import Path
from typing import Optional, List
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from carbon_chain.constants import DEFAULT_RPC_URL, EXPLORER_API_URL


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class PlatformSettings(BaseSettings):
    """
    Configurazione principale piattaforma CarbonChain.

    Supporta:
    - Caricamento da environment variables (CARBONCHAIN_*)
    - Caricamento da file .env
    - Override programmatici
    - Validazione automatica

    Example:
        # Da environment
        export CARBONCHAIN_DATABASE_URL="postgresql+psycopg2://user:pw@db/carbon"
        export CARBONCHAIN_RPC_URL="https://rpc-amoy.polygon.technology/"

        # Da codice
        config = PlatformSettings(dev_mode=True)
    """

    model_config = SettingsConfigDict(
        env_prefix='CARBONCHAIN_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # ========================================================================
    # STORAGE
    # ========================================================================

    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory dati piattaforma"
    )

    database_url: Optional[str] = Field(
        default=None,
        description="URL SQLAlchemy (auto: sqlite in data_dir/carbonchain.db)"
    )

    database_echo: bool = Field(
        default=False,
        description="Log SQL statements"
    )

    # ========================================================================
    # BLOCKCHAIN
    # ========================================================================

    rpc_url: str = Field(
        default=DEFAULT_RPC_URL,
        description="JSON-RPC endpoint Polygon Amoy"
    )

    signer_private_key: Optional[SecretStr] = Field(
        default=None,
        description="Chiave privata signer (verifier/buyer server-side)"
    )

    receipt_timeout_seconds: int = Field(
        default=120,
        ge=10,
        le=3600,
        description="Attesa conferma transazione (secondi)"
    )

    explorer_api_url: str = Field(
        default=EXPLORER_API_URL,
        description="API explorer per storico transazioni"
    )

    explorer_api_key: Optional[str] = Field(
        default=None,
        description="API key explorer"
    )

    # ========================================================================
    # METADATA STORAGE
    # ========================================================================

    metadata_backend: str = Field(
        default="local",
        description="Backend metadata: http, local"
    )

    metadata_base_url: Optional[str] = Field(
        default=None,
        description="Base URL blob storage (backend http)"
    )

    metadata_token: Optional[SecretStr] = Field(
        default=None,
        description="Bearer token blob storage"
    )

    metadata_dir: Optional[Path] = Field(
        default=None,
        description="Directory metadata (backend local, auto: data_dir/metadata)"
    )

    metadata_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Timeout HTTP upload metadata"
    )

    # ========================================================================
    # MONITORING
    # ========================================================================

    monitoring_latency_scale: float = Field(
        default=1.0,
        ge=0.0,
        le=10.0,
        description="Moltiplicatore latenza simulata servizio MRV (0 = istantaneo)"
    )

    # ========================================================================
    # API
    # ========================================================================

    api_host: str = Field(
        default="0.0.0.0",
        description="Host API"
    )

    api_port: int = Field(
        default=8000,
        ge=1024,
        le=65535,
        description="Porta API REST"
    )

    api_enable_cors: bool = Field(
        default=True,
        description="Abilita CORS per API"
    )

    api_cors_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins"
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_to_file: bool = Field(
        default=True,
        description="Salva log su file"
    )

    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory log files"
    )

    log_format: str = Field(
        default="json",
        description="Formato log: json, text"
    )

    log_rotation_mb: int = Field(
        default=100,
        ge=1,
        description="Dimensione max file log prima rotation (MB)"
    )

    log_retention_days: int = Field(
        default=30,
        ge=1,
        description="Giorni retention log files"
    )

    # ========================================================================
    # DEVELOPMENT
    # ========================================================================

    dev_mode: bool = Field(
        default=False,
        description="Modalità sviluppo"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Valida log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Valida formato log"""
        v_lower = v.lower()
        if v_lower not in ('json', 'text'):
            raise ValueError(f"Invalid log_format: {v}. Must be json or text")
        return v_lower

    @field_validator('metadata_backend')
    @classmethod
    def validate_metadata_backend(cls, v: str) -> str:
        """Valida backend metadata"""
        valid_backends = ['http', 'local']
        v_lower = v.lower()
        if v_lower not in valid_backends:
            raise ValueError(f"Invalid metadata_backend: {v}. Must be one of {valid_backends}")
        return v_lower

    @field_validator('metadata_base_url')
    @classmethod
    def validate_metadata_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Normalizza base URL (senza slash finale)"""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid metadata_base_url: {v}")
        return v.rstrip("/")

    # ========================================================================
    # POST-INIT PROCESSING
    # ========================================================================

    def model_post_init(self, __context) -> None:
        """Post-initialization: setup paths"""

        if self.database_url is None:
            self.database_url = f"sqlite:///{self.data_dir / 'carbonchain.db'}"

        if self.metadata_dir is None:
            self.metadata_dir = self.data_dir / "metadata"

        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def is_sqlite(self) -> bool:
        """Check se database SQLite"""
        return self.database_url.startswith("sqlite")

    def has_signer(self) -> bool:
        """Check se chiave signer configurata"""
        return self.signer_private_key is not None

    def to_dict(self) -> dict:
        """Serializza config (secrets mascherati)"""
        return self.model_dump()

    def to_json(self) -> str:
        """Serializza config in JSON"""
        return self.model_dump_json(indent=2)

    def __repr__(self) -> str:
        return (
            f"PlatformSettings("
            f"database_url={self.database_url}, "
            f"rpc_url={self.rpc_url}, "
            f"metadata_backend={self.metadata_backend}, "
            f"dev_mode={self.dev_mode})"
        )


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

@lru_cache(maxsize=1)
def get_settings() -> PlatformSettings:
    """
    Ottieni instance cached di PlatformSettings.

    Returns:
        PlatformSettings: Instance configurazione

    Example:
        >>> config = get_settings()
        >>> config.metadata_backend
        'local'
    """
    return PlatformSettings()


def reload_settings() -> PlatformSettings:
    """
    Ricarica settings (invalida cache).

    Usare quando si cambiano environment variables runtime.
    """
    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> PlatformSettings:
    """
    Override settings con valori custom.

    Utile per testing.

    Example:
        >>> test_config = override_settings(dev_mode=True, log_to_file=False)
    """
    return PlatformSettings(**kwargs)


# ============================================================================
# PROFILE PRESETS
# ============================================================================

def get_development_config() -> PlatformSettings:
    """
    Config preset per development.

    Features:
    - Dev mode enabled
    - SQLite locale, metadata su filesystem
    - Log DEBUG in formato testo
    """
    return PlatformSettings(
        dev_mode=True,
        metadata_backend="local",
        log_level="DEBUG",
        log_format="text",
    )


def get_production_config() -> PlatformSettings:
    """
    Config preset per production.

    Features:
    - Metadata su blob storage HTTP
    - Log WARNING in JSON
    """
    return PlatformSettings(
        dev_mode=False,
        metadata_backend="http",
        log_level="WARNING",
        log_format="json",
    )


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_config(config: PlatformSettings) -> tuple[bool, list[str]]:
    """
    Valida configurazione completa.

    Args:
        config: PlatformSettings da validare

    Returns:
        tuple: (is_valid, errors_list)

    Example:
        >>> is_valid, errors = validate_config(get_settings())
    """
    errors = []

    if config.metadata_backend == "http" and not config.metadata_base_url:
        errors.append("metadata_backend=http requires metadata_base_url")

    if config.metadata_backend == "http" and config.metadata_token is None:
        errors.append("WARNING: metadata_backend=http without metadata_token")

    if not config.has_signer():
        errors.append("WARNING: signer_private_key not set, chain writes disabled")

    if not config.dev_mode and config.is_sqlite():
        errors.append("WARNING: SQLite database outside dev_mode")

    for dir_path in [config.data_dir]:
        if not os.access(dir_path, os.W_OK):
            errors.append(f"Directory not writable: {dir_path}")

    hard_errors = [e for e in errors if not e.startswith("WARNING")]
    return (len(hard_errors) == 0, errors)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PlatformSettings",
    "get_settings",
    "reload_settings",
    "override_settings",
    "get_development_config",
    "get_production_config",
    "validate_config",
]
