"""
CarbonChain - Core Domain Models
==================================
Strutture dati del dominio: form di submission, esiti emissione,
ricevute acquisto, riepilogo portfolio.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Models:
- MediaAttachment: Media allegato a un progetto (solo URL)
- ProjectForm: Dati form submission NGO
- MintResult: Esito mint on-chain
- IssuanceOutcome: Esito bridge approvazione -> mint
- SettlementReceipt: Ricevuta acquisto crediti
- PortfolioEntry / PortfolioSummary: Aggregazione wallet acquirente

Le strutture di esito sono immutabili (frozen).
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Optional, List, Dict, Any, Mapping

from carbon_chain.constants import IssuanceStatus


# ============================================================================
# AVAILABLE CREDITS
# ============================================================================

def effective_available_credits(project: Mapping[str, Any]) -> int:
    """
    Crediti disponibili effettivi di un progetto.

    available_credits è inizializzato pigramente alla stima finché non
    avviene il primo decremento: se NULL vale estimated_co2_tons.

    Examples:
        >>> effective_available_credits({"available_credits": None, "estimated_co2_tons": 400})
        400
        >>> effective_available_credits({"available_credits": 100, "estimated_co2_tons": 400})
        100
    """
    available = project.get("available_credits")
    if available is None:
        return int(project.get("estimated_co2_tons") or 0)
    return int(available)


# ============================================================================
# PROJECT INTAKE
# ============================================================================

@dataclass
class MediaAttachment:
    """
    Media di progetto già caricato altrove.

    Attributes:
        file_url: URL pubblico del file
        file_name: Nome originale
        mime_type: MIME type (decide media_type)
        file_size: Dimensione in byte
    """
    file_url: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


# Campi obbligatori del form, nell'ordine del form originale
REQUIRED_PROJECT_FIELDS = (
    "project_name",
    "project_type",
    "description",
    "start_date",
    "country",
    "region",
    "latitude",
    "longitude",
    "total_area",
    "planted_area",
    "species",
)


@dataclass
class ProjectForm:
    """
    Form di submission progetto (NGO).

    Tutti i campi sono opzionali a livello di tipo: la validazione
    di presenza è fatta da ProjectService tramite missing_fields().
    """
    project_name: Optional[str] = None
    project_type: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    total_area: Optional[float] = None
    planted_area: Optional[float] = None
    species: Optional[str] = None
    media: List[MediaAttachment] = field(default_factory=list)

    def missing_fields(self) -> List[str]:
        """Campi obbligatori assenti o vuoti"""
        missing = []
        for name in REQUIRED_PROJECT_FIELDS:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProjectForm:
        """Costruisce form da dict (chiavi snake_case)"""
        media = [
            m if isinstance(m, MediaAttachment) else MediaAttachment(**m)
            for m in data.get("media") or []
        ]
        values = {name: data.get(name) for name in REQUIRED_PROJECT_FIELDS}
        return cls(**values, media=media)


# ============================================================================
# ISSUANCE
# ============================================================================

@dataclass(frozen=True)
class MintResult:
    """Esito mint on-chain"""
    token_id: str
    transaction_hash: str
    metadata_uri: str
    credits_amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "transactionHash": self.transaction_hash,
            "metadataURI": self.metadata_uri,
            "creditsAmount": self.credits_amount,
        }


@dataclass(frozen=True)
class IssuanceOutcome:
    """
    Esito approvazione progetto.

    Attributes:
        project_id: Progetto approvato
        status: deferred (nessun wallet) o tokenized (mint eseguito)
        token_id: Token emesso (None se deferred)
        transaction_hash: Hash transazione mint (None se deferred)
        metadata_uri: URI metadata caricati (None se deferred)
        mirror_recorded: Riga carbon_credits inserita
        project_updated: Progetto aggiornato a tokenized
    """
    project_id: str
    status: IssuanceStatus
    token_id: Optional[str] = None
    transaction_hash: Optional[str] = None
    metadata_uri: Optional[str] = None
    mirror_recorded: bool = False
    project_updated: bool = False

    @property
    def is_consistent(self) -> bool:
        """False se chain e database divergono"""
        if self.status == IssuanceStatus.DEFERRED:
            return True
        return self.mirror_recorded and self.project_updated

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["is_consistent"] = self.is_consistent
        return data


# ============================================================================
# SETTLEMENT
# ============================================================================

@dataclass(frozen=True)
class SettlementReceipt:
    """
    Ricevuta acquisto crediti.

    recorded/inventory_updated segnalano i passi post-pagamento riusciti:
    il pagamento è comunque avvenuto.
    """
    project_id: str
    buyer_id: str
    quantity: int
    total_native: Decimal
    total_amount: float
    transaction_hash: str
    recorded: bool
    inventory_updated: bool
    remaining_credits: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_native"] = str(self.total_native)
        return data


# ============================================================================
# PORTFOLIO
# ============================================================================

@dataclass(frozen=True)
class PortfolioEntry:
    """Transazione acquirente arricchita con dati progetto"""
    transaction_id: str
    project_id: Optional[str]
    project_title: Optional[str]
    project_type: Optional[str]
    amount_tons: int
    total_amount: float
    price_per_ton: float
    transaction_hash: Optional[str]
    status: str
    created_at: Optional[str]


@dataclass(frozen=True)
class PortfolioSummary:
    """Totali portfolio (zeri se nessuna transazione)"""
    total_value: float = 0.0
    total_tokens: int = 0
    transaction_count: int = 0
    transactions: List[PortfolioEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "effective_available_credits",
    "REQUIRED_PROJECT_FIELDS",
    "MediaAttachment",
    "ProjectForm",
    "MintResult",
    "IssuanceOutcome",
    "SettlementReceipt",
    "PortfolioEntry",
    "PortfolioSummary",
]
