"""
CarbonChain - Domain Package
==============================
Modelli di dominio della piattaforma (form, esiti, ricevute).
"""

from carbon_chain.domain.models import (
    effective_available_credits,
    REQUIRED_PROJECT_FIELDS,
    MediaAttachment,
    ProjectForm,
    MintResult,
    IssuanceOutcome,
    SettlementReceipt,
    PortfolioEntry,
    PortfolioSummary,
)


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
