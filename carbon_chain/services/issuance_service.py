"""
CarbonChain - Issuance Service
================================
Bridge approvazione admin -> mint on-chain -> mirror locale.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Passi (non transazionali, nessun rollback):
1. Progetto -> verified (data, note, available_credits = stima)
2. Nessun wallet valido sul profilo: stop, emissione rimandata
3. Upload metadata off-chain
4. Mint on-chain, token id dall'evento CreditMinted
5. Riga mirror carbon_credits
6. Progetto -> tokenized con hash transazione

Se 4 riesce e 5/6 falliscono chain e database divergono: errore
loggato e record audit, nessuna riconciliazione.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Internal imports
from carbon_chain.blockchain.client import CarbonCreditContract
from carbon_chain.config import PlatformSettings
from carbon_chain.constants import CreditStatus, IssuanceStatus, ProjectStatus
from carbon_chain.domain.models import IssuanceOutcome, MintResult
from carbon_chain.errors import (
    BlockchainError,
    DatabaseError,
    InvalidAmountError,
    InvalidProjectStateError,
    MetadataError,
    MissingFieldError,
    ProjectNotFoundError,
)
from carbon_chain.logging_setup import get_logger, AuditLogger
from carbon_chain.metadata.store import MetadataStore
from carbon_chain.storage.db import PlatformDatabase
from carbon_chain.utils.validators import (
    is_evm_address,
    validate_evm_address,
    validate_positive_int,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("issuance")


class IssuanceService:
    """
    Servizio emissione crediti.

    Attributes:
        db: Platform database
        contract: Client contratto crediti
        metadata_store: Storage metadata
        config: Platform configuration

    Examples:
        >>> service = IssuanceService(db, contract, metadata_store, config)
        >>> outcome = service.approve_project(project_id, "Site visit OK")
        >>> outcome.status
        <IssuanceStatus.TOKENIZED: 'tokenized'>
    """

    def __init__(
        self,
        db: PlatformDatabase,
        contract: CarbonCreditContract,
        metadata_store: MetadataStore,
        config: PlatformSettings,
        audit: Optional[AuditLogger] = None
    ):
        self.db = db
        self.contract = contract
        self.metadata_store = metadata_store
        self.config = config
        self.audit = audit or AuditLogger()

    # ========================================================================
    # REVIEW
    # ========================================================================

    def _load_pending(self, project_id: str) -> Dict[str, Any]:
        project = self.db.get_project(project_id, include_submitter=True)
        if project is None:
            raise ProjectNotFoundError(
                f"Project not found: {project_id}",
                code="PROJECT_NOT_FOUND"
            )
        if project["status"] != ProjectStatus.PENDING.value:
            raise InvalidProjectStateError(
                f"Project {project_id} is {project['status']}, expected pending",
                code="INVALID_PROJECT_STATE",
                details={"status": project["status"]}
            )
        return project

    def approve_project(self, project_id: str, notes: str = "") -> IssuanceOutcome:
        """
        Approva progetto ed emette i crediti.

        Args:
            project_id: Progetto pending
            notes: Note di verifica

        Returns:
            IssuanceOutcome: deferred (nessun wallet) o tokenized

        Raises:
            ProjectNotFoundError: Progetto inesistente
            InvalidProjectStateError: Progetto non pending
            InvalidAmountError: Stima crediti non positiva
            MetadataError: Upload metadata fallito (progetto resta verified)
            BlockchainError: Mint fallito (progetto resta verified)
        """
        project = self._load_pending(project_id)
        amount = project["estimated_co2_tons"]
        if not amount or amount <= 0:
            raise InvalidAmountError(
                f"Project {project_id} has no estimated credits",
                code="INVALID_AMOUNT",
                details={"estimated_co2_tons": amount}
            )

        # Step 1: verified (UPDATE condizionale su status pending)
        self.db.transition_project(
            project_id,
            ProjectStatus.PENDING,
            status=ProjectStatus.VERIFIED.value,
            verification_date=datetime.now(timezone.utc),
            verification_notes=notes,
            available_credits=amount,
        )
        self.audit.log_review_decision(project_id, ProjectStatus.VERIFIED.value, notes)
        logger.info("Project verified", extra_data={"project_id": project_id, "credits": amount})

        # Step 2: wallet destinatario
        submitter = project.get("submitter") or {}
        recipient = submitter.get("address")
        if not is_evm_address(recipient):
            logger.warning(
                "NGO wallet address not set, issuance deferred",
                extra_data={"project_id": project_id, "submitted_by": project["submitted_by"]}
            )
            return IssuanceOutcome(project_id=project_id, status=IssuanceStatus.DEFERRED)

        # Steps 3-4: metadata + mint
        try:
            metadata_uri = self.metadata_store.upload_project_data({
                "projectId": project_id,
                "title": project["title"],
                "projectType": project["project_type"],
                "areaHectares": project["area_hectares"],
                "estimatedCO2Tons": amount,
                "verificationNotes": notes,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            tx_hash, token_id = self.contract.mint_credit(recipient, amount, metadata_uri)
        except (MetadataError, BlockchainError) as e:
            logger.error(
                "Minting failed, project stays verified",
                extra_data={"project_id": project_id, "error": str(e)}
            )
            raise

        self.audit.log_mint(project_id, token_id, amount, recipient, tx_hash)

        # Step 5: mirror locale
        mirror_recorded = True
        try:
            self.db.insert_credit(
                project_id=project_id,
                token_id=token_id,
                amount_tons=amount,
                price_per_ton=0,
                total_value=0,
                status=CreditStatus.AVAILABLE.value,
                owner_id=project["submitted_by"],
                blockchain_address=recipient,
            )
        except DatabaseError as e:
            mirror_recorded = False
            logger.error(
                "Credit mirror insert failed after mint",
                extra_data={"project_id": project_id, "token_id": token_id, "tx_hash": tx_hash, "error": str(e)}
            )
            self.audit.log_divergence(
                "mint_without_mirror", project_id, tx_hash, str(e), token_id=token_id
            )

        # Step 6: tokenized
        project_updated = True
        try:
            self.db.update_project(
                project_id,
                status=ProjectStatus.TOKENIZED.value,
                blockchain_hash=tx_hash,
            )
        except DatabaseError as e:
            project_updated = False
            logger.error(
                "Project update failed after mint",
                extra_data={"project_id": project_id, "tx_hash": tx_hash, "error": str(e)}
            )
            self.audit.log_divergence(
                "mint_without_project_update", project_id, tx_hash, str(e), token_id=token_id
            )

        logger.info(
            "Credits minted",
            extra_data={
                "project_id": project_id,
                "token_id": token_id,
                "tx_hash": tx_hash,
                "mirror_recorded": mirror_recorded,
                "project_updated": project_updated,
            }
        )

        return IssuanceOutcome(
            project_id=project_id,
            status=IssuanceStatus.TOKENIZED,
            token_id=token_id,
            transaction_hash=tx_hash,
            metadata_uri=metadata_uri,
            mirror_recorded=mirror_recorded,
            project_updated=project_updated,
        )

    def reject_project(self, project_id: str, notes: Optional[str]) -> Dict[str, Any]:
        """
        Rifiuta progetto pending.

        Raises:
            MissingFieldError: Note assenti (motivazione obbligatoria)
        """
        if not notes or not notes.strip():
            raise MissingFieldError(
                "Please provide notes explaining the rejection",
                code="MISSING_FIELDS",
                details={"missing": ["notes"]}
            )

        self._load_pending(project_id)
        project = self.db.transition_project(
            project_id,
            ProjectStatus.PENDING,
            status=ProjectStatus.REJECTED.value,
            verification_date=datetime.now(timezone.utc),
            verification_notes=notes.strip(),
        )
        self.audit.log_review_decision(project_id, ProjectStatus.REJECTED.value, notes.strip())
        logger.info("Project rejected", extra_data={"project_id": project_id})
        return project

    # ========================================================================
    # DIRECT MINT
    # ========================================================================

    def mint_credits(
        self,
        project_id: Optional[str],
        recipient: Optional[str],
        amount: Any,
        verification_data: Any
    ) -> MintResult:
        """
        Mint diretto (senza scritture database).

        Args:
            project_id: Riferimento progetto (solo nei metadata)
            recipient: Indirizzo destinatario
            amount: Crediti (intero > 0)
            verification_data: Dati di verifica inclusi nei metadata
        """
        missing = [
            name for name, value in (
                ("projectId", project_id),
                ("recipientAddress", recipient),
                ("creditsAmount", amount),
                ("verificationData", verification_data),
            ) if not value
        ]
        if missing:
            raise MissingFieldError(
                "Missing required fields",
                code="MISSING_FIELDS",
                details={"missing": missing}
            )

        recipient = validate_evm_address(recipient, "recipientAddress")
        amount = validate_positive_int(amount, "creditsAmount")

        metadata_uri = self.metadata_store.upload_project_data({
            "projectId": project_id,
            "verificationData": verification_data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        tx_hash, token_id = self.contract.mint_credit(recipient, amount, metadata_uri)

        self.audit.log_mint(str(project_id), token_id, amount, recipient, tx_hash)

        return MintResult(
            token_id=token_id,
            transaction_hash=tx_hash,
            metadata_uri=metadata_uri,
            credits_amount=amount,
        )


__all__ = ["IssuanceService"]
