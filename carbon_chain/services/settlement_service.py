"""
CarbonChain - Settlement Service
==================================
Acquisto crediti dal marketplace: pagamento nativo al fee recipient,
ricevuta database, decremento atomico inventario.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Il pagamento NON trasferisce un token on-chain all'acquirente: la
ricevuta è solo database. Dopo il pagamento nessun passo viene
annullato; i fallimenti successivi sono loggati e auditati.
"""

from typing import Optional

# Internal imports
from carbon_chain.blockchain.wallet_provider import WalletProvider
from carbon_chain.config import PlatformSettings
from carbon_chain.constants import (
    CHAIN_ID,
    FEE_RECIPIENT,
    MARKETPLACE_STATUSES,
    NATIVE_TOKEN_USD_RATE,
    TransactionStatus,
    settlement_price_wei,
    wei_to_native,
)
from carbon_chain.domain.models import SettlementReceipt, effective_available_credits
from carbon_chain.errors import (
    AuthenticationRequiredError,
    ContractCallError,
    DatabaseError,
    InsufficientBalanceError,
    InsufficientCreditsError,
    InvalidProjectStateError,
    InventoryDecrementError,
    ProjectNotFoundError,
    TransactionRejectedError,
    WalletUnavailableError,
)
from carbon_chain.logging_setup import get_logger, AuditLogger, PerformanceLogger
from carbon_chain.storage.db import PlatformDatabase
from carbon_chain.utils.validators import validate_positive_int


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("settlement")


class SettlementService:
    """
    Servizio acquisto crediti.

    Attributes:
        db: Platform database
        wallet: Wallet di default (se il chiamante non ne passa uno)
        config: Platform configuration

    Examples:
        >>> service = SettlementService(db, wallet, config)
        >>> receipt = service.purchase(project_id, 10, buyer_id)
        >>> receipt.remaining_credits
        390
    """

    def __init__(
        self,
        db: PlatformDatabase,
        wallet: Optional[WalletProvider],
        config: PlatformSettings,
        audit: Optional[AuditLogger] = None
    ):
        self.db = db
        self.wallet = wallet
        self.config = config
        self.audit = audit or AuditLogger()

    def purchase(
        self,
        project_id: str,
        quantity: int,
        buyer_id: Optional[str],
        wallet: Optional[WalletProvider] = None
    ) -> SettlementReceipt:
        """
        Acquista `quantity` crediti di un progetto.

        Precondizioni verificate prima di qualsiasi pagamento.

        Args:
            project_id: Progetto verified o tokenized
            quantity: Crediti (intero > 0)
            buyer_id: Profilo autenticato acquirente
            wallet: Wallet connesso dell'acquirente

        Returns:
            SettlementReceipt: Ricevuta (recorded/inventory_updated per i passi post-pagamento)

        Raises:
            InvalidAmountError: quantity non valida
            AuthenticationRequiredError: Acquirente non autenticato
            ProjectNotFoundError: Progetto inesistente
            InvalidProjectStateError: Progetto non in marketplace
            InsufficientCreditsError: quantity > crediti disponibili
            WalletUnavailableError: Nessun wallet connesso
            ChainMismatchError: Wallet su chain errata
            InsufficientBalanceError: Saldo nativo insufficiente
            TransactionRejectedError: Firma annullata dall'utente
            ContractCallError: Pagamento revertito
        """
        quantity = validate_positive_int(quantity, "quantity")

        buyer = self.db.get_profile(buyer_id) if buyer_id else None
        if buyer is None:
            raise AuthenticationRequiredError(
                "Please log in to purchase credits",
                code="AUTH_REQUIRED"
            )

        project = self.db.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(
                f"Project not found: {project_id}",
                code="PROJECT_NOT_FOUND"
            )
        if project["status"] not in MARKETPLACE_STATUSES:
            raise InvalidProjectStateError(
                f"Project {project_id} is not available for purchase",
                code="NOT_FOR_SALE",
                details={"status": project["status"]}
            )

        available = effective_available_credits(project)
        if quantity > available:
            raise InsufficientCreditsError(
                f"Only {available} credits available",
                code="INSUFFICIENT_CREDITS",
                details={"requested": quantity, "available": available}
            )

        wallet = wallet or self.wallet
        accounts = wallet.request_accounts() if wallet is not None else []
        if not accounts:
            raise WalletUnavailableError(
                "Please connect your wallet first",
                code="WALLET_UNAVAILABLE"
            )
        buyer_address = accounts[0]

        wallet.switch_chain(CHAIN_ID)

        total_wei = settlement_price_wei(quantity)
        balance = wallet.get_balance(buyer_address)
        if balance < total_wei:
            raise InsufficientBalanceError(
                "Insufficient balance",
                code="INSUFFICIENT_BALANCE",
                details={"required_wei": str(total_wei), "balance_wei": str(balance)}
            )

        # Steps 1-2: pagamento e conferma
        with PerformanceLogger(logger, "settlement_payment"):
            try:
                tx_hash = wallet.send_transaction({
                    "from": buyer_address,
                    "to": FEE_RECIPIENT,
                    "value": total_wei,
                    "chainId": CHAIN_ID,
                })
            except TransactionRejectedError:
                logger.info(
                    "Purchase cancelled by user",
                    extra_data={"project_id": project_id, "buyer_id": buyer["id"]}
                )
                raise
            receipt = wallet.wait_for_receipt(tx_hash)

        if receipt.get("status") != 1:
            raise ContractCallError(
                "Payment transaction reverted",
                code="TX_REVERTED",
                details={"tx_hash": tx_hash}
            )

        total_native = wei_to_native(total_wei)
        total_amount = float(total_native * NATIVE_TOKEN_USD_RATE)

        # Step 3: ricevuta
        recorded = True
        try:
            self.db.insert_transaction(
                buyer_id=buyer["id"],
                seller_id=None,
                credit_id=None,
                project_id=project_id,
                amount_tons=quantity,
                total_amount=total_amount,
                price_per_ton=total_amount / quantity,
                transaction_hash=tx_hash,
                status=TransactionStatus.COMPLETED.value,
            )
        except DatabaseError as e:
            recorded = False
            logger.error(
                "Payment succeeded but transaction record failed",
                extra_data={"project_id": project_id, "tx_hash": tx_hash, "error": str(e)}
            )
            self.audit.log_divergence(
                "payment_without_receipt", project_id, tx_hash, str(e),
                buyer_id=buyer["id"], quantity=quantity
            )

        # Step 4: decremento atomico
        inventory_updated = True
        remaining: Optional[int] = None
        try:
            remaining = self.db.decrement_available_credits(project_id, quantity)
        except (InventoryDecrementError, ProjectNotFoundError, DatabaseError) as e:
            inventory_updated = False
            logger.error(
                "Payment succeeded but inventory decrement failed",
                extra_data={"project_id": project_id, "tx_hash": tx_hash, "quantity": quantity, "error": str(e)}
            )
            self.audit.log_divergence(
                "payment_without_decrement", project_id, tx_hash, str(e),
                buyer_id=buyer["id"], quantity=quantity
            )

        self.audit.log_settlement(project_id, buyer["id"], quantity, total_wei, tx_hash)
        logger.info(
            "Credits purchased",
            extra_data={
                "project_id": project_id,
                "buyer_id": buyer["id"],
                "quantity": quantity,
                "tx_hash": tx_hash,
                "recorded": recorded,
                "inventory_updated": inventory_updated,
            }
        )

        return SettlementReceipt(
            project_id=project_id,
            buyer_id=buyer["id"],
            quantity=quantity,
            total_native=total_native,
            total_amount=total_amount,
            transaction_hash=tx_hash,
            recorded=recorded,
            inventory_updated=inventory_updated,
            remaining_credits=remaining,
        )


__all__ = ["SettlementService"]
