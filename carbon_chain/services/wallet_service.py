"""
CarbonChain - Wallet Service
==============================
Servizio lettura wallet: portfolio acquirente, saldo token, storico.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Portfolio da transazioni database (nessuna mutazione)
- Saldo token CCT dal contratto
- Storico transazioni da explorer API
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

# Internal imports
from carbon_chain.blockchain.client import CarbonCreditContract
from carbon_chain.config import PlatformSettings
from carbon_chain.constants import (
    CONTRACT_ADDRESS,
    CREDIT_TOKEN_NAME,
    CREDIT_TOKEN_PRICE_USD,
    CREDIT_TOKEN_SYMBOL,
    NATIVE_CURRENCY_SYMBOL,
    wei_to_native,
)
from carbon_chain.domain.models import PortfolioEntry, PortfolioSummary
from carbon_chain.errors import BlockchainError, ValidationError
from carbon_chain.logging_setup import get_logger
from carbon_chain.storage.db import PlatformDatabase
from carbon_chain.utils.validators import (
    validate_evm_address,
    validate_positive_number,
    require_fields,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("wallet_service")

HISTORY_LIMIT = 10


class WalletService:
    """
    Servizio wallet (read side).

    Attributes:
        db: Platform database
        contract: Client contratto crediti
        config: Platform configuration

    Examples:
        >>> service = WalletService(db, contract, config)
        >>> summary = service.portfolio(buyer_id)
        >>> summary.total_tokens
        10
    """

    def __init__(
        self,
        db: PlatformDatabase,
        contract: CarbonCreditContract,
        config: PlatformSettings
    ):
        self.db = db
        self.contract = contract
        self.config = config
        self.session = requests.Session()

    # ========================================================================
    # PORTFOLIO
    # ========================================================================

    def portfolio(self, buyer_id: str) -> PortfolioSummary:
        """
        Portfolio acquirente.

        Somme di amount_tons e total_amount sulle transazioni del buyer,
        arricchite con titolo e tipo progetto.
        """
        transactions = self.db.list_transactions_for_buyer(buyer_id)
        if not transactions:
            return PortfolioSummary()

        # Righe legacy: project_id assente, credit_id al suo posto
        project_ids = [tx["project_id"] or tx["credit_id"] for tx in transactions]
        projects = self.db.get_projects_by_ids(project_ids)

        entries = []
        for tx, project_id in zip(transactions, project_ids):
            project = projects.get(project_id) or {}
            entries.append(PortfolioEntry(
                transaction_id=tx["id"],
                project_id=project_id,
                project_title=project.get("title"),
                project_type=project.get("project_type"),
                amount_tons=tx["amount_tons"] or 0,
                total_amount=tx["total_amount"] or 0.0,
                price_per_ton=tx["price_per_ton"] or 0.0,
                transaction_hash=tx["transaction_hash"],
                status=tx["status"],
                created_at=tx["created_at"],
            ))

        return PortfolioSummary(
            total_value=sum(e.total_amount for e in entries),
            total_tokens=sum(e.amount_tons for e in entries),
            transaction_count=len(entries),
            transactions=entries,
        )

    # ========================================================================
    # ON-CHAIN BALANCES
    # ========================================================================

    def token_balances(self, address: str) -> List[Dict]:
        """
        Saldo token CCT (decimals 0, prezzo di riferimento fisso).

        Raises:
            InvalidAddressError: Indirizzo malformato
        """
        validate_evm_address(address)

        # balance_of ritorna 0 su errore RPC
        balance = self.contract.balance_of(address)
        return [{
            "symbol": CREDIT_TOKEN_SYMBOL,
            "name": CREDIT_TOKEN_NAME,
            "balance": balance,
            "decimals": 0,
            "contractAddress": CONTRACT_ADDRESS,
            "priceUSD": CREDIT_TOKEN_PRICE_USD,
            "value": balance * CREDIT_TOKEN_PRICE_USD,
        }]

    def send_tokens(
        self,
        token_address: Optional[str],
        recipient_address: Optional[str],
        amount,
        sender_address: Optional[str]
    ) -> str:
        """
        Trasferimento diretto: non supportato.

        Valida la richiesta, poi rifiuta sempre: i trasferimenti
        passano dalle funzioni marketplace.
        """
        require_fields(
            {
                "tokenAddress": token_address,
                "recipientAddress": recipient_address,
                "amount": amount,
                "senderAddress": sender_address,
            },
            ("tokenAddress", "recipientAddress", "amount", "senderAddress"),
        )
        validate_evm_address(token_address, "tokenAddress")
        validate_evm_address(recipient_address, "recipientAddress")
        validate_evm_address(sender_address, "senderAddress")
        try:
            validate_positive_number(float(amount), "amount")
        except (TypeError, ValueError):
            raise ValidationError("Invalid amount", code="INVALID_AMOUNT")

        logger.info(
            "Direct token transfer refused",
            extra_data={"token": token_address, "to": recipient_address, "from": sender_address}
        )
        raise BlockchainError(
            "Direct token transfers should use the marketplace functions",
            code="TRANSFER_NOT_SUPPORTED"
        )

    def transaction_history(self, address: str) -> List[Dict]:
        """
        Ultime transazioni native dall'explorer (max 10, lista vuota su errore).
        """
        validate_evm_address(address)

        params = {
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": 0,
            "endblock": 99999999,
            "sort": "desc",
        }
        if self.config.explorer_api_key:
            params["apikey"] = self.config.explorer_api_key

        try:
            response = self.session.get(self.config.explorer_api_url, params=params, timeout=30)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Error fetching transaction history", extra_data={"address": address, "error": str(e)})
            return []

        if data.get("status") != "1" or not isinstance(data.get("result"), list):
            return []

        history = []
        for tx in data["result"][:HISTORY_LIMIT]:
            try:
                history.append({
                    "hash": tx["hash"],
                    "from": tx["from"],
                    "to": tx["to"],
                    "value": format(wei_to_native(int(tx["value"])), "f"),
                    "token": NATIVE_CURRENCY_SYMBOL,
                    "timestamp": datetime.fromtimestamp(int(tx["timeStamp"]), tz=timezone.utc).isoformat(),
                    "status": "confirmed" if tx.get("isError") == "0" else "failed",
                    "gasUsed": tx.get("gasUsed"),
                    "gasPrice": tx.get("gasPrice"),
                })
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed explorer entry", extra_data={"error": str(e)})
        return history


__all__ = ["WalletService", "HISTORY_LIMIT"]
