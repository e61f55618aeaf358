"""
CarbonChain - Wallet Provider
===============================
Capability wallet iniettabile: account, firma/invio transazioni,
selezione chain, saldo nativo, attesa receipt.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Implementazioni:
- WalletProvider: interfaccia astratta (test double nei test)
- Web3WalletProvider: firma server-side con chiave privata via web3
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any

import requests
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from carbon_chain.constants import CHAIN_ID, WALLET_USER_REJECTED_CODE
from carbon_chain.errors import (
    BlockchainError,
    ChainMismatchError,
    TransactionRejectedError,
    WalletUnavailableError,
)
from carbon_chain.logging_setup import get_logger


logger = get_logger("wallet")

# Errori del nodo RPC: web3 (risposte JSON-RPC) e trasporto HTTPProvider
RPC_ERRORS = (Web3Exception, requests.exceptions.RequestException)


def is_user_rejection(error: BaseException) -> bool:
    """
    True se l'errore è un rifiuto firma (EIP-1193 code 4001).

    Il codice può stare in `error.code` o nel primo argomento dict
    (formato errori JSON-RPC).
    """
    if isinstance(error, TransactionRejectedError):
        return True
    if getattr(error, "code", None) == WALLET_USER_REJECTED_CODE:
        return True
    if error.args and isinstance(error.args[0], dict):
        return error.args[0].get("code") == WALLET_USER_REJECTED_CODE
    return False


# ============================================================================
# CAPABILITY INTERFACE
# ============================================================================

class WalletProvider(ABC):
    """
    Wallet connesso dell'utente.

    Tutti i metodi sono bloccanti: nessun timeout oltre a quello
    della receipt.
    """

    @abstractmethod
    def request_accounts(self) -> List[str]:
        """Account disponibili (lista vuota se nessun wallet connesso)"""

    @abstractmethod
    def switch_chain(self, chain_id: int) -> None:
        """
        Seleziona la chain.

        Raises:
            ChainMismatchError: Se la chain non è raggiungibile
        """

    @abstractmethod
    def send_transaction(self, tx: Dict[str, Any]) -> str:
        """
        Firma e invia transazione.

        Returns:
            str: Hash transazione (0x...)

        Raises:
            TransactionRejectedError: Firma rifiutata dall'utente
        """

    @abstractmethod
    def get_balance(self, address: str) -> int:
        """Saldo nativo in wei"""

    @abstractmethod
    def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        """Attende conferma, ritorna receipt (con `status`)"""


# ============================================================================
# WEB3 IMPLEMENTATION
# ============================================================================

class Web3WalletProvider(WalletProvider):
    """
    Wallet server-side: firma locale con chiave privata, invio via RPC.

    Examples:
        >>> w3 = Web3(Web3.HTTPProvider(settings.rpc_url))
        >>> wallet = Web3WalletProvider(w3, private_key, receipt_timeout=120)
        >>> wallet.request_accounts()
        ['0x...']
    """

    def __init__(
        self,
        w3: Web3,
        private_key: Optional[str] = None,
        receipt_timeout: int = 120
    ):
        self.w3 = w3
        self.receipt_timeout = receipt_timeout
        self._account = w3.eth.account.from_key(private_key) if private_key else None

    @property
    def address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def request_accounts(self) -> List[str]:
        return [self._account.address] if self._account else []

    def switch_chain(self, chain_id: int) -> None:
        try:
            current = self.w3.eth.chain_id
        except RPC_ERRORS as e:
            raise BlockchainError(f"RPC unreachable: {e}", code="RPC_UNAVAILABLE") from e

        if current != chain_id:
            # Un signer server-side non può cambiare rete: RPC configurato male
            raise ChainMismatchError(
                f"RPC is on chain {current}, expected {chain_id}",
                code="CHAIN_MISMATCH",
                details={"current": current, "expected": chain_id}
            )

    def send_transaction(self, tx: Dict[str, Any]) -> str:
        if self._account is None:
            raise WalletUnavailableError(
                "No signer configured",
                code="WALLET_UNAVAILABLE"
            )

        tx = dict(tx)
        tx.setdefault("from", self._account.address)
        tx.setdefault("chainId", CHAIN_ID)
        tx.setdefault("value", 0)

        try:
            tx.setdefault("nonce", self.w3.eth.get_transaction_count(self._account.address, "pending"))
            if "gasPrice" not in tx and "maxFeePerGas" not in tx:
                tx["gasPrice"] = self.w3.eth.gas_price
            if "gas" not in tx:
                tx["gas"] = self.w3.eth.estimate_gas(tx)

            signed = self._account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except RPC_ERRORS as e:
            if is_user_rejection(e):
                raise TransactionRejectedError("Transaction rejected by user", code="USER_REJECTED") from e
            raise BlockchainError(f"Failed to send transaction: {e}", code="TX_SEND_FAILED") from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(
            "Transaction sent",
            extra_data={"tx_hash": tx_hex, "to": tx.get("to"), "value": str(tx.get("value"))}
        )
        return tx_hex

    def get_balance(self, address: str) -> int:
        try:
            return self.w3.eth.get_balance(Web3.to_checksum_address(address))
        except RPC_ERRORS as e:
            raise BlockchainError(f"Failed to fetch balance: {e}", code="BALANCE_FAILED") from e

    def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted as e:
            raise BlockchainError(
                f"Transaction {tx_hash} not confirmed within {self.receipt_timeout}s",
                code="RECEIPT_TIMEOUT"
            ) from e
        except RPC_ERRORS as e:
            raise BlockchainError(
                f"Failed to fetch receipt for {tx_hash}: {e}",
                code="RECEIPT_FAILED"
            ) from e
        return dict(receipt)


__all__ = [
    "WalletProvider",
    "Web3WalletProvider",
    "is_user_rejection",
    "RPC_ERRORS",
]
