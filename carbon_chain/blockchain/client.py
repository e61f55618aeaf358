"""
CarbonChain - Credit Contract Client
======================================
Wrapper del contratto crediti esterno (ABI fisso) su Polygon Amoy.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Scritture: firmate tramite WalletProvider iniettato, con attesa receipt.
Letture: chiamate view; alcune ritornano default su errore
(balance_of, is_listed, is_retired, is_verifier, get_listing_price,
get_seller_rating), altre propagano (owner_of, token_uri).
"""

from decimal import Decimal
from typing import Dict, Any, Tuple, Union

from web3 import Web3
from web3.logs import DISCARD

from carbon_chain.blockchain.abi import CARBON_CREDIT_ABI
from carbon_chain.blockchain.wallet_provider import RPC_ERRORS, WalletProvider, is_user_rejection
from carbon_chain.constants import (
    CHAIN_ID,
    CONTRACT_ADDRESS,
    native_to_wei,
    wei_to_native,
)
from carbon_chain.errors import (
    BlockchainError,
    ContractCallError,
    InvalidAmountError,
    TransactionRejectedError,
    ValidationError,
    WalletUnavailableError,
)
from carbon_chain.logging_setup import get_logger, PerformanceLogger
from carbon_chain.utils.validators import validate_evm_address, validate_positive_int


logger = get_logger("blockchain")

# Soglia log lento per chiamate on-chain (ms)
SLOW_CALL_THRESHOLD_MS = 30_000

# Le view con default assorbono anche indirizzi e risposte malformati
VIEW_ERRORS = RPC_ERRORS + (ValueError,)


def _token_id(token_id: Union[int, str]) -> int:
    """Token id intero non negativo"""
    try:
        value = int(token_id)
    except (TypeError, ValueError):
        value = -1
    if value < 0:
        raise ValidationError(
            f"Invalid token id: {token_id!r}",
            code="INVALID_TOKEN_ID"
        )
    return value


class CarbonCreditContract:
    """
    Client contratto crediti.

    Attributes:
        w3: Istanza Web3 (provider RPC)
        wallet: Wallet che firma le scritture
        address: Indirizzo contratto (checksum)

    Examples:
        >>> contract = CarbonCreditContract(w3, wallet)
        >>> tx_hash, token_id = contract.mint_credit(recipient, 400, uri)
        >>> contract.balance_of(recipient)
        1
    """

    def __init__(self, w3: Web3, wallet: WalletProvider, address: str = CONTRACT_ADDRESS):
        self.w3 = w3
        self.wallet = wallet
        self.address = Web3.to_checksum_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=CARBON_CREDIT_ABI)

    # ========================================================================
    # WRITE PATH
    # ========================================================================

    def _sender(self) -> str:
        accounts = self.wallet.request_accounts()
        if not accounts:
            raise WalletUnavailableError(
                "No wallet connected",
                code="WALLET_UNAVAILABLE"
            )
        self.wallet.switch_chain(CHAIN_ID)
        return accounts[0]

    def _transact(self, operation: str, call, value: int = 0) -> Tuple[str, Dict[str, Any]]:
        """
        Costruisce, firma, invia e attende una chiamata di scrittura.

        Returns:
            (tx_hash, receipt)

        Raises:
            TransactionRejectedError: Firma rifiutata
            ContractCallError: Revert o errore RPC
        """
        sender = self._sender()

        with PerformanceLogger(logger, operation, threshold_ms=SLOW_CALL_THRESHOLD_MS):
            try:
                tx = call.build_transaction({
                    "from": sender,
                    "value": value,
                    "chainId": CHAIN_ID,
                })
                tx_hash = self.wallet.send_transaction(tx)
                receipt = self.wallet.wait_for_receipt(tx_hash)
            except (TransactionRejectedError, BlockchainError):
                raise
            except RPC_ERRORS as e:
                if is_user_rejection(e):
                    raise TransactionRejectedError(
                        "Transaction rejected by user",
                        code="USER_REJECTED"
                    ) from e
                raise ContractCallError(
                    f"{operation} failed: {e}",
                    code="CONTRACT_CALL_FAILED",
                    details={"operation": operation}
                ) from e

        if receipt.get("status") != 1:
            raise ContractCallError(
                f"{operation} reverted",
                code="TX_REVERTED",
                details={"operation": operation, "tx_hash": tx_hash}
            )

        logger.info(
            f"{operation} confirmed",
            extra_data={"tx_hash": tx_hash, "block": receipt.get("blockNumber")}
        )
        return tx_hash, receipt

    def mint_credit(self, to: str, amount: int, metadata_uri: str) -> Tuple[str, str]:
        """
        Emette un token credito.

        Args:
            to: Destinatario (0x + 40 hex)
            amount: tCO2e (> 0)
            metadata_uri: URI metadata off-chain

        Returns:
            (tx_hash, token_id): token_id dall'evento CreditMinted, "0" se assente
        """
        recipient = Web3.to_checksum_address(validate_evm_address(to))
        amount = validate_positive_int(amount, "amount")

        tx_hash, receipt = self._transact(
            "mintCredit",
            self.contract.functions.mintCredit(recipient, amount, metadata_uri)
        )

        token_id = "0"
        events = self.contract.events.CreditMinted().process_receipt(receipt, errors=DISCARD)
        if events:
            token_id = str(events[0]["args"]["tokenId"])
        else:
            logger.warning("CreditMinted event not found in receipt", extra_data={"tx_hash": tx_hash})

        return tx_hash, token_id

    def list_credit(self, token_id: Union[int, str], price_native: Union[Decimal, float, str]) -> str:
        """Mette in vendita un token al prezzo indicato (unità native)"""
        price_wei = native_to_wei(Decimal(str(price_native)))
        if price_wei <= 0:
            raise InvalidAmountError("Listing price must be positive", code="INVALID_PRICE")

        tx_hash, _ = self._transact(
            "listCredit",
            self.contract.functions.listCredit(_token_id(token_id), price_wei)
        )
        return tx_hash

    def buy_credit(self, token_id: Union[int, str]) -> str:
        """Acquista un token listato pagando il prezzo on-chain"""
        token = _token_id(token_id)
        try:
            price = self.contract.functions.getListingPrice(token).call()
        except RPC_ERRORS as e:
            raise ContractCallError(f"Failed to read listing price: {e}", code="CONTRACT_CALL_FAILED") from e

        tx_hash, _ = self._transact(
            "buyCredit",
            self.contract.functions.buyCredit(token),
            value=price
        )
        return tx_hash

    def delist_credit(self, token_id: Union[int, str]) -> str:
        tx_hash, _ = self._transact("delistCredit", self.contract.functions.delistCredit(_token_id(token_id)))
        return tx_hash

    def retire_credit(self, token_id: Union[int, str]) -> str:
        tx_hash, _ = self._transact("retireCredit", self.contract.functions.retireCredit(_token_id(token_id)))
        return tx_hash

    def rate_seller(self, seller: str, rating: int) -> str:
        """Valuta un venditore (1..5)"""
        seller = Web3.to_checksum_address(validate_evm_address(seller))
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidAmountError(
                f"Rating must be between 1 and 5, got {rating!r}",
                code="INVALID_RATING"
            )
        tx_hash, _ = self._transact("rateSeller", self.contract.functions.rateSeller(seller, rating))
        return tx_hash

    # ========================================================================
    # VIEWS
    # ========================================================================

    def balance_of(self, address: str) -> int:
        try:
            return int(self.contract.functions.balanceOf(Web3.to_checksum_address(address)).call())
        except VIEW_ERRORS as e:
            logger.error("Error fetching token balance", extra_data={"address": address, "error": str(e)})
            return 0

    def owner_of(self, token_id: Union[int, str]) -> str:
        try:
            return self.contract.functions.ownerOf(_token_id(token_id)).call()
        except RPC_ERRORS as e:
            raise ContractCallError(f"Failed to fetch token owner: {e}", code="CONTRACT_CALL_FAILED") from e

    def token_uri(self, token_id: Union[int, str]) -> str:
        try:
            return self.contract.functions.tokenURI(_token_id(token_id)).call()
        except RPC_ERRORS as e:
            raise ContractCallError(f"Failed to fetch token URI: {e}", code="CONTRACT_CALL_FAILED") from e

    def is_listed(self, token_id: Union[int, str]) -> bool:
        try:
            return bool(self.contract.functions.isListed(int(token_id)).call())
        except VIEW_ERRORS as e:
            logger.error("Error checking listing", extra_data={"token_id": str(token_id), "error": str(e)})
            return False

    def is_retired(self, token_id: Union[int, str]) -> bool:
        try:
            return bool(self.contract.functions.isRetired(int(token_id)).call())
        except VIEW_ERRORS as e:
            logger.error("Error checking retirement", extra_data={"token_id": str(token_id), "error": str(e)})
            return False

    def is_verifier(self, address: str) -> bool:
        try:
            return bool(self.contract.functions.isVerifier(Web3.to_checksum_address(address)).call())
        except VIEW_ERRORS as e:
            logger.error("Error checking verifier", extra_data={"address": address, "error": str(e)})
            return False

    def get_listing_price(self, token_id: Union[int, str]) -> str:
        """Prezzo listing in unità native (stringa), "0" su errore"""
        try:
            price_wei = self.contract.functions.getListingPrice(int(token_id)).call()
            return format(wei_to_native(int(price_wei)), "f")
        except VIEW_ERRORS as e:
            logger.error("Error fetching listing price", extra_data={"token_id": str(token_id), "error": str(e)})
            return "0"

    def get_seller_rating(self, seller: str) -> Dict[str, int]:
        try:
            total, count = self.contract.functions.getSellerRating(Web3.to_checksum_address(seller)).call()
            return {"total_rating": int(total), "rating_count": int(count)}
        except VIEW_ERRORS as e:
            logger.error("Error fetching seller rating", extra_data={"seller": seller, "error": str(e)})
            return {"total_rating": 0, "rating_count": 0}


__all__ = ["CarbonCreditContract", "SLOW_CALL_THRESHOLD_MS"]
