"""
CarbonChain - Credit Contract ABI
===================================
ABI fisso del contratto crediti (di proprietà esterna, non modificabile).

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0
"""

from typing import List, Dict, Any, Sequence, Tuple


# ============================================================================
# ABI BUILDERS
# ============================================================================

def _params(params: Sequence[Tuple[str, str]]) -> List[Dict[str, Any]]:
    return [{"name": name, "type": abi_type, "internalType": abi_type} for name, abi_type in params]


def _function(
    name: str,
    inputs: Sequence[Tuple[str, str]] = (),
    outputs: Sequence[Tuple[str, str]] = (),
    mutability: str = "nonpayable",
) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": _params(inputs),
        "outputs": _params(outputs),
        "stateMutability": mutability,
    }


def _event(name: str, inputs: Sequence[Tuple[str, str]], indexed: Sequence[str]) -> Dict[str, Any]:
    params = []
    for param_name, abi_type in inputs:
        params.append({
            "name": param_name,
            "type": abi_type,
            "internalType": abi_type,
            "indexed": param_name in indexed,
        })
    return {"type": "event", "name": name, "inputs": params, "anonymous": False}


# ============================================================================
# CARBON CREDIT CONTRACT ABI
# ============================================================================

CARBON_CREDIT_ABI: List[Dict[str, Any]] = [
    # Writes
    _function("mintCredit", [("to", "address"), ("amount", "uint256"), ("metadataURI", "string")],
              [("", "uint256")]),
    _function("listCredit", [("tokenId", "uint256"), ("price", "uint256")]),
    _function("buyCredit", [("tokenId", "uint256")], mutability="payable"),
    _function("delistCredit", [("tokenId", "uint256")]),
    _function("retireCredit", [("tokenId", "uint256")]),
    _function("rateSeller", [("seller", "address"), ("rating", "uint8")]),
    _function("addVerifier", [("verifier", "address")]),
    _function("removeVerifier", [("verifier", "address")]),
    _function("updatePlatformFee", [("newFeeBP", "uint256")]),
    _function("updateFeeRecipient", [("newRecipient", "address")]),
    _function("withdrawFees"),

    # Views
    _function("balanceOf", [("owner", "address")], [("", "uint256")], "view"),
    _function("ownerOf", [("tokenId", "uint256")], [("", "address")], "view"),
    _function("tokenURI", [("tokenId", "uint256")], [("", "string")], "view"),
    _function("getListingPrice", [("tokenId", "uint256")], [("", "uint256")], "view"),
    _function("isListed", [("tokenId", "uint256")], [("", "bool")], "view"),
    _function("isRetired", [("tokenId", "uint256")], [("", "bool")], "view"),
    _function("getSellerRating", [("seller", "address")],
              [("totalRating", "uint256"), ("ratingCount", "uint256")], "view"),
    _function("isVerifier", [("account", "address")], [("", "bool")], "view"),
    _function("platformFeeBP", outputs=[("", "uint256")], mutability="view"),
    _function("feeRecipient", outputs=[("", "address")], mutability="view"),
    _function("accumulatedFees", outputs=[("", "uint256")], mutability="view"),

    # Events
    _event("CreditMinted",
           [("tokenId", "uint256"), ("to", "address"), ("amount", "uint256"), ("metadataURI", "string")],
           indexed=("tokenId", "to")),
    _event("CreditListed",
           [("tokenId", "uint256"), ("seller", "address"), ("price", "uint256")],
           indexed=("tokenId", "seller")),
    _event("CreditSold",
           [("tokenId", "uint256"), ("seller", "address"), ("buyer", "address"), ("price", "uint256")],
           indexed=("tokenId", "seller", "buyer")),
    _event("CreditDelisted",
           [("tokenId", "uint256"), ("seller", "address")],
           indexed=("tokenId", "seller")),
    _event("CreditRetired",
           [("tokenId", "uint256"), ("owner", "address")],
           indexed=("tokenId", "owner")),
    _event("SellerRated",
           [("seller", "address"), ("rater", "address"), ("rating", "uint8")],
           indexed=("seller", "rater")),
    _event("VerifierAdded", [("verifier", "address")], indexed=("verifier",)),
    _event("VerifierRemoved", [("verifier", "address")], indexed=("verifier",)),
]


__all__ = ["CARBON_CREDIT_ABI"]
