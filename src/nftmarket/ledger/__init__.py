"""
Coin selection and transaction assembly engine.
"""

from nftmarket.ledger.coin_selection import (
    SelectionResult,
    largest_first_selection,
    normalize_outputs,
)
from nftmarket.ledger.tx_builder import build_transaction_body, min_fee
from nftmarket.ledger.value import checked_add, checked_sub, min_ada_required
from nftmarket.ledger.witness import (
    PLACEHOLDER_SIGNING_KEY,
    WitnessSetParams,
    combine_witness_set,
    sign_transaction_hash,
)

__all__ = [
    "PLACEHOLDER_SIGNING_KEY",
    "SelectionResult",
    "WitnessSetParams",
    "build_transaction_body",
    "checked_add",
    "checked_sub",
    "combine_witness_set",
    "largest_first_selection",
    "min_ada_required",
    "min_fee",
    "normalize_outputs",
    "sign_transaction_hash",
]
