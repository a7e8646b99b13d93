"""
Error types raised by the transaction engine and templates.

Every failure carries a stable ``kind`` tag so an outer layer (REST, CLI) can
surface a structured error without inspecting exception classes.
"""

from __future__ import annotations

from typing import Any


class MarketError(Exception):
    """Base class for all engine errors."""

    kind = "Unknown"
    default_message = "Unknown error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "error": self.message}


class CoinSelectionError(MarketError):
    kind = "CoinSelection"


class BalanceInsufficient(CoinSelectionError):
    kind = "BalanceInsufficient"
    default_message = (
        "Total value of initial UTxO set is less than total value of requested output"
    )


class NotFragmentedEnough(CoinSelectionError):
    kind = "NotFragmentedEnough"
    default_message = "No UTxO entries available to select from"


class FullyDepleted(CoinSelectionError):
    kind = "FullyDepleted"
    default_message = "Number of entries are depleted before ideal selection can be made"


class MaximumInputCountExceeded(CoinSelectionError):
    kind = "MaximumInputCountExceeded"
    default_message = "Maximum input count limit exceeded"


class ValueSizeExceeded(CoinSelectionError):
    kind = "ValueSizeExceeded"
    default_message = "Output value exceeds the maximum value size"


class ArithmeticOverflow(MarketError):
    kind = "ArithmeticOverflow"
    default_message = "Checked arithmetic overflowed or underflowed"


class InvalidAsset(MarketError):
    kind = "InvalidAsset"
    default_message = "Invalid asset identifier"


class InvalidAddress(MarketError):
    kind = "InvalidAddress"
    default_message = "Invalid address provided"


class InvalidPrice(MarketError):
    kind = "InvalidPrice"
    default_message = "Invalid listing price"


class ListingNotFound(MarketError):
    kind = "ListingNotFound"
    default_message = "No such NFT is for sale"


class NotSeller(MarketError):
    kind = "NotSeller"
    default_message = "Only the seller can cancel the listing"


class TransactionAssemblyError(MarketError):
    """Raised when the ledger library rejects an assembled component."""

    kind = "TransactionAssembly"
    default_message = "Failed to assemble transaction"


class InvalidKey(MarketError):
    kind = "InvalidKey"
    default_message = "Signing key cannot be loaded or used"


class InvalidSnapshot(MarketError):
    kind = "InvalidSnapshot"
    default_message = "Chain snapshot is missing or malformed"


class NotConfigured(MarketError):
    kind = "NotConfigured"
    default_message = "Component is not configured"
