"""
Core data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nftmarket.constants import (
    COINS_PER_UTXO_WORD,
    KEY_DEPOSIT,
    MAX_VAL_SIZE,
    MIN_UTXO_VALUE,
    POOL_DEPOSIT,
)

# Field name -> protocol-floor default used when the chain reports 0 or nothing
_PROTOCOL_FLOORS: dict[str, int] = {
    "min_utxo_value": MIN_UTXO_VALUE,
    "max_value_size": MAX_VAL_SIZE,
    "pool_deposit": POOL_DEPOSIT,
    "key_deposit": KEY_DEPOSIT,
    "coins_per_utxo_word": COINS_PER_UTXO_WORD,
}


class ProtocolParameters(BaseModel):
    """
    Snapshot of the ledger protocol parameters for one transaction build.

    Fetched fresh per build; parameters can change between epochs.
    """

    model_config = ConfigDict(frozen=True)

    min_fee_a: int = Field(..., ge=0, description="Linear fee coefficient (lovelace per byte)")
    min_fee_b: int = Field(..., ge=0, description="Linear fee constant (lovelace)")
    max_tx_size: int = Field(..., ge=0, description="Maximum transaction size in bytes")
    min_utxo_value: int = Field(default=MIN_UTXO_VALUE, ge=0)
    pool_deposit: int = Field(default=POOL_DEPOSIT, ge=0)
    key_deposit: int = Field(default=KEY_DEPOSIT, ge=0)
    max_value_size: int = Field(default=MAX_VAL_SIZE, ge=0)
    coins_per_utxo_word: int = Field(default=COINS_PER_UTXO_WORD, ge=0)

    @field_validator(
        "min_utxo_value",
        "pool_deposit",
        "key_deposit",
        "max_value_size",
        "coins_per_utxo_word",
        mode="before",
    )
    @classmethod
    def substitute_floor(cls, v: Any, info) -> Any:
        if v is None or v == 0:
            return _PROTOCOL_FLOORS[info.field_name]
        return v


class NftMetadata(BaseModel):
    """CIP-25 style metadata for a newly minted NFT; extra keys are kept."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1, max_length=32)
    description: str = ""
    image: str = Field(..., min_length=1)

    @property
    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class PolicyDescriptor(BaseModel):
    """Minting policy handed back to the caller alongside a mint transaction."""

    id: str
    json_script: dict[str, Any] = Field(..., serialization_alias="json")


class SaleCuts(BaseModel):
    """Split of a sale price between the platform and the seller."""

    model_config = ConfigDict(frozen=True)

    revenue_cut: int = Field(..., ge=0)
    seller_cut: int = Field(..., ge=0)
