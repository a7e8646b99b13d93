"""
Listing lookup: which holder UTxO locks an asset, and on what terms.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pycardano import Address, UTxO
from pydantic import BaseModel, ConfigDict, Field

from nftmarket.constants import SALES_PAGE_SIZE
from nftmarket.errors import ListingNotFound
from nftmarket.ledger.value import as_value, contains_asset, to_asset_map
from nftmarket.marketplace.metadata import SellMetadata


class SaleListing(BaseModel):
    """An asset locked at a holder address together with its sale terms."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    seller_address: Address
    price: int = Field(..., ge=0)
    policy_id: bytes
    asset_name: bytes
    utxo: UTxO

    @property
    def sell_metadata(self) -> SellMetadata:
        return SellMetadata(seller_address=self.seller_address, price=self.price)

    @property
    def asset_id(self) -> str:
        return f"{self.policy_id.hex()}.{self.asset_name.hex()}"

    @property
    def transaction_hash(self) -> str:
        return self.utxo.input.transaction_id.payload.hex()

    def to_json(self) -> dict[str, Any]:
        return {
            "transactionHash": self.transaction_hash,
            "policyId": self.policy_id.hex(),
            "assetName": self.asset_name.decode("utf-8", errors="replace"),
            "saleMetadata": self.sell_metadata.to_json(),
        }


class ListingFilters(BaseModel):
    """
    Browsing filters for listed assets.

    ``policy`` and ``asset_name`` match case-insensitive substrings of the
    hex policy id and the UTF-8 asset name.
    """

    page: int = Field(default=1, ge=1)
    policy: str | None = None
    asset_name: str | None = None

    def matches(self, listing: SaleListing) -> bool:
        if self.policy and self.policy.lower() not in listing.policy_id.hex():
            return False
        if self.asset_name:
            name = listing.asset_name.decode("utf-8", errors="replace").lower()
            if self.asset_name.lower() not in name:
                return False
        return True

    def apply(self, listings: Sequence[SaleListing]) -> list[SaleListing]:
        matched = [listing for listing in listings if self.matches(listing)]
        start = (self.page - 1) * SALES_PAGE_SIZE
        return matched[start : start + SALES_PAGE_SIZE]


def listed_assets(holder_utxos: Sequence[UTxO]) -> list[tuple[UTxO, bytes, bytes]]:
    """Every (utxo, policy id, asset name) held at the holder address."""
    return [
        (utxo, policy_id, asset_name)
        for utxo in holder_utxos
        for policy_id, names in to_asset_map(as_value(utxo.output.amount).multi_asset).items()
        for asset_name in names
    ]


def find_nft(
    utxos: Sequence[UTxO], policy_id: bytes, asset_name: bytes
) -> tuple[UTxO, list[UTxO]]:
    """
    Split ``utxos`` into the one carrying the asset and everything else.

    Raises:
        ListingNotFound: No UTxO carries the asset
    """
    nft_utxo: UTxO | None = None
    remaining: list[UTxO] = []
    for utxo in utxos:
        if nft_utxo is None and contains_asset(as_value(utxo.output.amount), policy_id, asset_name):
            nft_utxo = utxo
        else:
            remaining.append(utxo)

    if nft_utxo is None:
        raise ListingNotFound(
            f"No UTxO holds asset {policy_id.hex()}.{asset_name.hex()}"
        )
    return nft_utxo, remaining


def find_listing(
    holder_utxos: Sequence[UTxO],
    policy_id: bytes,
    asset_name: bytes,
    sale_metadatum: Any,
) -> SaleListing:
    """
    Build the listing for an asset from the holder's UTxOs and the label-888
    metadatum recorded when it was listed.

    Raises:
        ListingNotFound: The asset is not at the holder, or its sale metadata
            is missing or malformed
    """
    sell_metadata = SellMetadata.from_metadatum(sale_metadatum)
    if sell_metadata is None:
        raise ListingNotFound(
            f"No sale metadata for asset {policy_id.hex()}.{asset_name.hex()}"
        )
    nft_utxo, _ = find_nft(holder_utxos, policy_id, asset_name)
    return SaleListing(
        seller_address=sell_metadata.seller_address,
        price=sell_metadata.price,
        policy_id=policy_id,
        asset_name=asset_name,
        utxo=nft_utxo,
    )


def listing_from_metadatum(
    utxo: UTxO, policy_id: bytes, asset_name: bytes, sale_metadatum: Any
) -> SaleListing | None:
    """Listing for a held asset, or None when its sale metadata is missing or malformed."""
    sell_metadata = SellMetadata.from_metadatum(sale_metadatum)
    if sell_metadata is None:
        return None
    return SaleListing(
        seller_address=sell_metadata.seller_address,
        price=sell_metadata.price,
        policy_id=policy_id,
        asset_name=asset_name,
        utxo=utxo,
    )
