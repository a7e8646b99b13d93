"""
Sale metadata recorded on-chain (label 888) when an NFT is listed.

A later buy or cancel reads it back to find the seller and price. The seller
address is split into 64-character chunks since metadata strings are capped
at 64 bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger
from pycardano import Address, AuxiliaryData, Metadata
from pycardano.exception import PyCardanoException

from nftmarket.addresses import parse_address
from nftmarket.constants import MARKETPLACE_METADATA_LABEL, METADATA_CHUNK_SIZE
from nftmarket.errors import InvalidAddress, TransactionAssemblyError


def chunk_text(text: str, size: int = METADATA_CHUNK_SIZE) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)] or [""]


@dataclass
class SellMetadata:
    seller_address: Address
    price: int

    def to_metadatum(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "seller_address": chunk_text(str(self.seller_address)),
        }

    def create_sell_nft_metadata(self) -> AuxiliaryData:
        try:
            metadata = Metadata({MARKETPLACE_METADATA_LABEL: self.to_metadatum()})
        except PyCardanoException as e:
            raise TransactionAssemblyError(f"Invalid sale metadata: {e}") from e
        return AuxiliaryData(metadata)

    @classmethod
    def from_metadatum(cls, value: Any) -> SellMetadata | None:
        """
        Parse the label-888 metadatum (as decoded JSON or from the chain).

        Returns None when the metadatum does not describe a sale.
        """
        if not isinstance(value, dict):
            return None

        chunks = value.get("seller_address")
        price = value.get("price")
        if not isinstance(chunks, list) or not all(isinstance(c, str) for c in chunks):
            return None
        if not isinstance(price, int) or isinstance(price, bool) or price < 0:
            return None

        try:
            seller_address = parse_address("".join(chunks))
        except InvalidAddress:
            logger.warning(f"Ignoring sale metadata with invalid seller address: {chunks}")
            return None

        return cls(seller_address=seller_address, price=price)

    @classmethod
    def from_auxiliary_data(cls, auxiliary_data: AuxiliaryData | None) -> SellMetadata | None:
        if auxiliary_data is None:
            return None
        metadata = auxiliary_data.data
        if not isinstance(metadata, Metadata):
            metadata = getattr(metadata, "metadata", None)
        if metadata is None:
            return None
        return cls.from_metadatum(metadata.get(MARKETPLACE_METADATA_LABEL))

    def to_json(self) -> dict[str, Any]:
        return {
            "sellerAddress": str(self.seller_address),
            "price": self.price,
            "addressHex": self.seller_address.to_primitive().hex(),
        }
