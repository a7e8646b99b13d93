"""
Async request layer: fetch a fresh chain snapshot, run one template build.
"""

from __future__ import annotations

import asyncio

from loguru import logger
from pycardano import Address, Transaction

from nftmarket.addresses import same_address
from nftmarket.backends.base import ChainBackend
from nftmarket.errors import NotConfigured
from nftmarket.ledger.value import as_value, checked_add
from nftmarket.marketplace.holder import MarketplaceHolder
from nftmarket.marketplace.listing import (
    ListingFilters,
    SaleListing,
    find_listing,
    listed_assets,
    listing_from_metadatum,
)
from nftmarket.marketplace.market import Marketplace
from nftmarket.marketplace.project import ProjectSale
from nftmarket.models import NftMetadata, PolicyDescriptor, ProtocolParameters
from nftmarket.nft import NftMinter


class MarketService:
    """
    Entry point for marketplace requests.

    No state is kept between requests: every call reads UTxOs, protocol
    parameters and the slot from the backend, so concurrent requests never
    share a stale snapshot. Two requests racing for the same UTxO both build;
    the ledger accepts only one.
    """

    def __init__(
        self,
        backend: ChainBackend,
        marketplace: Marketplace | None = None,
        projects: ProjectSale | None = None,
        minter: NftMinter | None = None,
    ):
        self.backend = backend
        self.marketplace = marketplace
        self.projects = projects
        self.minter = minter

    def _require_marketplace(self) -> Marketplace:
        if self.marketplace is None:
            raise NotConfigured("Marketplace is not configured")
        return self.marketplace

    async def _chain_state(self) -> tuple[ProtocolParameters, int]:
        params, slot = await asyncio.gather(
            self.backend.get_protocol_parameters(), self.backend.get_slot()
        )
        return params, slot

    async def get_listing(
        self, holder: MarketplaceHolder, policy_id: bytes, asset_name: bytes
    ) -> SaleListing:
        sale_metadatum = await self.backend.get_sale_metadata(policy_id, asset_name)
        holder_utxos = await self.backend.get_utxos(holder.address)
        return find_listing(holder_utxos, policy_id, asset_name, sale_metadatum)

    def _sales_holder(self, holder: MarketplaceHolder | None) -> MarketplaceHolder:
        return holder if holder is not None else self._require_marketplace().holder

    async def holder_listings(self, holder: MarketplaceHolder) -> list[SaleListing]:
        """All assets at the holder address that carry valid sale metadata."""
        utxos = await self.backend.get_utxos(holder.address)
        assets = listed_assets(utxos)
        metadata = await asyncio.gather(
            *(self.backend.get_sale_metadata(policy_id, name) for _, policy_id, name in assets)
        )
        listings = []
        for (utxo, policy_id, name), sale_metadatum in zip(assets, metadata):
            listing = listing_from_metadatum(utxo, policy_id, name, sale_metadatum)
            if listing is None:
                logger.debug(f"Skipping {policy_id.hex()}.{name.hex()}: no sale metadata")
                continue
            listings.append(listing)
        return listings

    async def list_sales(
        self, filters: ListingFilters | None = None, holder: MarketplaceHolder | None = None
    ) -> list[SaleListing]:
        """
        One page of listings, in backend order, narrowed by ``filters``.

        ``holder`` defaults to the marketplace holder; pass the projects
        holder to browse primary sales.
        """
        listings = await self.holder_listings(self._sales_holder(holder))
        return (filters or ListingFilters()).apply(listings)

    async def get_sale(
        self, transaction_hash: str, holder: MarketplaceHolder | None = None
    ) -> SaleListing | None:
        """The listing created by a given transaction, if it is still for sale."""
        tx_hash = transaction_hash.lower()
        for listing in await self.holder_listings(self._sales_holder(holder)):
            if listing.transaction_hash == tx_hash:
                return listing
        return None

    async def user_listings(
        self, seller_address: Address, holder: MarketplaceHolder | None = None
    ) -> list[SaleListing]:
        listings = await self.holder_listings(self._sales_holder(holder))
        return [
            listing for listing in listings if same_address(listing.seller_address, seller_address)
        ]

    async def balance(self, address: Address) -> int:
        """Total lovelace held at ``address``."""
        total = 0
        for utxo in await self.backend.get_utxos(address):
            total = checked_add(total, as_value(utxo.output.amount).coin)
        return total

    async def sell(
        self, seller_address: Address, policy_id: bytes, asset_name: bytes, price: int
    ) -> Transaction:
        marketplace = self._require_marketplace()
        utxos = await self.backend.get_utxos(seller_address)
        params, slot = await self._chain_state()
        return marketplace.build_sell(
            seller_address, policy_id, asset_name, price, utxos, params, slot
        )

    async def buy(
        self, buyer_address: Address, policy_id: bytes, asset_name: bytes
    ) -> Transaction:
        marketplace = self._require_marketplace()
        listing = await self.get_listing(marketplace.holder, policy_id, asset_name)
        utxos = await self.backend.get_utxos(buyer_address)
        params, slot = await self._chain_state()
        return marketplace.build_buy(buyer_address, listing, utxos, params, slot)

    async def cancel(
        self, seller_address: Address, policy_id: bytes, asset_name: bytes
    ) -> Transaction:
        marketplace = self._require_marketplace()
        listing = await self.get_listing(marketplace.holder, policy_id, asset_name)
        utxos = await self.backend.get_utxos(seller_address)
        params, slot = await self._chain_state()
        return marketplace.build_cancel(seller_address, listing, utxos, params, slot)

    async def project_buy(
        self, buyer_address: Address, policy_id: bytes, asset_name: bytes
    ) -> Transaction:
        if self.projects is None:
            raise NotConfigured("Project sales are not configured")
        listing = await self.get_listing(self.projects.holder, policy_id, asset_name)
        utxos = await self.backend.get_utxos(buyer_address)
        params, slot = await self._chain_state()
        return self.projects.build_buy(buyer_address, listing, utxos, params, slot)

    async def mint(
        self, nft: NftMetadata, recipient: Address
    ) -> tuple[Transaction, PolicyDescriptor]:
        if self.minter is None:
            raise NotConfigured("NFT minting is not configured")
        utxos = await self.backend.get_utxos(recipient)
        params, slot = await self._chain_state()
        logger.debug(f"Minting {nft.name!r} for {recipient} at slot {slot}")
        return self.minter.build_mint(nft, recipient, utxos, params, slot)
