"""
Primary sales of project NFTs held by the projects wallet.

A project holder UTxO may lock a whole collection; buying one NFT sends it to
the buyer and returns the rest of the collection to the holder, re-attaching
the sale metadata so the remaining assets stay listed.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger
from pycardano import Address, Transaction, TransactionOutput, UTxO, Value

from nftmarket.addresses import convert_to_testnet, parse_address
from nftmarket.config import Settings
from nftmarket.constants import MAX_TRIES, ONE_HOUR, PROJECT_REVENUE_CUT, SELLER_DEPOSIT
from nftmarket.ledger.tx_builder import build_transaction_body
from nftmarket.ledger.value import as_value, checked_sub, has_assets
from nftmarket.ledger.witness import WitnessSetParams
from nftmarket.marketplace.holder import MarketplaceHolder
from nftmarket.marketplace.listing import SaleListing
from nftmarket.marketplace.market import create_value_with_single_nft, holder_signed_transaction
from nftmarket.models import ProtocolParameters, SaleCuts


def calculate_project_cuts(price: int) -> SaleCuts:
    """Fixed 1.5 ADA platform cut; the project gets the rest."""
    return SaleCuts(
        revenue_cut=PROJECT_REVENUE_CUT,
        seller_cut=checked_sub(price, PROJECT_REVENUE_CUT),
    )


class ProjectSale:
    def __init__(
        self,
        holder: MarketplaceHolder,
        revenue_address: Address,
        ttl_seconds: int = ONE_HOUR,
        max_fee_tries: int = MAX_TRIES,
    ):
        self.holder = holder
        self.revenue_address = revenue_address
        self.ttl_seconds = ttl_seconds
        self.max_fee_tries = max_fee_tries

    @classmethod
    def from_settings(cls, settings: Settings) -> ProjectSale:
        holder = MarketplaceHolder.from_key_file(
            settings.projects_private_key_file, settings.is_testnet
        )
        revenue_address = parse_address(settings.projects_revenue_address)
        if settings.is_testnet:
            revenue_address = convert_to_testnet(revenue_address)
        return cls(
            holder,
            revenue_address,
            ttl_seconds=settings.ttl_seconds,
            max_fee_tries=settings.max_fee_tries,
        )

    def build_buy(
        self,
        buyer_address: Address,
        listing: SaleListing,
        utxo_pool: Sequence[UTxO],
        params: ProtocolParameters,
        slot: int,
    ) -> Transaction:
        """
        Buy one NFT out of a project holder UTxO.

        Args:
            buyer_address: Receives the NFT with a 2 ADA deposit
            listing: Listing of the NFT (its UTxO may hold other assets)
            utxo_pool: Buyer's UTxOs
            params: Protocol parameters snapshot
            slot: Current chain slot

        Returns:
            Transaction carrying the holder's witness
        """
        cuts = calculate_project_cuts(listing.price)
        nft = create_value_with_single_nft(listing.policy_id, listing.asset_name)

        remaining = checked_sub(as_value(listing.utxo.output.amount), nft)
        outputs = [
            TransactionOutput(self.revenue_address, Value(cuts.revenue_cut)),
            TransactionOutput(listing.seller_address, Value(cuts.seller_cut)),
            TransactionOutput(
                buyer_address,
                create_value_with_single_nft(
                    listing.policy_id, listing.asset_name, coin=SELLER_DEPOSIT
                ),
            ),
            TransactionOutput(self.holder.address, remaining),
        ]

        auxiliary_data = None
        if has_assets(remaining):
            auxiliary_data = listing.sell_metadata.create_sell_nft_metadata()

        body = build_transaction_body(
            utxo_pool,
            [listing.utxo],
            outputs,
            slot + self.ttl_seconds,
            params,
            witness_params=WitnessSetParams(vkey_count=2),
            max_tries=self.max_fee_tries,
            auxiliary_data=auxiliary_data,
        )
        logger.info(
            f"Built project buy of {listing.asset_id}: revenue {cuts.revenue_cut}, "
            f"project {cuts.seller_cut} (fee {body.fee})"
        )
        return holder_signed_transaction(self.holder, body, auxiliary_data)
