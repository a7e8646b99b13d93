"""
Secondary marketplace: list an NFT for sale, buy it, or cancel the listing.

A listed NFT sits at the holder address with a 2 ADA deposit. The sale terms
(price and seller address) live in the label-888 metadata of the listing
transaction. Buy and cancel spend the holder UTxO, so the holder co-signs.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger
from pycardano import (
    Address,
    AuxiliaryData,
    Transaction,
    TransactionBody,
    TransactionOutput,
    TransactionWitnessSet,
    UTxO,
    Value,
)

from nftmarket.addresses import convert_to_testnet, parse_address, same_address
from nftmarket.config import Settings
from nftmarket.constants import (
    CANCELLATION_FEE,
    MARKETPLACE_FEE_PERCENT,
    MAX_TRIES,
    MIN_SALE_PRICE,
    ONE_ADA,
    ONE_HOUR,
    SELLER_DEPOSIT,
)
from nftmarket.errors import InvalidPrice, NotSeller
from nftmarket.ledger.tx_builder import build_transaction_body
from nftmarket.ledger.value import (
    as_value,
    checked_add,
    checked_sub,
    has_assets,
    single_asset_value,
)
from nftmarket.ledger.witness import WitnessSetParams
from nftmarket.marketplace.holder import MarketplaceHolder
from nftmarket.marketplace.listing import SaleListing, find_nft
from nftmarket.marketplace.metadata import SellMetadata
from nftmarket.models import ProtocolParameters, SaleCuts


def calculate_cuts(price: int) -> SaleCuts:
    """
    Split a sale price between the marketplace and the seller.

    The marketplace takes 2% with a 1 ADA floor; the seller also gets back
    the 2 ADA deposit locked with the NFT at listing time.
    """
    one_percent = price // 100
    revenue_cut = max(one_percent * MARKETPLACE_FEE_PERCENT, ONE_ADA)
    seller_cut = checked_add(checked_sub(price, revenue_cut), SELLER_DEPOSIT)
    return SaleCuts(revenue_cut=revenue_cut, seller_cut=seller_cut)


def create_value_with_single_nft(policy_id: bytes, asset_name: bytes, coin: int = 0) -> Value:
    return single_asset_value(policy_id, asset_name, quantity=1, coin=coin)


def holder_signed_transaction(
    holder: MarketplaceHolder,
    body: TransactionBody,
    auxiliary_data: AuxiliaryData | None = None,
) -> Transaction:
    """Transaction carrying only the holder's witness; the counterparty adds theirs."""
    witness_set = TransactionWitnessSet(vkey_witnesses=[holder.sign_body(body)])
    return Transaction(body, witness_set, auxiliary_data=auxiliary_data)


class Marketplace:
    def __init__(
        self,
        holder: MarketplaceHolder,
        revenue_address: Address,
        min_sale_price: int = MIN_SALE_PRICE,
        ttl_seconds: int = ONE_HOUR,
        max_fee_tries: int = MAX_TRIES,
    ):
        self.holder = holder
        self.revenue_address = revenue_address
        self.min_sale_price = min_sale_price
        self.ttl_seconds = ttl_seconds
        self.max_fee_tries = max_fee_tries

    @classmethod
    def from_settings(cls, settings: Settings) -> Marketplace:
        holder = MarketplaceHolder.from_key_file(
            settings.marketplace_private_key_file, settings.is_testnet
        )
        revenue_address = parse_address(settings.marketplace_revenue_address)
        if settings.is_testnet:
            revenue_address = convert_to_testnet(revenue_address)
        return cls(
            holder,
            revenue_address,
            min_sale_price=settings.min_sale_price,
            ttl_seconds=settings.ttl_seconds,
            max_fee_tries=settings.max_fee_tries,
        )

    def build_sell(
        self,
        seller_address: Address,
        policy_id: bytes,
        asset_name: bytes,
        price: int,
        utxo_pool: Sequence[UTxO],
        params: ProtocolParameters,
        slot: int,
    ) -> Transaction:
        """
        List an NFT: lock it at the holder address with a 2 ADA deposit.

        The seller signs the returned transaction; it carries no witnesses.

        Args:
            seller_address: Seller's address (receives change and leftover assets)
            policy_id: Policy of the NFT
            asset_name: Name of the NFT
            price: Asking price in lovelace
            utxo_pool: Seller's UTxOs, including the one holding the NFT
            params: Protocol parameters snapshot
            slot: Current chain slot

        Raises:
            InvalidPrice: Price below the marketplace minimum
            ListingNotFound: The seller does not hold the NFT
        """
        if price < self.min_sale_price:
            raise InvalidPrice(
                f"Price {price} is below the minimum of {self.min_sale_price} lovelace"
            )

        nft_utxo, seller_utxos = find_nft(utxo_pool, policy_id, asset_name)

        nft_value = create_value_with_single_nft(policy_id, asset_name, coin=SELLER_DEPOSIT)
        outputs = [TransactionOutput(self.holder.address, nft_value)]

        # Other assets in the NFT UTxO go back to the seller
        leftover = checked_sub(
            as_value(nft_utxo.output.amount), create_value_with_single_nft(policy_id, asset_name)
        )
        if has_assets(leftover):
            outputs.append(TransactionOutput(seller_address, leftover))

        auxiliary_data = SellMetadata(
            seller_address=seller_address, price=price
        ).create_sell_nft_metadata()

        body = build_transaction_body(
            seller_utxos,
            [nft_utxo],
            outputs,
            slot + self.ttl_seconds,
            params,
            witness_params=WitnessSetParams(vkey_count=1),
            max_tries=self.max_fee_tries,
            auxiliary_data=auxiliary_data,
        )
        logger.info(
            f"Built sell of {policy_id.hex()}.{asset_name.hex()} for {price} lovelace "
            f"(fee {body.fee})"
        )
        return Transaction(body, TransactionWitnessSet(), auxiliary_data=auxiliary_data)

    def build_buy(
        self,
        buyer_address: Address,
        listing: SaleListing,
        utxo_pool: Sequence[UTxO],
        params: ProtocolParameters,
        slot: int,
    ) -> Transaction:
        """
        Buy a listed NFT, paying the marketplace and seller cuts.

        The buyer receives the whole holder UTxO (NFT plus deposit). The
        returned transaction carries the holder's witness.
        """
        cuts = calculate_cuts(listing.price)
        outputs = [
            TransactionOutput(self.revenue_address, Value(cuts.revenue_cut)),
            TransactionOutput(listing.seller_address, Value(cuts.seller_cut)),
            TransactionOutput(buyer_address, as_value(listing.utxo.output.amount)),
        ]

        body = build_transaction_body(
            utxo_pool,
            [listing.utxo],
            outputs,
            slot + self.ttl_seconds,
            params,
            witness_params=WitnessSetParams(vkey_count=2),
            max_tries=self.max_fee_tries,
        )
        logger.info(
            f"Built buy of {listing.asset_id}: revenue {cuts.revenue_cut}, "
            f"seller {cuts.seller_cut} (fee {body.fee})"
        )
        return holder_signed_transaction(self.holder, body)

    def build_cancel(
        self,
        seller_address: Address,
        listing: SaleListing,
        utxo_pool: Sequence[UTxO],
        params: ProtocolParameters,
        slot: int,
    ) -> Transaction:
        """
        Cancel a listing, returning the NFT and deposit to the seller.

        Raises:
            NotSeller: ``seller_address`` is not the listing's seller
        """
        if not same_address(seller_address, listing.seller_address):
            raise NotSeller()

        outputs = [
            TransactionOutput(listing.seller_address, as_value(listing.utxo.output.amount)),
            TransactionOutput(self.revenue_address, Value(CANCELLATION_FEE)),
        ]

        body = build_transaction_body(
            utxo_pool,
            [listing.utxo],
            outputs,
            slot + self.ttl_seconds,
            params,
            witness_params=WitnessSetParams(vkey_count=2),
            max_tries=self.max_fee_tries,
        )
        logger.info(f"Built cancel of {listing.asset_id} (fee {body.fee})")
        return holder_signed_transaction(self.holder, body)
