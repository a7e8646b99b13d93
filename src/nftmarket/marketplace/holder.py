"""
Custodial wallet that holds NFTs while they are listed for sale.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pycardano import (
    Address,
    PaymentSigningKey,
    PaymentVerificationKey,
    TransactionBody,
    UTxO,
    VerificationKeyWitness,
)
from pycardano.exception import PyCardanoException

from nftmarket.addresses import enterprise_address, same_address
from nftmarket.errors import InvalidKey
from nftmarket.ledger.value import as_value, contains_asset
from nftmarket.ledger.witness import sign_transaction_hash


class MarketplaceHolder:
    """
    Holder of listed NFTs.

    The holder address is an enterprise address derived from the holder's
    payment key; every buy or cancel spends one of its UTxOs, so the holder
    co-signs those transactions.
    """

    def __init__(self, signing_key: PaymentSigningKey, is_testnet: bool = False):
        self._signing_key = signing_key
        self.verification_key = PaymentVerificationKey.from_signing_key(signing_key)
        self.address: Address = enterprise_address(self.verification_key.hash(), is_testnet)

    @classmethod
    def from_key_file(
        cls, key_file_path: str | Path, is_testnet: bool = False
    ) -> MarketplaceHolder:
        """
        Load the holder from a cardano-cli ``.skey`` text envelope.

        Raises:
            InvalidKey: The file is missing, unreadable or not a payment signing key
        """
        try:
            signing_key = PaymentSigningKey.load(str(key_file_path))
        except (OSError, ValueError, KeyError, TypeError, PyCardanoException) as e:
            raise InvalidKey(f"Cannot load signing key from {str(key_file_path)!r}: {e}") from e
        holder = cls(signing_key, is_testnet)
        logger.info(f"Loaded holder wallet {holder.address}")
        return holder

    def sign_transaction_hash(self, tx_hash: bytes) -> VerificationKeyWitness:
        return sign_transaction_hash(tx_hash, self._signing_key)

    def sign_body(self, body: TransactionBody) -> VerificationKeyWitness:
        return self.sign_transaction_hash(body.hash())

    def find_listed_utxo(
        self, utxos: Sequence[UTxO], policy_id: bytes, asset_name: bytes
    ) -> UTxO | None:
        """The holder UTxO currently locking the given asset, if any."""
        for utxo in utxos:
            if not same_address(utxo.output.address, self.address):
                continue
            if contains_asset(as_value(utxo.output.amount), policy_id, asset_name):
                return utxo
        return None
