"""
NFT minting under a fresh, time-locked policy.

Each mint generates a new policy key; the policy only allows minting until
one hour after the build slot and only with that key's signature, so once it
expires the NFT can never be minted again.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from loguru import logger
from pycardano import (
    Address,
    AuxiliaryData,
    InvalidHereAfter,
    Metadata,
    MultiAsset,
    NativeScript,
    PaymentSigningKey,
    PaymentVerificationKey,
    ScriptAll,
    ScriptPubkey,
    Transaction,
    TransactionOutput,
    TransactionWitnessSet,
    UTxO,
    Value,
)
from pycardano.exception import PyCardanoException

from nftmarket.addresses import convert_to_testnet, parse_address
from nftmarket.config import Settings
from nftmarket.constants import (
    MAX_TRIES,
    METADATA_CHUNK_SIZE,
    MINTED_AT,
    NFT_STANDARD_LABEL,
    ONE_HOUR,
)
from nftmarket.errors import TransactionAssemblyError
from nftmarket.ledger.tx_builder import build_transaction_body
from nftmarket.ledger.value import (
    min_ada_required,
    parse_asset_name,
    single_asset_value,
    with_coin,
)
from nftmarket.ledger.witness import WitnessSetParams, sign_transaction_hash
from nftmarket.marketplace.metadata import chunk_text
from nftmarket.models import NftMetadata, PolicyDescriptor, ProtocolParameters


class NftPolicy:
    """Single-use minting policy: ``all[before(slot + ttl), sig(key)]``."""

    def __init__(self, slot: int, ttl_seconds: int = ONE_HOUR):
        self.signing_key = PaymentSigningKey.generate()
        self.verification_key = PaymentVerificationKey.from_signing_key(self.signing_key)
        self.expiry_slot = slot + ttl_seconds
        self.script: NativeScript = ScriptAll(
            [
                InvalidHereAfter(self.expiry_slot),
                ScriptPubkey(self.verification_key.hash()),
            ]
        )

    @property
    def policy_id(self) -> bytes:
        return self.script.hash().payload

    def to_json(self) -> dict[str, Any]:
        return {
            "type": "all",
            "scripts": [
                {"type": "before", "slot": self.expiry_slot},
                {"type": "sig", "keyHash": self.verification_key.hash().payload.hex()},
            ],
        }

    def descriptor(self) -> PolicyDescriptor:
        return PolicyDescriptor(id=self.policy_id.hex(), json_script=self.to_json())


def _metadatum(value: Any) -> Any:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return str(value)
    if isinstance(value, str):
        if len(value) > METADATA_CHUNK_SIZE:
            return chunk_text(value)
        return value
    return None


def nft_metadata_map(nft: NftMetadata) -> dict[str, Any]:
    """
    CIP-25 asset entry for ``nft``.

    Extra fields keep integers as integers; booleans and floats become text,
    strings over 64 characters are split into lists, and nested values are
    dropped.
    """
    result: dict[str, Any] = {}
    for key, value in nft.extra_fields.items():
        converted = _metadatum(value)
        if converted is None:
            logger.debug(f"Dropping unsupported metadata field {key!r}")
            continue
        result[key] = converted

    result["name"] = _metadatum(nft.name)
    result["description"] = _metadatum(nft.description)
    result["image"] = _metadatum(nft.image)
    result["Minted At"] = MINTED_AT
    return result


class NftMinter:
    def __init__(
        self, tax_address: Address, ttl_seconds: int = ONE_HOUR, max_fee_tries: int = MAX_TRIES
    ):
        self.tax_address = tax_address
        self.ttl_seconds = ttl_seconds
        self.max_fee_tries = max_fee_tries

    @classmethod
    def from_settings(cls, settings: Settings) -> NftMinter:
        tax_address = parse_address(settings.nft_tax_address)
        if settings.is_testnet:
            tax_address = convert_to_testnet(tax_address)
        return cls(
            tax_address,
            ttl_seconds=settings.ttl_seconds,
            max_fee_tries=settings.max_fee_tries,
        )

    def build_metadata(self, policy: NftPolicy, nft: NftMetadata) -> AuxiliaryData:
        try:
            metadata = Metadata(
                {NFT_STANDARD_LABEL: {policy.policy_id.hex(): {nft.name: nft_metadata_map(nft)}}}
            )
        except PyCardanoException as e:
            raise TransactionAssemblyError(f"Invalid NFT metadata: {e}") from e
        return AuxiliaryData(metadata)

    def build_mint(
        self,
        nft: NftMetadata,
        recipient: Address,
        utxo_pool: Sequence[UTxO],
        params: ProtocolParameters,
        slot: int,
    ) -> tuple[Transaction, PolicyDescriptor]:
        """
        Mint a single NFT to ``recipient``, paid for from ``utxo_pool``.

        The recipient receives the NFT with its minimum coin and the tax
        address receives the bare minimum coin. The returned transaction
        carries the policy key's witness and the policy script; the payer
        adds their own signature.

        Returns:
            (transaction, descriptor of the freshly generated policy)
        """
        policy = NftPolicy(slot, self.ttl_seconds)
        asset_name = parse_asset_name(nft.name)
        mint = MultiAsset.from_primitive({policy.policy_id: {asset_name: 1}})

        min_utxo_value = params.min_utxo_value
        nft_value = single_asset_value(policy.policy_id, asset_name)
        nft_value = with_coin(nft_value, min_ada_required(nft_value, min_utxo_value))
        tax_amount = min_ada_required(Value(min_utxo_value), min_utxo_value)

        outputs = [
            TransactionOutput(recipient, nft_value),
            TransactionOutput(self.tax_address, Value(tax_amount)),
        ]
        auxiliary_data = self.build_metadata(policy, nft)

        body = build_transaction_body(
            utxo_pool,
            [],
            outputs,
            slot + self.ttl_seconds,
            params,
            mint=mint,
            witness_params=WitnessSetParams(vkey_count=2, native_scripts=[policy.script]),
            auxiliary_data=auxiliary_data,
            max_tries=self.max_fee_tries,
        )

        witness_set = TransactionWitnessSet(
            vkey_witnesses=[sign_transaction_hash(body.hash(), policy.signing_key)],
            native_scripts=[policy.script],
        )
        descriptor = policy.descriptor()
        logger.info(f"Built mint of {nft.name!r} under policy {descriptor.id} (fee {body.fee})")
        return Transaction(body, witness_set, auxiliary_data=auxiliary_data), descriptor
