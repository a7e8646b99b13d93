"""
Witness set assembly.

Two phases:
- Placeholder: N dummy vkey witnesses (plus any native scripts / plutus data)
  so a draft transaction has the byte size of the final signed one. Only the
  length matters; these witnesses are never transmitted.
- Final: real signatures over the body hash, merged with caller-supplied
  witness sets without duplicating a verification key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pycardano import (
    NativeScript,
    PaymentSigningKey,
    PaymentVerificationKey,
    SigningKey,
    Transaction,
    TransactionWitnessSet,
    VerificationKey,
    VerificationKeyWitness,
)

from nftmarket.errors import InvalidKey

# Generated once per process; sizing only, never used for real signatures
PLACEHOLDER_SIGNING_KEY = PaymentSigningKey.generate()
_PLACEHOLDER_VKEY_BYTES = PaymentVerificationKey.from_signing_key(
    PLACEHOLDER_SIGNING_KEY
).payload


@dataclass
class WitnessSetParams:
    """Shape of the witness set a transaction will eventually carry."""

    vkey_count: int = 1
    native_scripts: list[NativeScript] | None = None
    plutus_data: list[Any] | None = None
    redeemers: list[Any] | None = None


def _placeholder_vkey(index: int) -> VerificationKey:
    # Distinct keys per index; identical witnesses would be de-duplicated
    mask = index.to_bytes(32, "big")
    return VerificationKey(bytes(a ^ b for a, b in zip(_PLACEHOLDER_VKEY_BYTES, mask)))


def create_n_vkey_witnesses(n: int, tx_hash: bytes) -> list[VerificationKeyWitness]:
    signature = PLACEHOLDER_SIGNING_KEY.sign(tx_hash)
    return [VerificationKeyWitness(_placeholder_vkey(i), signature) for i in range(n)]


def create_dummy_witness_set(params: WitnessSetParams, tx_hash: bytes) -> TransactionWitnessSet:
    vkeys = create_n_vkey_witnesses(params.vkey_count, tx_hash) if params.vkey_count > 0 else None
    return TransactionWitnessSet(
        vkey_witnesses=vkeys,
        native_scripts=list(params.native_scripts) if params.native_scripts else None,
        plutus_data=list(params.plutus_data) if params.plutus_data else None,
        redeemer=list(params.redeemers) if params.redeemers else None,
    )


def sign_transaction_hash(tx_hash: bytes, signing_key: SigningKey) -> VerificationKeyWitness:
    """Real vkey witness over ``tx_hash``."""
    if signing_key is PLACEHOLDER_SIGNING_KEY:
        raise InvalidKey("The placeholder key must never sign real transactions")
    vkey = signing_key.to_verification_key()
    return VerificationKeyWitness(vkey, signing_key.sign(tx_hash))


def merge_vkey_witnesses(
    *witness_lists: list[VerificationKeyWitness] | None,
) -> list[VerificationKeyWitness]:
    """Concatenate witness lists, keeping the first witness per verification key."""
    seen: set[bytes] = set()
    merged: list[VerificationKeyWitness] = []
    for witnesses in witness_lists:
        for witness in witnesses or []:
            key = witness.vkey.payload
            if key in seen:
                continue
            seen.add(key)
            merged.append(witness)
    return merged


def combine_witness_set(tx: Transaction, witness_set: TransactionWitnessSet) -> Transaction:
    """
    Add the vkey witnesses of ``witness_set`` (e.g. a buyer's wallet signature)
    to those already on ``tx`` (e.g. the holder's signature).

    Body, native scripts and auxiliary data of ``tx`` are kept unchanged.
    """
    previous = tx.transaction_witness_set
    vkeys = merge_vkey_witnesses(
        list(previous.vkey_witnesses or []), list(witness_set.vkey_witnesses or [])
    )
    combined = TransactionWitnessSet(
        vkey_witnesses=vkeys or None,
        native_scripts=previous.native_scripts or witness_set.native_scripts,
        plutus_data=previous.plutus_data,
        redeemer=previous.redeemer,
    )
    return Transaction(
        tx.transaction_body,
        combined,
        auxiliary_data=tx.auxiliary_data,
    )
