"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable

import pytest
from pycardano import (
    Address,
    PaymentSigningKey,
    PaymentVerificationKey,
    TransactionId,
    TransactionInput,
    TransactionOutput,
    UTxO,
    Value,
)

from nftmarket.addresses import enterprise_address
from nftmarket.ledger.value import from_asset_map
from nftmarket.marketplace.holder import MarketplaceHolder
from nftmarket.models import ProtocolParameters

UtxoFactory = Callable[..., UTxO]


def new_address() -> Address:
    """Fresh testnet enterprise address."""
    key = PaymentSigningKey.generate()
    return enterprise_address(PaymentVerificationKey.from_signing_key(key).hash(), True)


@pytest.fixture
def params() -> ProtocolParameters:
    """Mainnet-like Alonzo fee parameters."""
    return ProtocolParameters(min_fee_a=44, min_fee_b=155381, max_tx_size=16384)


@pytest.fixture
def seller_address() -> Address:
    return new_address()


@pytest.fixture
def buyer_address() -> Address:
    return new_address()


@pytest.fixture
def revenue_address() -> Address:
    return new_address()


@pytest.fixture
def holder() -> MarketplaceHolder:
    return MarketplaceHolder(PaymentSigningKey.generate(), is_testnet=True)


@pytest.fixture
def policy_id() -> bytes:
    return bytes.fromhex("a0" * 28)


@pytest.fixture
def other_policy_id() -> bytes:
    return bytes.fromhex("b1" * 28)


@pytest.fixture
def asset_name() -> bytes:
    return b"Hello"


@pytest.fixture
def make_utxo() -> UtxoFactory:
    """Factory for UTxOs with unique transaction ids."""
    counter = itertools.count(1)

    def _make(
        address: Address,
        coin: int,
        assets: dict[bytes, dict[bytes, int]] | None = None,
    ) -> UTxO:
        tx_id = TransactionId(next(counter).to_bytes(32, "big"))
        value = Value(coin, from_asset_map(assets or {}))
        return UTxO(TransactionInput(tx_id, 0), TransactionOutput(address, value))

    return _make

