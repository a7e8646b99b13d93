"""
Tests for NFT minting.
"""

from __future__ import annotations

import pytest
from pycardano import Address

from nftmarket.addresses import same_address
from nftmarket.constants import MINTED_AT, NFT_STANDARD_LABEL, ONE_ADA
from nftmarket.errors import NotFragmentedEnough
from nftmarket.ledger.value import as_value, asset_quantity, to_asset_map
from nftmarket.models import NftMetadata, ProtocolParameters
from nftmarket.nft import NftMinter, NftPolicy, nft_metadata_map
from tests.conftest import UtxoFactory, new_address

SLOT = 40_000_000


@pytest.fixture
def tax_address() -> Address:
    return new_address()


@pytest.fixture
def minter(tax_address: Address) -> NftMinter:
    return NftMinter(tax_address)


@pytest.fixture
def nft() -> NftMetadata:
    return NftMetadata(name="Hello", description="A test NFT", image="ipfs://Qm123")


class TestNftPolicy:
    """Tests for the time-locked minting policy."""

    def test_policy_json(self) -> None:
        policy = NftPolicy(SLOT)
        data = policy.to_json()

        assert data["type"] == "all"
        assert data["scripts"][0] == {"type": "before", "slot": SLOT + 3600}
        assert data["scripts"][1]["type"] == "sig"
        assert data["scripts"][1]["keyHash"] == policy.verification_key.hash().payload.hex()

    def test_fresh_key_per_policy(self) -> None:
        assert NftPolicy(SLOT).policy_id != NftPolicy(SLOT).policy_id

    def test_descriptor_alias(self) -> None:
        policy = NftPolicy(SLOT)
        dumped = policy.descriptor().model_dump(by_alias=True)

        assert dumped["id"] == policy.policy_id.hex()
        assert dumped["json"] == policy.to_json()
        assert len(policy.policy_id) == 28


class TestNftMetadataMap:
    """Tests for CIP-25 metadata conversion."""

    def test_standard_fields(self, nft: NftMetadata) -> None:
        result = nft_metadata_map(nft)

        assert result["name"] == "Hello"
        assert result["description"] == "A test NFT"
        assert result["image"] == "ipfs://Qm123"
        assert result["Minted At"] == MINTED_AT

    def test_extra_fields(self) -> None:
        nft = NftMetadata(
            name="Hello",
            image="ipfs://Qm123",
            rarity=7,
            animated=True,
            weight=1.5,
            nested={"a": 1},
        )

        result = nft_metadata_map(nft)

        assert result["rarity"] == 7
        assert result["animated"] == "true"
        assert result["weight"] == "1.5"
        assert "nested" not in result

    def test_long_strings_are_chunked(self) -> None:
        image = "ipfs://" + "Q" * 100
        result = nft_metadata_map(NftMetadata(name="Hello", image=image))

        assert isinstance(result["image"], list)
        assert "".join(result["image"]) == image
        assert all(len(chunk) <= 64 for chunk in result["image"])


class TestBuildMint:
    """Tests for NftMinter.build_mint."""

    def test_mint(
        self,
        minter: NftMinter,
        tax_address: Address,
        nft: NftMetadata,
        make_utxo: UtxoFactory,
        params: ProtocolParameters,
    ) -> None:
        recipient = new_address()
        pool = [make_utxo(recipient, 10 * ONE_ADA)]

        tx, policy = minter.build_mint(nft, recipient, pool, params, SLOT)

        body = tx.transaction_body
        policy_id = bytes.fromhex(policy.id)
        assert to_asset_map(body.mint) == {policy_id: {b"Hello": 1}}
        assert body.ttl == SLOT + 3600

        minted, tax = body.outputs[:2]
        assert same_address(minted.address, recipient)
        assert asset_quantity(minted.amount, policy_id, b"Hello") == 1
        assert as_value(minted.amount).coin == 1_444_443
        assert same_address(tax.address, tax_address)
        assert as_value(tax.amount).coin == ONE_ADA

        # Asset conservation: nothing in, one minted, one out
        assert sum(asset_quantity(o.amount, policy_id, b"Hello") for o in body.outputs) == 1
        assert 10 * ONE_ADA == sum(as_value(o.amount).coin for o in body.outputs) + body.fee

        witness_set = tx.transaction_witness_set
        assert len(list(witness_set.vkey_witnesses)) == 1
        assert len(list(witness_set.native_scripts)) == 1
        assert policy.json_script["scripts"][0]["slot"] == SLOT + 3600

        metadata = tx.auxiliary_data.data.get(NFT_STANDARD_LABEL)
        assert metadata[policy.id]["Hello"]["Minted At"] == MINTED_AT
        assert body.auxiliary_data_hash == tx.auxiliary_data.hash()

    def test_mint_without_funds(
        self, minter: NftMinter, nft: NftMetadata, params: ProtocolParameters
    ) -> None:
        with pytest.raises(NotFragmentedEnough):
            minter.build_mint(nft, new_address(), [], params, SLOT)
