"""
Tests for output normalization and largest-first coin selection.
"""

from __future__ import annotations

import pytest
from pycardano import DatumHash, TransactionOutput, Value

from nftmarket.addresses import same_address
from nftmarket.constants import MIN_UTXO_VALUE, ONE_ADA
from nftmarket.errors import (
    BalanceInsufficient,
    FullyDepleted,
    MaximumInputCountExceeded,
    NotFragmentedEnough,
    ValueSizeExceeded,
)
from nftmarket.ledger.coin_selection import (
    change_floor,
    check_value_size,
    extractable_amount,
    largest_first_selection,
    normalize_outputs,
    set_output_lovelace,
    utxo_coin,
)
from nftmarket.ledger.value import (
    AssetMap,
    as_value,
    asset_quantity,
    from_asset_map,
    single_asset_value,
)
from nftmarket.models import ProtocolParameters
from tests.conftest import UtxoFactory, new_address

FEE = 200_000


def output_coin(outputs: list[TransactionOutput]) -> int:
    return sum(as_value(o.amount).coin for o in outputs)


def large_bundle(policies: int = 100) -> AssetMap:
    """One 32-byte-named asset under each of ``policies`` distinct policies."""
    return {bytes([i]) * 28: {bytes([i]) * 32: 1} for i in range(policies)}


class TestNormalizeOutputs:
    """Tests for raising outputs to their minimum coin."""

    def test_raises_ada_only_output(self) -> None:
        address = new_address()
        outputs, total = normalize_outputs(
            [TransactionOutput(address, Value(500_000))], FEE, MIN_UTXO_VALUE
        )

        assert as_value(outputs[0].amount).coin == MIN_UTXO_VALUE
        assert total == FEE + MIN_UTXO_VALUE

    def test_zero_coin_asset_output_is_raised(self, policy_id: bytes) -> None:
        """An asset-only output with no coin is raised, never rejected."""
        address = new_address()
        outputs, total = normalize_outputs(
            [TransactionOutput(address, single_asset_value(policy_id, b"Hello"))],
            0,
            MIN_UTXO_VALUE,
        )

        assert as_value(outputs[0].amount).coin == 1_444_443
        assert asset_quantity(outputs[0].amount, policy_id, b"Hello") == 1
        assert total == 1_444_443

    def test_keeps_sufficient_output(self) -> None:
        address = new_address()
        original = TransactionOutput(address, Value(3 * ONE_ADA))

        outputs, total = normalize_outputs([original], FEE, MIN_UTXO_VALUE)

        assert outputs[0] is original
        assert total == 3 * ONE_ADA + FEE

    def test_preserves_datum_hash(self) -> None:
        datum_hash = DatumHash(b"\x11" * 32)
        output = TransactionOutput(new_address(), Value(100), datum_hash=datum_hash)

        outputs, _ = normalize_outputs([output], 0, MIN_UTXO_VALUE)

        assert outputs[0].datum_hash == datum_hash

    def test_set_output_lovelace_keeps_assets(self, policy_id: bytes) -> None:
        output = TransactionOutput(new_address(), single_asset_value(policy_id, b"A", coin=5))

        updated = set_output_lovelace(output, 2 * ONE_ADA)

        assert as_value(updated.amount).coin == 2 * ONE_ADA
        assert asset_quantity(updated.amount, policy_id, b"A") == 1


class TestLargestFirstSelection:
    """Tests for largest-first selection."""

    def test_picks_largest_first(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        owner = new_address()
        small, large, medium = (
            make_utxo(owner, ONE_ADA),
            make_utxo(owner, 7 * ONE_ADA),
            make_utxo(owner, 3 * ONE_ADA),
        )
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        result = largest_first_selection(outputs, [], [small, large, medium], FEE, params)

        assert result.inputs == [large]
        assert result.change_value == 7 * ONE_ADA - 2 * ONE_ADA - FEE

    def test_balance(self, params: ProtocolParameters, make_utxo: UtxoFactory) -> None:
        """Input coin equals output coin plus fee."""
        owner = new_address()
        pool = [make_utxo(owner, ONE_ADA) for _ in range(5)]
        outputs = [TransactionOutput(new_address(), Value(2_500_000))]

        result = largest_first_selection(outputs, [], pool, FEE, params)

        assert sum(utxo_coin(u) for u in result.inputs) == output_coin(result.outputs) + FEE
        for output in result.outputs:
            assert as_value(output.amount).coin >= MIN_UTXO_VALUE

    def test_change_goes_to_last_consumed_address(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        first_owner, second_owner = new_address(), new_address()
        pool = [make_utxo(first_owner, 3 * ONE_ADA), make_utxo(second_owner, 2 * ONE_ADA)]
        outputs = [TransactionOutput(new_address(), Value(3 * ONE_ADA))]

        result = largest_first_selection(outputs, [], pool, FEE, params)

        assert len(result.inputs) == 2
        assert result.change is not None
        assert same_address(result.change.address, second_owner)

    def test_partial_asset_utxo(
        self, params: ProtocolParameters, make_utxo: UtxoFactory, policy_id: bytes
    ) -> None:
        """A {10 ADA, NFT} UTxO re-issues {min, NFT} and contributes the rest."""
        owner = new_address()
        nft_utxo = make_utxo(owner, 10 * ONE_ADA, {policy_id: {b"Hello": 1}})
        outputs = [TransactionOutput(new_address(), Value(3 * ONE_ADA - FEE))]

        result = largest_first_selection(outputs, [], [nft_utxo], FEE, params)

        assert len(result.reissued) == 1
        reissued = as_value(result.reissued[0].amount)
        assert same_address(result.reissued[0].address, owner)
        assert reissued.coin == 1_444_443
        assert asset_quantity(reissued, policy_id, b"Hello") == 1
        assert result.selected_amount == 10 * ONE_ADA - 1_444_443
        assert result.change_value == 10 * ONE_ADA - 1_444_443 - 3 * ONE_ADA
        assert sum(asset_quantity(o.amount, policy_id, b"Hello") for o in result.outputs) == 1
        assert utxo_coin(nft_utxo) == output_coin(result.outputs) + FEE

    def test_asset_utxo_below_minimum(
        self, params: ProtocolParameters, make_utxo: UtxoFactory, policy_id: bytes
    ) -> None:
        pool = [make_utxo(new_address(), ONE_ADA, {policy_id: {b"Hello": 1}})]
        outputs = [TransactionOutput(new_address(), Value(ONE_ADA))]

        with pytest.raises(BalanceInsufficient):
            largest_first_selection(outputs, [], pool, FEE, params)

    def test_mandatory_inputs_alone(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        """Mandatory inputs that cover the outputs need no candidates."""
        owner = new_address()
        mandatory = make_utxo(owner, 5 * ONE_ADA)
        untouched = make_utxo(owner, 50 * ONE_ADA)
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        result = largest_first_selection(outputs, [mandatory], [untouched], FEE, params)

        assert result.inputs == [mandatory]
        assert result.change is not None
        assert same_address(result.change.address, owner)
        assert result.change_value == 3 * ONE_ADA - FEE

    def test_exact_match_has_no_change(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        mandatory = make_utxo(new_address(), 2 * ONE_ADA + FEE)
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        result = largest_first_selection(outputs, [mandatory], [], FEE, params)

        assert result.change is None
        assert len(result.outputs) == 1

    def test_small_leftover_keeps_selecting(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        """A leftover below the change floor pulls in another candidate."""
        owner = new_address()
        pool = [make_utxo(owner, 2_500_000), make_utxo(owner, 2 * ONE_ADA)]
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        result = largest_first_selection(outputs, [], pool, FEE, params)

        assert len(result.inputs) == 2
        assert result.change_value == 4_500_000 - 2 * ONE_ADA - FEE
        assert result.change_value >= change_floor(MIN_UTXO_VALUE)

    def test_depletion(self, params: ProtocolParameters, make_utxo: UtxoFactory) -> None:
        owner = new_address()
        pool = [make_utxo(owner, ONE_ADA), make_utxo(owner, ONE_ADA)]
        outputs = [TransactionOutput(new_address(), Value(5 * ONE_ADA))]

        with pytest.raises(BalanceInsufficient):
            largest_first_selection(outputs, [], pool, FEE, params)

    def test_fully_depleted(self, params: ProtocolParameters, make_utxo: UtxoFactory) -> None:
        """Enough coin in total, but the leftover cannot form a change output."""
        pool = [make_utxo(new_address(), 2_500_000)]
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        with pytest.raises(FullyDepleted):
            largest_first_selection(outputs, [], pool, FEE, params)

    def test_not_fragmented_enough(self, params: ProtocolParameters) -> None:
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        with pytest.raises(NotFragmentedEnough):
            largest_first_selection(outputs, [], [], FEE, params)

    def test_maximum_input_count(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        owner = new_address()
        pool = [make_utxo(owner, ONE_ADA) for _ in range(4)]
        outputs = [TransactionOutput(new_address(), Value(3 * ONE_ADA))]

        with pytest.raises(MaximumInputCountExceeded):
            largest_first_selection(outputs, [], pool, 0, params, max_input_count=2)

    def test_does_not_mutate_pool(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        owner = new_address()
        pool = [make_utxo(owner, ONE_ADA), make_utxo(owner, 9 * ONE_ADA)]
        snapshot = list(pool)

        largest_first_selection(
            [TransactionOutput(new_address(), Value(2 * ONE_ADA))], [], pool, FEE, params
        )

        assert pool == snapshot


class TestExtractableAmount:
    """Tests for the coin a candidate can contribute."""

    def test_ada_only(self, make_utxo: UtxoFactory) -> None:
        assert extractable_amount(make_utxo(new_address(), 3 * ONE_ADA), MIN_UTXO_VALUE) == (
            3 * ONE_ADA
        )

    def test_with_assets(self, make_utxo: UtxoFactory, policy_id: bytes) -> None:
        utxo = make_utxo(new_address(), 3 * ONE_ADA, {policy_id: {b"Hello": 1}})
        assert extractable_amount(utxo, MIN_UTXO_VALUE) == 3 * ONE_ADA - 1_444_443

    def test_never_negative(self, make_utxo: UtxoFactory, policy_id: bytes) -> None:
        utxo = make_utxo(new_address(), ONE_ADA, {policy_id: {b"Hello": 1}})
        assert extractable_amount(utxo, MIN_UTXO_VALUE) == 0


def test_change_floor() -> None:
    assert change_floor(MIN_UTXO_VALUE) == MIN_UTXO_VALUE



class TestValueSize:
    """Tests for the maximum serialized value size of outputs."""

    def test_small_bundle_passes(self, policy_id: bytes) -> None:
        nft = single_asset_value(policy_id, b"Hello", coin=2 * ONE_ADA)
        output = TransactionOutput(new_address(), nft)

        check_value_size([output], 5000)

    def test_oversized_requested_output(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        bundle = Value(50 * ONE_ADA, from_asset_map(large_bundle()))
        output = TransactionOutput(new_address(), bundle)
        pool = [make_utxo(new_address(), 200 * ONE_ADA)]

        assert len(as_value(output.amount).to_cbor()) > params.max_value_size
        with pytest.raises(ValueSizeExceeded):
            largest_first_selection([output], [], pool, FEE, params)

    def test_oversized_reissued_bundle(
        self, params: ProtocolParameters, make_utxo: UtxoFactory
    ) -> None:
        """A token-heavy candidate cannot be spent if its tokens no longer fit one output."""
        pool = [make_utxo(new_address(), 200 * ONE_ADA, large_bundle())]
        outputs = [TransactionOutput(new_address(), Value(2 * ONE_ADA))]

        with pytest.raises(ValueSizeExceeded):
            largest_first_selection(outputs, [], pool, FEE, params)
