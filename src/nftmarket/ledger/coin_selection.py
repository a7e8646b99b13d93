"""
Largest-first coin selection with asset preservation.

Selects inputs to cover a set of requested outputs plus fee:
- Outputs are first raised to the ledger minimum coin (output normalization)
- Candidates are consumed largest coin first
- A candidate carrying tokens is never drained below the minimum coin needed
  to keep those tokens in a standalone output; only the excess is spent and
  the tokens are re-issued to the candidate's address
- A change output is emitted only when the leftover clears the bare
  minimum-coin floor
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger
from pycardano import Address, TransactionOutput, UTxO, Value

from nftmarket.errors import (
    BalanceInsufficient,
    FullyDepleted,
    MaximumInputCountExceeded,
    NotFragmentedEnough,
    ValueSizeExceeded,
)
from nftmarket.ledger.value import as_value, checked_add, checked_sub, has_assets, min_ada_required
from nftmarket.models import ProtocolParameters


@dataclass
class SelectionResult:
    """Result of coin selection"""

    inputs: list[UTxO]
    outputs: list[TransactionOutput]
    fee: int
    selected_amount: int
    required_amount: int
    change: TransactionOutput | None = None
    reissued: list[TransactionOutput] = field(default_factory=list)

    @property
    def change_value(self) -> int:
        return self.change.amount.coin if self.change is not None else 0


def utxo_coin(utxo: UTxO) -> int:
    return as_value(utxo.output.amount).coin


def set_output_lovelace(output: TransactionOutput, lovelace: int) -> TransactionOutput:
    """Copy of ``output`` with its coin replaced, keeping assets and datum hash."""
    amount = as_value(output.amount)
    return TransactionOutput(
        output.address,
        Value(lovelace, amount.multi_asset),
        datum_hash=output.datum_hash,
    )


def normalize_outputs(
    outputs: Sequence[TransactionOutput], fee: int, min_utxo_value: int
) -> tuple[list[TransactionOutput], int]:
    """
    Raise each output's coin to its ledger minimum.

    Returns:
        (normalized outputs, fee + sum of all output coin)
    """
    total = fee
    normalized: list[TransactionOutput] = []
    for output in outputs:
        amount = as_value(output.amount)
        min_lovelace = min_ada_required(amount, min_utxo_value)
        if amount.coin < min_lovelace:
            total = checked_add(total, min_lovelace)
            normalized.append(set_output_lovelace(output, min_lovelace))
        else:
            total = checked_add(total, amount.coin)
            normalized.append(output)
    return normalized, total


def check_value_size(outputs: Sequence[TransactionOutput], max_value_size: int) -> None:
    """
    Reject outputs whose serialized value is larger than the ledger allows.

    Raises:
        ValueSizeExceeded: An output value serializes to more than max_value_size bytes
    """
    for output in outputs:
        size = len(as_value(output.amount).to_cbor())
        if size > max_value_size:
            raise ValueSizeExceeded(
                f"Output to {output.address} has a value of {size} bytes, "
                f"above the {max_value_size} byte limit"
            )


def change_floor(min_utxo_value: int) -> int:
    """Smallest coin a bare (ada-only) change output may carry."""
    return min_ada_required(Value(min_utxo_value), min_utxo_value)


def _can_stop(selected: int, required: int, floor: int) -> bool:
    if selected < required:
        return False
    leftover = selected - required
    return leftover == 0 or leftover >= floor


def extractable_amount(utxo: UTxO, min_utxo_value: int) -> int:
    """Coin a candidate can contribute once any tokens it carries are re-issued."""
    amount = as_value(utxo.output.amount)
    if not has_assets(amount):
        return amount.coin
    return max(0, amount.coin - min_ada_required(amount, min_utxo_value))


def largest_first_selection(
    outputs: Sequence[TransactionOutput],
    inputs: Sequence[UTxO],
    utxos: Sequence[UTxO],
    fee: int,
    params: ProtocolParameters,
    max_input_count: int | None = None,
) -> SelectionResult:
    """
    Select inputs from ``utxos`` to cover ``outputs`` plus ``fee``.

    Args:
        outputs: Requested outputs (normalized here)
        inputs: Mandatory inputs, already committed to the transaction
        utxos: Optional candidate pool
        fee: Fee assumed for this attempt
        params: Protocol parameters snapshot
        max_input_count: Optional cap on the total number of inputs

    Returns:
        SelectionResult where sum(input coin) == sum(output coin) + fee

    Raises:
        NotFragmentedEnough: No inputs at all to select from
        BalanceInsufficient: Pool cannot cover the requirement
        FullyDepleted: Pool total suffices but no valid stop point was reached
        MaximumInputCountExceeded: Selection needs more than max_input_count inputs
        ValueSizeExceeded: A requested or re-issued output is too large
    """
    min_utxo_value = params.min_utxo_value
    normalized, required = normalize_outputs(outputs, fee, min_utxo_value)
    check_value_size(normalized, params.max_value_size)
    floor = change_floor(min_utxo_value)

    if not inputs and not utxos:
        raise NotFragmentedEnough()

    candidates = tuple(sorted(utxos, key=utxo_coin))
    chosen: list[UTxO] = list(inputs)
    result_outputs: list[TransactionOutput] = list(normalized)
    reissued: list[TransactionOutput] = []

    selected = 0
    for utxo in inputs:
        selected = checked_add(selected, utxo_coin(utxo))

    last_address: Address | None = inputs[-1].output.address if inputs else None
    cursor = len(candidates)

    while not (chosen and _can_stop(selected, required, floor)):
        if cursor == 0:
            break
        cursor -= 1
        utxo = candidates[cursor]

        if max_input_count is not None and len(chosen) >= max_input_count:
            raise MaximumInputCountExceeded(
                f"Selection needs more than {max_input_count} inputs"
            )

        amount = as_value(utxo.output.amount)
        if has_assets(amount):
            # Keep the tokens alive in their own output, spend only the excess coin
            min_amount = min_ada_required(amount, min_utxo_value)
            if amount.coin < min_amount:
                raise BalanceInsufficient(
                    f"UTxO {utxo.input} holds {amount.coin} lovelace, "
                    f"below the {min_amount} needed to carry its assets"
                )
            reissue = set_output_lovelace(utxo.output, min_amount)
            reissued.append(reissue)
            result_outputs.append(reissue)
            selected = checked_add(selected, checked_sub(amount.coin, min_amount))
        else:
            selected = checked_add(selected, amount.coin)

        chosen.append(utxo)
        last_address = utxo.output.address
        logger.debug(
            f"Selected {utxo.input} ({amount.coin} lovelace), "
            f"running total {selected}/{required}"
        )

    if not (chosen and _can_stop(selected, required, floor)):
        available = sum(utxo_coin(u) for u in inputs) + sum(
            extractable_amount(u, min_utxo_value) for u in candidates
        )
        if available < required:
            raise BalanceInsufficient(
                f"Insufficient funds: need {required} lovelace, have {available}"
            )
        raise FullyDepleted(
            f"Candidates exhausted with {selected - required} lovelace left over, "
            f"below the {floor} change minimum"
        )

    change = None
    leftover = checked_sub(selected, required)
    if leftover > 0:
        change = TransactionOutput(last_address, Value(leftover))
        result_outputs.append(change)

    check_value_size(reissued, params.max_value_size)

    return SelectionResult(
        inputs=chosen,
        outputs=result_outputs,
        fee=fee,
        selected_amount=selected,
        required_amount=required,
        change=change,
        reissued=reissued,
    )
