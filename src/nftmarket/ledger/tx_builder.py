"""
Transaction body builder with fee convergence.

The fee depends on the transaction's byte size, which depends on the inputs
and outputs chosen, which depend on the fee. The builder searches for a fixed
point: a body built assuming fee ``f`` whose fully witnessed draft costs
exactly ``f``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger
from pycardano import (
    AuxiliaryData,
    MultiAsset,
    Transaction,
    TransactionBody,
    TransactionOutput,
    UTxO,
)
from pycardano.exception import PyCardanoException

from nftmarket.constants import MAX_TRIES
from nftmarket.errors import (
    BalanceInsufficient,
    MaximumInputCountExceeded,
    TransactionAssemblyError,
)
from nftmarket.ledger.coin_selection import SelectionResult, largest_first_selection
from nftmarket.ledger.witness import WitnessSetParams, create_dummy_witness_set
from nftmarket.models import ProtocolParameters

FeeFunction = Callable[[Transaction, ProtocolParameters], int]


def transaction_size(tx: Transaction) -> int:
    return len(tx.to_cbor())


def min_fee(tx: Transaction, params: ProtocolParameters) -> int:
    """Linear fee: ``a * size + b``."""
    return params.min_fee_a * transaction_size(tx) + params.min_fee_b


def calculate_maximum_fees(params: ProtocolParameters) -> int:
    """Initial fee guess for the convergence loop."""
    return params.min_fee_a


def assemble_body(
    selection: SelectionResult,
    ttl: int,
    mint: MultiAsset | None = None,
    auxiliary_data: AuxiliaryData | None = None,
) -> TransactionBody:
    return TransactionBody(
        inputs=[utxo.input for utxo in selection.inputs],
        outputs=list(selection.outputs),
        fee=selection.fee,
        ttl=ttl,
        mint=mint if mint else None,
        auxiliary_data_hash=auxiliary_data.hash() if auxiliary_data is not None else None,
    )


def build_draft_transaction(
    body: TransactionBody,
    witness_params: WitnessSetParams,
    auxiliary_data: AuxiliaryData | None = None,
) -> Transaction:
    """Body plus a placeholder witness set of the final transaction's size."""
    witness_set = create_dummy_witness_set(witness_params, body.hash())
    return Transaction(body, witness_set, auxiliary_data=auxiliary_data)


def build_transaction_body(
    utxos: Sequence[UTxO],
    inputs: Sequence[UTxO],
    outputs: Sequence[TransactionOutput],
    ttl: int,
    params: ProtocolParameters,
    fee: int | None = None,
    mint: MultiAsset | None = None,
    witness_params: WitnessSetParams | None = None,
    auxiliary_data: AuxiliaryData | None = None,
    fee_function: FeeFunction = min_fee,
    max_tries: int = MAX_TRIES,
    max_input_count: int | None = None,
) -> TransactionBody:
    """
    Select inputs and converge on the exact fee.

    Every attempt re-runs selection from scratch over the full candidate pool,
    since a higher fee can change which UTxOs are needed.

    Args:
        utxos: Optional candidate pool
        inputs: Mandatory inputs (e.g. the UTxO holding the NFT being traded)
        outputs: Requested outputs
        ttl: Slot after which the transaction is invalid
        params: Protocol parameters snapshot
        fee: Initial fee guess (defaults to the per-byte coefficient)
        mint: Assets minted by the transaction
        witness_params: Shape of the final witness set, for sizing
        auxiliary_data: Transaction metadata
        fee_function: Computes the true fee of a draft transaction
        max_tries: Retry budget
        max_input_count: Optional cap on the number of inputs

    Returns:
        The converged transaction body

    Raises:
        BalanceInsufficient: Inputs cannot cover outputs + fee, or no fixed
            point was found within the retry budget
        MaximumInputCountExceeded: Converged draft exceeds the max transaction size
        ValueSizeExceeded: An output value is larger than max_value_size
        TransactionAssemblyError: The ledger library rejected the draft
    """
    witness_params = witness_params or WitnessSetParams()
    fees = fee if fee is not None else calculate_maximum_fees(params)

    for attempt in range(1, max_tries + 1):
        selection = largest_first_selection(
            outputs, inputs, utxos, fees, params, max_input_count=max_input_count
        )
        try:
            body = assemble_body(selection, ttl, mint, auxiliary_data)
            draft = build_draft_transaction(body, witness_params, auxiliary_data)
            calculated = fee_function(draft, params)
        except PyCardanoException as e:
            raise TransactionAssemblyError(f"Failed to assemble transaction: {e}") from e

        logger.debug(
            f"Fee attempt {attempt}/{max_tries}: assumed {fees}, calculated {calculated} "
            f"({len(selection.inputs)} inputs, {len(selection.outputs)} outputs)"
        )

        if calculated == fees:
            size = transaction_size(draft)
            if params.max_tx_size and size > params.max_tx_size:
                raise MaximumInputCountExceeded(
                    f"Transaction size ({size}) exceeds the max limit ({params.max_tx_size})"
                )
            return body

        fees = calculated

    raise BalanceInsufficient(f"Fee did not converge after {max_tries} attempts")
