"""
Chain backend serving a static JSON snapshot of chain state.

Snapshot layout::

    {
      "slot": 41000000,
      "protocol_parameters": {"min_fee_a": 44, "min_fee_b": 155381, ...},
      "utxos": [
        {"tx_hash": "<64 hex>", "index": 0, "address": "addr1...",
         "coin": 5000000, "assets": {"<policy hex>": {"<name hex>": 1}}}
      ],
      "sales": {"<policy hex>.<name hex>": {"price": ..., "seller_address": [...]}}
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pycardano import (
    Address,
    DatumHash,
    TransactionId,
    TransactionInput,
    TransactionOutput,
    UTxO,
    Value,
)
from pydantic import BaseModel, Field, ValidationError, field_validator

from nftmarket.addresses import parse_address, same_address
from nftmarket.backends.base import ChainBackend
from nftmarket.constants import MAX_ASSET_NAME_SIZE, POLICY_ID_SIZE
from nftmarket.errors import InvalidSnapshot
from nftmarket.ledger.value import from_asset_map
from nftmarket.models import ProtocolParameters


class SnapshotUtxo(BaseModel):
    tx_hash: str = Field(..., min_length=64, max_length=64)
    index: int = Field(..., ge=0)
    address: str
    coin: int = Field(..., ge=0)
    assets: dict[str, dict[str, int]] = Field(default_factory=dict)
    datum_hash: str | None = None

    @field_validator("datum_hash")
    @classmethod
    def check_datum_hash(cls, v: str | None) -> str | None:
        if v is not None and len(bytes.fromhex(v)) != 32:
            raise ValueError("datum hash must be 32 bytes")
        return v

    @field_validator("tx_hash")
    @classmethod
    def check_tx_hash(cls, v: str) -> str:
        bytes.fromhex(v)
        return v

    @field_validator("assets")
    @classmethod
    def check_asset_hex(cls, v: dict[str, dict[str, int]]) -> dict[str, dict[str, int]]:
        for policy, names in v.items():
            if len(bytes.fromhex(policy)) != POLICY_ID_SIZE:
                raise ValueError(f"policy id {policy!r} must be {POLICY_ID_SIZE} bytes")
            for name in names:
                if len(bytes.fromhex(name)) > MAX_ASSET_NAME_SIZE:
                    raise ValueError(
                        f"asset name {name!r} is longer than {MAX_ASSET_NAME_SIZE} bytes"
                    )
        return v

    def to_utxo(self) -> UTxO:
        asset_map = {
            bytes.fromhex(policy): {bytes.fromhex(name): qty for name, qty in names.items()}
            for policy, names in self.assets.items()
        }
        output = TransactionOutput(
            parse_address(self.address),
            Value(self.coin, from_asset_map(asset_map)),
            datum_hash=DatumHash(bytes.fromhex(self.datum_hash)) if self.datum_hash else None,
        )
        tx_in = TransactionInput(TransactionId(bytes.fromhex(self.tx_hash)), self.index)
        return UTxO(tx_in, output)


class ChainSnapshot(BaseModel):
    slot: int = Field(..., ge=0)
    protocol_parameters: ProtocolParameters
    utxos: list[SnapshotUtxo] = Field(default_factory=list)
    sales: dict[str, Any] = Field(default_factory=dict)


class SnapshotBackend(ChainBackend):
    """Serves chain state from a snapshot dict or JSON file."""

    def __init__(self, snapshot: ChainSnapshot | dict[str, Any]):
        if not isinstance(snapshot, ChainSnapshot):
            try:
                snapshot = ChainSnapshot.model_validate(snapshot)
            except ValidationError as e:
                raise InvalidSnapshot(f"Invalid chain snapshot: {e}") from e
        self.snapshot = snapshot

    @classmethod
    def from_file(cls, path: str | Path) -> SnapshotBackend:
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise InvalidSnapshot(f"Cannot read chain snapshot {path}: {e}") from e
        backend = cls(data)
        logger.info(
            f"Loaded chain snapshot {path} at slot {backend.snapshot.slot} "
            f"({len(backend.snapshot.utxos)} UTxOs)"
        )
        return backend

    async def get_utxos(self, address: Address) -> list[UTxO]:
        utxos = []
        for entry in self.snapshot.utxos:
            utxo = entry.to_utxo()
            if same_address(utxo.output.address, address):
                utxos.append(utxo)
        logger.debug(f"Found {len(utxos)} UTxOs at {address}")
        return utxos

    async def get_protocol_parameters(self) -> ProtocolParameters:
        return self.snapshot.protocol_parameters

    async def get_slot(self) -> int:
        return self.snapshot.slot

    async def get_sale_metadata(self, policy_id: bytes, asset_name: bytes) -> Any | None:
        return self.snapshot.sales.get(f"{policy_id.hex()}.{asset_name.hex()}")
