"""
Base chain backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pycardano import Address, UTxO

from nftmarket.models import ProtocolParameters


class ChainBackend(ABC):
    """
    Abstract chain state interface.

    Every build fetches a fresh snapshot through it; implementations must not
    cache protocol parameters across calls.
    """

    @abstractmethod
    async def get_utxos(self, address: Address) -> list[UTxO]:
        """Get unspent outputs at an address"""

    @abstractmethod
    async def get_protocol_parameters(self) -> ProtocolParameters:
        """Get the current protocol parameters"""

    @abstractmethod
    async def get_slot(self) -> int:
        """Get the current chain slot"""

    @abstractmethod
    async def get_sale_metadata(self, policy_id: bytes, asset_name: bytes) -> Any | None:
        """
        Get the label-888 metadatum of the transaction that listed an asset,
        or None if the asset was never listed.
        """

    async def close(self) -> None:
        """Release any held resources"""
