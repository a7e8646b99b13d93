"""
Address parsing and network helpers.
"""

from __future__ import annotations

import re

from pycardano import Address, Network, VerificationKeyHash

from nftmarket.errors import InvalidAddress

_HEX_ADDRESS = re.compile(r"(?:[0-9a-fA-F]{2})+")


def parse_address(address: str) -> Address:
    """Parse a bech32 address or hex-encoded address bytes (as CIP-30 wallets send)."""
    try:
        if _HEX_ADDRESS.fullmatch(address):
            return Address.from_primitive(bytes.fromhex(address))
        return Address.decode(address)
    except Exception as e:
        raise InvalidAddress(f"Invalid address provided: {address!r}") from e


def convert_to_testnet(address: Address) -> Address:
    """Same credentials, testnet network tag."""
    return Address(
        payment_part=address.payment_part,
        staking_part=address.staking_part,
        network=Network.TESTNET,
    )


def enterprise_address(key_hash: VerificationKeyHash, is_testnet: bool) -> Address:
    network = Network.TESTNET if is_testnet else Network.MAINNET
    return Address(payment_part=key_hash, network=network)


def same_address(a: Address, b: Address) -> bool:
    return a.to_primitive() == b.to_primitive()
