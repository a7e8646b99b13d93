"""
Value model helpers on top of pycardano's Value/MultiAsset.

All arithmetic is checked: a coin or asset quantity that would go negative or
exceed the unsigned 64-bit ledger range raises ArithmeticOverflow instead of
wrapping or saturating. Zero quantities are never materialized.
"""

from __future__ import annotations

from pycardano import MultiAsset, Value

from nftmarket.constants import (
    ADA_ONLY_UTXO_SIZE,
    MAX_ASSET_NAME_SIZE,
    MAX_LOVELACE,
    POLICY_ID_SIZE,
    UTXO_ENTRY_SIZE_WITHOUT_VAL,
)
from nftmarket.errors import ArithmeticOverflow, InvalidAsset

AssetMap = dict[bytes, dict[bytes, int]]


def _check_range(amount: int, what: str) -> int:
    if amount < 0:
        raise ArithmeticOverflow(f"{what} underflow: result {amount} is negative")
    if amount > MAX_LOVELACE:
        raise ArithmeticOverflow(f"{what} overflow: result {amount} exceeds {MAX_LOVELACE}")
    return amount


def as_value(amount: int | Value) -> Value:
    """Normalize an output amount (plain lovelace or Value) into a Value."""
    if isinstance(amount, Value):
        return amount
    return Value(amount)


def to_asset_map(multi_asset: MultiAsset | None) -> AssetMap:
    """Flatten a MultiAsset into ``{policy: {name: qty}}`` dropping zero entries."""
    result: AssetMap = {}
    if not multi_asset:
        return result
    for policy_id, assets in multi_asset.items():
        for name, quantity in assets.items():
            if quantity == 0:
                continue
            result.setdefault(policy_id.payload, {})[name.payload] = quantity
    return result


def from_asset_map(asset_map: AssetMap) -> MultiAsset:
    cleaned = {
        policy: {name: qty for name, qty in assets.items() if qty != 0}
        for policy, assets in asset_map.items()
    }
    cleaned = {policy: assets for policy, assets in cleaned.items() if assets}
    if not cleaned:
        return MultiAsset()
    return MultiAsset.from_primitive(cleaned)


def _combine(a: AssetMap, b: AssetMap, sign: int) -> AssetMap:
    result: AssetMap = {policy: dict(assets) for policy, assets in a.items()}
    for policy, assets in b.items():
        bucket = result.setdefault(policy, {})
        for name, quantity in assets.items():
            combined = bucket.get(name, 0) + sign * quantity
            bucket[name] = _check_range(combined, f"Asset {policy.hex()}.{name.hex()}")
    return result


def add_multi_asset(a: MultiAsset | None, b: MultiAsset | None) -> MultiAsset:
    return from_asset_map(_combine(to_asset_map(a), to_asset_map(b), 1))


def subtract_multi_asset(a: MultiAsset | None, b: MultiAsset | None) -> MultiAsset:
    """Subtract ``b`` from ``a``; assets absent from ``a`` underflow."""
    return from_asset_map(_combine(to_asset_map(a), to_asset_map(b), -1))


def checked_add(a: int | Value, b: int | Value) -> int | Value:
    """
    Add two amounts, failing on overflow.

    Plain integers add as lovelace; if either side is a Value the result is a
    Value carrying the combined multi-asset.
    """
    if isinstance(a, int) and isinstance(b, int):
        return _check_range(a + b, "Coin")
    va, vb = as_value(a), as_value(b)
    coin = _check_range(va.coin + vb.coin, "Coin")
    return Value(coin, add_multi_asset(va.multi_asset, vb.multi_asset))


def checked_sub(a: int | Value, b: int | Value) -> int | Value:
    """Subtract ``b`` from ``a``, failing on underflow."""
    if isinstance(a, int) and isinstance(b, int):
        return _check_range(a - b, "Coin")
    va, vb = as_value(a), as_value(b)
    coin = _check_range(va.coin - vb.coin, "Coin")
    return Value(coin, subtract_multi_asset(va.multi_asset, vb.multi_asset))


def has_assets(value: int | Value) -> bool:
    return bool(to_asset_map(as_value(value).multi_asset))


def asset_quantity(value: int | Value, policy_id: bytes, asset_name: bytes) -> int:
    return to_asset_map(as_value(value).multi_asset).get(policy_id, {}).get(asset_name, 0)


def contains_asset(value: int | Value, policy_id: bytes, asset_name: bytes) -> bool:
    return asset_quantity(value, policy_id, asset_name) > 0


def with_coin(value: int | Value, coin: int) -> Value:
    """Copy of ``value`` with its coin replaced."""
    multi_asset = from_asset_map(to_asset_map(as_value(value).multi_asset))
    return Value(_check_range(coin, "Coin"), multi_asset)


def single_asset_value(
    policy_id: bytes, asset_name: bytes, quantity: int = 1, coin: int = 0
) -> Value:
    return Value(coin, from_asset_map({policy_id: {asset_name: quantity}}))


def _round_up_bytes_to_words(num_bytes: int) -> int:
    return (num_bytes + 7) // 8


def bundle_size(multi_asset: MultiAsset | None) -> int:
    """Size in words of a multi-asset bundle, as counted by the min-ada rule."""
    asset_map = to_asset_map(multi_asset)
    num_policies = len(asset_map)
    num_assets = sum(len(assets) for assets in asset_map.values())
    sum_name_lengths = sum(len(name) for assets in asset_map.values() for name in assets)
    return 6 + _round_up_bytes_to_words(
        num_assets * 12 + sum_name_lengths + num_policies * POLICY_ID_SIZE
    )


def min_ada_required(value: int | Value, min_utxo_value: int) -> int:
    """
    Minimum lovelace an output carrying ``value``'s assets must hold.

    Follows the Mary-era ledger rule: ada-only outputs need ``min_utxo_value``;
    outputs with tokens scale with the serialized bundle size. Non-decreasing
    in asset count and name length.
    """
    multi_asset = as_value(value).multi_asset
    if not to_asset_map(multi_asset):
        return min_utxo_value
    per_word = min_utxo_value // ADA_ONLY_UTXO_SIZE
    required = per_word * (UTXO_ENTRY_SIZE_WITHOUT_VAL + bundle_size(multi_asset))
    return max(min_utxo_value, required)


def parse_policy_id(policy_hex: str) -> bytes:
    try:
        policy_id = bytes.fromhex(policy_hex)
    except ValueError as e:
        raise InvalidAsset(f"Policy id is not valid hex: {policy_hex!r}") from e
    if len(policy_id) != POLICY_ID_SIZE:
        raise InvalidAsset(
            f"Policy id must be {POLICY_ID_SIZE} bytes, got {len(policy_id)}"
        )
    return policy_id


def parse_asset_name(asset_name: str | bytes) -> bytes:
    name = asset_name.encode("utf-8") if isinstance(asset_name, str) else asset_name
    if len(name) > MAX_ASSET_NAME_SIZE:
        raise InvalidAsset(
            f"Asset name must be at most {MAX_ASSET_NAME_SIZE} bytes, got {len(name)}"
        )
    return name
