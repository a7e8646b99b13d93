"""
Chain state backends.
"""

from nftmarket.backends.base import ChainBackend
from nftmarket.backends.snapshot import ChainSnapshot, SnapshotBackend

__all__ = ["ChainBackend", "ChainSnapshot", "SnapshotBackend"]
