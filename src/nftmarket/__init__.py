"""
nftmarket - Cardano NFT marketplace transaction builder.

Coin selection, fee convergence and witness assembly, plus sell, buy, cancel
and mint transaction templates on top of them.
"""

__version__ = "0.1.0"
