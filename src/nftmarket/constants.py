"""
Cardano ledger and marketplace constants.

Protocol-floor defaults are substituted whenever the chain snapshot reports a
zero or missing value for the corresponding protocol parameter.
"""

from __future__ import annotations

# One ADA expressed in lovelace
ONE_ADA = 1_000_000

# Unsigned 64-bit ceiling for coin and asset quantities on the ledger
MAX_LOVELACE = 2**64 - 1

# Protocol-floor defaults (Mary/Alonzo era mainnet values)
MIN_UTXO_VALUE = 1_000_000
MAX_VAL_SIZE = 5000
POOL_DEPOSIT = 500_000_000
KEY_DEPOSIT = 2_000_000
COINS_PER_UTXO_WORD = 34_482

# Mary-era min-ada constants (sizes in 8-byte words)
UTXO_ENTRY_SIZE_WITHOUT_VAL = 27
COIN_SIZE = 0
ADA_ONLY_UTXO_SIZE = UTXO_ENTRY_SIZE_WITHOUT_VAL + COIN_SIZE
POLICY_ID_SIZE = 28
MAX_ASSET_NAME_SIZE = 32

# Upper bound on fee convergence attempts
MAX_TRIES = 10

# Validity window of built transactions, in slots (one slot per second)
ONE_HOUR = 3600

# Transaction metadata labels
MARKETPLACE_METADATA_LABEL = 888
NFT_STANDARD_LABEL = 721

# Maximum length of a metadata text chunk
METADATA_CHUNK_SIZE = 64

# Listings per page when browsing sales
SALES_PAGE_SIZE = 16

# Marketplace economics
SELLER_DEPOSIT = 2 * ONE_ADA  # coin locked with the NFT at the holder address
CANCELLATION_FEE = ONE_ADA
MIN_SALE_PRICE = 5 * ONE_ADA
MARKETPLACE_FEE_PERCENT = 2
PROJECT_REVENUE_CUT = 1_500_000

MINTED_AT = "nftmarket"
