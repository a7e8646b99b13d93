"""
Marketplace transaction templates: sell, buy, cancel and project sales.
"""

from nftmarket.marketplace.holder import MarketplaceHolder
from nftmarket.marketplace.listing import (
    ListingFilters,
    SaleListing,
    find_listing,
    find_nft,
    listed_assets,
)
from nftmarket.marketplace.market import Marketplace, calculate_cuts
from nftmarket.marketplace.metadata import SellMetadata
from nftmarket.marketplace.project import ProjectSale, calculate_project_cuts

__all__ = [
    "ListingFilters",
    "MarketplaceHolder",
    "Marketplace",
    "ProjectSale",
    "SaleListing",
    "SellMetadata",
    "calculate_cuts",
    "calculate_project_cuts",
    "find_listing",
    "find_nft",
    "listed_assets",
]
