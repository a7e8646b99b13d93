"""
Configuration management for the marketplace backend.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nftmarket.constants import MAX_TRIES, MIN_SALE_PRICE, ONE_HOUR


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    is_testnet: bool = False

    nft_tax_address: str = ""

    marketplace_private_key_file: str = ""
    marketplace_revenue_address: str = ""

    projects_private_key_file: str = ""
    projects_revenue_address: str = ""

    log_level: str = "INFO"

    ttl_seconds: int = Field(default=ONE_HOUR, gt=0)
    max_fee_tries: int = Field(default=MAX_TRIES, gt=0)
    min_sale_price: int = Field(default=MIN_SALE_PRICE, ge=0)


def get_settings() -> Settings:
    return Settings()
