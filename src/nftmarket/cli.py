"""
Command-line interface for the NFT marketplace transaction builder.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from loguru import logger
from pycardano import Address, Transaction

from nftmarket.addresses import convert_to_testnet, parse_address
from nftmarket.backends.snapshot import SnapshotBackend
from nftmarket.config import Settings, get_settings
from nftmarket.errors import MarketError
from nftmarket.ledger.value import parse_asset_name, parse_policy_id
from nftmarket.marketplace.holder import MarketplaceHolder
from nftmarket.marketplace.market import Marketplace, calculate_cuts
from nftmarket.marketplace.project import ProjectSale, calculate_project_cuts
from nftmarket.marketplace.listing import ListingFilters, SaleListing
from nftmarket.models import NftMetadata, PolicyDescriptor
from nftmarket.nft import NftMinter
from nftmarket.service import MarketService

app = typer.Typer(
    name="nftmarket",
    help="NFT marketplace - build sell, buy, cancel and mint transactions",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _fail(error: MarketError) -> NoReturn:
    typer.echo(json.dumps(error.to_dict()), err=True)
    raise typer.Exit(1)


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    try:
        return asyncio.run(coro)
    except MarketError as e:
        _fail(e)


def _transaction_json(tx: Transaction) -> dict[str, Any]:
    return {"transaction": tx.to_cbor().hex(), "fee": tx.transaction_body.fee}


def _resolve_address(address: str, settings: Settings) -> Address:
    parsed = parse_address(address)
    return convert_to_testnet(parsed) if settings.is_testnet else parsed


def _load_holder(settings: Settings, holder_key: Path | None, project: bool) -> MarketplaceHolder:
    default_key = (
        settings.projects_private_key_file if project else settings.marketplace_private_key_file
    )
    return MarketplaceHolder.from_key_file(holder_key or default_key, settings.is_testnet)


def _listings_json(listings: list[SaleListing]) -> str:
    return json.dumps([listing.to_json() for listing in listings])


def _load_marketplace(
    settings: Settings, holder_key: Path | None, revenue_address: str | None
) -> Marketplace:
    return Marketplace(
        _load_holder(settings, holder_key, project=False),
        _resolve_address(revenue_address or settings.marketplace_revenue_address, settings),
        min_sale_price=settings.min_sale_price,
        ttl_seconds=settings.ttl_seconds,
        max_fee_tries=settings.max_fee_tries,
    )


SnapshotOption = Annotated[
    Path, typer.Option("--snapshot", "-s", help="Path to a JSON chain snapshot")
]
LogLevelOption = Annotated[
    str | None, typer.Option("--log-level", "-l", help="Log level (defaults to settings)")
]
PolicyOption = Annotated[str, typer.Option("--policy", help="Policy id (hex)")]
NameOption = Annotated[str, typer.Option("--name", help="Asset name")]
HolderKeyOption = Annotated[
    Path | None,
    typer.Option("--holder-key", help="Holder signing key file (defaults to settings)"),
]
RevenueAddressOption = Annotated[
    str | None,
    typer.Option("--revenue-address", help="Revenue address (defaults to settings)"),
]
ProjectOption = Annotated[
    bool, typer.Option("--project", help="Use the projects holder instead of the marketplace")
]


@app.command()
def cuts(
    price: Annotated[int, typer.Argument(help="Sale price in lovelace")],
    project: Annotated[
        bool, typer.Option("--project", help="Use primary project sale cuts")
    ] = False,
) -> None:
    """Show the platform and seller cuts for a sale price."""
    try:
        result = calculate_project_cuts(price) if project else calculate_cuts(price)
    except MarketError as e:
        _fail(e)
    typer.echo(json.dumps(result.model_dump()))


@app.command()
def sell(
    seller: Annotated[str, typer.Option("--seller", help="Seller address")],
    policy: PolicyOption,
    name: NameOption,
    price: Annotated[int, typer.Option("--price", help="Price in lovelace")],
    snapshot: SnapshotOption,
    holder_key: HolderKeyOption = None,
    revenue_address: RevenueAddressOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build a transaction listing an NFT for sale."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _sell() -> Transaction:
        marketplace = _load_marketplace(settings, holder_key, revenue_address)
        service = MarketService(SnapshotBackend.from_file(snapshot), marketplace=marketplace)
        return await service.sell(
            _resolve_address(seller, settings),
            parse_policy_id(policy),
            parse_asset_name(name),
            price,
        )

    tx = _run(_sell())
    typer.echo(json.dumps(_transaction_json(tx)))


@app.command()
def buy(
    buyer: Annotated[str, typer.Option("--buyer", help="Buyer address")],
    policy: PolicyOption,
    name: NameOption,
    snapshot: SnapshotOption,
    holder_key: HolderKeyOption = None,
    revenue_address: RevenueAddressOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build a transaction buying a listed NFT."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _buy() -> Transaction:
        marketplace = _load_marketplace(settings, holder_key, revenue_address)
        service = MarketService(SnapshotBackend.from_file(snapshot), marketplace=marketplace)
        return await service.buy(
            _resolve_address(buyer, settings), parse_policy_id(policy), parse_asset_name(name)
        )

    tx = _run(_buy())
    typer.echo(json.dumps(_transaction_json(tx)))


@app.command()
def cancel(
    seller: Annotated[str, typer.Option("--seller", help="Seller address")],
    policy: PolicyOption,
    name: NameOption,
    snapshot: SnapshotOption,
    holder_key: HolderKeyOption = None,
    revenue_address: RevenueAddressOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build a transaction cancelling a listing."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _cancel() -> Transaction:
        marketplace = _load_marketplace(settings, holder_key, revenue_address)
        service = MarketService(SnapshotBackend.from_file(snapshot), marketplace=marketplace)
        return await service.cancel(
            _resolve_address(seller, settings), parse_policy_id(policy), parse_asset_name(name)
        )

    tx = _run(_cancel())
    typer.echo(json.dumps(_transaction_json(tx)))


@app.command("project-buy")
def project_buy(
    buyer: Annotated[str, typer.Option("--buyer", help="Buyer address")],
    policy: PolicyOption,
    name: NameOption,
    snapshot: SnapshotOption,
    holder_key: HolderKeyOption = None,
    revenue_address: RevenueAddressOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build a transaction buying an NFT from a project collection."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _project_buy() -> Transaction:
        projects = ProjectSale(
            _load_holder(settings, holder_key, project=True),
            _resolve_address(revenue_address or settings.projects_revenue_address, settings),
            ttl_seconds=settings.ttl_seconds,
            max_fee_tries=settings.max_fee_tries,
        )
        service = MarketService(SnapshotBackend.from_file(snapshot), projects=projects)
        return await service.project_buy(
            _resolve_address(buyer, settings), parse_policy_id(policy), parse_asset_name(name)
        )

    tx = _run(_project_buy())
    typer.echo(json.dumps(_transaction_json(tx)))


@app.command()
def mint(
    recipient: Annotated[str, typer.Option("--recipient", help="Recipient address")],
    name: NameOption,
    image: Annotated[str, typer.Option("--image", help="Image URI")],
    snapshot: SnapshotOption,
    description: Annotated[str, typer.Option("--description", help="Description")] = "",
    tax_address: Annotated[
        str | None,
        typer.Option("--tax-address", help="Mint tax address (defaults to settings)"),
    ] = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build a transaction minting a new NFT."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _mint() -> tuple[Transaction, PolicyDescriptor]:
        minter = NftMinter(
            _resolve_address(tax_address or settings.nft_tax_address, settings),
            ttl_seconds=settings.ttl_seconds,
            max_fee_tries=settings.max_fee_tries,
        )
        service = MarketService(SnapshotBackend.from_file(snapshot), minter=minter)
        nft = NftMetadata(name=name, description=description, image=image)
        return await service.mint(nft, _resolve_address(recipient, settings))

    tx, policy = _run(_mint())
    output = _transaction_json(tx)
    output["policy"] = policy.model_dump(by_alias=True)
    typer.echo(json.dumps(output))


@app.command()
def sales(
    snapshot: SnapshotOption,
    page: Annotated[int, typer.Option("--page", min=1, help="Page of 16 listings")] = 1,
    policy: Annotated[
        str | None, typer.Option("--policy", help="Policy id substring (hex)")
    ] = None,
    asset_name: Annotated[
        str | None, typer.Option("--asset-name", help="Asset name substring")
    ] = None,
    project: ProjectOption = False,
    holder_key: HolderKeyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """List NFTs currently for sale."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _sales() -> list[SaleListing]:
        holder = _load_holder(settings, holder_key, project)
        service = MarketService(SnapshotBackend.from_file(snapshot))
        filters = ListingFilters(page=page, policy=policy, asset_name=asset_name)
        return await service.list_sales(filters, holder=holder)

    typer.echo(_listings_json(_run(_sales())))


@app.command()
def sale(
    transaction_hash: Annotated[str, typer.Argument(help="Hash of the listing transaction")],
    snapshot: SnapshotOption,
    project: ProjectOption = False,
    holder_key: HolderKeyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show the listing created by a transaction (null if no longer for sale)."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _sale() -> SaleListing | None:
        holder = _load_holder(settings, holder_key, project)
        service = MarketService(SnapshotBackend.from_file(snapshot))
        return await service.get_sale(transaction_hash, holder=holder)

    listing = _run(_sale())
    typer.echo(json.dumps(listing.to_json() if listing is not None else None))


@app.command()
def listings(
    address: Annotated[str, typer.Option("--address", help="Seller address")],
    snapshot: SnapshotOption,
    holder_key: HolderKeyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """List the NFTs a seller currently has for sale."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _listings() -> list[SaleListing]:
        holder = _load_holder(settings, holder_key, project=False)
        service = MarketService(SnapshotBackend.from_file(snapshot))
        return await service.user_listings(_resolve_address(address, settings), holder=holder)

    typer.echo(_listings_json(_run(_listings())))


@app.command()
def balance(
    address: Annotated[str, typer.Option("--address", help="Address to sum")],
    snapshot: SnapshotOption,
    log_level: LogLevelOption = None,
) -> None:
    """Show the total lovelace held at an address."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    async def _balance() -> int:
        service = MarketService(SnapshotBackend.from_file(snapshot))
        return await service.balance(_resolve_address(address, settings))

    typer.echo(json.dumps({"total_value": _run(_balance())}))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
