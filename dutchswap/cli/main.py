"""
dutchswap CLI - Command Line Interface for the reverse Dutch auction registry

Main entry point for all CLI commands.
"""

import json
import logging

import click

from dutchswap import __version__
from dutchswap.core.config import load_config
from dutchswap.utils.logger import setup_logging, get_logger
from dutchswap.utils.units import format_units, parse_units

logger = get_logger("cli")


def _parse(value: str, name: str, decimals: int) -> int:
    """Parse a human amount, turning errors into click usage errors."""
    try:
        return parse_units(value, decimals)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=name)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="dotenv config file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, config_path):
    """Reverse Dutch auction swap - price tools and lifecycle demo"""
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.UsageError(str(e))

    level = logging.DEBUG if debug else getattr(logging, cfg.log_level, logging.INFO)
    setup_logging(level=level, log_dir=str(cfg.log_dir), log_to_file=cfg.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


# =============================================================================
# Price Commands
# =============================================================================


@cli.command("price")
@click.option("--initial-price", required=True, help="Starting price, e.g. 1.0")
@click.option("--duration", required=True, type=click.IntRange(min=1), help="Auction duration in seconds")
@click.option("--decay-rate", required=True, help="Price decrease per second, e.g. 0.01")
@click.option("--at", "elapsed", default=0, type=click.IntRange(min=0), help="Seconds since start")
@click.pass_context
def price(ctx, initial_price, duration, decay_rate, elapsed):
    """Show the price at a point in the auction"""
    from dutchswap.core.auction import check_decay_bound, price_at
    from dutchswap.core.errors import ArithmeticOverflow

    cfg = ctx.obj["config"]
    start = _parse(initial_price, "--initial-price", cfg.decimals)
    rate = _parse(decay_rate, "--decay-rate", cfg.decimals)

    try:
        check_decay_bound(rate, duration, cfg.max_uint)
    except ArithmeticOverflow as e:
        raise click.UsageError(str(e))

    value = price_at(start, rate, 0, duration, elapsed)
    click.echo(f"t={elapsed}s price={format_units(value, cfg.decimals)}")


@cli.command("schedule")
@click.option("--initial-price", required=True, help="Starting price, e.g. 1.0")
@click.option("--duration", required=True, type=click.IntRange(min=1), help="Auction duration in seconds")
@click.option("--decay-rate", required=True, help="Price decrease per second, e.g. 0.01")
@click.option("--steps", default=10, type=click.IntRange(min=1), help="Number of intervals")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of a table")
@click.pass_context
def schedule(ctx, initial_price, duration, decay_rate, steps, as_json):
    """Print the price curve across the auction duration"""
    from dutchswap.core.auction import check_decay_bound, price_schedule
    from dutchswap.core.errors import ArithmeticOverflow

    cfg = ctx.obj["config"]
    start = _parse(initial_price, "--initial-price", cfg.decimals)
    rate = _parse(decay_rate, "--decay-rate", cfg.decimals)

    try:
        check_decay_bound(rate, duration, cfg.max_uint)
    except ArithmeticOverflow as e:
        raise click.UsageError(str(e))

    rows = price_schedule(start, rate, duration, steps)

    if as_json:
        click.echo(json.dumps(
            [{"elapsed": t, "price": format_units(p, cfg.decimals)} for t, p in rows],
            indent=2,
        ))
        return

    click.echo(f"{'elapsed':>10}  price")
    click.echo("-" * 40)
    for t, p in rows:
        click.echo(f"{t:>10}  {format_units(p, cfg.decimals)}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option(
    "--scenario",
    default="buy",
    type=click.Choice(["buy", "expire", "cancel"]),
    help="Lifecycle to run",
)
@click.pass_context
def demo(ctx, scenario):
    """Run an in-memory auction lifecycle with a manual clock"""
    from dutchswap.core.auction import AuctionRegistry
    from dutchswap.core.clock import ManualClock
    from dutchswap.core.errors import AuctionError
    from dutchswap.core.ledger import NativeBalances, TokenDirectory
    from dutchswap.crypto import generate_keypair

    cfg = ctx.obj["config"]
    decimals = cfg.decimals

    click.echo("=" * 60)
    click.echo(f"  REVERSE DUTCH AUCTION - {scenario.upper()} DEMO")
    click.echo("=" * 60)
    click.echo()

    seller = generate_keypair(b"demo-seller").address
    buyer = generate_keypair(b"demo-buyer").address

    clock = ManualClock()
    tokens = TokenDirectory()
    token = tokens.create("MTK", name="Mock Token", symbol="MTK", decimals=0)
    native = NativeBalances()
    registry = AuctionRegistry(tokens, native, clock=clock, config=cfg)

    token.mint(seller, 1000)
    native.credit(buyer, parse_units("10", decimals))
    token.approve(seller, registry.address, 1000)

    click.echo(f"  Seller: {seller}")
    click.echo(f"  Buyer:  {buyer}")
    click.echo()

    auction_id = registry.create_auction(
        seller=seller,
        asset="MTK",
        initial_price=parse_units("1.0", decimals),
        duration=100,
        decay_rate=parse_units("0.01", decimals),
        amount=1000,
    )
    click.echo(f"Auction {auction_id} created: 1000 MTK, price 1.0 -> 0 over 100s")
    click.echo(f"  t=0   price={format_units(registry.get_current_price(auction_id), decimals)}")

    try:
        if scenario == "buy":
            clock.advance(50)
            current = registry.get_current_price(auction_id)
            click.echo(f"  t=50  price={format_units(current, decimals)}")
            paid = registry.buy(buyer, auction_id, current)
            click.echo(f"Bought for {format_units(paid, decimals)}")
        elif scenario == "expire":
            clock.advance(150)
            click.echo(f"  t=150 price={format_units(registry.get_current_price(auction_id), decimals)}")
            try:
                registry.buy(buyer, auction_id, parse_units("1.0", decimals))
            except AuctionError as e:
                click.echo(f"Buy rejected: {type(e).__name__}")
            registry.cancel_auction(seller, auction_id)
            click.echo("Seller cancelled the expired auction")
        else:
            clock.advance(10)
            registry.cancel_auction(seller, auction_id)
            click.echo("Seller cancelled the auction")
    except AuctionError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    click.echo()
    click.echo("Final balances:")
    click.echo(f"  Seller: {token.balance_of(seller)} MTK, {format_units(native.balance_of(seller), decimals)} native")
    click.echo(f"  Buyer:  {token.balance_of(buyer)} MTK, {format_units(native.balance_of(buyer), decimals)} native")
    click.echo(f"  Escrow: {token.balance_of(registry.address)} MTK")
    click.echo()
    click.echo("Events:")
    for event in registry.events:
        click.echo(f"  {event.name} {event.model_dump_json()}")


if __name__ == "__main__":
    cli()
