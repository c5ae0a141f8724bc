"""
fheads CLI - Command Line Interface for the FHE ads auction

Main entry point for all CLI commands.
"""

import json
import logging

import click

from fheads.core.config import PRICING_RULES, load_config
from fheads.core.errors import ConfigError, FHEAdsError
from fheads.utils.logger import setup_logging


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, help="Path to a .json or .toml config file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, config_path):
    """Confidential multi-criterion ads auction over FHE"""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))

    level = logging.DEBUG if debug else getattr(logging, config.log_level)
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# Config Commands
# =============================================================================


@cli.group()
def config():
    """Configuration commands"""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Print the effective configuration"""
    click.echo(json.dumps(ctx.obj["config"].to_dict(), indent=2))


# =============================================================================
# Demo Command
# =============================================================================


def _run_basic(d, echo):
    from fheads.crypto import generate_keypair

    alice, bob, advertiser = (generate_keypair().address for _ in range(3))

    echo("💰 Minting: Alice 10000, Bob 20000")
    d.fund(alice, 10000)
    d.fund(bob, 20000)

    echo("📝 Alice bids weights (1000, 1000, 1000) with deposit 10000")
    d.place_bid(alice, [1000, 1000, 1000], 10000)
    echo("📝 Bob bids weights (2000, 1000, 5000) with deposit 10000")
    d.place_bid(bob, [2000, 1000, 5000], 10000)

    echo("🔎 Advertiser queries (1, 1, 1)...")
    winner_ct = d.query(advertiser, [1, 1, 1])
    winner = d.auction.decrypt(advertiser, winner_ct)
    names = {alice: "Alice", bob: "Bob"}
    echo(f"  ✓ Winner (decrypted by advertiser): {names.get(winner, winner.hex())}")
    echo(f"  ✓ FHE gas for the query: {d.auction.last_receipt.fhe_gas}")

    echo(f"  ✓ Alice deposit: {d.deposit(alice)}")
    echo(f"  ✓ Bob deposit: {d.deposit(bob)}")

    echo("🏧 Both withdraw...")
    d.auction.withdraw(alice)
    d.auction.withdraw(bob)
    echo(f"  ✓ Alice balance: {d.balance(alice)}")
    echo(f"  ✓ Bob balance: {d.balance(bob)}")

    d.auction.claim_revenue(d.deployer)
    echo(f"  ✓ Owner revenue: {d.balance(d.deployer)}")


def _run_tie(d, echo):
    from fheads.crypto import generate_keypair

    first, second, advertiser = (generate_keypair().address for _ in range(3))
    for bidder in (first, second):
        d.fund(bidder, 5000)
        d.place_bid(bidder, [10, 20, 30], 5000)

    echo("📝 Two bidders submit identical weights (10, 20, 30)")
    winner = d.auction.decrypt(advertiser, d.query(advertiser, [3, 2, 1]))
    echo(f"  ✓ Winner is the first bidder: {winner == first}")


def _run_empty(d, echo):
    from fheads.core.errors import EmptyAuction
    from fheads.crypto import generate_keypair

    advertiser = generate_keypair().address
    try:
        d.query(advertiser, [1, 1, 1])
    except EmptyAuction as e:
        echo(f"  ✓ Empty auction rejected: {e}")


SCENARIOS = {"basic": _run_basic, "tie": _run_tie, "empty": _run_empty}


@cli.command("demo")
@click.option("--scenario", type=click.Choice(sorted(SCENARIOS)), default="basic", help="Demo scenario to run")
@click.option("--pricing", type=click.Choice(PRICING_RULES), default=None, help="Override the pricing rule")
@click.pass_context
def demo(ctx, scenario, pricing):
    """Run a mock-mode auction end to end"""
    from dataclasses import replace

    from fheads.core.deployment import deploy

    config = ctx.obj["config"]
    if pricing:
        config = replace(config, pricing_rule=pricing)

    click.echo("=" * 60)
    click.echo("  FHE ADS AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()

    d = deploy(config)
    click.echo(f"📦 Token {d.token.symbol} and auction deployed ({config.pricing_rule})")

    try:
        SCENARIOS[scenario](d, click.echo)
    except FHEAdsError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")

    click.echo()
    click.echo("📊 Final Statistics:")
    click.echo(f"  Auction: {d.auction.stats()}")
    click.echo(f"  Runtime: {d.runtime.stats()['ciphertexts']} ciphertexts, {d.runtime.stats()['grants']} grants")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()
