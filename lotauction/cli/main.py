"""
lotauction CLI - Command Line Interface for clearing-price auctions

Main entry point for all CLI commands.
"""

import json
import click
from pathlib import Path

from lotauction import __version__
from lotauction.utils.logger import setup_logging, get_logger

logger = get_logger("cli")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default: config data_dir)")
@click.option("--env-file", default=None, help="Read LOTAUCTION_* settings from this .env file")
@click.option("--log-to-file", is_flag=True, help="Also write logs to <log_dir>/lotauction.log")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, data_dir, env_file, log_to_file):
    """Incremental clearing-price auctions"""
    from lotauction.core.config import load_config

    cfg = load_config(env_file)
    overrides = {}
    if data_dir:
        overrides["data_dir"] = Path(data_dir).expanduser()
    if log_to_file:
        overrides["log_to_file"] = True
    if overrides:
        cfg = cfg.model_copy(update=overrides)

    log_file = setup_logging(cfg, debug=debug)
    if log_file is not None:
        logger.debug(f"Logging to {log_file}")

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    ctx.obj["data_dir"] = cfg.data_dir


# =============================================================================
# Demo Command
# =============================================================================


SCENARIOS = {
    # name: (item count, [(bidder label, bid)], price)
    "basic": (5, [("A", 10), ("B", 20), ("C", 5)], 10),
    "oversubscribed": (2, [("X", 15), ("Y", 10), ("Z", 30)], 10),
}


@cli.command("demo")
@click.option("--scenario", type=click.Choice(sorted(SCENARIOS) + ["timeout"]), default="basic",
              help="Demo scenario to run")
@click.option("--batch-size", default=1, type=click.IntRange(min=1), help="Bidders examined per validate() call")
@click.option("--save", is_flag=True, help="Persist the final auction to the data directory")
@click.pass_context
def demo(ctx, scenario, batch_size, save):
    """Run a simulated auction end to end"""
    from lotauction.core.auction import ClearingPriceAuction
    from lotauction.core.clock import ManualClock
    from lotauction.core.collaborators import ItemRegistry, NativeBank, RoleControl
    from lotauction.core.config import HOUR
    from lotauction.core.errors import AuctionError
    from lotauction.crypto import generate_address

    cfg = ctx.obj["config"]
    item_count, bids, price = SCENARIOS.get(scenario, SCENARIOS["basic"])

    click.echo("=" * 60)
    click.echo(f"  LOTAUCTION - DEMO ({scenario})")
    click.echo("=" * 60)
    click.echo()

    # Setup
    click.echo("📦 Setting up collaborators...")
    clock = ManualClock()
    owner, manager, treasurer = generate_address(), generate_address(), generate_address()
    auction_address = generate_address()

    items = ItemRegistry()
    access = RoleControl(owner=owner, manager=manager, treasurer=treasurer)
    bank = NativeBank()
    series = items.create_series(item_count)
    item_ids = list(range(1, item_count + 1))
    items.mint(item_ids, series, manager)
    for item_id in item_ids:
        items.transfer_item(item_id, auction_address, manager)

    auction = ClearingPriceAuction(auction_address, items, access, bank, clock=clock, config=cfg)
    if batch_size != auction.max_iterations:
        auction.set_max_iterations(batch_size, manager)
    click.echo(f"  ✓ {item_count} items custodied by {auction_address[:12]}...")
    click.echo()

    # Bidding
    auction.initialize(item_ids, clock() + 2 * HOUR, manager)
    click.echo("🏷️  Bidding...")
    accounts = {}
    for label, amount in bids:
        accounts[label] = generate_address()
        bank.mint(accounts[label], amount)
        auction.bid(accounts[label], amount)
        click.echo(f"  ✓ {label} bids {amount}")
    click.echo()
    clock.advance(2 * HOUR)

    if scenario == "timeout":
        click.echo("⏳ Manager stays silent past the safety timeout...")
        clock.advance(cfg.safety_timeout_period)
        for label, address in accounts.items():
            refund = auction.withdraw_bid(address)
            click.echo(f"  ✓ {label} withdraws {refund}")
        try:
            auction.set_price(price, manager)
        except AuctionError as e:
            click.echo(f"  ✓ set_price rejected: {e}")
    else:
        # Clearing
        click.echo(f"⚖️  Proposing price {price} and validating in batches of {batch_size}...")
        auction.set_price(price, manager)
        calls = 0
        while True:
            calls += 1
            if auction.validate(manager).done:
                break
        click.echo(f"  ✓ Validated after {calls} call(s): "
                   f"{auction.proposal.num_items_sellable}/{item_count} items sellable")
        click.echo()

        # Settlement
        click.echo("💸 Settling...")
        for label, address in accounts.items():
            if auction.is_winner(address):
                item_id = auction.redeem_item(address)
                click.echo(f"  ✓ {label} redeems item {item_id}, balance now {bank.balance_of(address)}")
            else:
                refund = auction.withdraw_bid(address)
                click.echo(f"  ✓ {label} withdraws {refund}")
        proceeds = auction.operator_withdraw(manager)
        click.echo(f"  ✓ Treasurer receives {proceeds}, manager gets {len(items.items_of(manager))} unsold item(s)")
    click.echo()

    if save:
        from lotauction.core.storage import StorageManager

        storage = StorageManager(ctx.obj["data_dir"])
        storage.save_auction(auction)
        storage.close()
        click.echo(f"💾 Saved to {storage.db_path}")
        click.echo()

    click.echo("📊 Final Statistics:")
    for key, value in auction.stats().items():
        click.echo(f"  {key}: {value}")
    click.echo()
    click.echo("✅ Demo complete!")


# =============================================================================
# Show Command
# =============================================================================


@cli.command("show")
@click.argument("address", required=False)
@click.pass_context
def show(ctx, address):
    """List stored auctions, or show one"""
    from lotauction.core.storage import StorageManager

    db_path = ctx.obj["data_dir"] / "auctions.db"
    if not db_path.exists():
        click.echo("No auctions stored.")
        return

    storage = StorageManager(ctx.obj["data_dir"])
    try:
        if address is None:
            auctions = storage.list_auctions()
            if not auctions:
                click.echo("No auctions stored.")
            for auction_id in auctions:
                click.echo(f"  {auction_id}")
            return

        try:
            summary = storage.get_auction_summary(address)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="ADDRESS")
        if summary is None:
            click.echo(f"❌ Auction {address} not found")
            return

        snapshot, num_bidders = summary
        click.echo(f"Auction {address}")
        click.echo("-" * 40)
        click.echo(json.dumps({**snapshot.model_dump(), "bidders": num_bidders}, indent=2))
    finally:
        storage.close()


# =============================================================================
# Config Command
# =============================================================================


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration"""
    click.echo(json.dumps(ctx.obj["config"].model_dump(mode="json"), indent=2))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
