"""
Truth Miner CLI - Command Line Interface for the oracle agent

Main entry point for all CLI commands.
"""

import logging
from datetime import datetime, timezone

import click

from truthminer import __version__
from truthminer.core.config import load_config
from truthminer.core.errors import ConfigError, TruthMinerError
from truthminer.utils.logger import setup_logging, get_logger

logger = get_logger("cli")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Load settings from this .env file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, env_file):
    """Truth Miner - commit-reveal oracle agent"""
    ctx.ensure_object(dict)
    ctx.obj["level"] = logging.DEBUG if debug else logging.INFO
    ctx.obj["env_file"] = env_file


def _config(ctx):
    try:
        return load_config(env_file=ctx.obj["env_file"])
    except ConfigError as e:
        raise click.ClickException(str(e))


# =============================================================================
# Agent
# =============================================================================

@cli.command("run")
@click.option("--once", is_flag=True, help="Run a single cycle and exit")
@click.pass_context
def run(ctx, once):
    """Run the agent until interrupted"""
    from truthminer.core.scheduler import Scheduler, install_signal_handlers

    config = _config(ctx)
    setup_logging(config, level=ctx.obj["level"])

    try:
        scheduler = Scheduler.from_config(config)
        if once:
            report = scheduler.run_once()
            if report.congested:
                click.echo(f"Skipped: priority fee {report.priority_fee} above {config.max_priority_fee}")
            else:
                click.echo(f"Commit: {report.commit}")
                click.echo(f"Reveal: {report.reveal}")
            return
        install_signal_handlers(scheduler.stop_event)
        scheduler.run_forever()
    except (TruthMinerError, OSError) as e:
        logger.error(f"Fatal: {e}")
        ctx.exit(1)


# =============================================================================
# Identity Commands
# =============================================================================

@cli.group()
def identity():
    """Signing identity commands"""
    pass


@identity.command("show")
@click.pass_context
def identity_show(ctx):
    """Show (creating if needed) the agent identity"""
    from truthminer.core.identity import load_or_create
    from truthminer.core.derivation import miner_profile_address
    from truthminer.crypto import to_base58

    config = _config(ctx)
    setup_logging(config, level=ctx.obj["level"], log_to_file=False)

    try:
        kp = load_or_create(config.wallet_path)
    except TruthMinerError as e:
        raise click.ClickException(str(e))

    click.echo(f"Address:       {kp.address}")
    click.echo(f"Miner profile: {to_base58(miner_profile_address(kp.public_key, config.program_id))}")
    click.echo(f"Identity file: {config.wallet_path}")


# =============================================================================
# Cache Commands
# =============================================================================

@cli.group()
def cache():
    """Salt cache commands"""
    pass


@cache.command("show")
@click.pass_context
def cache_show(ctx):
    """List pending commitments (salts are not shown)"""
    from truthminer.core.storage import SaltCache

    config = _config(ctx)
    setup_logging(config, level=ctx.obj["level"], log_to_file=False)

    records = SaltCache(config.salt_cache_path).load()
    if not records:
        click.echo("No pending commitments.")
        return

    click.echo(f"{len(records)} pending commitment(s):")
    for key, record in sorted(records.items()):
        when = datetime.fromtimestamp(record.committed_at, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        click.echo(f"  {key}  answer={record.answer!r}  committed={when}Z")


# =============================================================================
# Tools
# =============================================================================

@cli.command("normalize")
@click.argument("raw")
@click.option(
    "--format", "fmt", required=True,
    type=click.Choice(["binary", "option-index", "decimal", "score", "free-text"]),
    help="Declared answer format",
)
def normalize_cmd(raw, fmt):
    """Print the canonical form of a raw answer"""
    from truthminer.core.normalizer import normalize, parse_format
    from truthminer.core.errors import InvalidFormat

    try:
        click.echo(normalize(raw, parse_format(fmt)))
    except InvalidFormat as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
