"""CLI entry point for the chain watcher."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from chain_watcher.config import load_config, load_job_definitions
from chain_watcher.errors import ConfigurationError
from chain_watcher.jobs.healthcheck import normalize_cursor
from chain_watcher.stats import InMemoryStats
from chain_watcher.storage.sqlite import SQLiteStore
from chain_watcher.watcher import run_watcher


def _load(ctx: click.Context):
    """Load config, exiting with a readable message if it is invalid."""
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """chain-watcher - Multi-chain event watcher."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Watcher ────────────────────────────────────────────


@cli.command()
@click.option("--dry-run", is_flag=True, help="Log events instead of storing them")
@click.pass_context
def run(ctx: click.Context, dry_run: bool) -> None:
    """Start every configured job."""
    cfg = _load(ctx)
    if dry_run:
        cfg.dry_run = True
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())
    if not cfg.chains:
        click.echo("Error: No chains configured.", err=True)
        click.echo("Add [rpc.chains.<name>] sections to the config file.", err=True)
        sys.exit(1)

    click.echo(f"Starting chain watcher ({cfg.environment}, {len(cfg.chains)} chains)")
    try:
        asyncio.run(run_watcher(cfg))
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show watcher configuration."""
    cfg = _load(ctx)
    click.echo(f"Environment: {cfg.environment}")
    click.echo(f"Jobs file:   {cfg.jobs_path}")
    click.echo(f"DB path:     {cfg.db_path}")
    click.echo(f"Dry run:     {cfg.dry_run}")
    click.echo(f"RPC timeout: {cfg.rpc_timeout}s")
    if not cfg.chains:
        click.echo("Chains:      (none)")
        return
    click.echo("Chains:")
    for name, chain in sorted(cfg.chains.items()):
        click.echo(f"  {name:12s} kind={chain.kind} chain_id={chain.chain_id} "
                   f"providers={len(chain.urls)}")


@cli.command()
@click.pass_context
def jobs(ctx: click.Context) -> None:
    """List job definitions."""
    cfg = _load(ctx)
    try:
        definitions = load_job_definitions(cfg.jobs_path)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if not definitions:
        click.echo(f"No jobs defined in {cfg.jobs_path}.")
        return

    for job in definitions:
        state = "paused" if job.paused else "active"
        handlers = ", ".join(f"{h.action}->{h.target}" for h in job.handlers) or "(none)"
        click.echo(f"  [{state:6s}] {job.id} chain={job.chain} source={job.source.action} "
                   f"handlers={handlers}")


@cli.command()
@click.pass_context
def checkpoints(ctx: click.Context) -> None:
    """Show persisted job checkpoints."""
    cfg = _load(ctx)

    async def _checkpoints():
        store = SQLiteStore(cfg.db_path)
        await store.initialize()
        try:
            saved = await store.all()
            if not saved:
                click.echo("No checkpoints saved.")
                return

            for job_id, metadata in saved.items():
                fields = " ".join(f"{k}={v}" for k, v in metadata.items())
                click.echo(f"  {job_id}: {fields}")
        finally:
            await store.close()

    asyncio.run(_checkpoints())


@cli.command()
@click.pass_context
def metrics(ctx: click.Context) -> None:
    """Print stored event counts and cursors as Prometheus text."""
    cfg = _load(ctx)

    async def _metrics():
        store = SQLiteStore(cfg.db_path)
        await store.initialize()
        try:
            stats = InMemoryStats()
            for chain, count in (await store.event_counts()).items():
                stats.count("stored_events", {"chain": chain}, count)
            for job_id, metadata in (await store.all()).items():
                cursor = normalize_cursor(metadata)
                if cursor is not None:
                    stats.measure("polling_cursor", cursor, {"job": job_id, "type": "current"})
            click.echo(stats.report(), nl=False)
        finally:
            await store.close()

    asyncio.run(_metrics())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
