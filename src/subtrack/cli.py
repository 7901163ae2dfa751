"""Command-line entry point for subtrack."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from subtrack.config import CONFIG_FILENAME, AppConfig, ConfigError, load_config
from subtrack.core.billing import format_cost
from subtrack.core.logging import configure_logging
from subtrack.core.models import CategoryGroup, GrandTotals
from subtrack.core.status import STATUS_LABELS
from subtrack.db import Database
from subtrack.migrations import DEFAULT_CHAIN, run_migrations

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(CONFIG_FILENAME)

_CONFIG_TEMPLATE = """[subtrack]
name = "subtrack"
host = "127.0.0.1"
port = {port}

[subtrack.db]
name = "subtrack"

[subtrack.logging]
level = "INFO"
format = "text"

[subtrack.billing]
currency_symbol = "{currency_symbol}"
included_statuses = ["active", "free_trial"]
# categories = ["Streaming", "Music", "Software"]

[subtrack.api]
cors_origins = ["http://localhost:5173"]
"""


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to subtrack.toml (or a directory containing it)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """subtrack: track recurring subscriptions and what they cost."""
    ctx.obj = {"config_path": config_path}


def _load_app_config(ctx: click.Context) -> AppConfig:
    """Load the config selected by ``--config``.

    A missing file at the default location falls back to built-in defaults;
    an explicitly named file must exist.
    """
    config_path: Path = ctx.obj["config_path"]
    if config_path == DEFAULT_CONFIG_PATH and not config_path.exists():
        return AppConfig()
    try:
        return load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(config: AppConfig | None = None) -> None:
    config = config or AppConfig()
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        app_name=config.name,
    )


@cli.command()
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", type=int, default=None, help="Port (overrides config)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from subtrack.api.app import create_app

    config = _load_app_config(ctx)
    _configure_logging(config)

    bind_host = host or config.host
    bind_port = port or config.port
    click.echo(f"Serving subtrack API on http://{bind_host}:{bind_port}")
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(config),
            host=bind_host,
            port=bind_port,
            log_config=None,
        )
    )
    server.run()


@cli.command()
@click.option(
    "--chain",
    default=DEFAULT_CHAIN,
    show_default=True,
    help="Migration chain to upgrade, or 'all'",
)
@click.pass_context
def migrate(ctx: click.Context, chain: str) -> None:
    """Create the database if needed and upgrade the schema to head."""
    config = _load_app_config(ctx)
    _configure_logging(config)

    db = Database.from_env(config.db_name)
    asyncio.run(db.provision())
    run_migrations(db.url, chain=chain)
    click.echo(f"Migrated {config.db_name} ({chain})")


async def _seed(config: AppConfig) -> int:
    from subtrack.tools.seed import seed_subscriptions

    db = Database.from_env(config.db_name)
    pool = await db.connect()
    try:
        created = await seed_subscriptions(pool)
    finally:
        await db.close()
    return len(created)


@cli.command()
@click.pass_context
def seed(ctx: click.Context) -> None:
    """Replace all subscriptions with the demo data set."""
    config = _load_app_config(ctx)
    _configure_logging(config)

    count = asyncio.run(_seed(config))
    click.echo(f"Seeded {count} subscription(s)")


async def _fetch_summary(config: AppConfig) -> tuple[list[CategoryGroup], GrandTotals]:
    from subtrack.tools.subscriptions import subscription_summary

    db = Database.from_env(config.db_name)
    pool = await db.connect()
    try:
        return await subscription_summary(pool, config.billing.included_statuses)
    finally:
        await db.close()


def render_summary(
    groups: list[CategoryGroup],
    totals: GrandTotals,
    symbol: str,
) -> list[str]:
    """Format grouped subscriptions and grand totals as text lines."""
    lines: list[str] = []
    for group in groups:
        lines.append(f"{group.category:<40} {format_cost(group.total_monthly_cost, symbol)}/mo")
        for sub in group.subscriptions:
            lines.append(
                f"  {sub.name:<26} {STATUS_LABELS[sub.status]:<11} "
                f"{format_cost(sub.normalized_monthly_cost, symbol)}/mo"
            )
    lines.append("-" * 60)
    lines.append(
        f"Total: {format_cost(totals.total_monthly, symbol)}/mo"
        f"  {format_cost(totals.total_yearly, symbol)}/yr"
    )
    return lines


@cli.command()
@click.pass_context
def summary(ctx: click.Context) -> None:
    """Print subscriptions grouped by category with spend totals."""
    config = _load_app_config(ctx)
    _configure_logging(config)

    groups, totals = asyncio.run(_fetch_summary(config))
    if not groups:
        click.echo("No subscriptions yet.")
        return
    for line in render_summary(groups, totals, config.billing.currency_symbol):
        click.echo(line)


@cli.command("init-config")
@click.option("--port", type=int, default=8000, show_default=True)
@click.option("--currency-symbol", default="£", show_default=True)
@click.option(
    "--dir",
    "target_dir",
    type=click.Path(path_type=Path),
    default=Path("."),
    help="Directory to write subtrack.toml into",
)
def init_config(port: int, currency_symbol: str, target_dir: Path) -> None:
    """Scaffold a subtrack.toml."""
    target = target_dir / CONFIG_FILENAME
    if target.exists():
        click.echo(f"Config already exists: {target}")
        sys.exit(1)

    target_dir.mkdir(parents=True, exist_ok=True)
    content = _CONFIG_TEMPLATE.format(port=port, currency_symbol=currency_symbol)
    target.write_text(content, encoding="utf-8")
    click.echo(f"Created config: {target}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
