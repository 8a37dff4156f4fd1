"""tilemap Command Line Interface.

Entry point for the tilemap CLI tool.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from tilemap import __version__
from tilemap.contracts.enums import OutputFormat
from tilemap.contracts.errors import ConfigError, TileMapError
from tilemap.core.config import BuildSettings, apply_overrides, load_settings

if TYPE_CHECKING:
    from tilemap.plugins.manager import PluginManager

__all__ = ["app"]

# Module-level singleton for plugin manager
_plugin_manager_cache: PluginManager | None = None


def _get_plugin_manager() -> PluginManager:
    """Get initialized plugin manager (singleton)."""
    global _plugin_manager_cache

    from tilemap.plugins.manager import PluginManager

    if _plugin_manager_cache is None:
        manager = PluginManager()
        manager.register_builtin_plugins()
        _plugin_manager_cache = manager
    return _plugin_manager_cache


app = typer.Typer(
    name="tilemap",
    help="tilemap: build verifiable maps from a checksum database mirror.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tilemap version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """tilemap: build verifiable maps from a checksum database mirror."""
    from tilemap.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _echo_error(message: str, output_format: OutputFormat, error_type: str | None = None) -> None:
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps({"event": "error", "error": message, "error_type": error_type}), err=True)
    else:
        typer.echo(f"Error: {message}", err=True)


def _resolve_settings(settings: str | None, overrides: dict[str, Any]) -> BuildSettings:
    """Load the settings file, if any, and apply command-line overrides.

    Raises:
        ConfigError: If the result is not a valid configuration
    """
    loaded = load_settings(Path(settings).expanduser()) if settings is not None else None
    return apply_overrides(loaded, overrides)


def _resolve_tile_store_url(tile_store: str | None, settings: str | None) -> str:
    """Tile store URL from --tile-store, falling back to the settings file.

    Raises:
        ConfigError: If neither yields a URL
    """
    if tile_store is not None:
        return tile_store
    if settings is not None:
        return load_settings(Path(settings).expanduser()).tile_store.url
    raise ConfigError("Specify --tile-store or --settings to locate the tile store.")


@app.command()
def build(
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    log_mirror: str | None = typer.Option(
        None,
        "--log-mirror",
        "--sum-db",
        help="SQLAlchemy URL of the checksum database mirror.",
    ),
    tile_store: str | None = typer.Option(
        None,
        "--tile-store",
        "--map-db",
        help="SQLAlchemy URL of the tile store to write.",
    ),
    tree_id: int | None = typer.Option(
        None,
        "--tree-id",
        help="The ID of the tree. Used as a salt in hashing.",
    ),
    prefix_strata: int | None = typer.Option(
        None,
        "--prefix-strata",
        help="The number of 8-bit strata before the final stratum.",
    ),
    count: int | None = typer.Option(
        None,
        "--count",
        help="Entries to use from the beginning of the log, or -1 for all.",
    ),
    write_batch_size: int | None = typer.Option(
        None,
        "--write-batch-size",
        help="Number of tiles to write per batch.",
    ),
    incremental_update: bool | None = typer.Option(
        None,
        "--incremental-update/--full",
        help="Update the latest revision instead of rebuilding the whole map.",
    ),
    build_version_list: bool | None = typer.Option(
        None,
        "--build-version-list/--no-build-version-list",
        help="Also map each module to a commitment to its versions.",
    ),
    hash_algorithm: str | None = typer.Option(
        None,
        "--hash-algorithm",
        help="hashlib algorithm for keys, leaves and tiles.",
    ),
    tree_builder: str | None = typer.Option(
        None,
        "--tree-builder",
        help="Registered tree builder plugin name.",
    ),
    max_workers: int | None = typer.Option(
        None,
        "--max-workers",
        help="Worker threads for per-record stages.",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.CONSOLE,
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Build a new map revision from the log mirror.

    Options given on the command line override the settings file.

    Examples:

        # Full build of the whole mirror
        tilemap build --sum-db sqlite:///sum.db --map-db sqlite:///map.db

        # Extend the latest revision with entries added since
        tilemap build -s settings.yaml --incremental-update
    """
    from tilemap.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
    from tilemap.core.events import EventBus
    from tilemap.core.store import LogMirror, TileStore
    from tilemap.engine import BuildOrchestrator, check_build_mode

    overrides: dict[str, Any] = {
        "log_mirror": log_mirror,
        "tile_store": tile_store,
        "tree_id": tree_id,
        "prefix_strata": prefix_strata,
        "count": count,
        "write_batch_size": write_batch_size,
        "incremental_update": incremental_update,
        "build_version_list": build_version_list,
        "hash_algorithm": hash_algorithm,
        "tree_builder": tree_builder,
        "max_workers": max_workers,
    }

    try:
        config = _resolve_settings(settings, overrides)
        check_build_mode(config.incremental_update, config.build_version_list)
        builder = _get_plugin_manager().get_tree_builder(config.tree_builder)
    except ConfigError as e:
        _echo_error(str(e), output_format, type(e).__name__)
        raise typer.Exit(1) from None

    event_bus = EventBus()
    formatters = create_json_formatters() if output_format == OutputFormat.JSON else create_console_formatters()
    subscribe_formatters(event_bus, formatters)

    mirror: LogMirror | None = None
    store: TileStore | None = None
    try:
        mirror = LogMirror.from_url(config.log_mirror.url, create_tables=False)
        store = TileStore.from_url(config.tile_store.url)
        BuildOrchestrator(config, mirror, store, builder, event_bus=event_bus).run()
    except TileMapError as e:
        _echo_error(str(e), output_format, type(e).__name__)
        raise typer.Exit(1) from None
    finally:
        if store is not None:
            store.close()
        if mirror is not None:
            mirror.close()


@app.command()
def status(
    tile_store: str | None = typer.Option(
        None,
        "--tile-store",
        "--map-db",
        help="SQLAlchemy URL of the tile store.",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file (used for the tile store URL).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Show the latest committed revision and abandoned allocations."""
    from tilemap.core.store import TileStore

    output_format = OutputFormat.JSON if json_output else OutputFormat.CONSOLE
    try:
        url = _resolve_tile_store_url(tile_store, settings)
        store = TileStore.from_url(url)
    except TileMapError as e:
        _echo_error(str(e), output_format, type(e).__name__)
        raise typer.Exit(1) from None

    try:
        latest = store.latest_revision()
        orphans = store.orphaned_revisions()
        tiles = store.tile_count(latest.revision) if latest is not None else 0
    except TileMapError as e:
        _echo_error(str(e), output_format, type(e).__name__)
        raise typer.Exit(1) from None
    finally:
        store.close()

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "latest_revision": latest.revision if latest is not None else None,
                    "covered_entries": latest.covered_entries if latest is not None else None,
                    "committed_at": latest.committed_at.isoformat() if latest is not None and latest.committed_at else None,
                    "tiles": tiles,
                    "orphaned_revisions": orphans,
                }
            )
        )
        return

    if latest is None:
        typer.echo("No committed revisions.")
    else:
        typer.echo(f"Latest revision: {latest.revision}")
        typer.echo(f"  Entries covered: {latest.covered_entries:,}")
        typer.echo(f"  Tiles: {tiles:,}")
        if latest.committed_at is not None:
            typer.echo(f"  Committed at: {latest.committed_at.isoformat()}")
    if orphans:
        typer.echo(f"Orphaned revisions: {', '.join(str(r) for r in orphans)} (run 'tilemap reclaim')")


@app.command()
def reclaim(
    tile_store: str | None = typer.Option(
        None,
        "--tile-store",
        "--map-db",
        help="SQLAlchemy URL of the tile store.",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file (used for the tile store URL).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be deleted without deleting.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt.",
    ),
) -> None:
    """Delete tiles written by builds that never committed.

    Examples:

        # See what would be deleted
        tilemap reclaim --dry-run --map-db sqlite:///map.db

        # Delete without prompting
        tilemap reclaim --yes --map-db sqlite:///map.db
    """
    from tilemap.core.store import TileStore

    try:
        url = _resolve_tile_store_url(tile_store, settings)
        store = TileStore.from_url(url)
    except TileMapError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        orphans = store.orphaned_revisions()
        if not orphans:
            typer.echo("No orphaned revisions found.")
            return

        if dry_run:
            typer.echo(f"Would delete tiles of {len(orphans)} orphaned revision(s):")
            for revision in orphans:
                typer.echo(f"  revision {revision}: {store.tile_count(revision):,} tiles")
            return

        if not yes:
            confirm = typer.confirm(f"Delete tiles of {len(orphans)} orphaned revision(s)?")
            if not confirm:
                typer.echo("Aborted.")
                raise typer.Exit(1)

        result = store.reclaim_orphans()
        typer.echo(f"Reclaimed {result.tiles_deleted:,} tiles from {len(result.revisions)} revision(s).")
    except TileMapError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        store.close()
