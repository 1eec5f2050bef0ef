"""
Command-line interface for metacheck.

This module provides CLI commands for:
- check: Run the precheck and report the verdict
- commit: Rebuild the index and persist a fresh snapshot
- index: Rebuild the entity index and list entities
- show: Display the stored snapshot
- clear: Delete snapshot, index and artifact
"""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

import click

from metacheck.checker import CheckState, PrecheckResult
from metacheck.config import CheckerConfig, get_settings
from metacheck.exceptions import MetacheckException
from metacheck.factories import DefaultComponentFactory

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

_ROOTS = click.argument(
    'roots',
    nargs=-1,
    required=True,
    type=click.Path(file_okay=False, dir_okay=True),
)


def _load_config(temp_dir: Optional[str]) -> CheckerConfig:
    config = CheckerConfig.from_settings(get_settings())
    if temp_dir:
        base = Path(temp_dir)
        storage = replace(
            config.storage,
            cache_dir=base / config.storage.cache_dir.name,
            artifact_dir=base / config.storage.artifact_dir.name,
        )
        config = replace(config, storage=storage)
    return config


def _absolute(roots: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(str(Path(root).absolute()) for root in roots)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--temp-dir', type=str, default=None, help='Override the temp directory (default: from config)')
@click.pass_context
def cli(ctx: click.Context, verbose: bool, temp_dir: Optional[str]):
    """
    Metacheck CLI.

    Decide whether a compiled artifact is still valid for its source classes.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")
    ctx.obj = _load_config(temp_dir)


@cli.command('check')
@_ROOTS
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_obj
def check_command(config: CheckerConfig, roots: Tuple[str, ...], output_json: bool):
    """
    Check whether the compiled artifact is still valid.

    Exits with 0 when the artifact is valid and 1 when it must be rebuilt.
    """
    factory = DefaultComponentFactory()
    cache = factory.create_index_cache(config.storage)
    try:
        result = factory.create_checker(config, cache).precheck(_absolute(roots))
    except MetacheckException as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")
    finally:
        cache.close()

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        verdict = "valid" if result.is_valid else "must rebuild"
        click.echo(f"Verdict: {verdict}")
        click.echo(f"  State: {result.state.value}")
        if result.fingerprint:
            click.echo(f"  Fingerprint: {result.fingerprint}")
        if result.changed_paths:
            click.echo(f"  Changed paths: {len(result.changed_paths)}")
            for path in result.changed_paths:
                click.echo(f"    {path}")

    sys.exit(0 if result.is_valid else 1)


@cli.command('commit')
@_ROOTS
@click.option('--fingerprint', type=str, default=None, help='Fingerprint returned by check')
@click.pass_obj
def commit_command(config: CheckerConfig, roots: Tuple[str, ...], fingerprint: Optional[str]):
    """
    Persist a fresh snapshot after a successful compilation.
    """
    roots = _absolute(roots)
    result = PrecheckResult(
        state=CheckState.PRECISE_DIRTY,
        roots=roots,
        fingerprint=fingerprint,
    )
    factory = DefaultComponentFactory()
    cache = factory.create_index_cache(config.storage)
    try:
        snapshot = factory.create_checker(config, cache).commit(result)
    except MetacheckException as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")
    finally:
        cache.close()

    click.echo(f"✓ Snapshot saved")
    click.echo(f"  Fingerprint: {snapshot.mtime_hash}")
    click.echo(f"  Paths: {len(snapshot.mtimes)}")
    click.echo(f"  Entities with shapes: {len(snapshot.entity_shapes)}")


@cli.command('index')
@_ROOTS
@click.pass_obj
def index_command(config: CheckerConfig, roots: Tuple[str, ...]):
    """
    Rebuild the entity index and list indexed entities.
    """
    factory = DefaultComponentFactory()
    cache = factory.create_index_cache(config.storage)
    try:
        indexed = factory.create_indexer(config, cache).rebuild(_absolute(roots))
    except MetacheckException as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")
    finally:
        cache.close()

    for entity_id in sorted(indexed):
        click.echo(f"{entity_id}\t{indexed[entity_id]}")
    click.echo(f"{len(indexed)} entities indexed")


@cli.command('show')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_obj
def show_command(config: CheckerConfig, output_json: bool):
    """
    Display the stored snapshot.
    """
    store = DefaultComponentFactory().create_store(config.storage)
    try:
        snapshot = store.load()
    except MetacheckException as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")

    if snapshot is None:
        click.echo("No snapshot stored")
        return

    if output_json:
        click.echo(snapshot.model_dump_json(indent=2))
        return

    click.echo("Snapshot:")
    click.echo(f"  Roots: {', '.join(snapshot.roots)}")
    click.echo(f"  Fingerprint: {snapshot.mtime_hash}")
    click.echo(f"  Paths: {len(snapshot.mtimes)}")
    click.echo(f"  Entities with shapes: {len(snapshot.entity_shapes)}")
    click.echo(f"  Shapes hash: {snapshot.shapes_hash}")


@cli.command('clear')
@click.option('--force', '-f', is_flag=True, help='Skip confirmation prompt')
@click.pass_obj
def clear_command(config: CheckerConfig, force: bool):
    """
    Delete the snapshot, the entity index and the compiled artifact.
    """
    if not force:
        click.confirm('This will force a full rebuild. Continue?', abort=True)

    factory = DefaultComponentFactory()
    store = factory.create_store(config.storage)
    try:
        removed = store.clear()
    except MetacheckException as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")

    cache = factory.create_index_cache(config.storage)
    try:
        cache.clear()
    finally:
        cache.close()

    factory.create_artifact(config.storage).invalidate()

    click.echo("✓ Snapshot cleared" if removed else "No snapshot stored")
    click.echo("✓ Index and artifact cleared")


if __name__ == '__main__':
    cli()
