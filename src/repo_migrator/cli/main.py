"""Main CLI entry point for the Repository Migration Tool."""

import sys
import asyncio
from typing import Optional
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..config.config import Config
from ..models import Batch
from ..storage.memory import InMemoryStorage
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine, sources_from_config
from ..migration.orchestrator import MigrationSummary

console = Console()


@click.group()
@click.version_option(version='0.1.0', prog_name='repo-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Repository Migration Tool - Migrate repositories from GitHub Enterprise Server and Azure DevOps into GitHub."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Basic logging until the config file is loaded
    log_level = 'DEBUG' if verbose else 'INFO'
    setup_logging(log_level)


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.pass_context
def init(ctx: click.Context, output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]Repository Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your destination and source details[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command()
@click.option(
    '--inventory',
    '-i',
    required=True,
    type=click.Path(exists=True),
    help='YAML inventory of repositories to migrate',
)
@click.option(
    '--dry-run',
    is_flag=True,
    help='Perform a dry run without locking source repositories',
)
@click.option(
    '--batch-org',
    default=None,
    help='Destination organization for every repository in this run',
)
@click.pass_context
def migrate(
    ctx: click.Context, inventory: str, dry_run: bool, batch_org: Optional[str]
) -> None:
    """Start the migration process."""
    console.print(
        Panel.fit(
            '[bold blue]Repository Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        dry_run = dry_run or config.migration.dry_run
        if dry_run:
            console.print(
                '[yellow]Running in dry-run mode - source repositories will not be locked[/yellow]'
            )

        storage = InMemoryStorage.from_inventory(
            inventory, sources=sources_from_config(config)
        )
        repositories = storage.list_repositories()
        if not repositories:
            console.print(f'[yellow]No repositories found in {inventory}[/yellow]')
            return

        batch = None
        if batch_org:
            batch = Batch(id=0, name='cli', destination_org=batch_org)

        engine = MigrationEngine(config, storage, config_path=ctx.obj.get('config_path'))
        summary = asyncio.run(_run_migration(engine, repositories, batch, dry_run))

        # Storage holds the persisted state of every repository
        storage.save_inventory(inventory)
        console.print(f'[green]✓[/green] Repository statuses written to {inventory}')

        _display_migration_summary(summary)

        if summary.failed:
            sys.exit(1)

    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate configuration and connectivity."""
    console.print(
        Panel.fit(
            '[bold cyan]Repository Migration Tool[/bold cyan]\nValidating configuration...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)

        storage = InMemoryStorage(sources=sources_from_config(config))
        engine = MigrationEngine(config, storage)
        try:
            engine._test_connectivity()
        finally:
            engine.destination_client.close()

        console.print('[green]✓[/green] Connectivity validation passed')
        console.print('[green]✓[/green] Configuration validation completed')

    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show migration configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]Repository Migration Tool[/bold magenta]\nMigration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        table = Table(title='Migration Configuration')
        table.add_column('Setting', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('Destination URL', config.destination.url)
        for source in config.sources:
            state = 'active' if source.is_active else 'inactive'
            table.add_row(
                f'Source {source.id}', f'{source.name} ({source.type}, {state}) {source.url}'
            )
        table.add_row('Post-migration Validation', config.migration.post_migration_mode)
        table.add_row('Existing Destination', config.migration.dest_repo_exists_action)
        table.add_row(
            'Public Repositories', config.migration.visibility_handling.public_repos
        )
        table.add_row(
            'Internal Repositories', config.migration.visibility_handling.internal_repos
        )
        table.add_row('Max Concurrent', str(config.migration.max_concurrent))
        table.add_row('Dry Run', '✓' if config.migration.dry_run else '✗')

        console.print(table)

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)

    default_paths = ['config.yaml', 'config.yml', '.repo-migrate.yaml']
    for path in default_paths:
        if Path(path).exists():
            ctx.obj['config_path'] = path
            return Config.from_file(path)

    # Fall back to environment variables
    try:
        return Config.from_env()
    except ValueError as e:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or run '
            '"repo-migrate init" to create one.'
        ) from e


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    # Verbose flag overrides the configured level
    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


async def _run_migration(
    engine: MigrationEngine,
    repositories,
    batch: Optional[Batch],
    dry_run: bool,
) -> MigrationSummary:
    """Run the migration with a progress spinner."""
    operation_name = 'Dry run' if dry_run else 'Migration'

    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        console=console,
    ) as progress:
        task = progress.add_task(
            f'[blue]{operation_name} of {len(repositories)} repositories in progress...',
            total=None,
        )

        try:
            if dry_run:
                summary = await engine.dry_run(repositories, batch)
            else:
                summary = await engine.migrate(repositories, batch)
        except Exception as e:
            progress.update(task, description=f'[red]Failed: {e}')
            raise

        progress.update(task, description=f'[green]{operation_name} completed')

    return summary


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Dry Run Summary' if summary.dry_run else 'Migration Summary')
    table.add_column('Repository', style='cyan')
    table.add_column('Status', style='blue')
    table.add_column('Result')
    table.add_column('Destination', style='green')

    for result in summary.results:
        if result.success:
            outcome = '[green]✓[/green]'
        elif result.skipped:
            outcome = '[yellow]skipped[/yellow]'
        else:
            outcome = '[red]✗[/red]'
        table.add_row(
            result.full_name,
            result.status.value,
            outcome,
            result.destination_url or '',
        )

    console.print(table)
    console.print(
        f'\n[blue]Total:[/blue] {summary.total}  '
        f'[green]Successful:[/green] {summary.successful}  '
        f'[red]Failed:[/red] {summary.failed}  '
        f'[yellow]Skipped:[/yellow] {summary.skipped}'
    )

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'[blue]Duration:[/blue] {duration}')

    errors = [
        f'{result.full_name}: {result.error_message}'
        for result in summary.results
        if result.error_message
    ]
    if errors:
        console.print(f'\n[red]Errors ({len(errors)}):[/red]')
        for error in errors[:5]:
            console.print(f'  • {error}')
        if len(errors) > 5:
            console.print(f'  ... and {len(errors) - 5} more errors')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
