"""Main CLI entry point for gitlab-migraptor."""

import sys
from typing import Any, Dict, NoReturn, Optional

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config.config import Config
from ..migration.engine import MigrationEngine
from ..migration.errors import (
    EXIT_FAILURE,
    EXIT_MIGRATION_FAILED,
    ConfigurationError,
    MigrationError,
)
from ..migration.orchestrator import MigrationSummary
from ..utils.logging import get_logger, setup_logging

console = Console()
log = get_logger('cli')


def source_options(func):
    """Options locating the GitLab instance and the groups to work on."""
    options = [
        click.option('--token', '-g', help='GitLab API token'),
        click.option('--instance', '-i', help='GitLab instance URL'),
        click.option(
            '--old-group', '-o', help='Full path of the group to move projects from'
        ),
        click.option(
            '--new-group', '-n', help='Full path of the group to move projects to'
        ),
        click.option(
            '--projects',
            '-l',
            help='Comma-separated list of project paths (default: all)',
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version='0.1.0', prog_name='migraptor')
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
    """gitlab-migraptor - Move GitLab projects between groups with their images."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Refined once the configuration is loaded
    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@source_options
@click.option(
    '--tags', '-t', help='Comma-separated list of image tags to keep (default: all)'
)
@click.option('--registry', '-r', help='Container registry host')
@click.option(
    '--docker-password', '-p', help='Registry password (default: the API token)'
)
@click.option(
    '--dry-run', '-f', is_flag=True, help='Log what would be done without doing it'
)
@click.option(
    '--no-keep-parent',
    '-k',
    is_flag=True,
    help='Move projects one by one instead of moving the whole group',
)
@click.pass_context
def migrate(
    ctx: click.Context,
    token: Optional[str],
    instance: Optional[str],
    old_group: Optional[str],
    new_group: Optional[str],
    projects: Optional[str],
    tags: Optional[str],
    registry: Optional[str],
    docker_password: Optional[str],
    dry_run: bool,
    no_keep_parent: bool,
) -> None:
    """Move a group's projects and their registry images to another group."""
    console.print(
        Panel.fit(
            '[bold blue]gitlab-migraptor[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    overrides = _overrides(
        token=token,
        instance=instance,
        old_group=old_group,
        new_group=new_group,
        projects=projects,
        tags=tags,
    )
    overrides['registry'] = {'host': registry, 'password': docker_password}
    if dry_run:
        overrides['migration']['dry_run'] = True
    if no_keep_parent:
        overrides['migration']['preserve_hierarchy'] = False

    config = _load_config(ctx, overrides)

    if config.migration.dry_run:
        console.print(
            '[yellow]Running in dry-run mode - no changes will be made[/yellow]'
        )

    try:
        summary = MigrationEngine(config).migrate()
    except MigrationError as e:
        _fail(ctx, f'Migration failed: {e}', e.exit_code)

    _display_migration_summary(summary)

    if summary.failed_projects:
        console.print(
            f'[red]✗[/red] {summary.failed_projects} projects failed to migrate'
        )
        sys.exit(EXIT_MIGRATION_FAILED)

    if summary.dry_run:
        console.print(
            '[green]✓[/green] Dry run completed, run again without --dry-run '
            'to apply the changes'
        )
    else:
        console.print('[green]✓[/green] Migration completed successfully')


@cli.command()
@source_options
@click.option(
    '--tags', '-t', help='Comma-separated list of image tags to list (default: all)'
)
@click.pass_context
def images(
    ctx: click.Context,
    token: Optional[str],
    instance: Optional[str],
    old_group: Optional[str],
    new_group: Optional[str],
    projects: Optional[str],
    tags: Optional[str],
) -> None:
    """List the registry images of the source group."""
    config = _load_config(
        ctx,
        _overrides(
            token=token,
            instance=instance,
            old_group=old_group,
            new_group=new_group,
            projects=projects,
            tags=tags,
        ),
    )

    try:
        items = MigrationEngine(config).list_images()
    except MigrationError as e:
        _fail(ctx, f'Failed to list images: {e}', e.exit_code)

    table = Table(title=f'Images in {config.migration.source_group}')
    table.add_column('Project', style='cyan')
    table.add_column('Repository', style='blue')
    table.add_column('Tag', style='green')
    table.add_column('Location')

    for item in items:
        table.add_row(item.project_name, item.registry_path, item.name, item.location)

    console.print(table)
    console.print(f'[blue]{len(items)} images found[/blue]')


@cli.command()
@source_options
@click.option(
    '--tags', '-t', required=True, help='Comma-separated list of tags to delete'
)
@click.option(
    '--dry-run', '-f', is_flag=True, help='Log what would be deleted without doing it'
)
@click.pass_context
def clean(
    ctx: click.Context,
    token: Optional[str],
    instance: Optional[str],
    old_group: Optional[str],
    new_group: Optional[str],
    projects: Optional[str],
    tags: str,
    dry_run: bool,
) -> None:
    """Delete image tags from the source group's registries."""
    overrides = _overrides(
        token=token,
        instance=instance,
        old_group=old_group,
        new_group=new_group,
        projects=projects,
        tags=tags,
    )
    if dry_run:
        overrides['migration']['dry_run'] = True

    config = _load_config(ctx, overrides)

    try:
        report = MigrationEngine(config).clean(config.migration.tags)
    except MigrationError as e:
        _fail(ctx, f'Clean failed: {e}', e.exit_code)
    except ValueError as e:
        _fail(ctx, f'Clean failed: {e}', EXIT_FAILURE)

    console.print(
        f'[green]✓[/green] {report.deleted} tags deleted, '
        f'[red]{report.failed}[/red] failed'
    )
    if report.failed:
        sys.exit(EXIT_MIGRATION_FAILED)


@cli.command()
@click.option(
    '--output',
    '-o',
    default='gitlab-migraptor.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]gitlab-migraptor[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(EXIT_FAILURE)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(f'[yellow]Please edit {output} with your GitLab details[/yellow]')


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the configuration and the GitLab connection."""
    console.print(
        Panel.fit(
            '[bold cyan]gitlab-migraptor[/bold cyan]\nValidating configuration...',
            border_style='cyan',
        )
    )

    config = _load_config(ctx)
    console.print('[green]✓[/green] Configuration validation completed')

    engine = MigrationEngine(config)
    try:
        version = engine.test_connectivity()
    except MigrationError as e:
        _fail(ctx, f'Validation failed: {e}', e.exit_code)
    finally:
        engine.close()

    console.print(
        f'[green]✓[/green] Connected to {config.gitlab.url}'
        + (f' (GitLab {version})' if version else '')
    )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the resolved migration settings."""
    console.print(
        Panel.fit(
            '[bold magenta]gitlab-migraptor[/bold magenta]\nMigration Settings',
            border_style='magenta',
        )
    )

    config = _load_config(ctx)
    settings = config.migration

    table = Table(title='Migration Configuration')
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')

    table.add_row('GitLab URL', config.gitlab.url)
    table.add_row('Registry', config.registry_host)
    table.add_row('Source Group', settings.source_group)
    table.add_row('Destination Group', settings.destination_group)
    table.add_row('Projects', ', '.join(settings.projects) or 'all')
    table.add_row('Tags', ', '.join(settings.tags) or 'all')
    table.add_row('Keep Parent Group', '✓' if settings.preserve_hierarchy else '✗')
    table.add_row('Dry Run', '✓' if settings.dry_run else '✗')

    console.print(table)


def _overrides(**options: Optional[str]) -> Dict[str, Any]:
    """Map shared command-line options onto configuration sections."""
    return {
        'gitlab': {'url': options['instance'], 'token': options['token']},
        'migration': {
            'source_group': options['old_group'],
            'destination_group': options['new_group'],
            'projects': options['projects'],
            'tags': options['tags'],
        },
    }


def _read_config(
    config_path: Optional[str], overrides: Optional[Dict[str, Any]] = None
) -> Config:
    """Load the configuration layers.

    Raises:
        ConfigurationError: If the configuration is missing, unreadable or
            invalid
    """
    try:
        return Config.load(config_path, overrides)
    except ValidationError as e:
        raise ConfigurationError(f'Invalid configuration:\n{e}') from e
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f'Failed to load configuration: {e}') from e


def _load_config(
    ctx: click.Context, overrides: Optional[Dict[str, Any]] = None
) -> Config:
    """Load configuration and apply its logging settings.

    Exits with status 1 when the configuration is missing or invalid.
    """
    try:
        config = _read_config(ctx.obj.get('config_path'), overrides)
    except ConfigurationError as e:
        console.print(f'[red]✗[/red] {e}')
        console.print(
            '[yellow]Use --config, environment variables or options, '
            'or run "migraptor init" to create a configuration file[/yellow]'
        )
        sys.exit(e.exit_code)

    _setup_logging_with_config(ctx, config)
    log.debug(f'Configuration loaded for {config.gitlab.url}')
    return config


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    setup_logging(
        level='DEBUG' if verbose else config.logging.level,
        log_file=config.logging.file,
        log_format=config.logging.format,
    )


def _fail(ctx: click.Context, message: str, exit_code: int) -> NoReturn:
    log.debug(f'Exiting with status {exit_code}')
    console.print(f'[red]✗[/red] {message}')
    if ctx.obj.get('verbose'):
        console.print_exception()
    sys.exit(exit_code)


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title=f'Migration Summary ({summary.mode.value})')
    table.add_column('Project', style='cyan')
    table.add_column('Status')
    table.add_column('Images', style='blue')
    table.add_column('Restored', style='green')
    table.add_column('Failed', style='red')

    for result in summary.project_results:
        color = 'green' if result.success else 'red'
        table.add_row(
            result.project_path,
            f'[{color}]{result.status.value}[/{color}]',
            str(len(result.backed_up)),
            str(len(result.restored)),
            str(len(result.failed_images)),
        )

    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    warnings = [
        f'{result.project_path}: {warning}'
        for result in summary.project_results
        for warning in result.warnings
    ]
    errors = [
        f'{result.project_path}: {result.error_message}'
        for result in summary.project_results
        if result.error_message
    ]

    if warnings:
        console.print(f'\n[yellow]Warnings ({len(warnings)}):[/yellow]')
        for warning in warnings[:5]:
            console.print(f'  • {warning}')
        if len(warnings) > 5:
            console.print(f'  ... and {len(warnings) - 5} more warnings')

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
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(EXIT_FAILURE)


if __name__ == '__main__':
    main()
