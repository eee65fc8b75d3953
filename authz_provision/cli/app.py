"""Command-line interface for authorization model provisioning."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer
from rich.console import Console

from authz_provision.cli.factory import ClientFactory
from authz_provision.cli.formatters import ModelFormatter, ResultFormatter
from authz_provision.clients.exceptions import ConfigurationError, ProvisioningError
from authz_provision.config.loader import ModelLoader, find_model_file, validate_model_references
from authz_provision.config.models import AuthorizationModel, Settings
from authz_provision.core.engine import ProvisioningEngine, ProvisionResult
from authz_provision.security.validation import sanitize_console_text

app = typer.Typer(
    name="authz-provision",
    help="Provision permissions, roles and groups from a declarative model",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)

ModelArgument = Annotated[
    Optional[Path],
    typer.Argument(
        help="Path to the model file (defaults to authz.yaml found in the current or a parent directory)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
]
LogLevelOption = Annotated[
    Optional[str],
    typer.Option("--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
]
LogFormatOption = Annotated[
    Optional[str],
    typer.Option("--log-format", "-f", help="Log format (json or text)"),
]


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """Setup structured logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Log format (json or text).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_settings(log_level: Optional[str], log_format: Optional[str]) -> Settings:
    """Load settings from the environment and configure logging.

    Raises:
        typer.Exit: If settings are missing or invalid
    """
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        setup_logging(log_level or "INFO", log_format or "text")
        console.print(f"[red]Error loading settings: {sanitize_console_text(str(e))}[/red]")
        raise typer.Exit(1)

    setup_logging(
        log_level or settings.logging.level.value,
        log_format or settings.logging.format.value,
    )
    return settings


def load_model(model_file: Optional[Path]) -> AuthorizationModel:
    """Find, load and validate the declarative model.

    Raises:
        typer.Exit: If no model is found or it is invalid
    """
    if model_file is None:
        model_file = find_model_file()
        if model_file is None:
            console.print("[red]Error: No model file found[/red]")
            console.print("Please create an authz.yaml file or pass a path")
            raise typer.Exit(1)

    try:
        model = ModelLoader().load(model_file)
    except ConfigurationError as e:
        console.print(f"[red]Error loading model: {sanitize_console_text(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Loaded model from {sanitize_console_text(model_file)}")
    return model


async def run_provisioning(
    settings: Settings,
    model: AuthorizationModel,
    dry_run: bool = False,
) -> ProvisionResult:
    """Authenticate and reconcile the model against the store."""
    async with ClientFactory.create_token_client(settings.identity) as token_client:
        token = await token_client.authenticate()

    async with ClientFactory.create_store_client(settings.store, token.access_token) as store:
        engine = ProvisioningEngine(store, dry_run=dry_run)
        result = await engine.provision(model)
        logger.info("Store client statistics", **store.get_stats())
        return result


async def check_connectivity(settings: Settings) -> dict:
    """Obtain a token and load the store snapshot without writing."""
    async with ClientFactory.create_token_client(settings.identity) as token_client:
        token = await token_client.authenticate()

    async with ClientFactory.create_store_client(settings.store, token.access_token) as store:
        snapshot = await ProvisioningEngine(store, dry_run=True).load_snapshot()
        return snapshot.counts()


def _execute(model_file: Optional[Path], dry_run: bool, log_level: Optional[str], log_format: Optional[str]) -> None:
    settings = load_settings(log_level, log_format)
    model = load_model(model_file)

    if dry_run:
        console.print("[yellow]DRY RUN MODE - No changes will be made[/yellow]")

    try:
        result = asyncio.run(run_provisioning(settings, model, dry_run=dry_run))
    except ProvisioningError as e:
        console.print(f"[red]Provisioning failed: {sanitize_console_text(str(e))}[/red]")
        logger.error(
            "Provisioning failed",
            error=str(e),
            error_type=type(e).__name__,
            resource_type=e.resource_type,
            resource_key=e.resource_key,
        )
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[red]Provisioning interrupted by user[/red]")
        raise typer.Exit(1)

    formatter = ResultFormatter(console)
    formatter.format_actions(result)
    formatter.format_summary(result)


@app.command()
def apply(
    model_file: ModelArgument = None,
    log_level: LogLevelOption = None,
    log_format: LogFormatOption = None,
) -> None:
    """Create every permission, role and group of the model that is missing.

    Existing entities are left as they are; role permissions and nested
    groups are replaced with the declared sets.
    """
    _execute(model_file, False, log_level, log_format)


@app.command()
def plan(
    model_file: ModelArgument = None,
    log_level: LogLevelOption = None,
    log_format: LogFormatOption = None,
) -> None:
    """Show what apply would do without making changes."""
    _execute(model_file, True, log_level, log_format)


@app.command()
def validate(
    model_file: ModelArgument = None,
    check_connectivity_flag: Annotated[
        bool,
        typer.Option("--check-connectivity", help="Also authenticate and read the store"),
    ] = False,
    log_level: LogLevelOption = None,
    log_format: LogFormatOption = None,
) -> None:
    """Validate the model and, optionally, connectivity to the store."""
    model = load_model(model_file)

    formatter = ModelFormatter(console)
    formatter.format_model_summary(model)
    formatter.format_warnings(validate_model_references(model))

    if not check_connectivity_flag:
        return

    settings = load_settings(log_level, log_format)
    formatter.format_settings(settings)

    try:
        counts = asyncio.run(check_connectivity(settings))
    except ProvisioningError as e:
        console.print(f"[red]✗ Connectivity check failed: {sanitize_console_text(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Store reachable: {counts['permissions']} permissions, "
        f"{counts['roles']} roles, {counts['groups']} groups"
    )


@app.command()
def version() -> None:
    """Show version information."""
    from authz_provision import __version__

    console.print(f"authz-provision version {__version__}")
