"""Output formatters for CLI commands."""

from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from authz_provision.config.models import AuthorizationModel, Settings
from authz_provision.core.engine import ProvisionActionType, ProvisionResult
from authz_provision.security.validation import sanitize_console_text

ACTION_STYLE = {
    ProvisionActionType.CREATE: ("green", "+"),
    ProvisionActionType.SKIP: ("blue", "="),
    ProvisionActionType.ATTACH: ("yellow", "~"),
}


class ResultFormatter:
    """Formats provisioning results for display."""

    def __init__(self, console: Console):
        self.console = console

    def format_actions(self, result: ProvisionResult) -> None:
        """Display every step of the run in execution order."""
        self.console.print()
        title = "Provisioning Plan" if result.dry_run else "Provisioning Result"
        self.console.print(f"[bold blue]{title}[/bold blue]")
        self.console.print()

        if not result.actions:
            self.console.print("[yellow]Model declares nothing to provision[/yellow]")
            return

        for item in result.actions:
            color, symbol = ACTION_STYLE[item.action]
            key = sanitize_console_text(item.key)
            scope = f" ({sanitize_console_text(item.application_id)})" if item.application_id else ""
            line = f"  [{color}]{symbol} {item.resource_type}: {key}{scope}[/{color}]"
            self.console.print(line)

            if item.action == ProvisionActionType.ATTACH:
                child = "permissions" if item.resource_type == "role" else "nested groups"
                self.console.print(f"    [dim]→ {len(item.attached_ids)} {child}[/dim]")

        self.console.print()

    def format_summary(self, result: ProvisionResult) -> None:
        """Display counts per resource type and action."""
        summary = result.get_summary()

        table = Table(title="Summary")
        table.add_column("Resource", style="cyan")
        for action in ProvisionActionType:
            table.add_column(action.value.capitalize(), justify="right")

        for resource_type in ("permission", "role", "group"):
            counts = summary[resource_type]
            table.add_row(
                resource_type.capitalize() + "s",
                *[str(counts[action.value]) for action in ProvisionActionType],
            )

        self.console.print(table)

        verb = "would be" if result.dry_run else "were"
        self.console.print(Panel(
            f"{len(result.created)} entities {verb} created, "
            f"{len(result.skipped)} already existed, "
            f"{len(result.attached)} attach calls {verb} issued",
            title=result.run_id,
            border_style="blue",
        ))


class ModelFormatter:
    """Formats the declarative model and settings for display."""

    def __init__(self, console: Console):
        self.console = console

    def format_model_summary(self, model: AuthorizationModel) -> None:
        table = Table(title="Declarative Model")
        table.add_column("Application", style="cyan")
        table.add_column("Permissions", justify="right")
        table.add_column("Roles", justify="right")

        for application in model.applications:
            table.add_row(
                sanitize_console_text(application.display_name),
                str(len(application.permissions)),
                str(len(application.roles)),
            )

        self.console.print(table)
        self.console.print(f"Groups: {len(model.groups)}")

    def format_settings(self, settings: Settings) -> None:
        table = Table(title="Settings")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Identity Domain", sanitize_console_text(settings.identity.domain))
        table.add_row("Audience", sanitize_console_text(settings.identity.audience))
        table.add_row("Store API", sanitize_console_text(settings.store.api_url))
        table.add_row("Rate Limit", str(settings.store.rate_limit_per_minute))

        self.console.print(table)

    def format_warnings(self, warnings: List[str]) -> None:
        if not warnings:
            self.console.print("[green]All references resolve within the model[/green]")
            return

        self.console.print("[yellow]Reference warnings:[/yellow]")
        for i, warning in enumerate(warnings, 1):
            self.console.print(f"  {i}. {sanitize_console_text(warning)}")
