"""CLI interface for query-router."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from query_router.automation.connections import StaticConnectionOracle
from query_router.automation.confirmation import render as render_template
from query_router.classification.probabilistic import ProbabilisticClassifier
from query_router.classification.semantic import HttpSemanticClassifier
from query_router.models import AutomationMatch, ClassificationContext, ClassificationResult
from query_router.router import Router

app = typer.Typer(
    name="query-router",
    help="query-router - Classify requests, detect automations and pick a provider",
)

console = Console()

CLI_USER = "cli"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _get_confidence_color(confidence: float) -> str:
    """Get color for confidence display."""
    if confidence >= 0.8:
        return "green"
    elif confidence >= 0.6:
        return "yellow"
    else:
        return "red"


def _parse_params(pairs: list[str]) -> dict[str, str]:
    """Parse key=value pairs."""
    params: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            console.print(f"[red]Error:[/red] Invalid parameter '{pair}'. Expected key=value")
            raise typer.Exit(1)
        key, value = pair.split("=", 1)
        params[key.strip()] = value
    return params


def _print_classification(result: ClassificationResult) -> None:
    color = _get_confidence_color(result.confidence)
    table = Table(title="Classification")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Provider", f"[bold]{result.provider}[/bold]")
    table.add_row("Category", result.category)
    table.add_row("Confidence", f"[{color}]{result.confidence:.2f}[/{color}]")
    table.add_row("Source", result.source.value)
    table.add_row("Reasoning", result.reasoning or "")
    console.print(table)


def _print_automation(match: AutomationMatch) -> None:
    table = Table(title=f"Automation: {match.type} ({match.service})")
    table.add_column("Parameter", style="cyan")
    table.add_column("Value")
    for name, value in match.params.items():
        table.add_row(name, value or "[dim]-[/dim]")
    console.print(table)
    console.print(f"Confirmation: [bold]{match.confirmation_message}[/bold]")
    console.print(f"Confidence: {match.confidence:.2f}")

    if match.needs_connection:
        console.print(
            f"[yellow]Needs connection:[/yellow] {', '.join(match.unmet_services)}"
        )

    if match.missing_fields:
        for error in match.validation_errors:
            console.print(f"[red]Invalid:[/red] {error}")
    else:
        console.print("[green]Ready to execute[/green]")


@app.command()
def classify(
    text: str = typer.Argument(..., help="Request text"),
    prefer: str = typer.Option(None, "--prefer", "-p", help="Preferred provider id"),
    available: list[str] = typer.Option(
        [], "--available", "-a", help="Provider id marked as available (repeatable)"
    ),
    semantic_url: str = typer.Option(
        None, "--semantic-url", help="Chat-completions base URL for low-confidence requests"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Pick the provider for a request."""
    _configure_logging(verbose)

    context = ClassificationContext(
        user_preference=prefer.upper() if prefer else None,
        service_status={provider.upper(): "available" for provider in available},
    )
    semantic = HttpSemanticClassifier(base_url=semantic_url) if semantic_url else None

    async def _run() -> ClassificationResult:
        router = Router(classifier=ProbabilisticClassifier(semantic=semantic))
        try:
            return await router.classify_detailed(text, context)
        finally:
            await router.aclose()

    _print_classification(asyncio.run(_run()))


@app.command()
def detect(
    text: str = typer.Argument(..., help="Request text"),
    user: str = typer.Option(CLI_USER, "--user", "-u", help="User id for connection checks"),
    connected: list[str] = typer.Option(
        [], "--connected", "-c", help="Service connected for the user (repeatable)"
    ),
    semantic_url: str = typer.Option(
        None, "--semantic-url", help="Chat-completions base URL for requests no template matches"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Detect an automation command in a request."""
    _configure_logging(verbose)

    oracle = StaticConnectionOracle({user: connected})
    semantic = HttpSemanticClassifier(base_url=semantic_url) if semantic_url else None

    async def _run() -> AutomationMatch | None:
        router = Router(oracle=oracle, classifier=ProbabilisticClassifier(semantic=semantic))
        try:
            return await router.detect_automation(text, user)
        finally:
            await router.aclose()

    match = asyncio.run(_run())
    if match is None:
        console.print("[yellow]No automation detected.[/yellow]")
        raise typer.Exit(1)

    _print_automation(match)


@app.command()
def render(
    template: str = typer.Argument(..., help="Confirmation template"),
    param: list[str] = typer.Option([], "--param", "-p", help="key=value parameter (repeatable)"),
) -> None:
    """Render a confirmation template."""
    console.print(render_template(template, _parse_params(param)), markup=False)


if __name__ == "__main__":
    app()
