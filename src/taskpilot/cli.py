"""Command line interface for taskpilot."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .agents.planner import plan as plan_roles
from .agents.roles import ROLE_CATALOG
from .config import AppConfig, ConfigError
from .context import build_context
from .events import AgentProgress, AgentUpdated, TaskCompleted, TaskError, TaskStarted

app = typer.Typer(help="Multi-agent task orchestration service")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML configuration")
ROLE_CATALOG_NAMES = {role.value: info.name for role, info in ROLE_CATALOG.items()}


def _load_config(config_path: Optional[Path]) -> AppConfig:
    try:
        config = AppConfig.from_file(config_path) if config_path else AppConfig()
    except ConfigError as exc:
        console.print(f"[bold red]Invalid configuration:[/] {exc}")
        raise typer.Exit(code=2) from exc
    config.with_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    return config


def _render_plan(request: str) -> None:
    table = Table(title="Execution Plan", show_lines=True)
    table.add_column("#")
    table.add_column("Agent")
    table.add_column("Description")
    for index, role in enumerate(plan_roles(request), start=1):
        info = ROLE_CATALOG[role]
        table.add_row(str(index), info.name, info.description)
    console.print(table)


@app.command()
def plan(request: str = typer.Argument(..., help="Natural-language request")) -> None:
    """Show which agents a request would be routed to."""

    _render_plan(request)


@app.command()
def run(
    request: str = typer.Argument(..., help="Natural-language request"),
    config_path: Optional[Path] = ConfigOption,
    step_delay: Optional[float] = typer.Option(None, help="Override the per-step progress delay in seconds"),
) -> None:
    """Execute a request locally and print the aggregated report."""

    config = _load_config(config_path)
    if step_delay is not None:
        config.progress.step_delay = max(step_delay, 0.0)
    context = build_context(config)
    console.print(f"[bold green]Running request for[/] {context.data.company_name}")
    _render_plan(request)

    progress = Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.fields[status]}"),
        transient=False,
    )

    async def drive() -> Dict:
        bars: Dict[str, TaskID] = {}
        async for event in context.orchestrator.stream(request):
            if isinstance(event, TaskStarted):
                for agent in event.agents:
                    bars[agent["id"]] = progress.add_task(
                        ROLE_CATALOG_NAMES.get(agent["role"], agent["role"]), total=100, status="[yellow]pending"
                    )
            elif isinstance(event, AgentUpdated):
                status = event.agent["status"]
                colour = "green" if status == "completed" else "cyan"
                progress.update(bars[event.agent["id"]], status=f"[{colour}]{status}")
            elif isinstance(event, AgentProgress):
                progress.update(bars[event.agent_id], completed=event.progress)
            elif isinstance(event, TaskError):
                return {"error": event.error}
            elif isinstance(event, TaskCompleted):
                return event.result
        return {}

    with progress:
        result = asyncio.run(drive())

    if "error" in result:
        console.print(f"[bold red]Task failed:[/] {result['error']}")
        raise typer.Exit(code=1)

    console.rule("Summary")
    console.print(result.get("summary", ""))
    insights = result.get("keyInsights") or []
    if insights:
        console.rule("Key insights")
        for insight in insights:
            console.print(f"- {insight}")
    table = Table(title="Agents", show_lines=True)
    table.add_column("Agent")
    table.add_column("Status")
    table.add_column("Confidence")
    for agent in result.get("agents", []):
        table.add_row(ROLE_CATALOG_NAMES.get(agent["role"], agent["role"]), agent["status"], f"{agent['confidence']:.2f}")
    console.print(table)


@app.command()
def check(config_path: Optional[Path] = ConfigOption) -> None:
    """Probe the narrative backend and list its models."""

    config = _load_config(config_path)
    context = build_context(config)
    availability = context.narrative.check_availability()
    if availability.available:
        console.print(f"[bold green]Narrative backend available[/] ({len(availability.models)} models)")
        for model in availability.models:
            console.print(f"- {model}")
    else:
        console.print(f"[bold yellow]Narrative backend unavailable:[/] {availability.error}")
        raise typer.Exit(code=1)


@app.command()
def serve(
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
) -> None:
    """Start the HTTP and WebSocket server."""

    import uvicorn

    from .web.server import create_app

    config = _load_config(config_path)
    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    app()
