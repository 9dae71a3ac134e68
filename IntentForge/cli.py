"""
IntentForge CLI.

Command-line interface for generating adb intent commands from an Android
project's manifests and sources.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from pydantic import SecretStr
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.config import AgentConfig, get_config
from .core.exceptions import IntentForgeError
from .core.logging import setup_logging
from .models.permission import PermissionCategory

if TYPE_CHECKING:
    from .orchestration import ScanReport

app = typer.Typer(
    name="intentforge",
    help="Generate adb intent commands for exported Android components",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"IntentForge v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """IntentForge: manifest-driven adb intent command generation."""
    pass


def _choose_model(models: list[str], requested: str | None) -> str:
    """Resolve the model to use, prompting when the request does not match."""
    from .agents.intent_inference import match_model

    table = Table(title="Available Models")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Model")
    for i, model in enumerate(models, 1):
        table.add_row(str(i), model)
    console.print(table)

    if requested:
        chosen = match_model(models, requested)
        if chosen:
            return chosen
        console.print(f"[yellow]Model '{escape(requested)}' not found, select one interactively[/yellow]")

    while True:
        answer = typer.prompt(f"Select a model (1-{len(models)})")
        chosen = match_model(models, answer)
        if chosen:
            return chosen
        console.print("[red]Invalid selection[/red]")


def _agent_config(llm_url: str | None, llm_key: str | None, llm_model: str | None) -> AgentConfig:
    """Agent configuration from the environment, overridden by CLI flags."""
    base = get_config().agent
    if not llm_url:
        return base

    from .agents.intent_inference import fetch_available_models

    key = llm_key or (base.api_key.get_secret_value() if base.api_key else None)
    try:
        models = asyncio.run(fetch_available_models(llm_url, key))
    except IntentForgeError as e:
        console.print(f"[red]Could not list models: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    if not models:
        console.print("[red]The LLM endpoint offers no models[/red]")
        raise typer.Exit(1)

    return base.model_copy(
        update={
            "enabled": True,
            "provider": "openai",
            "base_url": llm_url,
            "api_key": SecretStr(key) if key else None,
            "model": _choose_model(models, llm_model),
        }
    )


def _print_report(report: ScanReport) -> None:
    for entry in report.commands:
        component = entry.component
        provenance = component.provenance
        title = f"[bold]{escape(component.qualified_name)}[/bold] [dim]({component.kind.value})[/dim]"

        lines = [
            f"[cyan]Manifest:[/cyan] {escape(str(provenance.manifest_path))}:{provenance.line}",
            f"[cyan]Declaration:[/cyan] {escape(provenance.raw_declaration)}",
        ]
        if entry.source_file:
            lines.append(f"[cyan]Source:[/cyan] {escape(str(entry.source_file))}")
        if component.shared_user_id:
            lines.append(f"[yellow]Shares user id:[/yellow] {escape(component.shared_user_id)}")
        if entry.command:
            lines.append(f"[cyan]Parameters from:[/cyan] {entry.source.value if entry.source else '-'}")
        else:
            lines.append(f"\n[red]Failed: {escape(str(entry.error))}[/red]")
        for warning in entry.warnings:
            lines.append(f"[dim yellow]! {escape(warning)}[/dim yellow]")

        console.print(Panel("\n".join(lines), title=title, title_align="left", expand=False))
        # Commands stay on one line so they can be copied into a shell
        if entry.command:
            console.print(f"[green]{escape(entry.command)}[/green]", soft_wrap=True)

    for warning in report.warnings:
        console.print(f"[yellow]! {escape(warning)}[/yellow]", soft_wrap=True)

    table = Table(title="Scan Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Run ID", report.run_id)
    table.add_row("Manifests", str(len(report.manifests)))
    table.add_row("Commands", str(len(report.succeeded)))
    table.add_row("Failed", str(len(report.failed)))
    table.add_row("Skipped", str(len(report.skipped)))
    table.add_row("Duration", f"{(report.completed_at - report.started_at).total_seconds():.1f}s")
    console.print(table)


@app.command()
def scan(
    project_dir: Path = typer.Argument(
        ...,
        help="Directory containing AndroidManifest.xml files",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    package: Optional[str] = typer.Option(None, "--package", "-p", help="Only components of this package"),
    source_dir: Optional[Path] = typer.Option(
        None,
        "--source-dir",
        "-s",
        help="Source root (defaults to each manifest's directory)",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
    max_permission_level: Optional[PermissionCategory] = typer.Option(
        None,
        "--max-permission-level",
        help="Highest protection level still reported",
        case_sensitive=False,
    ),
    alive_only: bool = typer.Option(False, "--alive-only", help="Only packages installed on the device"),
    no_shared_userid: bool = typer.Option(
        False, "--no-shared-userid", help="Skip components of apps declaring sharedUserId"
    ),
    all_components: bool = typer.Option(False, "--all-components", help="Include non-exported components"),
    llm_url: Optional[str] = typer.Option(None, "--llm-url", help="OpenAI-compatible API base URL"),
    llm_key: Optional[str] = typer.Option(None, "--llm-key", help="API key for the LLM endpoint"),
    llm_model: Optional[str] = typer.Option(None, "--llm-model", help="Model index or name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-j", min=1, help="Components resolved concurrently"),
    extra_arg: list[str] = typer.Option([], "--extra-arg", "-e", help="Raw argument appended to every command"),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Generate one adb command per selected component."""
    config = get_config()
    if verbose:
        config.log_level = "DEBUG"
    setup_logging(config)

    from .orchestration import ScanOptions, run_pipeline

    agent_config = _agent_config(llm_url, llm_key, llm_model)
    options = ScanOptions.from_config(
        project_dir,
        source_dir=source_dir,
        package=package,
        max_permission_level=max_permission_level,
        exported_only=False if all_components else None,
        alive_only=True if alive_only else None,
        exclude_shared_user_id=True if no_shared_userid else None,
        extra_args=extra_arg,
        concurrency=concurrency,
    )

    if not json_output:
        inference = "disabled"
        if agent_config.enabled:
            inference = f"{agent_config.model} @ {agent_config.base_url or agent_config.provider}"
        console.print(Panel.fit(
            f"[bold blue]IntentForge[/bold blue]\n"
            f"Project: {escape(str(project_dir))}\n"
            f"Inference: {escape(inference)}",
            border_style="blue",
        ))

    async def run_async():
        if json_output:
            return await run_pipeline(options, agent_config)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Resolving components...", total=None)
            report = await run_pipeline(options, agent_config)
            progress.update(task, completed=True)
        return report

    try:
        report = asyncio.run(run_async())
    except IntentForgeError as e:
        console.print(f"[bold red]✗ Scan failed:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
    else:
        _print_report(report)

    if report.commands and not report.succeeded:
        raise typer.Exit(1)


@app.command()
def models(
    llm_url: Optional[str] = typer.Option(None, "--llm-url", help="OpenAI-compatible API base URL"),
    llm_key: Optional[str] = typer.Option(None, "--llm-key", help="API key for the LLM endpoint"),
) -> None:
    """List models offered by an OpenAI-compatible endpoint."""
    from .agents.intent_inference import fetch_available_models

    cfg = get_config().agent
    url = llm_url or cfg.base_url
    if not url:
        console.print("[red]No endpoint: pass --llm-url or set INTENTFORGE_LLM_URL[/red]")
        raise typer.Exit(1)
    key = llm_key or (cfg.api_key.get_secret_value() if cfg.api_key else None)

    try:
        available = asyncio.run(fetch_available_models(url, key))
    except IntentForgeError as e:
        console.print(f"[red]Could not list models: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Models at {url}")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Model")
    for i, model in enumerate(available, 1):
        table.add_row(str(i), model)
    console.print(table)


@app.command()
def config() -> None:
    """Show the current configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Inference Enabled", str(cfg.agent.enabled))
    table.add_row("Agent Provider", cfg.agent.provider)
    table.add_row("Agent Base URL", cfg.agent.base_url or "-")
    table.add_row("Agent Model", cfg.agent.model)
    table.add_row("Agent Retries", str(cfg.agent.max_retries))
    table.add_row("Context Lines", f"{cfg.extraction.leading_lines} before / {cfg.extraction.trailing_lines} after")
    table.add_row("Source Extensions", ", ".join(cfg.extraction.source_extensions))
    table.add_row("Exported Only", str(cfg.scan.exported_only))
    table.add_row("Max Permission Level", cfg.scan.max_permission_level)
    table.add_row("Concurrency", str(cfg.scan.concurrency))
    table.add_row("adb Path", str(cfg.scan.adb_path or "PATH"))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  INTENTFORGE_LOG_LEVEL, INTENTFORGE_LLM_URL, INTENTFORGE_LLM_KEY, INTENTFORGE_LLM_MODEL")
    console.print("  INTENTFORGE_AGENT_PROVIDER, INTENTFORGE_MAX_PERMISSION_LEVEL, INTENTFORGE_CONCURRENCY")
    console.print("  OPENAI_API_KEY, ANTHROPIC_API_KEY")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
