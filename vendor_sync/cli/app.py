"""Typer CLI for the vendor sync engine.

Commands:
    - run: Discover and process routers and vaults
    - routers: Router factory discovery + router processing only
    - vaults: Vault factory discovery + vault processing only
    - status: Checkpoints, cached entity counts, errors and open gaps
    - classify: Classify a single oracle/adapter address (offline)
    - reset: Clear the progress file (and optionally deployment caches)

Rules Applied:
    - #18 Typer CLI: Annotated syntax, Rich UI, async handling
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vendor_sync.chain.client import JsonRpcChainClient
from vendor_sync.config.settings import get_settings
from vendor_sync.config.sources import SourceKey
from vendor_sync.core.exceptions import SyncError
from vendor_sync.core.logger import setup_logger
from vendor_sync.state.backend import FileBackend
from vendor_sync.state.store import DeploymentStore, ProgressStore
from vendor_sync.sync.service import SyncReport, SyncScope, SyncService
from vendor_sync.vendors.attributor import VendorAttributor
from vendor_sync.vendors.registry import OracleRegistry

if TYPE_CHECKING:
    from vendor_sync.config.settings import SyncSettings

# Global Console Instance
console = Console()

# Typer App
app = typer.Typer(
    name="euler-vendor-sync",
    help="Euler oracle vendor sync - incremental router/vault discovery and vendor attribution",
    no_args_is_help=True,
)

_MAX_ERROR_ROWS = 20


# =============================================================================
# Helpers
# =============================================================================


def _setup(verbose: bool) -> SyncSettings:
    settings = get_settings()
    settings.ensure_directories()
    setup_logger(settings.log_dir, console_level="DEBUG" if verbose else None)
    return settings


async def _run_sync(settings: SyncSettings, scope: SyncScope) -> SyncReport:
    # registry first: a missing registry file must fail before any RPC call
    registry = OracleRegistry.from_files(settings.oracle_registry_path, settings.cross_oracle_path)
    async with JsonRpcChainClient.from_settings(settings) as client:
        service = SyncService(client, registry, settings)
        return await service.run(scope)


def _display_report(report: SyncReport) -> None:
    table = Table(title=f"Sync Run {report.run_id} ({report.scope})", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Head block", f"{report.head:,}")
    for source, count in report.discovered.items():
        table.add_row(f"New {source}s", str(count))
    table.add_row("Processed", str(report.processed))
    table.add_row("Skipped (fresh)", str(report.skipped))
    table.add_row("Failed", f"[red]{report.failed}[/red]" if report.failed else "0")
    table.add_row("Open gaps", f"[yellow]{report.open_gaps}[/yellow]" if report.open_gaps else "0")
    console.print(table)

    if report.errors:
        errors = Table(title="Entity Errors", show_header=True)
        errors.add_column("Address", style="bold")
        errors.add_column("Error", style="red")
        for address, error in list(report.errors.items())[:_MAX_ERROR_ROWS]:
            errors.add_row(address, error)
        if len(report.errors) > _MAX_ERROR_ROWS:
            errors.add_row("...", f"and {len(report.errors) - _MAX_ERROR_ROWS} more")
        console.print(errors)


def _execute(scope: SyncScope, verbose: bool) -> None:
    settings = _setup(verbose)
    console.print(Panel.fit(
        f"[bold]Vendor Sync[/bold]\nScope: {scope}\nRPC: {settings.rpc_url}\nState: {settings.state_dir}",
        border_style="blue",
    ))

    try:
        report = asyncio.run(_run_sync(settings, scope))
    except SyncError as e:
        console.print(f"\n[bold red]✗ Sync failed:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    _display_report(report)
    if report.complete:
        console.print(Panel(
            "[bold green]✓ Sync completed successfully![/bold green]",
            border_style="green",
        ))
    else:
        console.print(Panel(
            f"[bold yellow]⚠ Sync completed with errors: {report.failed} failed entities, "
            f"{report.open_gaps} open gaps[/bold yellow]",
            border_style="yellow",
        ))


# =============================================================================
# Commands
# =============================================================================


VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose logging"),
]


@app.command()
def run(verbose: VerboseOption = False) -> None:
    """Discover new deployments and process routers, then vaults.

    Example:
        python main.py run
        python main.py run -v
    """
    _execute(SyncScope.ALL, verbose)


@app.command()
def routers(verbose: VerboseOption = False) -> None:
    """Router factory discovery and router processing only."""
    _execute(SyncScope.ROUTERS, verbose)


@app.command()
def vaults(verbose: VerboseOption = False) -> None:
    """Vault factory discovery and vault processing only."""
    _execute(SyncScope.VAULTS, verbose)


@app.command()
def status() -> None:
    """Show checkpoints, cached entity counts, entity errors and open gaps."""
    settings = get_settings()
    backend = FileBackend()
    state = ProgressStore(backend, settings.progress_path).load()
    try:
        cached = {key: DeploymentStore(backend, settings.get_deployments_path(key)).load() for key in SourceKey}
    except SyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title="Sync Status", show_header=True)
    table.add_column("Source", style="cyan")
    table.add_column("Factory checkpoint", justify="right")
    table.add_column("Cached deployments", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Errors", justify="right")

    for key in SourceKey:
        records = state.records(key)
        error_count = sum(1 for r in records.values() if r.last_error)
        checkpoint = state.checkpoint.factory_block(key)
        table.add_row(
            str(key),
            f"{checkpoint:,}" if checkpoint is not None else "-",
            str(len(cached[key])),
            str(len(records)),
            f"[red]{error_count}[/red]" if error_count else "0",
        )
    console.print(table)

    failing = [
        (str(key), r.address, r.last_error)
        for key in SourceKey
        for r in state.records(key).values()
        if r.last_error
    ]
    if failing:
        errors = Table(title="Entities with errors", show_header=True)
        errors.add_column("Kind", width=8)
        errors.add_column("Address", style="bold")
        errors.add_column("Error", style="red")
        for kind, address, error in failing[:_MAX_ERROR_ROWS]:
            errors.add_row(kind, address, error or "")
        console.print(errors)

    if state.gaps:
        gaps = Table(title=f"Open gaps ({state.open_gap_count})", show_header=True)
        gaps.add_column("Scope", style="bold")
        gaps.add_column("Blocks", justify="right")
        for scope, ranges in sorted(state.gaps.items()):
            gaps.add_row(scope, ", ".join(f"{r.from_block}-{r.to_block}" for r in ranges))
        console.print(gaps)
    else:
        console.print("[green]No open gaps.[/green]")


@app.command()
def classify(
    address: Annotated[str, typer.Argument(help="Oracle / adapter address (0x...)")],
) -> None:
    """Classify an oracle/adapter address against the registry (no RPC)."""
    settings = get_settings()
    try:
        registry = OracleRegistry.from_files(settings.oracle_registry_path, settings.cross_oracle_path)
        vault_cache = DeploymentStore(FileBackend(), settings.get_deployments_path(SourceKey.VAULT)).load()
    except SyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    attributor = VendorAttributor(registry, known_vaults=[d.address for d in vault_cache])
    classification = attributor.classify(address)

    table = Table(title=f"Classification: {address}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Kind", classification.kind)
    table.add_row("Label", classification.label)
    table.add_row("Vendors", ", ".join(classification.vendor_names()))
    reason = getattr(classification, "reason", None)
    if reason:
        table.add_row("Reason", reason)
    console.print(table)


@app.command()
def reset(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
    deployments: Annotated[
        bool,
        typer.Option("--deployments", help="Also clear the factory deployment caches"),
    ] = False,
) -> None:
    """Clear checkpoints and the entity cache."""
    settings = get_settings()
    if not yes:
        typer.confirm(f"Reset sync state in {settings.state_dir}?", abort=True)

    backend = FileBackend()
    try:
        ProgressStore(backend, settings.progress_path).reset()
        if deployments:
            for key in SourceKey:
                DeploymentStore(backend, settings.get_deployments_path(key)).save([])
    except SyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    console.print("[bold green]✓ Sync state reset.[/bold green]")
