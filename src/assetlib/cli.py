"""CLI entry point for the asset-ingestion tools.

Provides commands:
  - upload: Run a local file through the full ingestion pipeline
  - status: Show processing state of an asset
  - publish: Publish a DRAFT asset
  - get: Show an asset's details
  - delete: Delete an asset
  - list: List assets, newest first
  - config: Manage the control-plane token in the system keyring
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
from pathlib import Path
from typing import Annotated, Optional

import typer
from keyring.errors import KeyringError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from assetlib.config import (
    SERVICE_NAME,
    delete_api_token,
    load_ingest_config,
    mask_token,
    store_api_token,
    stored_api_token,
)
from assetlib.models import AppState, IngestConfig, PipelineOutcome, RemoteResourceHandle
from assetlib.upload.client import ControlPlaneClient
from assetlib.upload.exceptions import ConfigurationError, ControlPlaneError
from assetlib.upload.orchestrator import UploadOrchestrator

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="assetlib - Resilient asset ingestion for managed content platforms",
    rich_markup_mode="rich",
)
console = Console()

# Config command group
config_app = typer.Typer(help="Manage the control-plane token")
app.add_typer(config_app, name="config")


@app.callback()
def app_callback(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to ingest_config.json"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show pipeline log output"),
    ] = False,
) -> None:
    """Configure logging and initialize shared state for subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.obj = AppState(config_path=config_path)


def get_state(ctx: typer.Context) -> AppState:
    """Type-safe accessor for AppState from Typer context."""
    if ctx.obj is None:
        ctx.obj = AppState()
    return ctx.obj


def _load_config(ctx: typer.Context) -> IngestConfig:
    try:
        return load_ingest_config(get_state(ctx).config_path)
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


def _build_client(config: IngestConfig) -> ControlPlaneClient:
    try:
        return ControlPlaneClient(config)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def _asset_table(handle: RemoteResourceHandle, title: str) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("ID", handle.id)
    table.add_row("File name", handle.file_name)
    table.add_row("URL", handle.url or "[dim]-[/dim]")
    table.add_row("MIME type", handle.content_type or "[dim]-[/dim]")
    table.add_row("Size", str(handle.size) if handle.size is not None else "[dim]-[/dim]")
    stage_style = "green" if handle.is_published else "yellow"
    table.add_row("Stage", f"[{stage_style}]{handle.stage.value}[/{stage_style}]")
    return table


@app.command()
def upload(
    ctx: typer.Context,
    file_path: Annotated[
        Path,
        typer.Argument(help="File to upload", exists=True, dir_okay=False, readable=True),
    ],
    name: Annotated[
        Optional[str],
        typer.Option("--name", "-n", help="Display name (defaults to the file name)"),
    ] = None,
    content_type: Annotated[
        Optional[str],
        typer.Option("--content-type", "-t", help="MIME type (guessed from the extension)"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw result as JSON"),
    ] = False,
) -> None:
    """Upload a file: create asset, upload bytes, wait for processing, publish."""
    config = _load_config(ctx)
    display_name = name or file_path.name
    mime = content_type or mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    payload = file_path.read_bytes()

    try:
        orchestrator = UploadOrchestrator(config)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    async def _run():
        async with orchestrator:
            return await orchestrator.upload(payload, display_name, mime)

    result = asyncio.run(_run())

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    elif result.success and result.asset is not None:
        title = "Upload Complete"
        if result.outcome == PipelineOutcome.PARTIAL_SUCCESS:
            title = "Upload Complete (unconfirmed)"
        console.print(Panel(_asset_table(result.asset, display_name), title=title))
    else:
        console.print(f"[red]Upload failed:[/red] {result.error}")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def status(
    ctx: typer.Context,
    asset_id: Annotated[str, typer.Argument(help="Asset ID")],
) -> None:
    """Show the processing state of an asset."""
    client = _build_client(_load_config(ctx))

    async def _run():
        async with client:
            return await client.get_status(asset_id)

    try:
        result = asyncio.run(_run())
    except ControlPlaneError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(_asset_table(result.handle, f"Asset {asset_id}"))
    console.print(f"Processing state: [bold]{result.processing_state or 'unknown'}[/bold]")
    if result.error:
        console.print(f"[red]Processing error:[/red] {result.error}")


@app.command()
def publish(
    ctx: typer.Context,
    asset_id: Annotated[str, typer.Argument(help="Asset ID")],
) -> None:
    """Publish a DRAFT asset."""
    client = _build_client(_load_config(ctx))

    async def _run():
        async with client:
            return await client.publish_asset(asset_id)

    try:
        receipt = asyncio.run(_run())
    except ControlPlaneError as e:
        console.print(f"[red]Error:[/red] Failed to publish {asset_id}: {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Asset {receipt.id} is {receipt.stage.value}")


@app.command()
def get(
    ctx: typer.Context,
    asset_id: Annotated[str, typer.Argument(help="Asset ID")],
) -> None:
    """Show an asset's details."""
    client = _build_client(_load_config(ctx))

    async def _run():
        async with client:
            return await client.get_asset(asset_id)

    handle = asyncio.run(_run())
    if handle is None:
        console.print(f"[yellow]Asset {asset_id} not found.[/yellow]")
        raise typer.Exit(code=1)
    console.print(_asset_table(handle, f"Asset {asset_id}"))


@app.command()
def delete(
    ctx: typer.Context,
    asset_id: Annotated[str, typer.Argument(help="Asset ID")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
) -> None:
    """Delete an asset."""
    if not yes:
        typer.confirm(f"Delete asset {asset_id}?", abort=True)

    client = _build_client(_load_config(ctx))

    async def _run():
        async with client:
            return await client.delete_asset(asset_id)

    if not asyncio.run(_run()):
        console.print(f"[red]Error:[/red] Failed to delete asset {asset_id}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Deleted asset {asset_id}")


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    page: Annotated[int, typer.Option("--page", "-p", min=1, help="Page number")] = 1,
    limit: Annotated[int, typer.Option("--limit", "-l", min=1, help="Assets per page")] = 20,
) -> None:
    """List assets, newest first."""
    client = _build_client(_load_config(ctx))

    async def _run():
        async with client:
            return await client.list_assets(page=page, limit=limit)

    try:
        result = asyncio.run(_run())
    except ControlPlaneError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if not result.assets:
        console.print("[yellow]No assets found.[/yellow]")
        return

    table = Table(title=f"Assets (page {page}, {result.total} total)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("File name")
    table.add_column("Size", justify="right")
    table.add_column("Stage")
    for handle in result.assets:
        size = "" if handle.size is None else f"{handle.size / 1024:.1f} KB"
        table.add_row(handle.id, handle.file_name, size, handle.stage.value)
    console.print(table)


@config_app.command("set-token")
def set_token(
    token: Annotated[
        str,
        typer.Argument(help="Control-plane bearer token to store in system keyring"),
    ],
) -> None:
    """Store the control-plane token in the system keyring."""
    try:
        store_api_token(token)
    except (ConfigurationError, KeyringError) as e:
        console.print(f"[red]Error:[/red] Could not save token: {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Token saved to keyring service {SERVICE_NAME}")


@config_app.command("get-token")
def show_token() -> None:
    """Display the stored control-plane token (masked)."""
    token = stored_api_token()
    if not token:
        console.print(
            "[yellow]No token in the keyring.[/yellow] "
            "Run [bold]assetlib config set-token YOUR_TOKEN[/bold] first."
        )
        raise typer.Exit(code=1)
    console.print(f"[green]Token:[/green] {mask_token(token)} [dim]({SERVICE_NAME})[/dim]")


@config_app.command("remove-token")
def remove_token() -> None:
    """Delete the stored control-plane token from the system keyring."""
    try:
        removed = delete_api_token()
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Could not remove token: {e}")
        raise typer.Exit(code=1)
    if removed:
        console.print(f"[green]✓[/green] Token removed from keyring service {SERVICE_NAME}")
    else:
        console.print("[yellow]No token in the keyring; nothing to remove.[/yellow]")
