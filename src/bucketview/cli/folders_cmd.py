"""CLI commands for folder administration: ls, mkdir, mv, rm.

These talk to the configured object store directly, bypassing the HTTP
server and its login.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from bucketview.errors import BucketViewError
from bucketview.namespace import BatchReport, NamespaceManager
from bucketview.storage import ObjectStorageError, create_object_store

console = Console()


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return str(size)


def _print_report(report: BatchReport, verb: str) -> None:
    if report.complete:
        console.print(f"[green]{verb}[/green] {len(report.succeeded)} object(s)")
        return
    console.print(
        f"[yellow]{verb} {len(report.succeeded)} object(s), "
        f"{len(report.failed)} failed[/yellow]"
    )
    for failure in report.failed:
        console.print(f"  [red]{failure.key}[/red]: {failure.error}")


def register(app: typer.Typer, get_config) -> None:

    def _manager() -> NamespaceManager:
        cfg = get_config()
        return NamespaceManager(
            create_object_store(cfg.storage),
            separator=cfg.namespace.separator,
            max_concurrency=cfg.namespace.max_concurrency,
        )

    def _run(action):
        manager = _manager()

        async def run_and_close():
            try:
                return await action(manager)
            finally:
                await manager.store.close()

        try:
            return asyncio.run(run_and_close())
        except BucketViewError as exc:
            console.print(f"[red]{exc.code.value}:[/red] {exc.message}")
            raise typer.Exit(1)
        except ObjectStorageError as exc:
            console.print(f"[red]Storage error:[/red] {exc}")
            raise typer.Exit(1)

    @app.command("ls")
    def ls(prefix: str = typer.Argument("", help="Folder to list (root when omitted)")):
        """List the folders and files directly inside PREFIX."""
        listing = _run(lambda m: m.list(prefix))
        table = Table(title=f"/{listing.prefix}", show_header=True)
        table.add_column("Name", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Type")
        table.add_column("Modified")
        for folder in listing.folders:
            table.add_row(f"[bold]{folder.name}/[/bold]", "-", "folder", "")
        for f in listing.files:
            modified = f.last_modified.strftime("%Y-%m-%d %H:%M") if f.last_modified else ""
            table.add_row(f.name, _format_size(f.size), f.content_type, modified)
        console.print(table)
        if not listing.folders and not listing.files:
            console.print("[dim]Empty folder.[/dim]")

    @app.command()
    def mkdir(path: str = typer.Argument(...)):
        """Create an (empty) folder."""
        result = _run(lambda m: m.create_folder(path))
        console.print(f"[green]Created[/green] {result['path']}")

    @app.command()
    def mv(old_path: str = typer.Argument(...), new_path: str = typer.Argument(...)):
        """Rename a folder and everything under it."""
        report = _run(lambda m: m.rename_folder(old_path, new_path))
        _print_report(report, "Moved")
        if not report.complete:
            raise typer.Exit(1)

    @app.command()
    def rm(
        path: str = typer.Argument(...),
        yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    ):
        """Delete a folder and everything under it."""
        if not yes:
            typer.confirm(f"Delete {path} and everything under it?", abort=True)
        report = _run(lambda m: m.delete_folder(path))
        _print_report(report, "Deleted")
        if not report.complete:
            raise typer.Exit(1)
