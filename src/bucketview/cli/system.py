"""CLI command: serve."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

console = Console()


def register(app: typer.Typer, get_config) -> None:

    @app.command()
    def serve(
        port: Optional[int] = typer.Option(None, "--port", "-p"),
        host: Optional[str] = typer.Option(None, "--host"),
    ):
        """Start the HTTP server."""
        from bucketview.api.server import run_server
        from bucketview.config import validate_for_serving

        cfg = get_config()
        if port:
            cfg.serve.port = port
        if host:
            cfg.serve.host = host

        try:
            validate_for_serving(cfg)
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            console.print("[dim]Set values with: bucketview config set oauth.client_id ...[/dim]")
            raise typer.Exit(1)

        console.print(f"Serving on [cyan]http://{cfg.serve.host}:{cfg.serve.port}[/cyan]")
        run_server(cfg)
