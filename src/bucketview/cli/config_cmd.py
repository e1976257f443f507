"""CLI commands for config management."""

from __future__ import annotations

import json

import typer
from rich.console import Console

console = Console()

# Never echoed by `config show`
_SECRET_FIELDS = {("oauth", "client_secret"), ("storage", "secret_access_key")}


def register(
    config_app: typer.Typer,
    get_config,
    get_config_value,
    set_config_value,
) -> None:
    """Register config commands on the config sub-app."""

    @config_app.command("show")
    def config_show():
        """Show current configuration (secrets masked)."""
        data = get_config().model_dump()
        for section, field in _SECRET_FIELDS:
            if data.get(section, {}).get(field):
                data[section][field] = "****"
        console.print_json(json.dumps(data))

    @config_app.command("set")
    def config_set(key: str = typer.Argument(...), value: str = typer.Argument(...)):
        """Set a config value (dot notation: oauth.allowed_domain)."""
        set_config_value(key, value)
        console.print(f"[green]Set[/green] {key} = {value}")

    @config_app.command("get")
    def config_get(key: str = typer.Argument(...)):
        """Get a config value."""
        cfg = get_config()
        val = get_config_value(cfg, key)
        console.print(f"{key} = {val}")
