"""bucketview CLI - browse and administer a bucket as folders."""

from __future__ import annotations

import typer

from bucketview.config import (
    Config,
    get_config_value,
    load_config,
    set_config_value,
)
from bucketview.logging_setup import setup_logging

# Bootstrap logging from config (respects BUCKETVIEW_LOG_FORMAT / BUCKETVIEW_LOG_LEVEL)
setup_logging(load_config())

app = typer.Typer(name="bucketview", help="Folder browser for object storage behind Google login")
config_app = typer.Typer(help="Manage configuration")

app.add_typer(config_app, name="config")

_config: Config | None = None


def _get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _set_config_value(key: str, value: str) -> Config:
    global _config
    _config = set_config_value(key, value)
    return _config


# Register commands from sub-modules
from bucketview.cli import config_cmd as _config_cmd_mod  # noqa: E402
from bucketview.cli import folders_cmd as _folders_mod  # noqa: E402
from bucketview.cli import system as _system_mod  # noqa: E402

_config_cmd_mod.register(config_app, _get_config, get_config_value, _set_config_value)
_folders_mod.register(app, _get_config)
_system_mod.register(app, _get_config)

if __name__ == "__main__":
    app()
