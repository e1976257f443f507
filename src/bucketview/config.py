"""Configuration system for bucketview. YAML-based with env var expansion and env var overlay."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, get_origin

import yaml
from pydantic import BaseModel, Field


# --- Config Models ---


class ServeConfig(BaseModel):
    port: int = 8787
    host: str = "127.0.0.1"


class OAuthConfig(BaseModel):
    """Google OAuth2 / OpenID Connect client settings."""
    client_id: str = "${GOOGLE_CLIENT_ID}"
    client_secret: str = "${GOOGLE_CLIENT_SECRET}"
    redirect_uri: str = ""
    allowed_domain: str = ""          # e.g. "example.com"; only these emails may log in
    frontend_url: str = ""            # success redirect goes to {frontend_url}/auth/success
    scopes: list[str] = Field(default_factory=lambda: ["openid", "email", "profile"])
    authorize_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"
    jwks_uri: str = "https://www.googleapis.com/oauth2/v3/certs"
    issuers: list[str] = Field(
        default_factory=lambda: ["https://accounts.google.com", "accounts.google.com"]
    )
    leeway_seconds: int = 30
    timeout: float = 10.0


class SessionConfig(BaseModel):
    """Where CSRF states and user sessions live."""
    backend: str = "memory"           # "memory" or "redis"
    redis_url: str = "redis://localhost:6379/0"
    ttl_seconds: int = 7 * 24 * 60 * 60
    state_ttl_seconds: int = 600
    cookie_name: str = "session"


class StorageConfig(BaseModel):
    """Object store backend. "s3" works with any S3-compatible endpoint (R2, MinIO)."""
    backend: str = "memory"           # "memory" or "s3"
    bucket: str = ""
    endpoint_url: str | None = None
    region: str = "auto"
    access_key_id: str | None = None
    secret_access_key: str | None = None
    public_domain: str = ""
    page_size: int = 1000
    executor_max_workers: int = 8


class NamespaceConfig(BaseModel):
    separator: str = "/"
    max_concurrency: int = 8


class CorsConfig(BaseModel):
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class UploadConfig(BaseModel):
    max_bytes: int = 10 * 1024 * 1024
    allowed_types: list[str] = Field(default_factory=lambda: [
        "image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml", "image/bmp",
        "application/pdf", "text/plain", "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/zip", "application/x-rar-compressed",
        "video/mp4", "audio/mpeg",
    ])


class LoggingConfig(BaseModel):
    """Logging configuration."""
    format: str = "text"   # "text" or "json"
    level: str = "WARNING"


class Config(BaseModel):
    serve: ServeConfig = Field(default_factory=ServeConfig)
    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    namespace: NamespaceConfig = Field(default_factory=NamespaceConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# --- Helpers ---

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


def get_config_dir() -> Path:
    """Get or create bucketview config directory."""
    config_dir = Path.home() / ".bucketview"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    return get_config_dir() / "config.yaml"


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} in strings."""
    if isinstance(data, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), data)
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(v) for v in data]
    return data


# Mapping of BUCKETVIEW_* env var suffixes to (section, field) tuples.
# Extend this table when adding new config fields.
_ENV_VAR_MAP: dict[str, tuple[str, str]] = {
    "SERVE_PORT": ("serve", "port"),
    "SERVE_HOST": ("serve", "host"),
    "OAUTH_CLIENT_ID": ("oauth", "client_id"),
    "OAUTH_CLIENT_SECRET": ("oauth", "client_secret"),
    "OAUTH_REDIRECT_URI": ("oauth", "redirect_uri"),
    "OAUTH_ALLOWED_DOMAIN": ("oauth", "allowed_domain"),
    "OAUTH_FRONTEND_URL": ("oauth", "frontend_url"),
    "SESSION_BACKEND": ("session", "backend"),
    "SESSION_REDIS_URL": ("session", "redis_url"),
    "STORAGE_BACKEND": ("storage", "backend"),
    "STORAGE_BUCKET": ("storage", "bucket"),
    "STORAGE_ENDPOINT_URL": ("storage", "endpoint_url"),
    "STORAGE_REGION": ("storage", "region"),
    "STORAGE_ACCESS_KEY_ID": ("storage", "access_key_id"),
    "STORAGE_SECRET_ACCESS_KEY": ("storage", "secret_access_key"),
    "STORAGE_PUBLIC_DOMAIN": ("storage", "public_domain"),
    "NAMESPACE_MAX_CONCURRENCY": ("namespace", "max_concurrency"),
    "CORS_ALLOWED_ORIGINS": ("cors", "allowed_origins"),
    "UPLOAD_MAX_BYTES": ("upload", "max_bytes"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_LEVEL": ("logging", "level"),
}


def _get_section_models() -> dict[str, type[BaseModel]]:
    """Lazily build section model map after all classes are defined."""
    return {
        "serve": ServeConfig,
        "oauth": OAuthConfig,
        "session": SessionConfig,
        "storage": StorageConfig,
        "namespace": NamespaceConfig,
        "cors": CorsConfig,
        "upload": UploadConfig,
        "logging": LoggingConfig,
    }


def _apply_env_overlay(data: dict[str, Any]) -> dict[str, Any]:
    """Apply BUCKETVIEW_* environment variables on top of YAML data dict.

    Converts values to the correct type based on Pydantic field annotations.
    List fields take a comma-separated value. Secret fields are applied but never logged.
    """
    section_models = _get_section_models()

    for env_suffix, (section, field) in _ENV_VAR_MAP.items():
        env_key = f"BUCKETVIEW_{env_suffix}"
        raw_val = os.environ.get(env_key)
        if raw_val is None:
            continue

        # Determine target type from Pydantic model annotation
        model_cls = section_models.get(section)
        target_type: type = str
        if model_cls is not None:
            field_info = model_cls.model_fields.get(field)
            if field_info is not None:
                ann = field_info.annotation
                if ann is int:
                    target_type = int
                elif ann is bool:
                    target_type = bool
                elif ann is float:
                    target_type = float
                elif get_origin(ann) is list:
                    target_type = list

        # Cast value
        try:
            if target_type is bool:
                typed_val: Any = raw_val.lower() in ("1", "true", "yes")
            elif target_type is list:
                typed_val = [item.strip() for item in raw_val.split(",") if item.strip()]
            else:
                typed_val = target_type(raw_val)
        except (ValueError, TypeError):
            typed_val = raw_val  # fall back to string; Pydantic will validate

        # Merge into data dict
        if section not in data or not isinstance(data[section], dict):
            data[section] = {}
        data[section][field] = typed_val

    return data


def load_config(path: Path | None = None) -> Config:
    """Load config from YAML, expanding env vars, then applying BUCKETVIEW_* env overlay."""
    config_path = path or get_config_path()
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        data = _expand_env_vars(raw)
    else:
        data = {}
    data = _apply_env_overlay(data)
    # defaults reference env vars too (oauth client id/secret)
    return Config(**_expand_env_vars(Config(**data).model_dump()))


def save_config(config: Config, path: Path | None = None) -> None:
    """Save config to YAML."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump()
    with open(config_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def get_config_value(config: Config, key_path: str) -> Any:
    """Get nested config value via dot notation (e.g. 'oauth.allowed_domain')."""
    obj: Any = config
    for part in key_path.split("."):
        if isinstance(obj, BaseModel):
            obj = getattr(obj, part, None)
        elif isinstance(obj, dict):
            obj = obj.get(part)
        else:
            return None
    return obj


def set_config_value(key_path: str, value: str, path: Path | None = None) -> Config:
    """Set config value via dot notation, save, and return updated config."""
    config_path = path or get_config_path()
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        raw = {}

    # Navigate and set
    parts = key_path.split(".")
    obj = raw
    for part in parts[:-1]:
        if part not in obj or not isinstance(obj[part], dict):
            obj[part] = {}
        obj = obj[part]
    obj[parts[-1]] = value

    # Save and reload
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(raw, f, default_flow_style=False, sort_keys=False)

    return load_config(config_path)


def validate_for_serving(config: Config) -> None:
    """Raise ValueError naming every OAuth setting the HTTP server cannot run without."""
    missing = []
    oauth = config.oauth
    for name in ("client_id", "client_secret", "redirect_uri", "allowed_domain", "frontend_url"):
        value = getattr(oauth, name)
        if not value or _ENV_PATTERN.search(value):
            missing.append(f"oauth.{name}")
    if config.storage.backend == "s3" and not config.storage.bucket:
        missing.append("storage.bucket")
    if not config.cors.allowed_origins:
        missing.append("cors.allowed_origins")
    if missing:
        raise ValueError("Missing required configuration: " + ", ".join(missing))
