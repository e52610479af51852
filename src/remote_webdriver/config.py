"""Configuration models for the remote WebDriver client."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SERVER_URL = "http://localhost:4444/wd/hub"


class ServerConfig(BaseModel):
    """Settings for the remote WebDriver endpoint."""

    url: str = Field(default=DEFAULT_SERVER_URL)
    request_timeout: float = Field(
        default=60.0,
        description="HTTP timeout (in seconds) for a single wire request.",
    )
    max_concurrent_requests: int = Field(
        default=1,
        ge=1,
        description="Number of requests a single session may have in flight.",
    )


class CommandConfig(BaseModel):
    """Defaults for command chain helpers."""

    poll_interval: float = Field(
        default=0.067,
        gt=0,
        description="Delay (in seconds) between poll_until invocations.",
    )


class ClientConfig(BaseSettings):
    """Top-level configuration for the client and its command line."""

    model_config = SettingsConfigDict(
        env_prefix="REMOTE_WEBDRIVER_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    command: CommandConfig = Field(default_factory=CommandConfig)
    desired_capabilities: dict[str, Any] = Field(
        default_factory=lambda: {"browserName": "chrome"}
    )
    required_capabilities: dict[str, Any] = Field(default_factory=dict)


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> ClientConfig:
    """Build the client configuration from layered sources.

    From weakest to strongest: ``REMOTE_WEBDRIVER_*`` environment variables
    (plus *env_file*, or ``.env`` in the working directory), the YAML file at
    *path*, then keyword *overrides* such as ``server={"url": ...}``. Sections
    merge key by key, so overriding ``server.url`` keeps a
    ``server.request_timeout`` that came from the file or the environment.
    """

    layered = _read_yaml(path) if path else {}
    _merge_into(layered, overrides)
    base = ClientConfig(_env_file=env_file) if env_file is not None else ClientConfig()
    if not layered:
        return base
    return ClientConfig.model_validate(_merge_into(base.model_dump(mode="python"), layered))


def _read_yaml(path: Path) -> dict[str, Any]:
    import yaml

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return dict(data)


def _merge_into(target: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *updates* into *target*, descending into sections present in both."""

    for key, value in updates.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            target[key] = _merge_into(dict(current), value)
        else:
            target[key] = value
    return target
