"""Configuration helpers for pagenote."""

from __future__ import annotations

import dataclasses
import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl, ValidationError

from .errors import ConfigurationError


class BackendCredentials(BaseModel):
    """Connection information for the hosted backend."""

    url: HttpUrl = Field(..., description="Project URL of the hosted backend")
    anon_key: str = Field(..., description="Public (anon) API key of the project")


class EditorSettings(BaseModel):
    """Editor behaviour shared by every page session."""

    autosave_delay: float = Field(2.0, gt=0, description="Seconds of inactivity before an autosave")
    default_title: str = Field("Untitled", min_length=1, description="Title given to pages created without one")


class LocalSettings(BaseModel):
    """Where local state (session, preferences) is kept."""

    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "state" / "pagenote",
        description="Directory holding the session and preference files",
    )


class PagenoteConfig(BaseModel):
    """Aggregate configuration for the client."""

    credentials: BackendCredentials
    editor: EditorSettings = Field(default_factory=EditorSettings)
    local: LocalSettings = Field(default_factory=LocalSettings)


ENV_PREFIX = "PAGENOTE"
DEFAULT_CONFIG_PATHS = (
    Path.cwd() / "pagenote.toml",
    Path.home() / ".config" / "pagenote" / "config.toml",
)


@dataclasses.dataclass
class ConfigSource:
    """Result of attempting to resolve configuration data."""

    config: Optional[PagenoteConfig]
    path: Optional[Path]
    error: Optional[Exception]


def _load_from_env() -> dict[str, object]:
    """Return configuration values extracted from ``PAGENOTE_*`` environment variables."""

    def _get(name: str) -> Optional[str]:
        return os.getenv(f"{ENV_PREFIX}_{name}")

    url = _get("URL")
    anon_key = _get("ANON_KEY")
    if not (url or anon_key):
        return {}

    data: dict[str, object] = {"credentials": {"url": url, "anon_key": anon_key}}
    delay = _get("AUTOSAVE_DELAY")
    if delay:
        data["editor"] = {"autosave_delay": delay}
    state_dir = _get("STATE_DIR")
    if state_dir:
        data["local"] = {"state_dir": state_dir}
    return data


def _load_toml(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    with path.open("rb") as handle:
        return tomllib.load(handle)


def resolve_config(explicit_path: Optional[Path] = None) -> ConfigSource:
    """Discover configuration using the first available source.

    The priority order is:
    1. Explicit path provided via CLI argument.
    2. Default configuration files in the working directory or the user's config directory.
    3. Environment variables with the `PAGENOTE_` prefix.
    """

    errors: list[Exception] = []
    sources: list[tuple[Optional[Path], dict]] = []

    if explicit_path:
        try:
            data = _load_toml(explicit_path)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            errors.append(exc)
        else:
            if data is None:
                errors.append(ConfigurationError(f"Configuration file {explicit_path} does not exist"))
            else:
                sources.append((explicit_path, data))

    if not sources:
        for path in DEFAULT_CONFIG_PATHS:
            try:
                data = _load_toml(path)
            except (OSError, tomllib.TOMLDecodeError) as exc:
                errors.append(exc)
                continue
            if data is not None:
                sources.append((path, data))
                break

    if not sources:
        env_data = _load_from_env()
        if env_data:
            sources.append((None, env_data))

    for path, data in sources:
        try:
            config = PagenoteConfig.model_validate(data)
            return ConfigSource(config=config, path=path, error=None)
        except ValidationError as exc:
            errors.append(exc)

    error = errors[0] if errors else None
    return ConfigSource(config=None, path=None, error=error)


def ensure_config(
    *,
    url: Optional[str] = None,
    anon_key: Optional[str] = None,
    autosave_delay: Optional[float] = None,
    config_path: Optional[Path] = None,
) -> PagenoteConfig:
    """Resolve configuration from precedence order and fall back to explicit CLI options."""

    source = resolve_config(config_path)

    if source.config:
        config = source.config.model_copy(deep=True)
    else:
        if not (url and anon_key):
            detail = f" ({source.error})" if source.error else ""
            raise ConfigurationError(
                "Missing backend credentials. Provide them via CLI options, environment variables"
                " or a configuration file" + detail
            )
        try:
            config = PagenoteConfig(credentials=BackendCredentials(url=url, anon_key=anon_key))
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    if url:
        config.credentials.url = url  # type: ignore[assignment]
    if anon_key:
        config.credentials.anon_key = anon_key
    if autosave_delay is not None:
        config.editor.autosave_delay = autosave_delay

    return config
