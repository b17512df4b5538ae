"""Configuration settings for lgpm.

Resolution order for every field:
    explicit argument > environment variable > config file > default

The config file is YAML at ``~/.lgpm/config.yaml`` (LGPM_CONFIG overrides
the location):

    modules_dir: /opt/app/bin/modules
    ui_plugins_dir: /opt/app/bin/plugins
    release: latest
    request_timeout: 30
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from lgpm.packages.installer import plugins_dir_for
from lgpm.packages.platform import PlatformInfo

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".lgpm" / "config.yaml"
REPOSITORY_URL = "https://github.com/logos-co/logos-modules/releases"
DEFAULT_RELEASE = "latest"

# Setting name -> environment variable
ENV_VARS = {
    "modules_dir": "LGPM_MODULES_DIR",
    "ui_plugins_dir": "LGPM_UI_PLUGINS_DIR",
    "release": "LGPM_RELEASE",
    "base_url": "LGPM_BASE_URL",
    "platform_variant": "LGPM_PLATFORM_VARIANT",
    "temp_dir": "LGPM_TEMP_DIR",
}

_PATH_FIELDS = {"modules_dir", "ui_plugins_dir", "temp_dir"}


def default_modules_dir() -> Path:
    """``bin/modules`` next to the running executable."""
    return Path(sys.executable).resolve().parent / "bin" / "modules"


def release_base_url(release: str) -> str:
    """Download base URL for a release tag."""
    if not release or release == DEFAULT_RELEASE:
        return f"{REPOSITORY_URL}/latest/download"
    return f"{REPOSITORY_URL}/download/{release}"


class ConfigError(Exception):
    """Raised when the config file cannot be used."""


@dataclass
class Settings:
    """Application settings."""

    modules_dir: Path = field(default_factory=default_modules_dir)
    ui_plugins_dir: Path | None = None
    release: str = DEFAULT_RELEASE
    base_url: str | None = None
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    platform_variant: str | None = None
    request_timeout: float = 30.0
    skip_if_not_newer: bool = True

    @property
    def plugins_dir(self) -> Path:
        """UI plugins directory, auto-derived from the modules dir when unset."""
        return self.ui_plugins_dir or plugins_dir_for(self.modules_dir)

    @property
    def download_url(self) -> str:
        return self.base_url or release_base_url(self.release)

    @property
    def platform(self) -> PlatformInfo:
        if self.platform_variant:
            return PlatformInfo.for_variant(self.platform_variant)
        return PlatformInfo.detect()

    @classmethod
    def load(
        cls,
        config_path: Path | str | None = None,
        environ: dict[str, str] | None = None,
        **overrides: Any,
    ) -> "Settings":
        """Build settings from file, environment and explicit overrides.

        Args:
            config_path: YAML file (default: LGPM_CONFIG or ~/.lgpm/config.yaml)
            environ: Environment mapping (default: os.environ)
            **overrides: Explicit values; None means "not given"
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        path = config_path or environ.get("LGPM_CONFIG") or DEFAULT_CONFIG_PATH
        values.update(_read_config_file(Path(path)))

        for name, var in ENV_VARS.items():
            if environ.get(var):
                values[name] = environ[var]

        values.update({k: v for k, v in overrides.items() if v is not None})

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        for name in known & set(values):
            value = values[name]
            if name in _PATH_FIELDS:
                value = Path(value).expanduser()
            elif name == "request_timeout":
                value = float(value)
            elif name == "skip_if_not_newer" and isinstance(value, str):
                value = value.strip().lower() in ("1", "true", "yes", "on")
            kwargs[name] = value

        return cls(**kwargs)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    logger.debug(f"Loaded config from {path}")
    return data
