"""
Configuration loader — reads binpin.yml and the Go environment into Settings.

Values come, in increasing precedence, from the model defaults, an
optional ``binpin.yml`` found by walking up from the working directory,
and environment variables. The Go directories follow the same fallbacks
``go install`` uses: ``GOBIN`` else ``$GOPATH/bin``, ``GOMODCACHE`` else
``$GOPATH/pkg/mod``, and ``GOPATH`` itself defaults to ``~/go``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "binpin.yml"

# Environment variables that override file values
_ENV_FIELDS = {
    "BINPIN_MODDIR": "mod_dir",
    "BINPIN_GO": "go_binary",
    "BINPIN_TIMEOUT": "timeout_seconds",
    "GOPATH": "gopath",
    "GOBIN": "gobin",
    "GOMODCACHE": "gomodcache",
}


class ConfigError(Exception):
    """Raised when binpin configuration is invalid."""


class Settings(BaseModel):
    """Effective configuration for one binpin invocation."""

    mod_dir: str = ".binpin"
    go_binary: str = "go"
    timeout_seconds: float = Field(default=300.0, gt=0)
    link: bool = False

    gopath: str = ""
    gobin: str = ""
    gomodcache: str = ""

    @property
    def gopath_root(self) -> Path:
        """First GOPATH entry, or ``~/go`` when unset."""
        first = self.gopath.split(os.pathsep)[0] if self.gopath else ""
        return Path(first) if first else Path.home() / "go"

    @property
    def install_dir(self) -> Path:
        """Where versioned binaries are built (mimics go install)."""
        if self.gobin:
            return Path(self.gobin)
        return self.gopath_root / "bin"

    @property
    def mod_cache_dir(self) -> Path:
        """Root of the module download cache."""
        if self.gomodcache:
            return Path(self.gomodcache)
        return self.gopath_root / "pkg" / "mod"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for binpin.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to binpin.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_config_file(path: Path) -> dict:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading binpin config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Accept both a flat file and one nested under "binpin:"
    return dict(data.get("binpin", data))


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: object,
) -> Settings:
    """Load and validate binpin settings.

    Args:
        path: Explicit path to binpin.yml. If None, searches upward and
            falls back to defaults when nothing is found.
        environ: Environment to read overrides from (default: os.environ).
        **overrides: Final values (e.g. from CLI flags); None values are ignored.

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If the file is unreadable or any value is invalid.
    """
    env = os.environ if environ is None else environ

    data: dict = {}
    if path is None:
        path = find_config_file()
    if path is not None:
        data.update(_read_config_file(path))

    for var, field in _ENV_FIELDS.items():
        value = env.get(var)
        if value:
            data[field] = value

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid binpin configuration: {e}") from e

    logger.debug(
        "Settings: moddir=%s install_dir=%s mod_cache=%s",
        settings.mod_dir, settings.install_dir, settings.mod_cache_dir,
    )
    return settings
