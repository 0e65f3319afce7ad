"""Configuration loading for prompt-registry.

Built-in defaults are deep-merged with an optional home config file and then
an optional working-directory config file. Environment variables are applied
last.
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

HOME_CONFIG_NAMES = ("prompt-registry.yaml", "prompt-registry.yml", "prompt-registry.json")
CWD_CONFIG_NAMES = (
    "prompt-registry.config.yaml",
    "prompt-registry.config.yml",
    "prompt-registry.config.json",
)
SYNC_URL_ENV_VARS = ("PROMPT_REGISTRY_SYNC_URL", "PROMPT_SYNC_URL", "PROMPT_REGISTRY_URL")

DEFAULT_CONFIG: dict[str, Any] = {
    "urls": {
        "development": "https://raw.githubusercontent.com/prompt-registry/core/develop/registry.json",
        "production": "https://cdn.jsdelivr.net/gh/prompt-registry/core@main/registry.json",
    },
    "policies": {
        "auto_sync": False,
        "background_sync": False,
        "sync_interval": 86400,
        "timeout": 30.0,
        "retry_attempts": 3,
    },
    "security": {
        "trusted_domains": [
            "githubusercontent.com",
            "github.com",
            "cdn.jsdelivr.net",
            "raw.githubusercontent.com",
            "unpkg.com",
            "jsdelivr.net",
        ],
        "require_https": True,
        "max_payload_size": 100 * 1024 * 1024,
    },
    "cache": {
        "directory": str(Path.home() / ".cache" / "prompt-registry"),
        "ttl": 3600.0,
    },
}


def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge ``source`` into ``target``.

    Nested mappings are merged key by key; any other value in ``source``
    replaces the value in ``target``.

    Returns:
        The mutated ``target``.
    """
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            deep_merge(target[key], value)
        else:
            target[key] = value
    return target


def active_environment() -> str:
    """Return the URL environment in use, ``production`` or ``development``."""
    if os.environ.get("PROMPT_REGISTRY_ENV", "").strip().lower() == "production":
        return "production"
    return "development"


@dataclass
class RegistryConfig:
    """Resolved configuration for sync, security and caching."""

    urls: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CONFIG["urls"]))
    timeout: float = 30.0
    retry_attempts: int = 3
    auto_sync: bool = False
    background_sync: bool = False
    sync_interval: float = 86400
    trusted_domains: list[str] = field(
        default_factory=lambda: list(DEFAULT_CONFIG["security"]["trusted_domains"])
    )
    require_https: bool = True
    max_payload_size: int = 100 * 1024 * 1024
    cache_dir: Path = field(default_factory=lambda: Path(DEFAULT_CONFIG["cache"]["directory"]))
    cache_ttl: float = 3600.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryConfig":
        """Create a RegistryConfig from a nested dictionary (e.g., parsed YAML)."""
        merged = deep_merge(copy.deepcopy(DEFAULT_CONFIG), data)
        policies = merged["policies"]
        security = merged["security"]
        cache = merged["cache"]

        return cls(
            urls=dict(merged["urls"]),
            timeout=float(policies["timeout"]),
            retry_attempts=max(int(policies["retry_attempts"]), 1),
            auto_sync=bool(policies["auto_sync"]),
            background_sync=bool(policies["background_sync"]),
            sync_interval=float(policies["sync_interval"]),
            trusted_domains=list(security["trusted_domains"]),
            require_https=bool(security["require_https"]),
            max_payload_size=int(security["max_payload_size"]),
            cache_dir=Path(cache["directory"]).expanduser(),
            cache_ttl=float(cache["ttl"]),
        )

    def default_url(self, environment: str | None = None) -> str:
        """Get the sync URL for the given (or active) environment."""
        environment = environment or active_environment()
        return self.urls.get(environment) or self.urls["development"]


def _read_config_file(path: Path) -> dict[str, Any] | None:
    """Read one config file, returning None when it is absent or unreadable."""
    if not path.is_file():
        return None

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return None

    if data is None:
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: top level must be a mapping")
        return None

    logger.debug(f"Loaded config from {path}")
    return data


def _first_config(directory: Path, names: tuple[str, ...]) -> dict[str, Any] | None:
    for name in names:
        data = _read_config_file(directory / name)
        if data is not None:
            return data
    return None


def _apply_file_config(
    data: dict[str, Any], file_config: dict[str, Any], directory: Path
) -> dict[str, Any]:
    """Merge one config file into ``data``, skipping it if a value has the wrong type."""
    candidate = deep_merge(copy.deepcopy(data), file_config)
    try:
        RegistryConfig.from_dict(candidate)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring config file in {directory}: invalid value ({e})")
        return data
    return candidate


def load_config(
    home_dir: str | Path | None = None,
    cwd: str | Path | None = None,
) -> RegistryConfig:
    """
    Load configuration from defaults, config files and the environment.

    Args:
        home_dir: Home directory to look in (defaults to the user's home).
                  The file is read from ``<home>/.config/``.
        cwd: Working directory to look in (defaults to the process cwd).

    Returns:
        The resolved RegistryConfig.
    """
    home_dir = Path(home_dir) if home_dir is not None else Path.home()
    cwd = Path(cwd) if cwd is not None else Path.cwd()

    data = copy.deepcopy(DEFAULT_CONFIG)

    for directory, names in ((home_dir / ".config", HOME_CONFIG_NAMES), (cwd, CWD_CONFIG_NAMES)):
        file_config = _first_config(directory, names)
        if file_config:
            data = _apply_file_config(data, file_config, directory)

    for var in SYNC_URL_ENV_VARS:
        env_url = os.environ.get(var)
        if env_url:
            data["urls"][active_environment()] = env_url
            break

    cache_dir = os.environ.get("PROMPT_REGISTRY_CACHE_DIR")
    if cache_dir:
        data["cache"]["directory"] = cache_dir

    return RegistryConfig.from_dict(data)
