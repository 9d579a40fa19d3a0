"""Project configuration and site data for Lectern.

Key functions:
- load_config: Loads project configuration from lectern.yaml.
- load_data: Loads site data from YAML files in the data directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "lectern.yaml"

DEFAULT_CONFIG = {
    "site_dir": "site",
    "output_dir": "output",
    "articles_dir": "articles",
    "port": 4000,
    "root_url": "",
}


class ConfigError(Exception):
    """Raised when lectern.yaml or a data file cannot be read."""

    def __init__(self, source_path: Path, message: str):
        self.source_path = source_path
        self.message = message
        super().__init__(f"{source_path}: {message}")


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(path, f"invalid YAML: {exc}") from exc


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from lectern.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file exists but is not a YAML mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        loaded = _read_yaml(config_path) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(config_path, "expected a mapping of settings")
        config.update(loaded)
    return config


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    ``site.yaml`` is merged at the top level; every other file is stored
    under its stem (``nav.yaml`` becomes ``data.nav``).

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing merged data from all YAML files.
    """
    data_dir = project_root / "data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.glob("*.yaml")):
        payload = _read_yaml(path)
        if payload is None:
            continue
        if path.name == "site.yaml":
            if not isinstance(payload, dict):
                raise ConfigError(path, "expected a mapping of site values")
            data.update(payload)
        else:
            data[path.stem] = payload
    return data
