"""Local configuration loading (YAML)."""

import os
import logging
import urllib.parse
from importlib.resources import files
from pathlib import Path
from typing import Dict, Any, Optional

import yaml


CONFIG_ENV_VAR = "FIELD_VALIDATION_CONFIG"

DEFAULTS: Dict[str, Any] = {
    "schema_source": {"type": "directory", "location": "../schemas"},
    "registry": {"max_age_seconds": 0},
    "validation": {"strict_unknown_schema": False},
    "batch": {"max_workers": 1},
    "logging": {"level": "INFO"},
}


class ConfigLoader:
    """Loads local-config.yaml and exposes typed accessors."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config loader.

        Resolution order for the config file:
        1. config_path argument (plain path or file:// URI)
        2. FIELD_VALIDATION_CONFIG environment variable
        3. local-config.yaml bundled in the field_validation package

        Args:
            config_path: Optional path to a local-config.yaml

        Raises:
            FileNotFoundError: If an explicit config file does not exist
            ValueError: If the config is not a YAML mapping
        """
        config_path = config_path or os.environ.get(CONFIG_ENV_VAR)

        if config_path:
            parsed = urllib.parse.urlparse(config_path)
            if parsed.scheme == "file":
                config_path = urllib.parse.unquote(parsed.path)
            elif parsed.scheme and len(parsed.scheme) > 1:
                raise ValueError(f"Unsupported config URI scheme: {parsed.scheme}")
            self.local_config_path = str(Path(config_path).resolve())
        else:
            # Bundled config file shipped inside the package
            self.local_config_path = str(files("field_validation").joinpath("local-config.yaml"))

        self.local_config = self._load_yaml(self.local_config_path)

    def _load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML file from disk."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = dict(DEFAULTS.get(name, {}))
        section.update(self.local_config.get(name) or {})
        return section

    @property
    def config_dir(self) -> Path:
        """Directory relative paths in the config resolve against."""
        return Path(self.local_config_path).parent

    def get_schema_source_config(self) -> Dict[str, Any]:
        """Get the schema_source block (type, location / base_url, timeouts)."""
        return self._section("schema_source")

    def get_schema_max_age(self) -> float:
        """Max age of the schema cache in seconds before auto-refresh (0 disables)."""
        return float(self._section("registry").get("max_age_seconds") or 0)

    def get_strict_unknown_schema(self) -> bool:
        return bool(self._section("validation").get("strict_unknown_schema"))

    def get_batch_max_workers(self) -> int:
        """Worker threads for batch_validate (1 means sequential)."""
        workers = self._section("batch").get("max_workers")
        return max(1, int(workers or 1))

    def get_log_level(self) -> int:
        level = str(self._section("logging").get("level") or "INFO").upper()
        return logging.getLevelName(level) if isinstance(logging.getLevelName(level), int) else logging.INFO
