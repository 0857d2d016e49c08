"""
Configuration loader for app_publish.

Settings come from one YAML or JSON document plus ``APP_PUBLISH_*``
environment variables; the environment wins over the file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .models import PublishConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "APP_PUBLISH_"

# Environment variable suffix -> location in the config document
ENV_VARS: Dict[str, Tuple[str, ...]] = {
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FILE": ("logging", "file_path"),
    "MAX_RETRIES": ("retry", "max_retries"),
    "BASE_DELAY": ("retry", "base_delay"),
    "CREDENTIALS_DIR": ("credentials_dir",),
    "REQUEST_TIMEOUT": ("request_timeout",),
}

YAML_SUFFIXES = (".yaml", ".yml")


def default_config_paths() -> List[Path]:
    """Locations searched when no config file is named, in order."""
    user_dir = Path.home() / ".app_publish"
    return [
        Path("app_publish.yaml"),
        Path("app_publish.yml"),
        Path("app_publish.json"),
        user_dir / "config.yaml",
        user_dir / "config.yml",
        user_dir / "config.json",
    ]


class ConfigLoader:
    """Builds a PublishConfig from a config file and the environment."""

    def __init__(self, env_prefix: str = ENV_PREFIX) -> None:
        self.config_paths = default_config_paths()
        self.env_prefix = env_prefix

    def load_config(
        self,
        config_file: Optional[Union[str, Path]] = None,
        search: bool = True,
    ) -> PublishConfig:
        """
        Load the publishing configuration.

        Args:
            config_file: Explicit config file; must exist when given
            search: Look in the default locations when no file is named

        Returns:
            Validated configuration

        Raises:
            ValueError: If the file is missing, unreadable or not a mapping
        """
        document = self._read_document(config_file, search) or {}
        overrides = self._environment_overrides()
        if overrides:
            document = self._merge(document, overrides)
        return PublishConfig(**document)

    def _read_document(
        self, config_file: Optional[Union[str, Path]], search: bool
    ) -> Optional[Dict[str, Any]]:
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise ValueError(f"Config file not found: {path}")
            return self._parse(path)

        if not search:
            return None
        path = next((p for p in self.config_paths if p.exists()), None)
        if path is None:
            return None
        logger.debug("Using config file %s", path)
        return self._parse(path)

    def _parse(self, path: Path) -> Dict[str, Any]:
        suffix = path.suffix.lower()
        if suffix != ".json" and suffix not in YAML_SUFFIXES:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        try:
            text = path.read_text(encoding="utf-8")
            data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return data

    def _environment_overrides(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        for suffix, location in ENV_VARS.items():
            raw = os.getenv(f"{self.env_prefix}{suffix}")
            if raw is None:
                continue
            section = overrides
            for key in location[:-1]:
                section = section.setdefault(key, {})
            section[location[-1]] = raw.upper() if suffix == "LOG_LEVEL" else _coerce(raw)
        return overrides

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(base)
        for key, value in override.items():
            if isinstance(merged.get(key), dict) and isinstance(value, dict):
                merged[key] = self._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def save_config(self, config: PublishConfig, config_file: Union[str, Path]) -> None:
        """Write ``config`` as YAML or JSON, chosen by the file suffix."""
        path = Path(config_file)
        suffix = path.suffix.lower()
        if suffix != ".json" and suffix not in YAML_SUFFIXES:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        document = config.model_dump(mode="json", exclude_none=True)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            if suffix == ".json":
                json.dump(document, f, indent=2)
            else:
                yaml.safe_dump(document, f, default_flow_style=False, indent=2)


def _coerce(value: str) -> Any:
    """Numbers from the environment become int or float; the rest stays text."""
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value
