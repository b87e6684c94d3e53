"""Configuration loading."""

from pathlib import Path
from typing import Optional

import yaml

from .config_models import AppConfig

DEFAULT_CONFIG = AppConfig().to_dict()


def find_config() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / "config.yaml",
        Path.home() / ".decision-mirror" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def load_config_model(config_path: Optional[Path] = None) -> AppConfig:
    """Load configuration as Pydantic model with validation."""
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}") from e

    try:
        return AppConfig.from_dict(base_config)
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}") from e
