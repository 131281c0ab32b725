"""
Configuration loading.

Precedence, lowest to highest:
    1. SousConfig defaults
    2. ``<home>/config.yaml``
    3. SOUS_* environment variables
    4. explicit CLI options (applied by the caller)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from . import SOUS_HOME
from .models import SousConfig

logger = logging.getLogger("sous.config")

CONFIG_FILENAME = "config.yaml"

ENV_OVERRIDES = {
    "SOUS_GIT_URL": "git_url",
    "SOUS_GIT_BRANCH": "git_branch",
    "SOUS_PACKAGE_NAME": "package_name",
}


def load_config(home: Optional[Path] = None) -> SousConfig:
    """Load sous configuration.

    Args:
        home: Override cache root. Defaults to SOUS_HOME or ~/.sous.

    Returns:
        SousConfig with file and environment values applied. An invalid
        config file is logged and ignored.
    """
    home_path = Path(home or os.environ.get("SOUS_HOME") or SOUS_HOME).expanduser()
    data: dict = {}

    config_file = home_path / CONFIG_FILENAME
    if config_file.exists():
        try:
            loaded = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            if not isinstance(loaded, dict):
                raise ValueError("top level must be a mapping")
            data.update(loaded)
        except (yaml.YAMLError, ValueError) as exc:
            logger.warning("Failed to load %s: %s, using defaults", config_file, exc)

    for env_var, field in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[field] = value

    data["home"] = home_path
    try:
        return SousConfig(**data)
    except ValueError as exc:
        logger.warning("Invalid configuration in %s: %s, using defaults", config_file, exc)
        return SousConfig(
            home=home_path,
            **{f: data[f] for f in ENV_OVERRIDES.values() if f in data},
        )
