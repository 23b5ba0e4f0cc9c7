import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from megaverse.schemas import ReconcileSettings

SETTINGS_FILENAME = "megaverse.yml"


def find_settings_file() -> Optional[str]:
    """Find megaverse.yml in the current working directory or project root."""
    cwd = Path.cwd()
    project_root = Path(__file__).parent.parent.parent.parent

    for search_dir in [cwd, project_root]:
        potential_file = search_dir / SETTINGS_FILENAME
        if potential_file.exists():
            return str(potential_file)
    return None


def load_settings(settings_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> ReconcileSettings:
    """
    Load run settings from a YAML file and apply overrides on top.

    Args:
        settings_file: Path to a YAML settings file. If None, only defaults are used.
        overrides: Values that take precedence over the file (None values are ignored).

    Returns:
        Validated ReconcileSettings

    Example YAML format:
        concurrency: 5
        max_attempts: 3
        base_delay: 1.0
        min_interval: 0.2

    Raises:
        FileNotFoundError: If settings_file is given but does not exist.
        yaml.YAMLError: If the file is not a mapping.
        ValueError: If a value is out of range or a key is unknown.
    """
    data: Dict[str, Any] = {}
    if settings_file:
        if not os.path.exists(settings_file):
            raise FileNotFoundError(f"Settings file not found at {settings_file}")
        with open(settings_file, "r") as f:
            loaded = yaml.safe_load(f)
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise yaml.YAMLError(f"{settings_file} root should be a mapping of setting names to values.")
            data.update(loaded)

    if overrides:
        data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ReconcileSettings(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings: {e}") from e
