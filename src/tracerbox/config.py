"""Configuration for tracerbox.

Settings are read from the ``[tool.tracerbox]`` section of ``pyproject.toml``
in the current directory, with environment overrides:

    [tool.tracerbox]
    data_dir = "~/data/circulations"
    default_type_name = "Parameters"

``TRACERBOX_DATA_DIR`` overrides ``data_dir``.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

DATA_DIR_ENV = "TRACERBOX_DATA_DIR"
DEFAULT_DATA_DIR = Path("~/.cache/tracerbox")
DEFAULT_TYPE_NAME = "Parameters"

_KNOWN_KEYS = {"data_dir", "default_type_name"}


@dataclass(frozen=True)
class Settings:
    """Resolved tracerbox settings.

    Attributes:
        data_dir: Where downloaded circulation archives are cached
        default_type_name: Name used by the CLI for generated Parameters types
    """
    data_dir: Path = DEFAULT_DATA_DIR.expanduser()
    default_type_name: str = DEFAULT_TYPE_NAME


def read_pyproject(root: Optional[Path] = None) -> Dict[str, Any]:
    """Read the ``[tool.tracerbox]`` section of pyproject.toml.

    Returns:
        The section, or an empty dict if the file or section is missing

    Raises:
        tomllib.TOMLDecodeError: If TOML is malformed
    """
    pyproject_path = (root or Path.cwd()) / "pyproject.toml"
    if not pyproject_path.exists():
        return {}

    with open(pyproject_path, "rb") as f:
        data = tomllib.load(f)

    return data.get("tool", {}).get("tracerbox", {})


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate a ``[tool.tracerbox]`` section.

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    unknown = sorted(set(config) - _KNOWN_KEYS)
    if unknown:
        errors.append(f"Unknown keys: {', '.join(unknown)}")

    if "data_dir" in config and not isinstance(config["data_dir"], str):
        errors.append("data_dir must be a string path")

    name = config.get("default_type_name", DEFAULT_TYPE_NAME)
    if not isinstance(name, str) or not name.isidentifier():
        errors.append(f"default_type_name must be a valid identifier, got: {name!r}")

    return errors


def load_settings(root: Optional[Path] = None) -> Settings:
    """Resolve settings from pyproject.toml and the environment.

    Raises:
        ValueError: If the configuration is invalid
    """
    config = read_pyproject(root)
    errors = validate_config(config)
    if errors:
        raise ValueError(f"Invalid [tool.tracerbox] configuration: {'; '.join(errors)}")

    data_dir = os.environ.get(DATA_DIR_ENV) or config.get("data_dir") or str(DEFAULT_DATA_DIR)
    return Settings(
        data_dir=Path(data_dir).expanduser(),
        default_type_name=config.get("default_type_name", DEFAULT_TYPE_NAME),
    )
