"""Load and save export configuration files.

The file format is chosen by extension: ``.yaml``/``.yml``, ``.json`` or
``.toml``.  Anything else is tried as YAML, then JSON.
"""

import json
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from db_anonymiser.config.models import DumpConfig
from db_anonymiser.errors import ConfigurationError, OutputWriteError

YAML_SUFFIXES = (".yaml", ".yml")


def _parse_document(text: str, suffix: str) -> Any:
    if suffix in YAML_SUFFIXES:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"failed to parse YAML config: {e}") from e

    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"failed to parse JSON config: {e}") from e

    if suffix == ".toml":
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"failed to parse TOML config: {e}") from e

    # Unknown extension: YAML first, JSON second
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        pass
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            "failed to parse config: not valid YAML or JSON"
        ) from e


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def load_dump_config(config_path: str | Path) -> DumpConfig:
    """Load the export configuration from a file.

    Args:
        config_path: Path to a YAML, JSON or TOML config file.

    Returns:
        Validated ``DumpConfig``.

    Raises:
        ConfigurationError: If the file is missing, unparseable, or any
            connection, retain or column rule is invalid.

    Example:
        config = load_dump_config("dump.yaml")
        print(config.list_tables())
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"failed to read config file {path}: {e}") from e

    data = _parse_document(text, path.suffix.lower())
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"config file {path} must contain a mapping at the top level"
        )

    try:
        return DumpConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"invalid config {path}: {_format_validation_error(e)}"
        ) from e


def save_dump_config(config: DumpConfig, config_path: str | Path) -> None:
    """Write a configuration back to disk.

    ``.json`` files are written as JSON, everything else as YAML.  TOML
    files are read-only.

    Raises:
        ConfigurationError: If asked to write a ``.toml`` file.
        OutputWriteError: If the file cannot be written.
    """
    path = Path(config_path)
    suffix = path.suffix.lower()
    document = config.to_document()

    if suffix == ".toml":
        raise ConfigurationError(
            f"cannot write TOML config {path}; use a .yaml or .json file"
        )
    if suffix == ".json":
        text = json.dumps(document, indent=2) + "\n"
    else:
        text = yaml.safe_dump(
            document, sort_keys=False, default_flow_style=False, allow_unicode=True
        )

    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OutputWriteError(f"failed to write config file {path}: {e}") from e
