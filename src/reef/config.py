"""
Interpreter configuration.

Settings come from, in increasing priority: built-in defaults, an optional
YAML file, and REEF_* environment variables.

Example reef.yaml:

    max_call_depth: 500
    show_source: true
    prompt: "reef> "
    echo_expressions: true
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml


DEFAULT_MAX_CALL_DEPTH = 200

# The interpreter reserves host stack in proportion to the call depth
MAX_CALL_DEPTH_LIMIT = 2000

CONFIG_FILENAME = "reef.yaml"
ENV_PREFIX = "REEF_"


class ConfigError(ValueError):
    """Invalid configuration file or environment override."""


@dataclass(frozen=True)
class InterpreterConfig:
    """Settings shared by the interpreter and the command-line driver."""
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
    show_source: bool = True
    prompt: str = "> "
    echo_expressions: bool = True

    def __post_init__(self):
        if not 1 <= self.max_call_depth <= MAX_CALL_DEPTH_LIMIT:
            raise ConfigError(
                f"max_call_depth must be between 1 and {MAX_CALL_DEPTH_LIMIT}, "
                f"got {self.max_call_depth}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "InterpreterConfig":
        """Build a config from a mapping, coercing and validating each value."""
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"unknown configuration key(s): {', '.join(unknown)}")
        values = {name: _coerce(name, known[name].type, raw) for name, raw in data.items()}
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "InterpreterConfig":
        """Return a copy with the given (non-None) fields replaced."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def _coerce(name: str, type_name: Any, raw: Any) -> Any:
    """Coerce a YAML or environment value to the field's declared type."""
    type_name = getattr(type_name, "__name__", type_name)
    if type_name == "bool":
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(raw, str) and raw.strip().lower() in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{name}: expected a boolean, got {raw!r}")
    if type_name == "int":
        if isinstance(raw, bool):
            raise ConfigError(f"{name}: expected an integer, got {raw!r}")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"{name}: expected an integer, got {raw!r}")
    if type_name == "str":
        if not isinstance(raw, str):
            raise ConfigError(f"{name}: expected a string, got {raw!r}")
        return raw
    return raw


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")
    return data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides = {}
    for f in fields(InterpreterConfig):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            overrides[f.name] = environ[key]
    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InterpreterConfig:
    """
    Load configuration.

    Args:
        path: YAML file to read. If omitted, ./reef.yaml is used when present.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        InterpreterConfig

    Raises:
        ConfigError: On a missing explicit file, bad YAML, unknown keys or
            values of the wrong type
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"configuration file not found: {path}")
        data.update(_load_yaml(path))
    elif Path(CONFIG_FILENAME).is_file():
        data.update(_load_yaml(Path(CONFIG_FILENAME)))

    data.update(_env_overrides(environ))
    return InterpreterConfig.from_mapping(data)
