"""
Configuration loader for provider selection.

The configuration is stored in a TOML file (`config.toml` under the
home directory given by `CODEX_HOME`, or `~/.codex`). YAML files are
accepted as well. Credentials are not stored in the file; providers
name the environment variables that hold them.

This module also parses `-c key=value` overrides and applies them to
the loaded document before profiles and providers are resolved.
"""

import copy
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import yaml

from providerkit.logging import logger
from providerkit.models.base import ConfigError

CONFIG_FILENAME = "config.toml"

_ENV_REF = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def codex_home() -> Path:
    home = os.getenv("CODEX_HOME", "").strip()
    if home:
        return Path(home).expanduser()
    return Path.home() / ".codex"


def default_config_path() -> Path:
    return codex_home() / CONFIG_FILENAME


def load_app_config(path: str) -> Dict[str, Any]:
    """
    Load the application configuration from a TOML or YAML file.

    Args:
        path: Path to the configuration file. Files ending in `.yaml`
            or `.yml` are read as YAML, anything else as TOML.

    Returns:
        A dictionary representing the configuration.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the file cannot be parsed or the top-level
            configuration is not a mapping.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found at: {path}")

    suffix = Path(path).suffix.lower()
    if suffix in (".yaml", ".yml"):
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    else:
        with open(path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Top-level configuration must be a mapping/dictionary.")

    logger.debug("Loaded config from %s (%d top-level keys)", path, len(data))
    return data


def load_default_config() -> Dict[str, Any]:
    """Load the default config file, or an empty config if there is none."""
    path = default_config_path()
    if not path.exists():
        logger.debug("No config file at %s; using built-in defaults", path)
        return {}
    return load_app_config(str(path))


def parse_value(raw: str) -> Any:
    """
    Parse the value half of a `-c key=value` override.

    The text is read as a TOML value (`true`, `42`, `"str"`,
    `["a", "b"]`, `{ a = "b" }`). Anything that does not parse is
    taken as a literal string.
    """
    text = raw.strip()
    try:
        return tomllib.loads(f"_v = {text}")["_v"]
    except tomllib.TOMLDecodeError:
        return text


def parse_override(text: str) -> Tuple[List[str], Any]:
    """
    Split one `-c key=value` override into a key path and a value.

    Raises:
        ConfigError: If the override has no `=` or an empty key.
    """
    key, sep, raw = text.partition("=")
    if not sep:
        raise ConfigError(f"Invalid override (missing '='): {text!r}")
    parts = [part.strip() for part in key.strip().split(".")]
    if not parts or any(not part for part in parts):
        raise ConfigError(f"Invalid override key: {key!r}")
    return parts, parse_value(raw)


def apply_overrides(cfg: Dict[str, Any], overrides: Iterable[str]) -> Dict[str, Any]:
    """
    Apply `-c` overrides in order and return a new config dict.

    Intermediate tables are created as needed. The input is not
    modified.
    """
    result = copy.deepcopy(cfg)
    for text in overrides:
        path, value = parse_override(text)
        node = result
        for part in path[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"Cannot set {'.'.join(path)}: {part!r} is not a table."
                )
            node = child
        node[path[-1]] = value
        logger.debug("Override %s = %r", ".".join(path), value)
    return result


def resolve_env_vars(config: Any) -> Any:
    """
    Recursively resolve `${VAR}` string values from the environment.

    Raises:
        ConfigError: If a referenced variable is not set.
    """
    if isinstance(config, dict):
        return {key: resolve_env_vars(value) for key, value in config.items()}
    if isinstance(config, list):
        return [resolve_env_vars(item) for item in config]
    if isinstance(config, str):
        match = _ENV_REF.match(config)
        if match:
            var = match.group(1)
            value = os.getenv(var)
            if value is None:
                raise ConfigError(f"Environment variable {var} referenced in config is not set.")
            return value
    return config
