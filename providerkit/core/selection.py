"""
Provider and model selection.

Combines the loaded config document, the active profile, and the CLI
flag overlay into a single `Selection`. Precedence, highest first:

1. `--oss` / `--local-provider` and `-m/--model`. A forced local provider
   uses `-m`, a `-c model=` override, or its own default model.
2. `-c key=value` overrides (applied to the raw document)
3. the active profile (`-p/--profile`, else the top-level `profile` key)
4. top-level `model`, `model_provider` and `oss_provider`
5. built-in defaults
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from providerkit.config import apply_overrides, parse_override, resolve_env_vars
from providerkit.logging import logger
from providerkit.models.base import (
    ConfigError,
    ModelProviderInfo,
    ModelProviderRegistry,
)
from providerkit.models.builtin import (
    DEFAULT_OSS_MODELS,
    OLLAMA_OSS_PROVIDER_ID,
    OPENAI_PROVIDER_ID,
    OSS_PROVIDER_IDS,
    build_provider_registry,
    check_oss_environment,
)

DEFAULT_MODEL = "gpt-5-codex"


@dataclass
class CliOverrides:
    """Values taken from command-line flags for a single invocation."""

    oss: bool = False
    local_provider: Optional[str] = None
    model: Optional[str] = None
    profile: Optional[str] = None
    config_overrides: List[str] = field(default_factory=list)


@dataclass
class Selection:
    provider_id: str
    provider: ModelProviderInfo
    model: str
    profile: Optional[str]
    registry: ModelProviderRegistry
    config: Dict[str, Any]
    overridden: FrozenSet[str] = frozenset()

    def setting(self, key: str, default: Any = None) -> Any:
        """Look up a key set by `-c`, then the active profile, then the top level."""
        if self.profile and key not in self.overridden:
            profile_cfg = self.config.get("profiles", {}).get(self.profile, {})
            if key in profile_cfg:
                return profile_cfg[key]
        return self.config.get(key, default)


def _string_key(table: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{where}{key} must be a non-empty string.")
    return value


def active_profile(cfg: Dict[str, Any], cli: CliOverrides) -> Optional[str]:
    name = cli.profile or _string_key(cfg, "profile", "")
    if name is None:
        return None
    profiles = cfg.get("profiles", {})
    if not isinstance(profiles, dict):
        raise ConfigError("profiles must be a table.")
    if name not in profiles:
        known = ", ".join(sorted(profiles)) or "(none)"
        raise ConfigError(f"Config profile '{name}' not found. Known profiles: {known}.")
    if not isinstance(profiles[name], dict):
        raise ConfigError(f"profiles.{name} must be a table.")
    return name


def effective_config(cfg: Dict[str, Any], cli: CliOverrides) -> Dict[str, Any]:
    """The config document with `-c` overrides and `${VAR}` references applied."""
    return resolve_env_vars(apply_overrides(cfg, cli.config_overrides))


def overridden_keys(cli: CliOverrides) -> FrozenSet[str]:
    """Top-level keys set directly by `-c`; these outrank the profile."""
    keys = set()
    for text in cli.config_overrides:
        path, _ = parse_override(text)
        if len(path) == 1:
            keys.add(path[0])
    return frozenset(keys)


def oss_forced(cli: CliOverrides) -> bool:
    return cli.oss or cli.local_provider is not None


def resolve_provider_id(
    cfg: Dict[str, Any],
    profile: Optional[str],
    cli: CliOverrides,
    overridden: FrozenSet[str] = frozenset(),
) -> str:
    if cli.local_provider is not None:
        if cli.local_provider not in OSS_PROVIDER_IDS:
            raise ConfigError(
                f"--local-provider must be one of {', '.join(OSS_PROVIDER_IDS)}, "
                f"got '{cli.local_provider}'."
            )
        return cli.local_provider

    if cli.oss:
        oss_provider = _string_key(cfg, "oss_provider", "")
        if oss_provider is None:
            return OLLAMA_OSS_PROVIDER_ID
        if oss_provider not in OSS_PROVIDER_IDS:
            raise ConfigError(
                f"oss_provider must be one of {', '.join(OSS_PROVIDER_IDS)}, "
                f"got '{oss_provider}'."
            )
        return oss_provider

    if "model_provider" in overridden:
        provider_id = _string_key(cfg, "model_provider", "")
        if provider_id:
            return provider_id

    if profile is not None:
        provider_id = _string_key(cfg["profiles"][profile], "model_provider", f"profiles.{profile}.")
        if provider_id:
            return provider_id

    return _string_key(cfg, "model_provider", "") or OPENAI_PROVIDER_ID


def resolve_model(
    cfg: Dict[str, Any],
    profile: Optional[str],
    provider_id: str,
    cli: CliOverrides,
    overridden: FrozenSet[str] = frozenset(),
) -> str:
    if cli.model:
        return cli.model
    if "model" in overridden:
        model = _string_key(cfg, "model", "")
        if model:
            return model
    # Configured models belong to the configured provider, not the local server.
    if oss_forced(cli):
        return DEFAULT_OSS_MODELS[provider_id]
    if profile is not None:
        model = _string_key(cfg["profiles"][profile], "model", f"profiles.{profile}.")
        if model:
            return model
    return _string_key(cfg, "model", "") or DEFAULT_MODEL


def resolve_selection(cfg: Dict[str, Any], cli: Optional[CliOverrides] = None) -> Selection:
    """
    Resolve the provider and model for one invocation.

    Raises:
        ConfigError: On malformed overrides, profiles, or provider entries,
            or a bad `CODEX_OSS_PORT` when a local provider is selected.
        ProviderNotFoundError: If the selected provider id is unknown.
    """
    if cli is None:
        cli = CliOverrides()
    cfg = effective_config(cfg, cli)
    overridden = overridden_keys(cli)
    profile = active_profile(cfg, cli)
    registry = build_provider_registry(cfg)
    provider_id = resolve_provider_id(cfg, profile, cli, overridden)
    provider = registry.get(provider_id)
    check_oss_environment(provider_id)
    model = resolve_model(cfg, profile, provider_id, cli, overridden)

    logger.debug(
        "Selected provider=%s model=%s profile=%s wire_api=%s",
        provider_id,
        model,
        profile,
        provider.wire_api.value,
    )
    return Selection(
        provider_id=provider_id,
        provider=provider,
        model=model,
        profile=profile,
        registry=registry,
        config=cfg,
        overridden=overridden,
    )
