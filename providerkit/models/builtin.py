"""
Built-in model providers.

The registry always contains `openai` plus the two local OSS servers
(`ollama` and `lmstudio`). Their endpoints are retargeted through
environment variables rather than config entries:

    OPENAI_BASE_URL       replaces the OpenAI base URL
    OPENAI_ORGANIZATION   sent as the OpenAI-Organization header
    OPENAI_PROJECT        sent as the OpenAI-Project header
    CODEX_OSS_BASE_URL    replaces the local server base URL
    CODEX_OSS_PORT        replaces the local server port
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

from providerkit import __version__
from providerkit.logging import logger
from providerkit.models.base import (
    ConfigError,
    ModelProviderInfo,
    ModelProviderRegistry,
    WireApi,
)

OPENAI_PROVIDER_ID = "openai"
OLLAMA_OSS_PROVIDER_ID = "ollama"
LMSTUDIO_OSS_PROVIDER_ID = "lmstudio"

OSS_PROVIDER_IDS = (OLLAMA_OSS_PROVIDER_ID, LMSTUDIO_OSS_PROVIDER_ID)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OLLAMA_PORT = 11434
DEFAULT_LMSTUDIO_PORT = 1234

OSS_DEFAULT_PORTS = {
    OLLAMA_OSS_PROVIDER_ID: DEFAULT_OLLAMA_PORT,
    LMSTUDIO_OSS_PROVIDER_ID: DEFAULT_LMSTUDIO_PORT,
}

DEFAULT_OSS_MODELS = {
    OLLAMA_OSS_PROVIDER_ID: "gpt-oss:20b",
    LMSTUDIO_OSS_PROVIDER_ID: "openai/gpt-oss-20b",
}


def _nonempty_env(var: str) -> Optional[str]:
    value = os.getenv(var, "").strip()
    return value or None


def create_openai_provider() -> ModelProviderInfo:
    return ModelProviderInfo.from_config(
        OPENAI_PROVIDER_ID,
        {
            "name": "OpenAI",
            "base_url": _nonempty_env("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
            "wire_api": WireApi.RESPONSES,
            "requires_openai_auth": True,
            "http_headers": {"version": __version__},
            "env_http_headers": {
                "OpenAI-Organization": "OPENAI_ORGANIZATION",
                "OpenAI-Project": "OPENAI_PROJECT",
            },
        },
    )


def oss_base_url(default_port: int) -> str:
    """
    Base URL of a local OSS server.

    `CODEX_OSS_BASE_URL` wins outright; otherwise `CODEX_OSS_PORT` (or
    the server's default port) is used on localhost.

    Raises:
        ConfigError: If `CODEX_OSS_PORT` is not a valid port number.
    """
    base_url = _nonempty_env("CODEX_OSS_BASE_URL")
    if base_url:
        return base_url

    port: Any = _nonempty_env("CODEX_OSS_PORT")
    if port is None:
        port = default_port
    else:
        try:
            port = int(port)
        except ValueError:
            raise ConfigError(f"CODEX_OSS_PORT must be an integer, got {port!r}.") from None
        if not 0 < port < 65536:
            raise ConfigError(f"CODEX_OSS_PORT out of range: {port}.")
    return f"http://localhost:{port}/v1"


def check_oss_environment(provider_id: str) -> None:
    """
    Validate the `CODEX_OSS_*` variables for a selected OSS provider.

    The registry tolerates a bad port so that other providers stay
    usable; selecting an OSS provider surfaces the error.
    """
    if provider_id in OSS_DEFAULT_PORTS:
        oss_base_url(OSS_DEFAULT_PORTS[provider_id])


def create_oss_provider(provider_id: str, name: str) -> ModelProviderInfo:
    default_port = OSS_DEFAULT_PORTS[provider_id]
    try:
        base_url = oss_base_url(default_port)
    except ConfigError as exc:
        logger.warning("%s Using port %d for %s.", exc, default_port, provider_id)
        base_url = f"http://localhost:{default_port}/v1"
    return ModelProviderInfo.from_config(
        provider_id,
        {"name": name, "base_url": base_url, "wire_api": WireApi.CHAT},
    )


def builtin_providers() -> Dict[str, ModelProviderInfo]:
    """Built-in provider records, read from the current environment."""
    return {
        OPENAI_PROVIDER_ID: create_openai_provider(),
        OLLAMA_OSS_PROVIDER_ID: create_oss_provider(OLLAMA_OSS_PROVIDER_ID, "gpt-oss"),
        LMSTUDIO_OSS_PROVIDER_ID: create_oss_provider(LMSTUDIO_OSS_PROVIDER_ID, "LM Studio"),
    }


def build_provider_registry(cfg: Dict[str, Any]) -> ModelProviderRegistry:
    """
    Build the registry from built-ins plus the `model_providers` table.

    Raises:
        ConfigError: If `model_providers` is not a table or an entry
            is malformed.
    """
    registry = ModelProviderRegistry()
    for provider_id, info in builtin_providers().items():
        registry.register_builtin(provider_id, info)

    providers_cfg = cfg.get("model_providers", {})
    if not isinstance(providers_cfg, dict):
        raise ConfigError("model_providers must be a table.")

    for provider_id, provider_cfg in providers_cfg.items():
        registry.register_provider(
            provider_id, ModelProviderInfo.from_config(provider_id, provider_cfg)
        )
    return registry
