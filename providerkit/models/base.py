"""
Base types and registry for model providers.

Defines the provider configuration record read from the
`[model_providers.<id>]` tables of the config file, the error types
raised while resolving a provider, and a registry that maps provider
ids to records (built-in defaults plus user configuration).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Optional
from urllib.parse import urlencode, urlparse

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError, field_validator

from providerkit.logging import logger

DEFAULT_REQUEST_MAX_RETRIES = 4
DEFAULT_STREAM_MAX_RETRIES = 5
DEFAULT_STREAM_IDLE_TIMEOUT_MS = 300_000

# Upper bounds applied to user-configured retry counts.
MAX_REQUEST_MAX_RETRIES = 100
MAX_STREAM_MAX_RETRIES = 100

OPENAI_API_KEY_ENV = "OPENAI_API_KEY"


@dataclass
class ChatResponse:
    """
    Normalized chat response returned by providers.

    The text attribute contains the plain response text. The raw
    attribute contains provider-specific response data for debugging
    or advanced use.
    """

    text: str
    raw: Any


class ProviderError(Exception):
    """Raised when a provider cannot be resolved or fails a request."""


class ConfigError(ProviderError):
    """Raised when configuration values are malformed."""


class ProviderNotFoundError(ProviderError):
    """Raised when the selected provider id is not in the registry."""

    def __init__(self, provider_id: str, known: List[str]) -> None:
        self.provider_id = provider_id
        self.known = sorted(known)
        super().__init__(
            f"Model provider '{provider_id}' not found. "
            f"Known providers: {', '.join(self.known) or '(none)'}."
        )


class EnvVarError(ProviderError):
    """Raised when a credential environment variable is missing or empty."""

    def __init__(self, var: str, instructions: Optional[str] = None) -> None:
        self.var = var
        self.instructions = instructions
        message = f"Missing environment variable: `{var}`."
        if instructions:
            message += f" {instructions}"
        super().__init__(message)


class WireApiMismatchError(ProviderError):
    """Raised when the endpoint rejects the configured wire protocol."""

    def __init__(self, provider_id: str, wire_api: "WireApi", url: str) -> None:
        self.provider_id = provider_id
        self.wire_api = wire_api
        self.url = url
        other = wire_api.other()
        super().__init__(
            f"Provider '{provider_id}' returned 404 for {url}. The endpoint may not "
            f"support wire_api = \"{wire_api.value}\"; try wire_api = \"{other.value}\"."
        )


class WireApi(str, Enum):
    """Request/response protocol flavor a provider expects."""

    CHAT = "chat"
    RESPONSES = "responses"

    @property
    def path(self) -> str:
        return "/chat/completions" if self is WireApi.CHAT else "/responses"

    def other(self) -> "WireApi":
        return WireApi.RESPONSES if self is WireApi.CHAT else WireApi.CHAT


StrictNonNegativeInt = Annotated[int, Field(ge=0, strict=True)]
StringMap = Optional[Dict[StrictStr, StrictStr]]

_SECRET_FIELDS = ("experimental_bearer_token",)


def _env(var: str) -> Optional[str]:
    value = os.getenv(var)
    if value is None or not value.strip():
        return None
    return value


def _format_validation_error(provider_id: str, exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        path = ".".join(["model_providers", provider_id, *(str(part) for part in error["loc"])])
        if error["type"] == "missing":
            problems.append(f"{path} is required")
        elif error["type"] == "extra_forbidden":
            problems.append(f"{path}: unknown key")
        else:
            problems.append(f"{path}: {error['msg']}")
    return "; ".join(problems) + "."


class ModelProviderInfo(BaseModel):
    """
    Connection settings for one OpenAI-compatible endpoint.

    Every field except `name` and `base_url` is optional; omitted
    values take the documented defaults.
    """

    model_config = ConfigDict(extra="forbid")

    name: StrictStr = Field(min_length=1)
    base_url: StrictStr
    env_key: Optional[StrictStr] = None
    env_key_instructions: Optional[StrictStr] = None
    experimental_bearer_token: Optional[StrictStr] = None
    requires_openai_auth: StrictBool = False
    wire_api: WireApi = WireApi.CHAT
    query_params: StringMap = None
    http_headers: StringMap = None
    env_http_headers: StringMap = None
    request_max_retries: StrictNonNegativeInt = DEFAULT_REQUEST_MAX_RETRIES
    stream_max_retries: StrictNonNegativeInt = DEFAULT_STREAM_MAX_RETRIES
    stream_idle_timeout_ms: StrictNonNegativeInt = DEFAULT_STREAM_IDLE_TIMEOUT_MS

    @field_validator("base_url")
    @classmethod
    def check_base_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            msg = f"must be an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v

    @classmethod
    def from_config(cls, provider_id: str, cfg: Dict[str, Any]) -> "ModelProviderInfo":
        """
        Build a record from one `[model_providers.<id>]` table.

        Raises:
            ConfigError: On unknown keys, missing required keys, or
                values of the wrong type.
        """
        if not isinstance(cfg, dict):
            raise ConfigError(f"model_providers.{provider_id} must be a table.")
        try:
            return cls.model_validate(cfg)
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(provider_id, exc)) from exc

    def api_key(self) -> Optional[str]:
        """
        Resolve the credential for this provider.

        Order: `experimental_bearer_token`, then the variable named by
        `env_key`, then `OPENAI_API_KEY` when `requires_openai_auth` is
        set. Providers with none of these need no key.

        Raises:
            EnvVarError: If a required variable is unset or blank.
        """
        if self.experimental_bearer_token:
            return self.experimental_bearer_token
        if self.env_key:
            value = _env(self.env_key)
            if value is None:
                raise EnvVarError(self.env_key, self.env_key_instructions)
            return value
        if self.requires_openai_auth:
            value = _env(OPENAI_API_KEY_ENV)
            if value is None:
                raise EnvVarError(
                    OPENAI_API_KEY_ENV,
                    self.env_key_instructions
                    or "Create an API key at https://platform.openai.com/api-keys and export it.",
                )
            return value
        return None

    def effective_headers(self) -> Dict[str, str]:
        """Static headers plus env-sourced headers whose variable is set."""
        headers: Dict[str, str] = dict(self.http_headers or {})
        for header, var in (self.env_http_headers or {}).items():
            value = _env(var)
            if value is not None:
                headers[header] = value
            else:
                logger.debug("Skipping header %s: %s is not set", header, var)
        return headers

    def request_url(self, path: Optional[str] = None) -> str:
        """Full endpoint URL for the configured wire API, with query params."""
        if path is None:
            path = self.wire_api.path
        url = self.base_url.rstrip("/") + "/" + path.lstrip("/")
        if self.query_params:
            url += "?" + urlencode(self.query_params)
        return url

    def request_retries(self) -> int:
        return min(self.request_max_retries, MAX_REQUEST_MAX_RETRIES)

    def stream_retries(self) -> int:
        return min(self.stream_max_retries, MAX_STREAM_MAX_RETRIES)

    def stream_idle_timeout(self) -> float:
        """Idle timeout for streamed responses, in seconds."""
        return self.stream_idle_timeout_ms / 1000.0

    def redacted(self) -> Dict[str, Any]:
        """Plain dict of the record with secrets masked and unset fields dropped."""
        data = self.model_dump(mode="json", exclude_none=True)
        for key in _SECRET_FIELDS:
            if data.get(key):
                data[key] = "****"
        return data


@dataclass
class ModelProviderRegistry:
    """
    ModelProviderRegistry keeps track of provider records by id.

    Built-in providers are registered first. User entries never replace
    a built-in id.
    """

    providers: Dict[str, ModelProviderInfo] = field(default_factory=dict)
    builtin_ids: List[str] = field(default_factory=list)

    def register_builtin(self, provider_id: str, info: ModelProviderInfo) -> None:
        self.providers[provider_id] = info
        if provider_id not in self.builtin_ids:
            self.builtin_ids.append(provider_id)

    def register_provider(self, provider_id: str, info: ModelProviderInfo) -> None:
        if provider_id in self.builtin_ids:
            logger.warning(
                "Ignoring model_providers.%s: built-in providers cannot be redefined",
                provider_id,
            )
            return
        self.providers[provider_id] = info

    def get(self, provider_id: str) -> ModelProviderInfo:
        info = self.providers.get(provider_id)
        if info is None:
            raise ProviderNotFoundError(provider_id, list(self.providers))
        return info

    def ids(self) -> List[str]:
        return list(self.providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self.providers

    def __iter__(self) -> Iterator[str]:
        return iter(self.providers)

    def __len__(self) -> int:
        return len(self.providers)
