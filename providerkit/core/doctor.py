"""
Troubleshooting checks for provider configuration.

`diagnose` runs the static checks (unknown provider, missing API key,
wire API mismatch, malformed config) without touching the network.
`probe` optionally contacts the provider's `/models` endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from providerkit.core.selection import CliOverrides, Selection, resolve_selection
from providerkit.logging import logger
from providerkit.models.base import (
    ConfigError,
    EnvVarError,
    ProviderNotFoundError,
    WireApi,
)

ERROR = "error"
WARNING = "warning"
OK = "ok"

PROBE_TIMEOUT = 10

OPENAI_API_HOST = "api.openai.com"


@dataclass
class Finding:
    severity: str
    code: str
    message: str
    hint: Optional[str] = None

    def render(self) -> str:
        line = f"[{self.severity}] {self.code}: {self.message}"
        if self.hint:
            line += f"\n    hint: {self.hint}"
        return line


def has_errors(findings: List[Finding]) -> bool:
    return any(finding.severity == ERROR for finding in findings)


def _check_credentials(selection: Selection) -> List[Finding]:
    try:
        selection.provider.api_key()
    except EnvVarError as exc:
        hint = exc.instructions or f"export {exc.var}=<your key> before running."
        return [
            Finding(
                ERROR,
                "missing-api-key",
                f"Provider '{selection.provider_id}' needs `{exc.var}`, which is not set.",
                hint,
            )
        ]
    return []


def _check_wire_api(selection: Selection) -> List[Finding]:
    findings: List[Finding] = []
    info = selection.provider
    parsed = urlparse(info.base_url)
    path = parsed.path.rstrip("/")

    for wire in WireApi:
        if path.endswith(wire.path):
            findings.append(
                Finding(
                    ERROR,
                    "wire-api-mismatch",
                    f"base_url {info.base_url} already ends in {wire.path}; requests "
                    f"would go to {info.request_url()}.",
                    "Set base_url to the API root (usually ending in /v1) and choose "
                    f"the protocol with wire_api = \"{wire.value}\".",
                )
            )

    host = parsed.hostname or ""
    if host == OPENAI_API_HOST and info.wire_api is WireApi.CHAT:
        findings.append(
            Finding(
                WARNING,
                "wire-api-mismatch",
                f"Provider '{selection.provider_id}' targets the OpenAI API with "
                'wire_api = "chat"; the built-in openai provider uses "responses".',
                'Set wire_api = "responses", or select the built-in openai provider.',
            )
        )
    if host.endswith("openai.azure.com"):
        if "api-version" not in (info.query_params or {}):
            findings.append(
                Finding(
                    WARNING,
                    "wire-api-mismatch",
                    f"Azure endpoint {info.base_url} has no api-version query parameter.",
                    'Add query_params = { api-version = "2025-04-01-preview" }.',
                )
            )
        if info.wire_api is WireApi.CHAT:
            findings.append(
                Finding(
                    WARNING,
                    "wire-api-mismatch",
                    "Azure OpenAI deployments of newer models only serve the Responses API.",
                    'Set wire_api = "responses" for this provider.',
                )
            )
    return findings


def diagnose(cfg: Dict[str, Any], cli: Optional[CliOverrides] = None) -> List[Finding]:
    """Run every static check and return the findings."""
    try:
        selection = resolve_selection(cfg, cli)
    except ProviderNotFoundError as exc:
        return [
            Finding(
                ERROR,
                "provider-not-found",
                str(exc),
                f"Add a [model_providers.{exc.provider_id}] table with name and "
                "base_url, or select one of the known providers.",
            )
        ]
    except ConfigError as exc:
        return [Finding(ERROR, "invalid-config", str(exc))]

    findings = _check_credentials(selection) + _check_wire_api(selection)
    if not findings:
        findings.append(
            Finding(
                OK,
                "ok",
                f"Provider '{selection.provider_id}' ({selection.provider.name}) "
                f"with model '{selection.model}' looks correctly configured.",
            )
        )
    return findings


def probe(selection: Selection, session: Optional[requests.Session] = None) -> Finding:
    """
    Check that the provider answers `GET {base_url}/models`.

    Credentials are sent when they resolve; a missing key is reported
    by `diagnose`, so the probe goes ahead without one.
    """
    info = selection.provider
    url = info.base_url.rstrip("/") + "/models"
    headers = info.effective_headers()
    try:
        api_key = info.api_key()
    except EnvVarError:
        api_key = None
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    http = session or requests.Session()
    logger.debug("Probing %s", url)
    try:
        resp = http.get(url, headers=headers, params=info.query_params, timeout=PROBE_TIMEOUT)
    except requests.RequestException as exc:
        return Finding(
            ERROR,
            "unreachable",
            f"Could not reach {url}: {exc}",
            "Check base_url, and that the local server is running for OSS providers.",
        )

    if resp.status_code in (401, 403):
        return Finding(
            ERROR,
            "missing-api-key",
            f"{url} rejected the credentials (HTTP {resp.status_code}).",
        )
    if resp.status_code == 404:
        return Finding(
            WARNING,
            "no-models-endpoint",
            f"{url} returned 404; the server may not list models.",
        )
    if resp.status_code >= 400:
        return Finding(ERROR, "http-error", f"{url} returned HTTP {resp.status_code}.")
    return Finding(OK, "reachable", f"{url} answered HTTP {resp.status_code}.")
