"""Tests for troubleshooting diagnostics."""

from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from providerkit.core.doctor import ERROR, OK, WARNING, diagnose, has_errors, probe
from providerkit.core.selection import CliOverrides, resolve_selection


def provider_config(**fields: Any) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": "Custom", "base_url": "https://llm.example.com/v1"}
    entry.update(fields)
    return {"model_provider": "custom", "model_providers": {"custom": entry}}


def codes(findings: list) -> list[str]:
    return [finding.code for finding in findings]


class TestDiagnose:
    def test_healthy_config(self) -> None:
        findings = diagnose(provider_config())

        assert codes(findings) == ["ok"]
        assert not has_errors(findings)

    def test_provider_not_found(self) -> None:
        findings = diagnose({"model_provider": "nope"})

        assert codes(findings) == ["provider-not-found"]
        assert findings[0].severity == ERROR
        assert "[model_providers.nope]" in findings[0].hint

    def test_invalid_config(self) -> None:
        findings = diagnose(provider_config(wire_api="soap"))
        assert codes(findings) == ["invalid-config"]

    def test_missing_api_key_shows_instructions(self) -> None:
        findings = diagnose(provider_config(env_key="CUSTOM_API_KEY", env_key_instructions="Ask your admin."))

        assert codes(findings) == ["missing-api-key"]
        assert findings[0].hint == "Ask your admin."

    def test_missing_openai_key(self) -> None:
        findings = diagnose({})

        assert codes(findings) == ["missing-api-key"]
        assert "OPENAI_API_KEY" in findings[0].message

    def test_present_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert codes(diagnose({})) == ["ok"]

    @pytest.mark.parametrize("suffix", ["/chat/completions", "/responses/"])
    def test_endpoint_in_base_url(self, suffix: str) -> None:
        findings = diagnose(provider_config(base_url="https://llm.example.com/v1" + suffix))

        assert codes(findings) == ["wire-api-mismatch"]
        assert findings[0].severity == ERROR

    def test_azure_needs_api_version_and_responses(self) -> None:
        findings = diagnose(provider_config(base_url="https://proj.openai.azure.com/openai"))

        assert codes(findings) == ["wire-api-mismatch", "wire-api-mismatch"]
        assert all(finding.severity == WARNING for finding in findings)

    def test_openai_host_with_chat_wire_api(self) -> None:
        findings = diagnose(provider_config(base_url="https://api.openai.com/v1"))

        assert codes(findings) == ["wire-api-mismatch"]
        assert findings[0].severity == WARNING
        assert not has_errors(findings)

    def test_openai_host_with_responses_wire_api(self) -> None:
        findings = diagnose(provider_config(base_url="https://api.openai.com/v1", wire_api="responses"))
        assert codes(findings) == ["ok"]

    def test_bad_oss_port_does_not_affect_openai(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEX_OSS_PORT", "abc")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        assert codes(diagnose({})) == ["ok"]
        assert codes(diagnose({}, CliOverrides(oss=True))) == ["invalid-config"]

    def test_azure_configured_correctly(self) -> None:
        findings = diagnose(
            provider_config(
                base_url="https://proj.openai.azure.com/openai",
                wire_api="responses",
                query_params={"api-version": "2025-04-01-preview"},
            )
        )
        assert codes(findings) == ["ok"]

    def test_cli_overrides_are_applied(self) -> None:
        findings = diagnose({}, CliOverrides(oss=True))
        assert codes(findings) == ["ok"]

    def test_render(self) -> None:
        finding = diagnose({"model_provider": "nope"})[0]
        assert finding.render().startswith("[error] provider-not-found:")
        assert "\n    hint: " in finding.render()


class TestProbe:
    def _session(self, status: int = 200, exc: Exception | None = None) -> MagicMock:
        session = MagicMock(spec=requests.Session)
        if exc is not None:
            session.get.side_effect = exc
        else:
            session.get.return_value = MagicMock(status_code=status)
        return session

    def test_sends_headers_and_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CUSTOM_API_KEY", "sk-custom")
        selection = resolve_selection(
            provider_config(
                env_key="CUSTOM_API_KEY",
                http_headers={"X-Team": "core"},
                query_params={"api-version": "1"},
            )
        )
        session = self._session()

        finding = probe(selection, session=session)

        assert finding.severity == OK
        session.get.assert_called_once()
        args, kwargs = session.get.call_args
        assert args[0] == "https://llm.example.com/v1/models"
        assert kwargs["headers"] == {"X-Team": "core", "Authorization": "Bearer sk-custom"}
        assert kwargs["params"] == {"api-version": "1"}

    def test_no_key_still_probes(self) -> None:
        selection = resolve_selection(provider_config(env_key="CUSTOM_API_KEY"))
        session = self._session()

        probe(selection, session=session)

        assert "Authorization" not in session.get.call_args.kwargs["headers"]

    @pytest.mark.parametrize(
        ("status", "severity", "code"),
        [
            (401, ERROR, "missing-api-key"),
            (403, ERROR, "missing-api-key"),
            (404, WARNING, "no-models-endpoint"),
            (500, ERROR, "http-error"),
        ],
    )
    def test_status_mapping(self, status: int, severity: str, code: str) -> None:
        finding = probe(resolve_selection(provider_config()), session=self._session(status))
        assert (finding.severity, finding.code) == (severity, code)

    def test_unreachable(self) -> None:
        session = self._session(exc=requests.ConnectionError("refused"))
        finding = probe(resolve_selection(provider_config()), session=session)
        assert finding.code == "unreachable"
