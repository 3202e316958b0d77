from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from providerkit.config import default_config_path, load_app_config, load_default_config
from providerkit.core.doclint import lint_paths
from providerkit.core.doctor import diagnose, has_errors, probe
from providerkit.core.prompts import PromptManager
from providerkit.core.router import ModelRouter
from providerkit.core.selection import CliOverrides, Selection, effective_config, resolve_selection
from providerkit.logging import logger, setup_logging
from providerkit.models.base import ProviderError
from providerkit.models.builtin import OSS_PROVIDER_IDS, build_provider_registry


# --------------------------------------------------------------------------------------
# Config / selection builders
# --------------------------------------------------------------------------------------


def load_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Load `--config` if given, else the default config file (if any)."""
    if args.config:
        return load_app_config(args.config)
    return load_default_config()


def cli_overrides(args: argparse.Namespace) -> CliOverrides:
    return CliOverrides(
        oss=args.oss or args.local_provider is not None,
        local_provider=args.local_provider,
        model=args.model,
        profile=args.profile,
        config_overrides=list(args.config_overrides or []),
    )


def describe_selection(selection: Selection) -> Dict[str, Any]:
    return {
        "model": selection.model,
        "model_provider": selection.provider_id,
        "profile": selection.profile,
        "provider": selection.provider.redacted(),
        "request_url": selection.provider.request_url(),
    }


# --------------------------------------------------------------------------------------
# Commands
# --------------------------------------------------------------------------------------


def cmd_show(args: argparse.Namespace) -> int:
    selection = resolve_selection(load_config(args), cli_overrides(args))
    print(yaml.safe_dump(describe_selection(selection), sort_keys=False), end="")
    return 0


def cmd_providers(args: argparse.Namespace) -> int:
    cfg = load_config(args)
    cli = cli_overrides(args)
    registry = build_provider_registry(effective_config(cfg, cli))
    try:
        selected: Optional[str] = resolve_selection(cfg, cli).provider_id
    except ProviderError as exc:
        print(f"Warning: no provider selected: {exc}", file=sys.stderr)
        selected = None
    for provider_id in registry:
        info = registry.get(provider_id)
        marker = "*" if provider_id == selected else " "
        origin = "built-in" if provider_id in registry.builtin_ids else "config"
        print(
            f"{marker} {provider_id:<12} {info.name:<16} {info.wire_api.value:<9} "
            f"{origin:<8} {info.base_url}"
        )
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = load_config(args)
    cli = cli_overrides(args)
    findings = diagnose(cfg, cli)
    if args.probe and not has_errors(findings):
        findings.append(probe(resolve_selection(cfg, cli)))
    for finding in findings:
        print(finding.render())
    return 1 if has_errors(findings) else 0


def cmd_ask(args: argparse.Namespace) -> int:
    selection = resolve_selection(load_config(args), cli_overrides(args))
    router = ModelRouter(selection)
    prompts = PromptManager(selection)
    response = router.chat(prompts.build_messages(args.question), stream=args.stream)
    print(response.text)
    return 0


def cmd_lint_docs(args: argparse.Namespace) -> int:
    errors = lint_paths(args.paths)
    for error in errors:
        print(error.render())
    return 1 if errors else 0


COMMANDS = {
    "show": cmd_show,
    "providers": cmd_providers,
    "doctor": cmd_doctor,
    "ask": cmd_ask,
    "lint-docs": cmd_lint_docs,
}


# --------------------------------------------------------------------------------------
# CLI
# --------------------------------------------------------------------------------------


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Select and check model providers for an OpenAI-compatible agent."
    )
    parser.add_argument(
        "--config",
        help=f"Path to config.toml (or .yaml). Defaults to {default_config_path()}.",
    )
    parser.add_argument(
        "--oss",
        action="store_true",
        help="Use a local open-source model provider (ollama unless configured).",
    )
    parser.add_argument(
        "--local-provider",
        choices=list(OSS_PROVIDER_IDS),
        help="Local provider to use with --oss (implies --oss).",
    )
    parser.add_argument("-m", "--model", help="Model name to use.")
    parser.add_argument(
        "-c",
        "--config-override",
        dest="config_overrides",
        action="append",
        metavar="KEY=VALUE",
        help="Override a config value (dotted key, TOML value). Repeatable.",
    )
    parser.add_argument("-p", "--profile", help="Config profile to use.")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("show", help="Print the resolved provider and model.")
    subparsers.add_parser("providers", help="List known model providers.")

    doctor_parser = subparsers.add_parser(
        "doctor", help="Check the selected provider for common mistakes."
    )
    doctor_parser.add_argument(
        "--probe",
        action="store_true",
        help="Also contact the provider's /models endpoint.",
    )

    ask_parser = subparsers.add_parser(
        "ask", help="Send a single question to the selected provider."
    )
    ask_parser.add_argument(
        "--stream", action="store_true", help="Stream the response."
    )
    ask_parser.add_argument("question", help="User question to send to the model.")

    lint_parser = subparsers.add_parser(
        "lint-docs", help="Check that every ```toml block in markdown files parses."
    )
    lint_parser.add_argument(
        "paths", nargs="+", help="Markdown files or directories to check."
    )

    return parser.parse_args(argv)


# --------------------------------------------------------------------------------------
# main()
# --------------------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from .env (if present)
    load_dotenv()

    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.verbose)

    try:
        return COMMANDS[args.command](args)
    except (ProviderError, FileNotFoundError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
