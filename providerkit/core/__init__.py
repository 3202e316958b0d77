"""
Core logic for provider selection.

This subpackage resolves the provider and model from config, profiles
and CLI flags, routes chat requests to the selected provider, and
checks configurations and documentation for common mistakes.
"""

__all__ = [
    "selection",
    "router",
    "prompts",
    "doctor",
    "doclint",
]
