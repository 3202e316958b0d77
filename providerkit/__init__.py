"""
providerkit package root.

This package provides configuration loading utilities, the model
provider record and registry, provider selection from the CLI flag
overlay and profiles, and diagnostics for misconfigured providers.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "core",
    "models",
]
