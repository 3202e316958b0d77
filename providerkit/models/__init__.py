"""
Model provider records and clients.

This package collects the provider configuration record and registry
in `base.py`, the built-in providers in `builtin.py`, and the
OpenAI-compatible client used for both wire APIs.
"""

__all__ = [
    "base",
    "builtin",
    "openai_provider",
]
