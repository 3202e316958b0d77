"""
Prompt management.

Reads the `instructions` key from the active profile or the top level
of the loaded configuration and builds the message list for a single
question. A default is supplied if no instructions are configured.
"""

from typing import Any, Dict, List

from providerkit.core.selection import Selection

DEFAULT_INSTRUCTIONS = (
    "You are a helpful assistant. Answer the user's question clearly and "
    "concisely. Do not claim to execute actions or tools."
)


class PromptManager:
    """
    Store and access the system instructions used by `ask`.
    """

    def __init__(self, selection: Selection) -> None:
        self.selection = selection

    def get_instructions(self) -> str:
        instructions = self.selection.setting("instructions")
        if isinstance(instructions, str) and instructions.strip():
            return instructions
        return DEFAULT_INSTRUCTIONS

    def build_messages(self, question: str) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": self.get_instructions()},
            {"role": "user", "content": question},
        ]
