"""
Model routing logic.

The router sends chat requests to the provider and model chosen by a
`Selection`. The actual API requests are delegated to the provider
client in the models package.
"""

from typing import Any, Dict, List, Optional

from providerkit.core.selection import Selection
from providerkit.models.base import ChatResponse
from providerkit.models.openai_provider import OpenAICompatibleProvider


class ModelRouter:
    """
    ModelRouter dispatches chat requests to the selected provider. It
    abstracts away the wire API and connection settings from callers.
    """

    def __init__(
        self,
        selection: Selection,
        client: Optional[OpenAICompatibleProvider] = None,
    ) -> None:
        self.selection = selection
        self.client = client or OpenAICompatibleProvider(
            selection.provider_id, selection.provider
        )

    def chat(
        self,
        messages: List[Dict[str, Any]],
        stream: bool = False,
    ) -> ChatResponse:
        """
        Forward a chat request to the selected provider and model.

        Args:
            messages: A list of message dicts in OpenAI chat format.
            stream: Whether to request streaming responses.

        Returns:
            A ChatResponse object containing the response text and raw data.

        Raises:
            ProviderError: If credentials are missing, the endpoint
                rejects the wire API, or the API call fails.
        """
        return self.client.chat(
            model=self.selection.model, messages=messages, stream=stream
        )
