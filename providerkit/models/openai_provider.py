"""
OpenAI-compatible provider implementation.

Wraps any endpoint described by a `ModelProviderInfo` using the
official OpenAI SDK. The record decides the wire API (Chat Completions
or Responses), credentials, extra headers and query parameters, the
request retry budget and the stream idle timeout.
"""

import time
from typing import Any, Dict, List

import openai
from openai import OpenAI, Timeout

from providerkit.logging import logger
from providerkit.models.base import (
    ChatResponse,
    ModelProviderInfo,
    ProviderError,
    WireApi,
    WireApiMismatchError,
)

# Local servers ignore the key, but the SDK refuses to build a client without one.
PLACEHOLDER_API_KEY = "no-key-required"

STREAM_RETRY_BASE_DELAY = 0.2
STREAM_RETRY_MAX_DELAY = 10.0

# Write/pool and connect limits. Reads wait up to the provider's stream idle timeout.
REQUEST_TIMEOUT = 600.0
CONNECT_TIMEOUT = 5.0


class OpenAICompatibleProvider:
    """
    Sends chat requests to one provider using the wire API it expects.
    """

    def __init__(self, provider_id: str, info: ModelProviderInfo) -> None:
        self.provider_id = provider_id
        self.info = info

    def _client(self) -> OpenAI:
        api_key = self.info.api_key() or PLACEHOLDER_API_KEY
        client = OpenAI(
            api_key=api_key,
            base_url=self.info.base_url,
            default_headers=self.info.effective_headers() or None,
            default_query=self.info.query_params or None,
            max_retries=self.info.request_retries(),
            timeout=Timeout(
                REQUEST_TIMEOUT,
                connect=CONNECT_TIMEOUT,
                read=self.info.stream_idle_timeout(),
            ),
        )
        return client

    def chat(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        stream: bool = False,
    ) -> ChatResponse:
        client = self._client()
        try:
            if stream:
                return self._chat_stream(client, model, messages)
            if self.info.wire_api is WireApi.RESPONSES:
                resp = client.responses.create(model=model, input=messages)
                return ChatResponse(text=resp.output_text or "", raw=resp)
            resp = client.chat.completions.create(model=model, messages=messages)
            text = resp.choices[0].message.content or ""
            return ChatResponse(text=text, raw=resp)
        except openai.NotFoundError as exc:
            raise WireApiMismatchError(
                self.provider_id, self.info.wire_api, self.info.request_url()
            ) from exc
        except openai.OpenAIError as exc:
            raise ProviderError(f"{self.info.name} provider error: {exc}") from exc

    def _chat_stream(
        self, client: OpenAI, model: str, messages: List[Dict[str, Any]]
    ) -> ChatResponse:
        retries = self.info.stream_retries()
        attempt = 0
        while True:
            try:
                text = "".join(self._stream_chunks(client, model, messages))
                return ChatResponse(text=text, raw=None)
            except openai.APIConnectionError as exc:
                if attempt >= retries:
                    raise ProviderError(
                        f"{self.info.name} stream failed after {attempt + 1} attempt(s): {exc}"
                    ) from exc
                delay = min(STREAM_RETRY_BASE_DELAY * (2**attempt), STREAM_RETRY_MAX_DELAY)
                attempt += 1
                logger.warning(
                    "Stream from %s dropped (%s); retry %d/%d in %.1fs",
                    self.provider_id,
                    exc,
                    attempt,
                    retries,
                    delay,
                )
                time.sleep(delay)

    def _stream_chunks(self, client: OpenAI, model: str, messages: List[Dict[str, Any]]):
        if self.info.wire_api is WireApi.RESPONSES:
            events = client.responses.create(model=model, input=messages, stream=True)
            for event in events:
                if event.type == "response.output_text.delta":
                    yield event.delta
            return
        stream_resp = client.chat.completions.create(model=model, messages=messages, stream=True)
        for chunk in stream_resp:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield delta.content
