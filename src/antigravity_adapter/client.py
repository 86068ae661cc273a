# src/antigravity_adapter/client.py
"""
Antigravity client: request translation, upstream call, response translation.

Supports:
- Streaming (SSE) and non-streaming completions
- Signature continuity across turns of a conversation
- Automatic base URL fallback
- Retry on empty upstream responses
"""

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple, Union

import httpx
import litellm

from .config import AdapterConfig
from .constants import NON_STREAM_ENDPOINT, STREAM_ENDPOINT
from .debug_logger import AntigravityFileLogger
from .error_handler import (
    EmptyResponseError,
    UpstreamStatusError,
    UpstreamTransportError,
)
from .signature_cache import (
    ConversationSignatures,
    SignatureCacheRegistry,
    conversation_id_for,
)
from .timeout_config import TimeoutConfig
from .translation.request_builder import (
    BoundCredential,
    RequestContext,
    build_request_body,
    redact_envelope,
)
from .translation.response_translator import StreamTranslator, translate_response
from .transport import HTTPClientPool

lib_logger = logging.getLogger("antigravity_adapter")

EMPTY_RESPONSE_MESSAGE = (
    "The model returned an empty response after multiple attempts. "
    "This may indicate a temporary service issue. Please try again."
)


class AntigravityClient:
    """
    Translates OpenAI-style chat completions to Antigravity and back.

    Args:
        config: Adapter configuration (defaults when omitted)
        signature_registry: Shared signature registry; one is created from
            config when omitted
        http_client: Pre-built httpx.AsyncClient. When omitted a pooled
            dual-stack client is created per proxy setting.
    """

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        signature_registry: Optional[SignatureCacheRegistry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or AdapterConfig()
        self.signatures = signature_registry or SignatureCacheRegistry(
            self.config.signatures, self.config.max_conversations
        )
        self._http_client = http_client
        self._client_pool = None if http_client is not None else HTTPClientPool()
        self._base_url_index = 0

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return self._client_pool.get_client(self.config.proxy)

    def _ordered_base_urls(self) -> List[str]:
        """Base URLs starting from the last one that worked."""
        urls = self.config.api.base_urls
        start = self._base_url_index % len(urls)
        return urls[start:] + urls[:start]

    def _remember_base_url(self, base_url: str) -> None:
        urls = self.config.api.base_urls
        if base_url in urls:
            self._base_url_index = urls.index(base_url)

    @staticmethod
    def _can_fall_back(error: Exception) -> bool:
        # 429 is tied to the credential, not the URL
        if isinstance(error, UpstreamStatusError):
            return error.status_code != 429
        return isinstance(error, UpstreamTransportError)

    def _headers(self, credential: BoundCredential, stream: bool) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
            "User-Agent": self.config.api.user_agent,
            "Accept": "text/event-stream" if stream else "application/json",
        }

    def open_conversation(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        conversation_id: Optional[str] = None,
    ) -> ConversationSignatures:
        return self.signatures.open(conversation_id or conversation_id_for(messages, model))

    def discard_conversation(self, conversation_id: str) -> None:
        self.signatures.discard(conversation_id)

    async def aclose(self) -> None:
        if self._client_pool is not None:
            await self._client_pool.close_all()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def build_request(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        credential: BoundCredential,
        parameters: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Union[str, Dict[str, Any]]] = None,
        conversation_id: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], RequestContext]:
        """Translate a request without sending it."""
        signatures = self.open_conversation(messages, model, conversation_id)
        return build_request_body(
            messages,
            model,
            parameters,
            tools,
            credential,
            self.config,
            signatures=signatures,
            tool_choice=tool_choice,
        )

    async def acompletion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        credential: BoundCredential,
        parameters: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Union[str, Dict[str, Any]]] = None,
        stream: bool = False,
        conversation_id: Optional[str] = None,
    ) -> Union[litellm.ModelResponse, AsyncGenerator[litellm.ModelResponse, None]]:
        """
        Run one chat completion against Antigravity.

        Returns a ModelResponse, or an async generator of streaming
        ModelResponse chunks when `stream` is true. Closing the generator
        closes the upstream response and drops uncommitted signatures.

        Raises:
            UpstreamStatusError: non-2xx from every base URL tried (429 is
                raised immediately)
            UpstreamTransportError: no base URL could be reached
            EmptyResponseError: the upstream kept returning nothing
        """
        envelope, context = self.build_request(
            messages,
            model,
            credential,
            parameters=parameters,
            tools=tools,
            tool_choice=tool_choice,
            conversation_id=conversation_id,
        )

        file_logger = AntigravityFileLogger(
            context.policy.client_model, self.config.debug_dump_request_response
        )
        file_logger.log_request(redact_envelope(envelope))

        if stream:
            return self._stream_with_fallback(envelope, context, credential, file_logger)
        return await self._complete_with_fallback(envelope, context, credential, file_logger)

    # =========================================================================
    # NON-STREAMING
    # =========================================================================

    async def _complete_with_fallback(
        self,
        envelope: Dict[str, Any],
        context: RequestContext,
        credential: BoundCredential,
        file_logger: AntigravityFileLogger,
    ) -> litellm.ModelResponse:
        base_urls = self._ordered_base_urls()
        for position, base_url in enumerate(base_urls):
            url = f"{base_url}{NON_STREAM_ENDPOINT}"
            try:
                result = await self._complete_with_retry(
                    url, envelope, context, credential, file_logger
                )
            except (UpstreamStatusError, UpstreamTransportError) as e:
                file_logger.log_error(str(e))
                if not self._can_fall_back(e) or position == len(base_urls) - 1:
                    raise
                lib_logger.warning(f"Retrying with fallback URL: {e}")
                continue
            self._remember_base_url(base_url)
            return result

        raise RuntimeError("No Antigravity base URLs configured")

    async def _complete_with_retry(
        self,
        url: str,
        envelope: Dict[str, Any],
        context: RequestContext,
        credential: BoundCredential,
        file_logger: AntigravityFileLogger,
    ) -> litellm.ModelResponse:
        model = context.policy.client_model
        attempts = self.config.empty_response_attempts

        for attempt in range(attempts):
            data = await self._post(url, envelope, credential)
            file_logger.log_final_response(data)

            result = translate_response(
                data,
                model,
                turn_index=context.turn_index,
                signatures=context.conversation,
                policy=context.signature_policy,
            )
            if result:
                return litellm.ModelResponse(**result)

            if attempt < attempts - 1:
                lib_logger.warning(
                    f"[Antigravity] Empty response from {model}, "
                    f"attempt {attempt + 1}/{attempts}. Retrying..."
                )
                await asyncio.sleep(self.config.empty_response_retry_delay)

        raise EmptyResponseError(model=model, message=EMPTY_RESPONSE_MESSAGE)

    async def _post(
        self, url: str, envelope: Dict[str, Any], credential: BoundCredential
    ) -> Dict[str, Any]:
        client = self._get_http_client()
        try:
            response = await client.post(
                url,
                headers=self._headers(credential, stream=False),
                json=envelope,
                timeout=TimeoutConfig.non_streaming(self.config.timeout),
            )
        except httpx.TransportError as e:
            raise UpstreamTransportError(url, e) from e

        if response.status_code >= 400:
            raise UpstreamStatusError(response.status_code, response.text, url)
        try:
            return response.json()
        except json.JSONDecodeError as e:
            lib_logger.error(f"Unparseable generateContent body from {url}: {e}")
            # Reported as a bad gateway so it classifies and falls back like a 5xx
            raise UpstreamStatusError(502, response.text, url) from e

    # =========================================================================
    # STREAMING
    # =========================================================================

    async def _stream_with_fallback(
        self,
        envelope: Dict[str, Any],
        context: RequestContext,
        credential: BoundCredential,
        file_logger: AntigravityFileLogger,
    ) -> AsyncGenerator[litellm.ModelResponse, None]:
        base_urls = self._ordered_base_urls()
        for position, base_url in enumerate(base_urls):
            url = f"{base_url}{STREAM_ENDPOINT}"
            delivered = False
            inner = self._stream_with_retry(url, envelope, context, credential, file_logger)
            try:
                async for chunk in inner:
                    delivered = True
                    yield chunk
            except (UpstreamStatusError, UpstreamTransportError) as e:
                file_logger.log_error(str(e))
                if (
                    delivered
                    or not self._can_fall_back(e)
                    or position == len(base_urls) - 1
                ):
                    raise
                lib_logger.warning(f"Retrying with fallback URL: {e}")
                continue
            finally:
                await inner.aclose()
            self._remember_base_url(base_url)
            return

    async def _stream_with_retry(
        self,
        url: str,
        envelope: Dict[str, Any],
        context: RequestContext,
        credential: BoundCredential,
        file_logger: AntigravityFileLogger,
    ) -> AsyncGenerator[litellm.ModelResponse, None]:
        """Retries when a stream yields nothing at all."""
        model = context.policy.client_model
        attempts = self.config.empty_response_attempts

        for attempt in range(attempts):
            translator = StreamTranslator(
                model,
                turn_index=context.turn_index,
                signatures=context.conversation,
                policy=context.signature_policy,
            )
            inner = self._stream_once(url, envelope, credential, translator, file_logger)
            try:
                async for chunk in inner:
                    yield litellm.ModelResponse(**chunk, stream=True)
            finally:
                await inner.aclose()

            if translator.emitted:
                return

            if attempt < attempts - 1:
                lib_logger.warning(
                    f"[Antigravity] Empty stream from {model}, "
                    f"attempt {attempt + 1}/{attempts}. Retrying..."
                )
                await asyncio.sleep(self.config.empty_response_retry_delay)

        raise EmptyResponseError(model=model, message=EMPTY_RESPONSE_MESSAGE)

    async def _stream_once(
        self,
        url: str,
        envelope: Dict[str, Any],
        credential: BoundCredential,
        translator: StreamTranslator,
        file_logger: AntigravityFileLogger,
    ) -> AsyncGenerator[Dict[str, Any], None]:
        client = self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                headers=self._headers(credential, stream=True),
                json=envelope,
                timeout=TimeoutConfig.streaming(self.config.timeout),
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise UpstreamStatusError(response.status_code, body, url)

                async for line in response.aiter_lines():
                    file_logger.log_response_chunk(line)
                    if not line.startswith("data: "):
                        continue

                    data_str = line[6:]
                    if data_str == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data_str)
                    except json.JSONDecodeError:
                        file_logger.log_error(f"Parse error: {data_str[:100]}")
                        lib_logger.debug(f"Skipping unparseable SSE line: {data_str[:100]}")
                        continue

                    for openai_chunk in translator.translate(chunk):
                        yield openai_chunk

                for openai_chunk in translator.close():
                    yield openai_chunk
        except httpx.TransportError as e:
            raise UpstreamTransportError(url, e) from e
        finally:
            if not translator.finished:
                translator.discard()
