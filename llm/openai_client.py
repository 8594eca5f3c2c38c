"""
OpenAI-compatible Client

Works against any endpoint that speaks the Chat Completions API
(OpenAI, Z.AI GLM, local gateways) via LLM_BASE_URL.
"""
import time
from typing import Optional, List

import httpx
import openai
from openai import OpenAI
from loguru import logger

from .base import LLMClient, LLMResponse, Message, LLMError, LLMTimeoutError


class OpenAICompatibleClient(LLMClient):
    """
    Chat Completions client using the OpenAI SDK.

    SDK retries are disabled: a timeout surfaces as LLMTimeoutError and the
    caller decides whether the sub-batch fails.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        verify_ssl: bool = True,
        enable_logging: bool = True,
    ):
        """
        Args:
            api_key: Provider API key
            model: Model name
            base_url: API base URL (None = SDK default)
            timeout: Client-side timeout per request, in seconds
            verify_ssl: Whether to verify SSL certificates
        """
        super().__init__(api_key, model, enable_logging=enable_logging)
        self.timeout = timeout

        http_client = None
        if not verify_ssl:
            http_client = httpx.Client(verify=False)
            logger.warning("SSL verification disabled for LLM client")

        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 3000,
        temperature: float = 0.1,
    ) -> LLMResponse:
        """Generate response from a single prompt."""
        messages = [Message(role="user", content=prompt)]
        return self.chat(messages, system=system, max_tokens=max_tokens, temperature=temperature)

    def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        max_tokens: int = 3000,
        temperature: float = 0.1,
    ) -> LLMResponse:
        """Generate response from conversation."""
        api_messages = []
        if system:
            api_messages.append({"role": "system", "content": system})
        for msg in messages:
            api_messages.append({"role": msg.role, "content": msg.content})

        logger.debug(f"LLM request: model={self.model}, messages={len(api_messages)}")

        started = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=api_messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.APITimeoutError as e:
            logger.error(f"LLM request timed out after {self.timeout}s")
            raise LLMTimeoutError(f"LLM request timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            logger.error(f"LLM request failed: {e}")
            raise LLMError(str(e)) from e

        if not response.choices:
            raise LLMError("LLM response contained no choices")

        choice = response.choices[0]
        usage = response.usage
        result = LLMResponse(
            content=choice.message.content or "",
            model=response.model or self.model,
            usage={
                "input_tokens": usage.prompt_tokens if usage else 0,
                "output_tokens": usage.completion_tokens if usage else 0,
            },
            stop_reason=choice.finish_reason,
            latency_ms=int((time.perf_counter() - started) * 1000),
        )

        self.log_call(messages, system, result, max_tokens, temperature)
        return result
