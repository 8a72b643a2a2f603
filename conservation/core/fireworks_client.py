"""
Fireworks AI client for generative-text calls.
Provides wrapper around the Fireworks chat API with transient-error retry.
"""

import logging
from typing import Any, Optional

import httpx
from fireworks.client.error import (
    APITimeoutError,
    BadGatewayError,
    InternalServerError,
    RateLimitError,
    ServiceUnavailableError,
)
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from conservation.config import Settings, get_settings


logger = logging.getLogger(__name__)

# 529 is the "overloaded" status some providers return
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504, 529}

# The SDK raises these without a status code attached
TRANSIENT_SDK_ERRORS = (
    RateLimitError,
    InternalServerError,
    ServiceUnavailableError,
    BadGatewayError,
    APITimeoutError,
)


def _status_code(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_transient_error(error: BaseException) -> bool:
    """
    Decide whether a failed generative-text call is worth retrying.

    Rate limits, server errors and network transport failures are transient.
    Anything else (bad request, auth failure, programming error) is not.
    """
    if isinstance(error, TRANSIENT_SDK_ERRORS):
        return True
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    return _status_code(error) in TRANSIENT_STATUS_CODES


class FireworksClient:
    """
    Wrapper for Fireworks AI chat completions with a bounded retry budget.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Any = None,
    ):
        """
        Initialize the Fireworks client.

        Args:
            settings: Application settings (uses cached settings if not provided)
            client: Pre-built SDK client, mainly for tests
        """
        settings = settings or get_settings()

        if client is None:
            from fireworks.client import Fireworks
            client = Fireworks(api_key=settings.fireworks_api_key)

        self.client = client
        self.llm_model = settings.fireworks_llm_model
        self.max_attempts = max(1, settings.llm_max_attempts)
        self.retry_delay = settings.llm_retry_delay_seconds

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception(is_transient_error),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ) -> str:
        """
        Generate text using the LLM.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            temperature: Sampling temperature (lower = more deterministic)
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text, stripped; empty string when the reply has no text
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        for attempt in self._retrying():
            with attempt:
                response = self.client.chat.completions.create(
                    model=self.llm_model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )

        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        content = choices[0].message.content
        return content.strip() if isinstance(content, str) else ""
