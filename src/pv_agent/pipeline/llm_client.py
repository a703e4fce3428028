"""
LLM client for Ollama (local daemon or Ollama Cloud).

Single entry point used by extraction and classification: send one prompt,
get the assistant text back.
"""

import logging
from typing import Any, Dict, List, Optional

from ollama import Client

from pv_agent.core.config import (
    LLM_TIMEOUT_SECONDS,
    OLLAMA_API_KEY,
    OLLAMA_CLOUD_HOST,
    OLLAMA_HOST,
    OLLAMA_MODEL,
)
from pv_agent.core.exceptions import ModelCallError
from pv_agent.core.metrics import get_metrics

logger = logging.getLogger(__name__)


class OllamaLLMClient:
    """
    Client for interacting with the Ollama chat API.

    Handles:
    - Bearer authentication (required for Ollama Cloud, optional locally)
    - Per-call temperature and token limits
    - Mapping every transport or protocol failure to ModelCallError
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        host: str = OLLAMA_HOST,
        model: str = OLLAMA_MODEL,
        timeout: float = LLM_TIMEOUT_SECONDS,
    ):
        """
        Initialize Ollama LLM client.

        Args:
            api_key: Ollama API key (defaults to OLLAMA_API_KEY env var)
            host: Ollama API host (defaults to OLLAMA_HOST env var)
            model: Model name to use
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or OLLAMA_API_KEY
        if host.rstrip("/") == OLLAMA_CLOUD_HOST and not self.api_key:
            raise ValueError(
                "OLLAMA_API_KEY not provided. Set environment variable or pass api_key parameter."
            )

        self.host = host
        self.model = model

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        self.client = Client(host=host, headers=headers, timeout=timeout)

    @property
    def model_name(self) -> str:
        return self.model

    def complete(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.3,
    ) -> str:
        """
        Send a single-turn chat request and return the assistant text.

        Raises:
            ModelCallError: the call failed or returned no content
        """
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        logger.debug(
            f"LLM call: model={self.model} prompt_chars={len(user_prompt)} "
            f"system={system_prompt is not None} max_tokens={max_tokens}"
        )

        metrics = get_metrics()
        try:
            with metrics.timer("llm_call"):
                response = self.client.chat(
                    model=self.model,
                    messages=messages,
                    options={
                        "temperature": temperature,
                        "num_predict": max_tokens,
                    },
                )
        except Exception as e:
            metrics.increment("llm_calls", labels={"status": "error"})
            logger.error(f"Error calling Ollama API: {e}")
            raise ModelCallError(f"Ollama call failed: {e}") from e

        content = self._response_content(response)
        if not content or not content.strip():
            metrics.increment("llm_calls", labels={"status": "error"})
            logger.error(f"Empty response from LLM. Response type: {type(response)}")
            raise ModelCallError("Empty response from LLM - no content returned")

        metrics.increment("llm_calls", labels={"status": "ok"})
        return content

    @staticmethod
    def _response_content(response: Any) -> Optional[str]:
        """ChatResponse objects expose .message.content; older clients return dicts."""
        message = getattr(response, "message", None)
        if message is not None and getattr(message, "content", None) is not None:
            return message.content
        if isinstance(response, dict):
            message = response.get("message")
            if isinstance(message, dict):
                return message.get("content")
            if isinstance(message, str):
                return message
        return None
