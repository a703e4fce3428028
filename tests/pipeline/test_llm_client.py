"""Tests for the Ollama client wrapper."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from pv_agent.core.exceptions import ModelCallError
from pv_agent.core.metrics import get_metrics
from pv_agent.pipeline.llm_client import OllamaLLMClient


def _chat_response(content):
    return SimpleNamespace(message=SimpleNamespace(content=content))


class TestOllamaLLMClient:
    """Chat request construction and failure mapping."""

    @patch("pv_agent.pipeline.llm_client.Client")
    def test_complete_sends_messages_and_options(self, mock_client_cls):
        mock_client_cls.return_value.chat.return_value = _chat_response("answer")
        client = OllamaLLMClient(host="http://localhost:11434", model="llama3.1:8b")

        result = client.complete("user text", system_prompt="system text", max_tokens=1500, temperature=0.2)

        assert result == "answer"
        kwargs = mock_client_cls.return_value.chat.call_args.kwargs
        assert kwargs["model"] == "llama3.1:8b"
        assert kwargs["messages"] == [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ]
        assert kwargs["options"] == {"temperature": 0.2, "num_predict": 1500}
        assert get_metrics().get_counter("llm_calls", {"status": "ok"}) == 1

    @patch("pv_agent.pipeline.llm_client.Client")
    def test_no_system_message_when_absent(self, mock_client_cls):
        mock_client_cls.return_value.chat.return_value = _chat_response("answer")

        OllamaLLMClient(host="http://localhost:11434").complete("user text")

        messages = mock_client_cls.return_value.chat.call_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "user text"}]

    @patch("pv_agent.pipeline.llm_client.Client")
    def test_dict_response(self, mock_client_cls):
        mock_client_cls.return_value.chat.return_value = {"message": {"content": "from dict"}}

        assert OllamaLLMClient(host="http://localhost:11434").complete("x") == "from dict"

    @patch("pv_agent.pipeline.llm_client.Client")
    def test_transport_error_becomes_model_call_error(self, mock_client_cls):
        mock_client_cls.return_value.chat.side_effect = ConnectionError("refused")

        with pytest.raises(ModelCallError, match="refused"):
            OllamaLLMClient(host="http://localhost:11434").complete("x")
        assert get_metrics().get_counter("llm_calls", {"status": "error"}) == 1

    @pytest.mark.parametrize("content", ["", "   ", None])
    @patch("pv_agent.pipeline.llm_client.Client")
    def test_empty_content_is_an_error(self, mock_client_cls, content):
        mock_client_cls.return_value.chat.return_value = _chat_response(content)

        with pytest.raises(ModelCallError):
            OllamaLLMClient(host="http://localhost:11434").complete("x")

    @patch("pv_agent.pipeline.llm_client.Client")
    def test_bearer_header_when_key_set(self, mock_client_cls):
        OllamaLLMClient(api_key="secret", host="https://ollama.com")

        assert mock_client_cls.call_args.kwargs["headers"] == {"Authorization": "Bearer secret"}

    @patch("pv_agent.pipeline.llm_client.OLLAMA_API_KEY", None)
    @patch("pv_agent.pipeline.llm_client.Client")
    def test_cloud_host_requires_key(self, mock_client_cls):
        with pytest.raises(ValueError):
            OllamaLLMClient(host="https://ollama.com")

    @patch("pv_agent.pipeline.llm_client.OLLAMA_API_KEY", None)
    @patch("pv_agent.pipeline.llm_client.Client")
    def test_local_host_needs_no_key(self, mock_client_cls):
        OllamaLLMClient(host="http://localhost:11434")

        assert mock_client_cls.call_args.kwargs["headers"] is None
