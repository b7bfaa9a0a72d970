"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (OpenAI, Z.AI) providing clean interface for LLM operations.

Structured output is requested as a forced function call whose parameters
are the JSON schema of the expected result; providers that answer in plain
content instead are handled by the caller's decode step.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from openai import AsyncOpenAI, OpenAIError
from zai import ZaiClient

from src.config import Settings, settings
from src.core import ConfigurationException, LLMException
from src.shared.infrastructure.grafana import GrafanaOTLPExporter
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        operation: str = "chat_completion",
        output_schema: Optional[dict] = None
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        ``output_schema`` is ``{"name", "description", "parameters"}``; when
        given, the provider is forced to answer through that function.
        """


def _tool_params(output_schema: Optional[dict]) -> dict:
    if not output_schema:
        return {}
    return {
        "tools": [{"type": "function", "function": output_schema}],
        "tool_choice": {"type": "function", "function": {"name": output_schema["name"]}},
    }


def _message_content(message: Any) -> str:
    """Prefer forced function-call arguments over free-text content."""
    tool_calls = getattr(message, "tool_calls", None)
    if tool_calls:
        return tool_calls[0].function.arguments or ""
    return message.content or ""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation.

    Also serves any OpenAI-compatible endpoint through ``base_url``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        base_url: Optional[str] = None,
        metrics: Optional[GrafanaOTLPExporter] = None
    ):
        self._api_key = api_key or settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(api_key=self._api_key, base_url=base_url or settings.openai_base_url)
        self._model = model or settings.llm_model
        self._embedding_model = embedding_model or settings.embedding_model
        self._metrics = metrics

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using OpenAI embedding model.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector

        Raises:
            LLMException: If embedding generation fails
        """
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text
            )
        except OpenAIError as e:
            raise LLMException(f"Embedding generation failed: {e}")

        return EmbeddingResult(
            embedding=response.data[0].embedding,
            model=self._embedding_model
        )

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        operation: str = "chat_completion",
        output_schema: Optional[dict] = None
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            operation: Operation name for metrics (the schema name for structured calls)
            output_schema: Function definition forcing structured output

        Returns:
            ChatCompletionResult with generated text or function arguments

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **_tool_params(output_schema)
            )
        except OpenAIError as e:
            raise LLMException(f"Chat completion failed: {e}", {"operation": operation})

        if not response.choices:
            raise LLMException("Chat completion returned no choices", {"operation": operation})

        usage = response.usage
        result = ChatCompletionResult(
            content=_message_content(response.choices[0].message),
            model=self._model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )
        await _export_metrics(self._metrics, result, operation)
        return result


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    The SDK is synchronous, so calls run in a worker thread.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        metrics: Optional[GrafanaOTLPExporter] = None
    ):
        self._api_key = api_key or settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = model or settings.llm_model
        self._embedding_model = embedding_model or settings.embedding_model
        self._metrics = metrics

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text using the Z.AI embedding model."""
        try:
            response = await asyncio.to_thread(
                self._client.embeddings.create,
                model=self._embedding_model,
                input=text
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {e}")

        return EmbeddingResult(
            embedding=response.data[0].embedding,
            model=self._embedding_model
        )

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        operation: str = "chat_completion",
        output_schema: Optional[dict] = None
    ) -> ChatCompletionResult:
        """Generate chat completion using GLM."""
        start_time = time.perf_counter()

        try:
            response = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **_tool_params(output_schema)
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {e}", {"operation": operation})

        content = _message_content(response.choices[0].message)

        # Z.AI doesn't always return token usage, so we estimate
        usage = getattr(response, "usage", None)
        result = ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=getattr(usage, "prompt_tokens", None) or len(str(messages)) // 4,
            completion_tokens=getattr(usage, "completion_tokens", None) or len(content) // 4,
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )
        await _export_metrics(self._metrics, result, operation)
        return result


async def _export_metrics(
    metrics: Optional[GrafanaOTLPExporter],
    result: ChatCompletionResult,
    operation: str
) -> None:
    if metrics and metrics.is_enabled():
        await metrics.export_oracle_call(
            model=result.model,
            schema=operation,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            latency_ms=result.latency_ms
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs.

    Returns a canned, schema-conformant answer for every structured-output
    contract without calling external APIs.
    """

    CANNED_RESPONSES = {
        "language-detection": {
            "languageCode": "en",
            "confidence": 0.98,
            "commonWords": ["the", "is", "my"],
            "scriptAnalysis": "Latin script, English function words",
            "translation": {"needed": False},
        },
        "validity-check": {
            "isValid": True,
            "reason": "Mock: the message describes a product problem.",
            "category": "valid_inquiry",
            "confidence": 0.9,
        },
        "error-response": {
            "responseMessage": "Thanks for reaching out! Could you tell us a bit more about what you need help with?",
            "internalNote": "Mock rejection",
            "severity": "low",
            "suggestedActions": ["Ask the customer for details"],
        },
        "search-phrases": {
            "searchPhrases": ["account access", "login problem"],
            "reasoning": "Mock: core topic of the inquiry.",
        },
        "chunk-relevance": {
            "isRelevant": True,
            "confidence": 0.8,
            "reason": "Mock: chunk mentions the inquiry topic.",
            "keyMatches": ["login"],
        },
        "priority": {
            "priority": "medium",
            "reasoning": "Mock: standard request without business impact.",
        },
        "tags": {
            "tags": ["account-access"],
            "reasoning": "Mock: inquiry concerns account access.",
        },
        "assignment": {
            "needsAssignment": False,
            "reasoning": "Mock: AI can continue handling the ticket.",
        },
        "response-synthesis": {
            "response": "Here's what we can do: try signing in again after clearing your browser cache.",
            "reasoning": "Mock: common first step.",
            "next_steps": ["Clear browser cache", "Retry sign in"],
        },
        "conversation-analysis": {
            "isSolved": False,
            "needsHuman": False,
            "action": "continue_conversation",
            "reasoning": "Mock: the customer still has an open question.",
        },
        "conversation-reply": {
            "response": "Thanks for the update! Let's keep going, could you share what you see now?",
            "tone": "helpful",
        },
    }

    def __init__(self, embedding_dimension: Optional[int] = None):
        self._dimension = embedding_dimension or settings.embedding_dimension

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Return mock embedding (zero vector)."""
        return EmbeddingResult(embedding=[0.0] * self._dimension, model="mock-embedding")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        operation: str = "chat_completion",
        output_schema: Optional[dict] = None
    ) -> ChatCompletionResult:
        """Return the canned answer for the requested schema."""
        canned = self.CANNED_RESPONSES.get(operation)
        content = json.dumps(canned) if canned is not None else "This is a mock LLM response."
        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )


def create_llm_client(
    config: Settings,
    metrics: Optional[GrafanaOTLPExporter] = None
) -> ILLMClient:
    """
    Build the configured LLM client.

    Raises:
        ConfigurationException: If the selected provider has no API key
    """
    if config.llm_provider == "mock":
        return MockLLMClient(config.embedding_dimension)
    if config.llm_provider == "zai":
        return ZAIILLMClient(
            api_key=config.zai_api_key,
            model=config.llm_model,
            embedding_model=config.embedding_model,
            metrics=metrics
        )
    return OpenAILLMClient(
        api_key=config.openai_api_key,
        model=config.llm_model,
        embedding_model=config.embedding_model,
        base_url=config.openai_base_url,
        metrics=metrics
    )
