"""
Language model providers.

Every provider implements one call: given a conversation history and a
system prompt, return the model's text. Failures of any kind (missing API
key, HTTP error, timeout) surface as LanguageModelError.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import anthropic
import httpx
import openai

from config import InterviewSettings
from intelligence.errors import LanguageModelError
from intelligence.prompts import (
    EXTRACTION_MARKER,
    FALLBACK_FOLLOW_UP,
    RED_FLAG_MARKER,
    SCORE_MARKER,
)

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


@dataclass
class ChatMessage:
    """One turn of history sent to a model."""

    role: str  # 'user', 'assistant' or 'system'
    content: str


class LanguageModel(ABC):
    """Text completion over a chat history."""

    def __init__(self, settings: InterviewSettings):
        self.settings = settings

    @abstractmethod
    def complete(self, history: list[ChatMessage], system_prompt: str) -> str:
        """
        Produce the next assistant message.

        Args:
            history: Conversation so far, oldest first
            system_prompt: Instructions for the model

        Returns:
            The model's text

        Raises:
            LanguageModelError: If the call fails or times out
        """


class OpenAIModel(LanguageModel):
    """OpenAI chat completions. Reads OPENAI_API_KEY from the environment."""

    def complete(self, history: list[ChatMessage], system_prompt: str) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        try:
            client = openai.OpenAI(timeout=self.settings.ai_timeout_seconds)
            response = client.chat.completions.create(
                model=self.settings.ai_model,
                messages=messages,
                temperature=self.settings.ai_temperature,
                max_tokens=self.settings.ai_max_tokens,
            )
        except openai.OpenAIError as e:
            raise LanguageModelError(f"OpenAI request failed: {e}") from e

        try:
            return response.choices[0].message.content or ""
        except (IndexError, AttributeError) as e:
            raise LanguageModelError("OpenAI returned no choices") from e


class AnthropicModel(LanguageModel):
    """Anthropic messages API. Reads ANTHROPIC_API_KEY from the environment."""

    def complete(self, history: list[ChatMessage], system_prompt: str) -> str:
        if not os.getenv("ANTHROPIC_API_KEY"):
            raise LanguageModelError("ANTHROPIC_API_KEY environment variable not set")

        messages = [
            {"role": m.role, "content": m.content} for m in history if m.role != "system"
        ]
        # The API expects the first turn to come from the user
        if not messages or messages[0]["role"] != "user":
            messages.insert(0, {"role": "user", "content": "Hello."})
        try:
            client = anthropic.Anthropic(timeout=self.settings.ai_timeout_seconds)
            response = client.messages.create(
                model=self.settings.ai_model,
                max_tokens=self.settings.ai_max_tokens,
                temperature=self.settings.ai_temperature,
                system=system_prompt,
                messages=messages,
            )
        except anthropic.AnthropicError as e:
            raise LanguageModelError(f"Anthropic request failed: {e}") from e

        try:
            return "".join(
                block.text for block in response.content if block.type == "text"
            )
        except (TypeError, AttributeError) as e:
            raise LanguageModelError("Anthropic returned an unexpected response") from e


class GeminiModel(LanguageModel):
    """Google Gemini over REST. Reads GEMINI_API_KEY from the environment."""

    def complete(self, history: list[ChatMessage], system_prompt: str) -> str:
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise LanguageModelError("GEMINI_API_KEY environment variable not set")

        body = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in history
                if m.role != "system"
            ],
            "generationConfig": {
                "temperature": self.settings.ai_temperature,
                "maxOutputTokens": self.settings.ai_max_tokens,
            },
        }
        try:
            response = httpx.post(
                GEMINI_URL.format(model=self.settings.ai_model),
                params={"key": api_key},
                json=body,
                timeout=self.settings.ai_timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise LanguageModelError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise LanguageModelError(f"Gemini returned invalid JSON: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LanguageModelError("Gemini returned no candidates") from e


class OllamaModel(LanguageModel):
    """A local Ollama server."""

    def complete(self, history: list[ChatMessage], system_prompt: str) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        try:
            response = httpx.post(
                f"{self.settings.ollama_base_url.rstrip('/')}/api/chat",
                json={
                    "model": self.settings.ai_model,
                    "messages": messages,
                    "stream": False,
                    "options": {
                        "temperature": self.settings.ai_temperature,
                        "num_predict": self.settings.ai_max_tokens,
                    },
                },
                timeout=self.settings.ai_timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise LanguageModelError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise LanguageModelError(f"Ollama returned invalid JSON: {e}") from e

        try:
            return data["message"]["content"] or ""
        except (KeyError, TypeError) as e:
            raise LanguageModelError("Ollama returned no message") from e


class MockModel(LanguageModel):
    """
    Deterministic stand-in used when no provider is configured.

    Answers analysis prompts with empty results and interview turns with
    a short acknowledgement.
    """

    def complete(self, history: list[ChatMessage], system_prompt: str) -> str:
        last = history[-1].content if history else ""
        if EXTRACTION_MARKER in last:
            return "{}"
        if RED_FLAG_MARKER in last:
            return "[]"
        if SCORE_MARKER in last:
            return "50"

        question = _suggested_question(system_prompt)
        if question:
            return f"Thank you for sharing that. {question}"
        return FALLBACK_FOLLOW_UP


def _suggested_question(system_prompt: str) -> str | None:
    marker = 'naturally: "'
    start = system_prompt.find(marker)
    if start == -1:
        return None
    start += len(marker)
    end = system_prompt.find('"', start)
    return system_prompt[start:end] if end != -1 else None


PROVIDERS: dict[str, type[LanguageModel]] = {
    "openai": OpenAIModel,
    "anthropic": AnthropicModel,
    "gemini": GeminiModel,
    "ollama": OllamaModel,
    "mock": MockModel,
}


def create_language_model(settings: InterviewSettings) -> LanguageModel:
    """
    Create the provider named by settings.ai_provider.

    Unknown providers fall back to the mock model with a warning.
    """
    provider = settings.ai_provider.strip().lower()
    model_class = PROVIDERS.get(provider)
    if model_class is None:
        logger.warning("Unknown AI provider %r, using mock model", settings.ai_provider)
        model_class = MockModel
    return model_class(settings)
