"""OpenAI-backed assistant used by the AI chat endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Sequence

from openai import AsyncOpenAI, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)


logger = logging.getLogger("chatline.ai.openai")

SYSTEM_PROMPT = (
    "You are a friendly, concise assistant inside a chat application. "
    "Answer the user's questions clearly."
)


@dataclass
class ChatTurn:
    """One turn of conversation history."""

    role: str  # user, assistant, system
    content: str


@dataclass
class AIResponse:
    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str


class AIProvider(Protocol):
    async def chat_completion(
        self,
        history: Sequence[ChatTurn],
        prompt: str,
    ) -> AIResponse:  # pragma: no cover - interface
        ...


class OpenAIProvider:
    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> None:
        self.client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        wait=wait_exponential_jitter(initial=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _create_completion(self, **kwargs: Any):
        return await self.client.chat.completions.create(**kwargs)

    @staticmethod
    def build_messages(history: Sequence[ChatTurn], prompt: str) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        for turn in history:
            if turn.role != "system":
                messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def chat_completion(self, history: Sequence[ChatTurn], prompt: str) -> AIResponse:
        model = self.default_model
        messages = self.build_messages(history, prompt)

        logger.info("openai_request model=%s history=%d", model, len(history))

        completion = await self._create_completion(
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            messages=messages,
        )

        content = completion.choices[0].message.content or ""
        usage = completion.usage
        if usage is not None:
            prompt_tokens = usage.prompt_tokens
            completion_tokens = usage.completion_tokens
            total_tokens = usage.total_tokens
        else:
            # ~4 characters per token
            prompt_tokens = sum(len(m["content"]) // 4 for m in messages)
            completion_tokens = len(content) // 4
            total_tokens = prompt_tokens + completion_tokens

        logger.info(
            "openai_response model=%s prompt_tokens=%d completion_tokens=%d",
            model,
            prompt_tokens,
            completion_tokens,
        )

        return AIResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            model=model,
        )
