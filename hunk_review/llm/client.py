"""
OpenAI-compatible LLM Client（基于 OpenAI SDK，可对接 LiteLLM Proxy）。

目标：
- **尽量薄**：只做协议适配与错误处理
- **统一接口**：`OpenAICompatReviewer` 实现 `AIReviewer.review_code_change`
- 出错直接抛异常；`openai.APIStatusError` 自带 status_code，orchestrator 据此识别 429
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from hunk_review.llm.reviewer import ReviewerResponseError
from hunk_review.llm.reviewer import ensure_change_not_empty
from hunk_review.prompts.loader import ReviewPrompts

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAICompatLLMClient:
    """通过 OpenAI-compatible API 调用 LLM（OpenAI 本身、LiteLLM Proxy、vLLM 等）。"""

    def __init__(self, api_key: str, base_url: str | None, http_client: httpx.AsyncClient, model: str) -> None:
        """
        - api_key: LLM API key
        - base_url: OpenAI-compatible base URL；None 时使用 SDK 默认地址
        - http_client: 复用 httpx.AsyncClient 连接池
        - model: 模型名
        """
        self._base_url = _normalize_base_url(base_url=base_url) if base_url else None
        self._model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, http_client=http_client)

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str:
        """调用 chat completion 并返回纯文本 content。"""
        try:
            logger.info(f"LLM request: model={self._model}, messages={len(messages)} msg(s)")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
            )
        except OpenAIError as exc:
            logger.error(f"LLM API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"LLM HTTP error: {exc}")
            raise

        if not response.choices or response.choices[0].message.content is None:
            logger.error("LLM returned None content")
            raise ReviewerResponseError("LLM returned None content")

        content = response.choices[0].message.content
        logger.info(f"LLM response: {len(content)} chars")
        return str(content)


class OpenAICompatReviewer:
    """system = system prompt + review prompt；user = 原始 hunk 文本。"""

    def __init__(self, llm_client: OpenAICompatLLMClient, prompts: ReviewPrompts) -> None:
        self._llm_client = llm_client
        self._prompts = prompts

    async def review_code_change(self, change: str) -> str:
        ensure_change_not_empty(change)
        messages = [
            ChatMessage(
                role="system",
                content=f"{self._prompts.system_prompt}\n\n{self._prompts.code_review_prompt}",
            ),
            ChatMessage(role="user", content=change),
        ]
        return (await self._llm_client.complete_text(messages=messages)).strip()
