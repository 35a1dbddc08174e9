"""
Gemini reviewer（REST generateContent，走 httpx）。

- system prompt 和 review prompt 作为 systemInstruction 的两个 part
- hunk 原文作为唯一的 user content
- 非 2xx 抛 `ReviewerHTTPError`（带 status_code，429 会被 orchestrator 冷却重试）
"""

from __future__ import annotations

import logging

import httpx

from hunk_review.llm.reviewer import ReviewerHTTPError
from hunk_review.llm.reviewer import ReviewerResponseError
from hunk_review.llm.reviewer import ensure_change_not_empty
from hunk_review.prompts.loader import ReviewPrompts

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"

GENERATION_CONFIG: dict[str, object] = {
    "temperature": 1,
    "topP": 0.95,
    "topK": 64,
    "maxOutputTokens": 8192,
    "responseMimeType": "text/plain",
}

SAFETY_SETTINGS: list[dict[str, str]] = [
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


class GeminiReviewer:
    def __init__(
        self,
        api_key: str,
        api_url: str,
        http_client: httpx.AsyncClient,
        prompts: ReviewPrompts,
        model: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._http_client = http_client
        self._prompts = prompts
        self._model = model or DEFAULT_GEMINI_MODEL

    def _build_body(self, change: str) -> dict[str, object]:
        return {
            "contents": [{"role": "user", "parts": [{"text": change}]}],
            "systemInstruction": {
                "parts": [
                    {"text": self._prompts.system_prompt},
                    {"text": self._prompts.code_review_prompt},
                ]
            },
            "safetySettings": SAFETY_SETTINGS,
            "generationConfig": GENERATION_CONFIG,
        }

    async def review_code_change(self, change: str) -> str:
        ensure_change_not_empty(change)
        url = f"{self._api_url}/v1beta/models/{self._model}:generateContent"
        logger.info(f"Gemini request: model={self._model}, change={len(change)} chars")
        response = await self._http_client.post(
            url,
            params={"key": self._api_key},
            headers={"Content-Type": "application/json"},
            json=self._build_body(change),
        )
        if response.status_code < 200 or response.status_code >= 300:
            raise ReviewerHTTPError(
                f"Gemini API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ReviewerResponseError(f"Unexpected Gemini response shape: {data}") from exc
        if not isinstance(text, str):
            raise ReviewerResponseError(f"Unexpected Gemini response shape: {data}")

        logger.info(f"Gemini response: {len(text)} chars")
        return text.strip()
