from __future__ import annotations

import httpx

from hunk_review.config import AIConfig
from hunk_review.config import AIProvider
from hunk_review.config import DEFAULT_GEMINI_API_URL
from hunk_review.config import SetupError
from hunk_review.llm.bedrock import BedrockReviewer
from hunk_review.llm.client import OpenAICompatLLMClient
from hunk_review.llm.client import OpenAICompatReviewer
from hunk_review.llm.gemini import GeminiReviewer
from hunk_review.llm.reviewer import AIReviewer
from hunk_review.prompts.loader import ReviewPrompts


def create_ai_reviewer(config: AIConfig, prompts: ReviewPrompts, http_client: httpx.AsyncClient) -> AIReviewer:
    """按 provider 选择 reviewer 实现；prompts 显式传入（不读全局状态）。"""
    api_url = str(config.api_url).rstrip("/") if config.api_url is not None else None

    if config.provider is AIProvider.GEMINI:
        return GeminiReviewer(
            api_key=config.api_key,
            api_url=api_url or DEFAULT_GEMINI_API_URL,
            http_client=http_client,
            prompts=prompts,
            model=config.model,
        )
    if config.provider is AIProvider.BEDROCK:
        if not config.api_secret:
            raise SetupError("AWS Secret Access Key is required for Bedrock")
        return BedrockReviewer(
            api_key=config.api_key,
            api_secret=config.api_secret,
            prompts=prompts,
            region=config.region,
            model=config.model,
        )
    if config.provider is AIProvider.OPENAI:
        if not config.model:
            raise SetupError("Model is required for openai provider")
        llm_client = OpenAICompatLLMClient(
            api_key=config.api_key,
            base_url=api_url,
            http_client=http_client,
            model=config.model,
        )
        return OpenAICompatReviewer(llm_client=llm_client, prompts=prompts)
    raise ValueError(f"Unsupported AI provider: {config.provider}")
