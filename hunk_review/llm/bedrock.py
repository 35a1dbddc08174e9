"""
AWS Bedrock reviewer（boto3 bedrock-runtime，Anthropic messages 格式）。

重试策略：
- reviewer 内部对 429/500/503 做有限次指数退避（3 次，1s 起翻倍）
- 耗尽后抛 `ReviewerHTTPError`（保留最后的 status_code），429 交给 orchestrator 冷却重新入队
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

from hunk_review.config import DEFAULT_AWS_REGION
from hunk_review.config import SetupError
from hunk_review.infra.rate_limit import Sleep
from hunk_review.infra.rate_limit import retry_with_backoff
from hunk_review.llm.reviewer import ReviewerError
from hunk_review.llm.reviewer import ReviewerHTTPError
from hunk_review.llm.reviewer import ReviewerResponseError
from hunk_review.llm.reviewer import ensure_change_not_empty
from hunk_review.prompts.loader import ReviewPrompts

logger = logging.getLogger(__name__)

DEFAULT_BEDROCK_MODEL = "anthropic.claude-3-5-sonnet-20241022-v2:0"
ANTHROPIC_VERSION = "bedrock-2023-05-31"
MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 1.0


class BedrockReviewer:
    def __init__(
        self,
        api_key: str,
        api_secret: str | None,
        prompts: ReviewPrompts,
        region: str | None = None,
        model: str | None = None,
        client: Any | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        - api_key / api_secret: AWS Access Key ID / Secret Access Key（都必须提供）
        - client: 可注入的 bedrock-runtime client（测试用）；默认用 boto3 创建
        """
        if not api_key or not api_secret:
            raise SetupError("AWS credentials (api key and api secret) are required for Bedrock")
        self._prompts = prompts
        self._model = model or DEFAULT_BEDROCK_MODEL
        self._sleep = sleep
        self._client = client or boto3.client(
            "bedrock-runtime",
            region_name=region or DEFAULT_AWS_REGION,
            aws_access_key_id=api_key,
            aws_secret_access_key=api_secret,
        )

    def _build_body(self, change: str) -> str:
        prompt = f"{self._prompts.system_prompt}\n\n{self._prompts.code_review_prompt}\n\n{change}"
        return json.dumps(
            {
                "anthropic_version": ANTHROPIC_VERSION,
                "max_tokens": 4096,
                "temperature": 0.7,
                "top_p": 0.95,
                "messages": [{"role": "user", "content": prompt}],
            }
        )

    async def _invoke(self, body: str) -> str:
        try:
            result = await asyncio.to_thread(
                self._client.invoke_model,
                modelId=self._model,
                contentType="application/json",
                accept="application/json",
                body=body,
            )
        except ClientError as exc:
            metadata = exc.response.get("ResponseMetadata", {})
            status = metadata.get("HTTPStatusCode")
            raise ReviewerHTTPError(f"Bedrock error: {exc}", status_code=status) from exc

        payload = json.loads(result["body"].read())
        content = payload.get("content") if isinstance(payload, dict) else None
        if not content or not isinstance(content[0], dict) or not content[0].get("text"):
            raise ReviewerResponseError("Invalid response format from Bedrock")
        return str(content[0]["text"])

    async def review_code_change(self, change: str) -> str:
        ensure_change_not_empty(change)
        body = self._build_body(change)
        try:
            text = await retry_with_backoff(
                lambda: self._invoke(body),
                max_retries=MAX_RETRIES,
                base_delay=RETRY_BASE_DELAY_SECONDS,
                sleep=self._sleep,
            )
        except ReviewerError as exc:
            logger.error(f"Error calling Bedrock: model={self._model}, status={exc.status_code}, error={exc}")
            raise
        return text.strip()
