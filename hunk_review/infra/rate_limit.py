from __future__ import annotations

"""
限流 / 重试工具。

两套策略互不依赖：
- `retry_with_backoff`：reviewer 内部的有限次指数退避（处理瞬时 429/5xx）
- orchestrator 的固定冷却 + 重新入队（处理 reviewer 已经放弃的限流）
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429
DEFAULT_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 503})

Sleep = Callable[[float], Awaitable[None]]


def status_code_of(exc: BaseException) -> int | None:
    """
    从异常上取 HTTP 状态码。

    兼容：
    - 自定义错误 / openai.APIStatusError：`exc.status_code`
    - httpx.HTTPStatusError：`exc.response.status_code`
    """
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def is_rate_limited(exc: BaseException) -> bool:
    return status_code_of(exc) == RATE_LIMIT_STATUS


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    base_delay: float,
    retryable_statuses: Collection[int] = DEFAULT_RETRYABLE_STATUSES,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    执行 operation，遇到可重试状态码时指数退避（base_delay * 2**n）。

    - 非可重试错误 / 重试耗尽：原样抛出最后一次异常
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")
    if base_delay <= 0:
        raise ValueError("base_delay must be > 0")

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            status = status_code_of(exc)
            if status not in retryable_statuses or attempt >= max_retries:
                raise
            delay = base_delay * (2**attempt)
            attempt += 1
            logger.info(f"Retrying after {delay:.1f}s (attempt {attempt}/{max_retries}, status={status})")
            await sleep(delay)
