"""
AI Reviewer 接口与错误类型。

约定：
- `review_code_change(hunk_text)` 返回可读建议，或固定哨兵 `"204"`（没有问题）
- 失败直接抛错；orchestrator 只通过异常上的 status_code 区分限流（429）
"""

from __future__ import annotations

from typing import Protocol

NO_REVIEW_CONTENT_PLACEHOLDER = "204"


class AIReviewer(Protocol):
    """按 hunk 审查代码变更的能力接口（Gemini / Bedrock / OpenAI-compatible）。"""

    async def review_code_change(self, change: str) -> str: ...


class ReviewerError(RuntimeError):
    """AI reviewer 调用失败；status_code 可选（传输层错误没有状态码）。"""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReviewerHTTPError(ReviewerError):
    pass


class ReviewerResponseError(ReviewerError):
    """模型响应结构不符合预期（缺 candidates / content 等）。"""

    pass


def ensure_change_not_empty(change: str) -> None:
    if not change or not change.strip():
        raise ValueError("Code change cannot be empty")
