from __future__ import annotations

from typing import Protocol

from hunk_review.review.models import ChangedFile
from hunk_review.review.models import LineAnchor


class ReviewHostingClient(Protocol):
    """
    评论写回端（GitLab MR / GitHub PR）的最小接口。

    - init：拉取写回评论需要的元信息（diff refs / head sha）
    - get_merge_request_changes：本次请求的变更文件
    - add_review_comment：行内评论（按 anchor 定位）
    - add_comment：全局评论（用于 no-feedback 汇总）
    """

    async def init(self) -> None: ...

    async def get_merge_request_changes(self) -> list[ChangedFile]: ...

    async def add_review_comment(self, anchor: LineAnchor, change: ChangedFile, suggestion: str) -> None: ...

    async def add_comment(self, body: str) -> None: ...


class HostingAPIError(RuntimeError):
    """托管平台 API 返回 >= 400。"""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code
