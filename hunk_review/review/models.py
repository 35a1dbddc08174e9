"""
Review 领域模型（Pydantic）。

用途：
- 平台无关的变更文件 / hunk header / 行锚点结构
- 一次 review run 的统计结果（便于日志与测试断言）
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChangedFile(BaseModel):
    """单个文件的变更（从 GitLab changes / GitHub PR files 归一化而来）。"""

    model_config = ConfigDict(frozen=True)

    new_path: str
    old_path: str
    diff: str
    is_new_file: bool = False
    is_renamed_file: bool = False
    is_deleted_file: bool = False


class HunkHeader(BaseModel):
    """`@@ -a,b +c,d @@` 解析结果；省略的 count 记为 0。"""

    model_config = ConfigDict(frozen=True)

    old_start: int
    old_count: int
    new_start: int
    new_count: int


class LineAnchor(BaseModel):
    """评论挂载的行号：new_line / old_line 至少一个存在。"""

    model_config = ConfigDict(frozen=True)

    new_line: int | None = None
    old_line: int | None = None

    def has_positive_line(self) -> bool:
        return (self.new_line is not None and self.new_line > 0) or (
            self.old_line is not None and self.old_line > 0
        )


class NoFeedbackRecord(BaseModel):
    """AI 返回“无问题”的 hunk（最后汇总成一条评论）。"""

    path: str
    anchor: LineAnchor
    code: str


class ReviewRunStats(BaseModel):
    """一次 review run 的计数；dropped_failures 对应被丢弃的非限流错误。"""

    files_reviewed: int = 0
    hunks_reviewed: int = 0
    comments_posted: int = 0
    hunks_skipped: int = 0
    rate_limit_retries: int = 0
    dropped_failures: int = 0
    no_feedback: list[NoFeedbackRecord] = Field(default_factory=list)
