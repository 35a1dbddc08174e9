"""
GitLab Webhook / API response schemas（Pydantic）。

为什么要单独放 schema：
- GitLab 的 payload 结构复杂，直接用 dict 容易写错 key
- schema 校验失败会立刻暴露问题（比“默默 None”安全）

说明：
- 这里的字段只覆盖 review 闭环所需子集，后续可按需补充
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class GitLabUser(BaseModel):
    """Webhook 里的 user 子结构（只取 username）。"""

    username: str


class GitLabProject(BaseModel):
    """Webhook 里的 project 子结构（id/web_url）。"""

    id: int
    web_url: str


class GitLabMergeRequestObjectAttributes(BaseModel):
    """Merge request webhook 的 object_attributes 子结构。"""

    iid: int
    action: str | None = None
    target_branch: str
    source_branch: str


class GitLabMergeRequestWebhookEvent(BaseModel):
    """Merge request webhook 的最小结构。"""

    object_kind: Literal["merge_request"]
    user: GitLabUser
    project: GitLabProject
    object_attributes: GitLabMergeRequestObjectAttributes


class GitLabDiffRef(BaseModel):
    """行内评论 position 需要的三元组。"""

    base_sha: str
    head_sha: str
    start_sha: str


class GitLabMergeRequest(BaseModel):
    """GET /merge_requests/:iid 的子集（diff_refs 在 MR 刚创建时可能为空）。"""

    iid: int
    diff_refs: GitLabDiffRef | None = None


class GitLabMRChange(BaseModel):
    """单个文件变更（包含 diff 字符串）。"""

    old_path: str
    new_path: str
    a_mode: str | None = None
    b_mode: str | None = None
    new_file: bool
    renamed_file: bool
    deleted_file: bool
    diff: str


class GitLabMergeRequestChanges(BaseModel):
    """MR changes API 返回结构（changes + diff_refs）。"""

    changes: list[GitLabMRChange] = Field(default_factory=list)
    diff_refs: GitLabDiffRef | None = None


class GitLabNote(BaseModel):
    """MR note 返回结构。"""

    id: int
    body: str


class GitLabDiscussion(BaseModel):
    """MR discussion（行内评论）返回结构。"""

    id: str
    notes: list[GitLabNote] = Field(default_factory=list)
