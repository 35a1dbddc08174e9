"""
GitHub Webhook / API response schemas（Pydantic）。

说明：
- 字段只覆盖 review 闭环需要的子集（PR webhook + PR 详情 + list files）。
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class GitHubOwner(BaseModel):
    login: str


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubOwner
    full_name: str


class GitHubPullRequestHead(BaseModel):
    sha: str
    ref: str


class GitHubPullRequestBase(BaseModel):
    ref: str


class GitHubPullRequest(BaseModel):
    number: int
    head: GitHubPullRequestHead
    base: GitHubPullRequestBase


class GitHubPullRequestWebhookEvent(BaseModel):
    """
    GitHub `pull_request` webhook event（最小结构）。

    action: opened/reopened/synchronize 等
    """

    action: str
    pull_request: GitHubPullRequest
    repository: GitHubRepository


class GitHubPullRequestFile(BaseModel):
    """
    PR 文件列表 item（GET /pulls/{pull_number}/files）。

    patch 可能缺失（大文件/二进制/被截断），adapter 里归一化为空 diff，后续会被过滤掉。
    """

    filename: str
    status: Literal["added", "modified", "removed", "renamed", "changed", "copied", "unchanged"]
    patch: str | None = None
    previous_filename: str | None = None


class GitHubReviewComment(BaseModel):
    id: int
    body: str
