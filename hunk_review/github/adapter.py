"""
GitHub -> Review domain adapter。

职责：
- 实现 `ReviewHostingClient`：PR files/patch 归一化为 `ChangedFile`
- `LineAnchor` -> (line, side)：有 new_line 用 RIGHT，否则用 old_line + LEFT
"""

from __future__ import annotations

import logging
from typing import Literal

from hunk_review.github.client import GitHubClient
from hunk_review.github.schemas import GitHubPullRequestFile
from hunk_review.review.models import ChangedFile
from hunk_review.review.models import LineAnchor

logger = logging.getLogger(__name__)


def build_changed_files_from_github_pull_request_files(files: list[GitHubPullRequestFile]) -> list[ChangedFile]:
    return [
        ChangedFile(
            new_path=f.filename,
            old_path=f.previous_filename or f.filename,
            diff=f.patch or "",
            is_new_file=f.status == "added",
            is_renamed_file=f.status == "renamed",
            is_deleted_file=f.status == "removed",
        )
        for f in files
    ]


def anchor_to_github_line(anchor: LineAnchor) -> tuple[int, Literal["LEFT", "RIGHT"]]:
    if anchor.new_line is not None and anchor.new_line > 0:
        return anchor.new_line, "RIGHT"
    if anchor.old_line is not None and anchor.old_line > 0:
        return anchor.old_line, "LEFT"
    raise ValueError(f"Anchor has no positive line: {anchor}")


class GitHubReviewHost:
    """一个 PR 对应一个实例；head_sha 可由 webhook 直接给出，否则 init 时拉取。"""

    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        pull_number: int,
        head_sha: str | None = None,
    ) -> None:
        self._client = client
        self._owner = owner
        self._repo = repo
        self._pull_number = pull_number
        self._head_sha = head_sha

    async def init(self) -> None:
        if self._head_sha:
            return
        pr = await self._client.get_pull_request(owner=self._owner, repo=self._repo, pull_number=self._pull_number)
        self._head_sha = pr.head.sha

    async def get_merge_request_changes(self) -> list[ChangedFile]:
        files = await self._client.list_pull_request_files(
            owner=self._owner, repo=self._repo, pull_number=self._pull_number
        )
        logger.info(f"GitHub PR {self._owner}/{self._repo}#{self._pull_number}: {len(files)} changed file(s)")
        return build_changed_files_from_github_pull_request_files(files)

    async def add_review_comment(self, anchor: LineAnchor, change: ChangedFile, suggestion: str) -> None:
        if not self._head_sha:
            raise RuntimeError("GitHub head sha not loaded; call init() first")
        line, side = anchor_to_github_line(anchor)
        await self._client.create_review_comment(
            owner=self._owner,
            repo=self._repo,
            pull_number=self._pull_number,
            commit_id=self._head_sha,
            path=change.new_path,
            body=suggestion,
            line=line,
            side=side,
        )

    async def add_comment(self, body: str) -> None:
        await self._client.create_issue_comment(
            owner=self._owner, repo=self._repo, pull_number=self._pull_number, body=body
        )
