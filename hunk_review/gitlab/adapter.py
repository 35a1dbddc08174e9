"""
GitLab -> Review domain adapter。

职责：
- 实现 `ReviewHostingClient`：把 MR changes 归一化为 `ChangedFile`
- 把 `LineAnchor` 转成 GitLab discussion 的 position
"""

from __future__ import annotations

import logging

from hunk_review.gitlab.client import GitLabClient
from hunk_review.gitlab.schemas import GitLabDiffRef
from hunk_review.gitlab.schemas import GitLabMergeRequestChanges
from hunk_review.review.models import ChangedFile
from hunk_review.review.models import LineAnchor

logger = logging.getLogger(__name__)


def build_changed_files_from_gitlab_changes(changes: GitLabMergeRequestChanges) -> list[ChangedFile]:
    return [
        ChangedFile(
            new_path=c.new_path,
            old_path=c.old_path,
            diff=c.diff,
            is_new_file=c.new_file,
            is_renamed_file=c.renamed_file,
            is_deleted_file=c.deleted_file,
        )
        for c in changes.changes
    ]


def build_gitlab_position(diff_refs: GitLabDiffRef, anchor: LineAnchor, change: ChangedFile) -> dict[str, object]:
    position: dict[str, object] = {
        "position_type": "text",
        "base_sha": diff_refs.base_sha,
        "head_sha": diff_refs.head_sha,
        "start_sha": diff_refs.start_sha,
        "new_path": change.new_path,
        "old_path": change.old_path,
    }
    if anchor.new_line is not None:
        position["new_line"] = anchor.new_line
    if anchor.old_line is not None:
        position["old_line"] = anchor.old_line
    return position


class GitLabReviewHost:
    """一个 MR 对应一个实例。"""

    def __init__(self, client: GitLabClient, project_id: int | str, mr_iid: int) -> None:
        self._client = client
        self._project_id = project_id
        self._mr_iid = mr_iid
        self._diff_refs: GitLabDiffRef | None = None

    async def init(self) -> None:
        mr = await self._client.get_merge_request(project_id=self._project_id, mr_iid=self._mr_iid)
        self._diff_refs = mr.diff_refs

    async def get_merge_request_changes(self) -> list[ChangedFile]:
        changes = await self._client.get_merge_request_changes(project_id=self._project_id, mr_iid=self._mr_iid)
        if changes.diff_refs is not None:
            self._diff_refs = changes.diff_refs
        logger.info(f"GitLab MR {self._project_id}!{self._mr_iid}: {len(changes.changes)} changed file(s)")
        return build_changed_files_from_gitlab_changes(changes)

    async def add_review_comment(self, anchor: LineAnchor, change: ChangedFile, suggestion: str) -> None:
        if self._diff_refs is None:
            raise RuntimeError("GitLab diff refs not loaded; call init() first")
        await self._client.create_merge_request_discussion(
            project_id=self._project_id,
            mr_iid=self._mr_iid,
            body=suggestion,
            position=build_gitlab_position(diff_refs=self._diff_refs, anchor=anchor, change=change),
        )

    async def add_comment(self, body: str) -> None:
        await self._client.post_merge_request_note(project_id=self._project_id, mr_iid=self._mr_iid, body=body)
