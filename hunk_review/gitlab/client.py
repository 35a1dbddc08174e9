"""
GitLab API 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 错误处理 + schema 校验”，不做业务决策。
- 发生错误时**直接抛错**，不要吞异常；吞不吞由 orchestrator 决定。
"""

from __future__ import annotations

import logging

import httpx

from hunk_review.gitlab.schemas import GitLabDiscussion
from hunk_review.gitlab.schemas import GitLabMergeRequest
from hunk_review.gitlab.schemas import GitLabMergeRequestChanges
from hunk_review.gitlab.schemas import GitLabNote
from hunk_review.review.hosting import HostingAPIError

logger = logging.getLogger(__name__)

API_V4_SUFFIX = "/api/v4"


def _strip_api_suffix(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith(API_V4_SUFFIX):
        normalized = normalized[: -len(API_V4_SUFFIX)]
    return normalized


class GitLabClient:
    """最小 GitLab API client（MR 元信息、changes、note、行内 discussion）。"""

    def __init__(self, base_url: str, private_token: str, http_client: httpx.AsyncClient) -> None:
        """
        - base_url: GitLab 实例地址；末尾的 /api/v4 会被去掉（client 自己拼接）
        - private_token: PRIVATE-TOKEN（建议用专用机器人账号）
        - http_client: 复用的 httpx.AsyncClient
        """
        self._base_url = _strip_api_suffix(base_url)
        self._private_token = private_token
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        """GitLab API 鉴权头。"""
        return {"PRIVATE-TOKEN": self._private_token}

    def _mr_url(self, project_id: int | str, mr_iid: int) -> str:
        return f"{self._base_url}/api/v4/projects/{project_id}/merge_requests/{mr_iid}"

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code >= 400:
            logger.error(f"GitLab API error {response.status_code}: {response.text}")
            raise HostingAPIError(
                f"GitLab API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

    async def get_merge_request(self, project_id: int | str, mr_iid: int) -> GitLabMergeRequest:
        """GET /projects/:id/merge_requests/:iid（取 diff_refs）。"""
        response = await self._http_client.get(self._mr_url(project_id, mr_iid), headers=self._headers())
        self._raise_for_status(response)
        return GitLabMergeRequest.model_validate(response.json())

    async def get_merge_request_changes(self, project_id: int | str, mr_iid: int) -> GitLabMergeRequestChanges:
        """
        获取 MR changes（包含每个文件的 diff）。

        - GitLab v4 API: GET /projects/:id/merge_requests/:iid/changes
        - 返回用 Pydantic 校验为 `GitLabMergeRequestChanges`
        """
        url = f"{self._mr_url(project_id, mr_iid)}/changes"
        response = await self._http_client.get(url, headers=self._headers())
        self._raise_for_status(response)
        return GitLabMergeRequestChanges.model_validate(response.json())

    async def post_merge_request_note(self, project_id: int | str, mr_iid: int, body: str) -> GitLabNote:
        """在 MR 下发布一条全局评论（note）。"""
        url = f"{self._mr_url(project_id, mr_iid)}/notes"
        response = await self._http_client.post(url, headers=self._headers(), json={"body": body})
        self._raise_for_status(response)
        return GitLabNote.model_validate(response.json())

    async def create_merge_request_discussion(
        self,
        project_id: int | str,
        mr_iid: int,
        body: str,
        position: dict[str, object],
    ) -> GitLabDiscussion:
        """
        行内评论：POST /discussions + position。

        position 需要 diff_refs 三元组 + new_path/old_path + new_line/old_line（至少一个）。
        """
        url = f"{self._mr_url(project_id, mr_iid)}/discussions"
        payload = {"body": body, "position": position}
        response = await self._http_client.post(url, headers=self._headers(), json=payload)
        self._raise_for_status(response)
        return GitLabDiscussion.model_validate(response.json())
