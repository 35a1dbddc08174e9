"""
GitHub API 客户端（外部系统连接器）。

约定：
- 这里只做 HTTP 调用 + 错误处理 + schema 校验
- 出错直接抛错（不要吞），便于定位与告警
"""

from __future__ import annotations

import logging
from typing import Literal

import httpx

from hunk_review.github.schemas import GitHubPullRequest
from hunk_review.github.schemas import GitHubPullRequestFile
from hunk_review.github.schemas import GitHubReviewComment
from hunk_review.review.hosting import HostingAPIError

logger = logging.getLogger(__name__)


class GitHubClient:
    """最小 GitHub API client（PR 详情、PR files、行内 review comment、issue comment）。"""

    def __init__(self, api_base_url: str, token: str, http_client: httpx.AsyncClient) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code >= 400:
            logger.error(f"GitHub API error {response.status_code}: {response.text}")
            raise HostingAPIError(
                f"GitHub API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

    async def get_pull_request(self, owner: str, repo: str, pull_number: int) -> GitHubPullRequest:
        url = f"{self._api_base_url}/repos/{owner}/{repo}/pulls/{pull_number}"
        response = await self._http_client.get(url, headers=self._headers())
        self._raise_for_status(response)
        return GitHubPullRequest.model_validate(response.json())

    async def list_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[GitHubPullRequestFile]:
        """
        拉取 PR 的变更文件列表（包含每个文件的 patch diff）。

        注意：GitHub API 有分页；这里会拉取全部文件。
        """
        per_page = 100
        page = 1
        all_items: list[GitHubPullRequestFile] = []
        while True:
            url = f"{self._api_base_url}/repos/{owner}/{repo}/pulls/{pull_number}/files"
            response = await self._http_client.get(
                url,
                headers=self._headers(),
                params={"per_page": per_page, "page": page},
            )
            self._raise_for_status(response)
            data = response.json()
            if not isinstance(data, list):
                raise RuntimeError(f"Unexpected GitHub response shape for PR files: {data}")
            items = [GitHubPullRequestFile.model_validate(x) for x in data]
            all_items.extend(items)
            if len(items) < per_page:
                break
            page += 1
        return all_items

    async def create_review_comment(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        commit_id: str,
        path: str,
        body: str,
        line: int,
        side: Literal["LEFT", "RIGHT"],
    ) -> GitHubReviewComment:
        """
        创建 PR 行内评论：POST /pulls/{pull_number}/comments。

        side=RIGHT 对应新文件行号，LEFT 对应旧文件行号。
        """
        url = f"{self._api_base_url}/repos/{owner}/{repo}/pulls/{pull_number}/comments"
        payload = {"commit_id": commit_id, "path": path, "body": body, "line": line, "side": side}
        response = await self._http_client.post(url, headers=self._headers(), json=payload)
        self._raise_for_status(response)
        return GitHubReviewComment.model_validate(response.json())

    async def create_issue_comment(self, owner: str, repo: str, pull_number: int, body: str) -> GitHubReviewComment:
        """PR 全局评论（走 issues comments 接口）。"""
        url = f"{self._api_base_url}/repos/{owner}/{repo}/issues/{pull_number}/comments"
        response = await self._http_client.post(url, headers=self._headers(), json={"body": body})
        self._raise_for_status(response)
        return GitHubReviewComment.model_validate(response.json())
