from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from hunk_review.github.adapter import GitHubReviewHost
from hunk_review.github.adapter import anchor_to_github_line
from hunk_review.github.client import GitHubClient
from hunk_review.review.models import ChangedFile
from hunk_review.review.models import LineAnchor

PR_PATH = "/repos/octo/repo/pulls/5"


def _file(i: int) -> dict[str, object]:
    return {"filename": f"f{i}.py", "status": "modified", "patch": "@@ -1 +1 @@\n-a\n+b"}


class FakeGitHub:
    def __init__(self, total_files: int = 1) -> None:
        self.total_files = total_files
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path == PR_PATH:
            return httpx.Response(
                200,
                json={"number": 5, "head": {"sha": "headsha", "ref": "feature"}, "base": {"ref": "main"}},
            )
        if request.method == "GET" and path == f"{PR_PATH}/files":
            page = int(request.url.params["page"])
            start = (page - 1) * 100
            end = min(start + 100, self.total_files)
            return httpx.Response(200, json=[_file(i) for i in range(start, end)])
        if request.method == "POST" and path == f"{PR_PATH}/comments":
            return httpx.Response(201, json={"id": 1, "body": "x"})
        if request.method == "POST" and path == "/repos/octo/repo/issues/5/comments":
            return httpx.Response(201, json={"id": 2, "body": "summary"})
        return httpx.Response(404, text="not found")


def _host(fake: FakeGitHub, head_sha: str | None = None) -> GitHubReviewHost:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    client = GitHubClient(api_base_url="https://api.github.example.com", token="tok", http_client=http_client)
    return GitHubReviewHost(client=client, owner="octo", repo="repo", pull_number=5, head_sha=head_sha)


def test_github_host_paginates_files() -> None:
    fake = FakeGitHub(total_files=150)
    changes = asyncio.run(_host(fake).get_merge_request_changes())
    assert len(changes) == 150
    assert changes[0].new_path == "f0.py"
    assert fake.requests[0].headers["Authorization"] == "Bearer tok"


def test_github_host_maps_statuses_and_missing_patch() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"filename": "new.py", "status": "renamed", "previous_filename": "old.py", "patch": "@@ -1 +1 @@\n-a\n+b"},
                {"filename": "gone.py", "status": "removed", "patch": "@@ -1 +0,0 @@\n-a"},
                {"filename": "image.png", "status": "added"},
            ],
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = GitHubClient(api_base_url="https://api.github.example.com", token="tok", http_client=http_client)
    host = GitHubReviewHost(client=client, owner="octo", repo="repo", pull_number=5)
    renamed, removed, binary = asyncio.run(host.get_merge_request_changes())
    assert renamed.is_renamed_file and renamed.old_path == "old.py"
    assert removed.is_deleted_file
    assert binary.is_new_file and binary.diff == ""


def test_github_host_init_fetches_head_sha_and_comments_on_right_side() -> None:
    fake = FakeGitHub()
    host = _host(fake)
    change = ChangedFile(new_path="src/a.py", old_path="src/a.py", diff="")

    async def scenario() -> None:
        await host.init()
        await host.add_review_comment(anchor=LineAnchor(new_line=3, old_line=2), change=change, suggestion="Rename x")

    asyncio.run(scenario())
    payload = json.loads(fake.requests[-1].content)
    assert payload == {"commit_id": "headsha", "path": "src/a.py", "body": "Rename x", "line": 3, "side": "RIGHT"}


def test_github_host_webhook_head_sha_skips_fetch() -> None:
    fake = FakeGitHub()
    asyncio.run(_host(fake, head_sha="given").init())
    assert fake.requests == []


def test_anchor_to_github_line() -> None:
    assert anchor_to_github_line(LineAnchor(new_line=4)) == (4, "RIGHT")
    assert anchor_to_github_line(LineAnchor(old_line=9)) == (9, "LEFT")
    assert anchor_to_github_line(LineAnchor(new_line=0, old_line=9)) == (9, "LEFT")
    with pytest.raises(ValueError):
        anchor_to_github_line(LineAnchor(new_line=0))


def test_github_host_add_comment_uses_issue_comments() -> None:
    fake = FakeGitHub()
    asyncio.run(_host(fake).add_comment("summary"))
    assert fake.requests[-1].url.path == "/repos/octo/repo/issues/5/comments"
