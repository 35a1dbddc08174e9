"""
GitHub Webhook 接入层。

职责：
- 校验 `X-Hub-Signature-256`（HMAC SHA256）
- 校验 event 类型（只处理 pull_request）
- 过滤 action（opened/reopened/synchronize），其余动作直接 ignored
- 解析 payload -> Pydantic schema
- 后台执行业务 handler
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Awaitable, Callable

from fastapi import APIRouter
from fastapi import BackgroundTasks
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request

from hunk_review.config import GitHubConfig
from hunk_review.github.schemas import GitHubPullRequestWebhookEvent

HANDLED_ACTIONS = ("opened", "reopened", "synchronize")

GitHubWebhookHandler = Callable[[GitHubPullRequestWebhookEvent], Awaitable[None]]


def _verify_github_signature(body: bytes, signature_header: str, secret: str) -> None:
    if not signature_header.startswith("sha256="):
        raise HTTPException(status_code=401, detail="Invalid signature header")
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature_header):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")


def build_github_webhook_router(config: GitHubConfig, handler: GitHubWebhookHandler) -> APIRouter:
    router = APIRouter()

    @router.post("/github/webhook")
    async def github_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_github_event: str = Header(alias="X-GitHub-Event"),
        x_hub_signature_256: str = Header(alias="X-Hub-Signature-256"),
    ) -> dict[str, str]:
        if not config.webhook_secret:
            raise HTTPException(status_code=401, detail="Webhook secret not configured")
        body = await request.body()
        _verify_github_signature(body=body, signature_header=x_hub_signature_256, secret=config.webhook_secret)

        if x_github_event != "pull_request":
            return {"status": "ignored"}
        try:
            payload = json.loads(body.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc

        if not isinstance(payload, dict) or payload.get("action") not in HANDLED_ACTIONS:
            return {"status": "ignored"}
        event = GitHubPullRequestWebhookEvent.model_validate(payload)

        background_tasks.add_task(handler, event)
        return {"status": "accepted"}

    return router
