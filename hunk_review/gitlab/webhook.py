"""
GitLab Webhook 接入层。

职责：
- 校验 `X-Gitlab-Token`（防止被随意调用）
- 解析 webhook payload -> Pydantic schema（类型安全）
- 过滤掉不关心的事件（只处理 MR open/update/reopen）
- 把 review 放到后台任务里跑（限流冷却可能持续数分钟，不能阻塞 webhook 响应）
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import APIRouter
from fastapi import BackgroundTasks
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request

from hunk_review.config import GitLabConfig
from hunk_review.gitlab.schemas import GitLabMergeRequestWebhookEvent

HANDLED_ACTIONS = ("open", "update", "reopen")

WebhookHandler = Callable[[GitLabMergeRequestWebhookEvent], Awaitable[None]]


def build_gitlab_webhook_router(config: GitLabConfig, handler: WebhookHandler) -> APIRouter:
    """创建 GitLab webhook 路由。"""
    router = APIRouter()

    @router.post("/gitlab/webhook")
    async def gitlab_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_gitlab_token: str = Header(alias="X-Gitlab-Token"),
    ) -> dict[str, str]:
        # 1) Webhook secret 校验（GitLab UI 里配置）
        if not config.webhook_secret or x_gitlab_token != config.webhook_secret:
            raise HTTPException(status_code=401, detail="Invalid webhook token")

        # 2) 解析 payload（不做 try/except：出错就直接 4xx，便于发现问题）
        payload = await request.json()
        if payload.get("object_kind") != "merge_request":
            return {"status": "ignored"}

        # 3) 只处理我们关心的 MR 动作（approval 等其它动作直接忽略，不做 schema 校验）
        attributes = payload.get("object_attributes") or {}
        if attributes.get("action") not in HANDLED_ACTIONS:
            return {"status": "ignored"}
        event = GitLabMergeRequestWebhookEvent.model_validate(payload)

        background_tasks.add_task(handler, event)
        return {"status": "accepted"}

    return router
