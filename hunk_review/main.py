"""
FastAPI 服务入口（webhook 模式）。

这里做三件事：
- 加载配置（严格校验环境变量，webhook secret 必填）
- 组装外部依赖（共享的 httpx.AsyncClient）
- 装配路由（health + gitlab/github webhook）

注意：
- 业务流程不写在这里（由 `review/orchestrator.py` 负责）
- prompts / reviewer 每次 webhook 事件解析一次（一个事件 = 一次 run）

启动：
  hunk-review-server（或 uvicorn hunk_review.main:build_app --factory）
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI

from hunk_review.config import load_config_from_env
from hunk_review.github.webhook import build_github_webhook_router
from hunk_review.gitlab.webhook import build_gitlab_webhook_router
from hunk_review.review.orchestrator import build_github_webhook_handler
from hunk_review.review.orchestrator import build_gitlab_webhook_handler


def build_app(environ: Mapping[str, str] | None = None) -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ if environ is None else environ, require_webhook_secret=True)

    # 2) 可复用的 HTTP client：供 GitLab/GitHub API 与 LLM 调用使用
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(60.0))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await http_client.aclose()

    app = FastAPI(title="Hunk Review", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    if config.gitlab is not None:
        gitlab_handler = build_gitlab_webhook_handler(config=config, http_client=http_client)
        app.include_router(build_gitlab_webhook_router(config=config.gitlab, handler=gitlab_handler))
    if config.github is not None:
        github_handler = build_github_webhook_handler(config=config, http_client=http_client)
        app.include_router(build_github_webhook_router(config=config.github, handler=github_handler))
    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(build_app, factory=True, host=host, port=port)


if __name__ == "__main__":
    main()
