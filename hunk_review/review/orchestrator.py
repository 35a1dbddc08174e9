"""
Review Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：files -> hunks -> anchor -> AI -> 行内评论 / no-feedback 汇总
- **AI 只负责“看一个 hunk 给建议”**：一次只有一个 AI 调用在飞

每个文件的状态：Fetching -> Splitting -> Draining(queue) -> Done
- queue 是 FIFO：限流（429）后冷却，再把 hunk 放回队尾，保证多个 hunk 轮流重试
- 冷却会阻塞整个 pipeline（所有文件共享同一个外部限流）
- 其他 AI 失败：丢弃该 hunk，记 warning + 计数，继续下一个
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from hunk_review.config import AppConfig
from hunk_review.config import DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS
from hunk_review.github.adapter import GitHubReviewHost
from hunk_review.github.client import GitHubClient
from hunk_review.github.schemas import GitHubPullRequestWebhookEvent
from hunk_review.gitlab.adapter import GitLabReviewHost
from hunk_review.gitlab.client import GitLabClient
from hunk_review.gitlab.schemas import GitLabMergeRequestWebhookEvent
from hunk_review.infra.rate_limit import Sleep
from hunk_review.infra.rate_limit import is_rate_limited
from hunk_review.llm.factory import create_ai_reviewer
from hunk_review.llm.reviewer import NO_REVIEW_CONTENT_PLACEHOLDER
from hunk_review.llm.reviewer import AIReviewer
from hunk_review.prompts.loader import load_prompts
from hunk_review.review.anchor import resolve_anchor
from hunk_review.review.diff_parser import MalformedHunkHeaderError
from hunk_review.review.diff_parser import extract_changed_code
from hunk_review.review.diff_parser import is_reviewable_change
from hunk_review.review.diff_parser import parse_hunk_header
from hunk_review.review.diff_parser import split_into_hunks
from hunk_review.review.hosting import ReviewHostingClient
from hunk_review.review.models import ChangedFile
from hunk_review.review.models import NoFeedbackRecord
from hunk_review.review.models import ReviewRunStats
from hunk_review.review.summary import post_no_feedback_summary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOrchestrator:
    """Orchestrator 运行时依赖集合（reviewer + 限流冷却策略）。"""

    reviewer: AIReviewer
    cooldown_seconds: float = DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS
    sleep: Sleep = asyncio.sleep


def build_review_orchestrator(
    reviewer: AIReviewer,
    cooldown_seconds: float = DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> ReviewOrchestrator:
    """创建 orchestrator；冷却时间必须 > 0，否则限流时会空转。"""
    if cooldown_seconds <= 0:
        raise ValueError("cooldown_seconds must be > 0")
    return ReviewOrchestrator(reviewer=reviewer, cooldown_seconds=cooldown_seconds, sleep=sleep)


async def _fetch_changes(host: ReviewHostingClient) -> list[ChangedFile]:
    """init / 拉 changes 失败只记日志，按空变更集处理（整次 run 变成 no-op）。"""
    try:
        await host.init()
    except Exception as exc:
        logger.warning(f"Review host init error: {exc}")

    try:
        return await host.get_merge_request_changes()
    except Exception as exc:
        logger.warning(f"Get merge request changes error: {exc}")
        return []


async def _drain_change(
    orchestrator: ReviewOrchestrator,
    host: ReviewHostingClient,
    change: ChangedFile,
    stats: ReviewRunStats,
) -> None:
    queue: deque[str] = deque(split_into_hunks(change.diff))
    while queue:
        block = queue.popleft()
        try:
            header = parse_hunk_header(block)
        except MalformedHunkHeaderError:
            stats.hunks_skipped += 1
            continue

        anchor = resolve_anchor(header=header, hunk_text=block)
        if not anchor.has_positive_line():
            stats.hunks_skipped += 1
            continue

        try:
            suggestion = await orchestrator.reviewer.review_code_change(block)
            if suggestion == NO_REVIEW_CONTENT_PLACEHOLDER:
                logger.info(f"No feedback for {change.new_path} at {anchor}")
                stats.no_feedback.append(
                    NoFeedbackRecord(path=change.new_path, anchor=anchor, code=extract_changed_code(block))
                )
                stats.hunks_reviewed += 1
                continue
            await host.add_review_comment(anchor=anchor, change=change, suggestion=suggestion)
            stats.hunks_reviewed += 1
            stats.comments_posted += 1
        except Exception as exc:
            if is_rate_limited(exc):
                logger.info(f"Too Many Requests, retrying {change.new_path} after {orchestrator.cooldown_seconds}s")
                stats.rate_limit_retries += 1
                await orchestrator.sleep(orchestrator.cooldown_seconds)
                queue.append(block)
                continue
            # 非限流失败：不重试，只丢弃该 hunk
            stats.dropped_failures += 1
            logger.warning(f"Dropped hunk in {change.new_path} at {anchor}: {type(exc).__name__}: {exc}")


async def run_review(orchestrator: ReviewOrchestrator, host: ReviewHostingClient) -> ReviewRunStats:
    """
    跑一次完整 review（文件严格串行），返回统计。

    - Step 1: 拉 changes（失败 -> 空集合）
    - Step 2: 逐文件切 hunk、算 anchor、调 AI、写回
    - Step 3: 所有文件结束后，最多发一条 no-feedback 汇总
    """
    stats = ReviewRunStats()
    changes = await _fetch_changes(host)
    logger.info(f"Review started: {len(changes)} changed file(s)")

    for change in changes:
        if not is_reviewable_change(change):
            continue
        await _drain_change(orchestrator=orchestrator, host=host, change=change, stats=stats)
        stats.files_reviewed += 1

    try:
        await post_no_feedback_summary(host=host, records=stats.no_feedback)
    except Exception as exc:
        logger.error(f"Failed to post no-feedback summary: {exc}")

    logger.info(
        "Review done: "
        f"files={stats.files_reviewed}, hunks={stats.hunks_reviewed}, comments={stats.comments_posted}, "
        f"no_feedback={len(stats.no_feedback)}, skipped={stats.hunks_skipped}, "
        f"rate_limit_retries={stats.rate_limit_retries}, dropped={stats.dropped_failures}"
    )
    return stats


async def review_with_config(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    host: ReviewHostingClient,
    sleep: Sleep = asyncio.sleep,
) -> ReviewRunStats:
    """
    装配一次 run：解析 prompts（并发）-> 创建 reviewer -> run_review。

    prompt / reviewer 创建失败属于 setup 错误，直接抛出。
    """
    prompts = await load_prompts(config.prompts)
    reviewer = create_ai_reviewer(config=config.ai, prompts=prompts, http_client=http_client)
    orchestrator = build_review_orchestrator(
        reviewer=reviewer,
        cooldown_seconds=config.review.rate_limit_cooldown_seconds,
        sleep=sleep,
    )
    return await run_review(orchestrator=orchestrator, host=host)


def build_gitlab_webhook_handler(
    config: AppConfig,
    http_client: httpx.AsyncClient,
) -> Callable[[GitLabMergeRequestWebhookEvent], Awaitable[None]]:
    """
    装配 GitLab webhook handler：
    - 把外部依赖（GitLabClient）和业务编排绑定起来
    - 返回一个 `async def handle(event)` 给 webhook 路由调用
    """
    if config.gitlab is None:
        raise ValueError("GitLab is not configured")
    gitlab_client = GitLabClient(
        base_url=str(config.gitlab.base_url).rstrip("/"),
        private_token=config.gitlab.token,
        http_client=http_client,
    )

    async def handle(event: GitLabMergeRequestWebhookEvent) -> None:
        """处理单次 MR webhook：逐 hunk review 并写回 GitLab。"""
        host = GitLabReviewHost(
            client=gitlab_client,
            project_id=event.project.id,
            mr_iid=event.object_attributes.iid,
        )
        await review_with_config(config=config, http_client=http_client, host=host)

    return handle


def build_github_webhook_handler(
    config: AppConfig,
    http_client: httpx.AsyncClient,
) -> Callable[[GitHubPullRequestWebhookEvent], Awaitable[None]]:
    if config.github is None:
        raise ValueError("GitHub is not configured")
    github_client = GitHubClient(
        api_base_url=str(config.github.api_base_url).rstrip("/"),
        token=config.github.token,
        http_client=http_client,
    )

    async def handle(event: GitHubPullRequestWebhookEvent) -> None:
        host = GitHubReviewHost(
            client=github_client,
            owner=event.repository.owner.login,
            repo=event.repository.name,
            pull_number=event.pull_request.number,
            head_sha=event.pull_request.head.sha,
        )
        await review_with_config(config=config, http_client=http_client, host=host)

    return handle
