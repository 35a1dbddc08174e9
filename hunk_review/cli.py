"""
CLI 入口（一次性 review，适合在 CI job 里跑）。

- 命令行参数覆盖同名环境变量，然后统一走 `load_config_from_env` 校验
- setup 失败（缺 key、prompt 加载失败等）：打印原因，退出码 1
- 其他错误都在 orchestrator 内部吸收，最终一定打印 `done`

示例：
  hunk-review --platform gitlab -t $GITLAB_TOKEN -p 42 -m 7 -k $GEMINI_API_KEY
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence

import httpx

from hunk_review.config import AppConfig
from hunk_review.config import SetupError
from hunk_review.config import load_config_from_env
from hunk_review.github.adapter import GitHubReviewHost
from hunk_review.github.client import GitHubClient
from hunk_review.gitlab.adapter import GitLabReviewHost
from hunk_review.gitlab.client import GitLabClient
from hunk_review.review.hosting import ReviewHostingClient
from hunk_review.review.models import ReviewRunStats
from hunk_review.review.orchestrator import review_with_config

logger = logging.getLogger(__name__)

# argparse dest -> 环境变量名
_FLAG_ENV_KEYS: dict[str, str] = {
    "gitlab_api_url": "GITLAB_BASE_URL",
    "gitlab_access_token": "GITLAB_TOKEN",
    "github_api_url": "GITHUB_API_BASE_URL",
    "github_token": "GITHUB_TOKEN",
    "ai_provider": "AI_PROVIDER",
    "api_key": "AI_API_KEY",
    "api_secret": "AI_API_SECRET",
    "region": "AI_REGION",
    "custom_model": "AI_MODEL",
    "api_url": "AI_API_URL",
    "system_prompt": "SYSTEM_PROMPT",
    "system_prompt_path": "SYSTEM_PROMPT_PATH",
    "code_review_prompt": "CODE_REVIEW_PROMPT",
    "code_review_prompt_path": "CODE_REVIEW_PROMPT_PATH",
    "s3_region": "S3_REGION",
    "s3_access_key": "S3_ACCESS_KEY",
    "s3_secret_key": "S3_SECRET_KEY",
    "rate_limit_cooldown": "RATE_LIMIT_COOLDOWN_SECONDS",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hunk-review",
        description="Review a merge/pull request hunk by hunk with an AI reviewer.",
    )
    parser.add_argument("--platform", choices=("gitlab", "github"), default="gitlab")

    gitlab = parser.add_argument_group("GitLab")
    gitlab.add_argument("-g", "--gitlab-api-url", help="GitLab instance URL, e.g. https://gitlab.com (a trailing /api/v4 is accepted)")
    gitlab.add_argument("-t", "--gitlab-access-token", help="GitLab access token")
    gitlab.add_argument("-p", "--project-id", help="GitLab project ID")
    gitlab.add_argument("-m", "--merge-request-id", type=int, help="GitLab merge request IID")

    github = parser.add_argument_group("GitHub")
    github.add_argument("--github-api-url", help="GitHub API URL (default https://api.github.com)")
    github.add_argument("--github-token", help="GitHub token")
    github.add_argument("--repository", help="owner/repo")
    github.add_argument("--pull-number", type=int, help="Pull request number")

    ai = parser.add_argument_group("AI provider")
    ai.add_argument("-a", "--ai-provider", help="gemini, bedrock or openai (default gemini)")
    ai.add_argument("-k", "--api-key", help="API key (Gemini API key, AWS access key ID, OpenAI key)")
    ai.add_argument("-s", "--api-secret", help="API secret (AWS secret access key for Bedrock)")
    ai.add_argument("-r", "--region", help="AWS region for Bedrock (default us-east-1)")
    ai.add_argument("-c", "--custom-model", help="Custom model ID")
    ai.add_argument("--api-url", help="Base URL of the AI API")

    prompts = parser.add_argument_group("Prompts")
    prompts.add_argument("--system-prompt", help="System prompt text")
    prompts.add_argument("--system-prompt-path", help="System prompt file (local path or s3://bucket/key)")
    prompts.add_argument("--code-review-prompt", help="Code review prompt text")
    prompts.add_argument("--code-review-prompt-path", help="Code review prompt file (local path or s3://bucket/key)")
    prompts.add_argument("--s3-region", help="AWS region for S3 prompt paths")
    prompts.add_argument("--s3-access-key", help="AWS access key ID for S3 prompt paths")
    prompts.add_argument("--s3-secret-key", help="AWS secret access key for S3 prompt paths")

    parser.add_argument("--rate-limit-cooldown", type=float, help="Seconds to wait after a 429 (default 60)")
    parser.add_argument("--log-level", default="INFO", choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    return parser


def merge_flags_into_environ(args: argparse.Namespace, environ: Mapping[str, str]) -> dict[str, str]:
    """命令行参数优先于环境变量。"""
    merged = dict(environ)
    for dest, key in _FLAG_ENV_KEYS.items():
        value = getattr(args, dest, None)
        if value is not None:
            merged[key] = str(value)
    return merged


def _split_repository(repository: str) -> tuple[str, str]:
    owner, sep, repo = repository.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise ValueError(f"--repository must look like owner/repo, got: {repository}")
    return owner, repo


def build_host(args: argparse.Namespace, config: AppConfig, http_client: httpx.AsyncClient) -> ReviewHostingClient:
    if args.platform == "gitlab":
        if config.gitlab is None:
            raise ValueError("GitLab access token is required (--gitlab-access-token or GITLAB_TOKEN)")
        if args.project_id is None or args.merge_request_id is None:
            raise ValueError("--project-id and --merge-request-id are required for gitlab")
        client = GitLabClient(
            base_url=str(config.gitlab.base_url).rstrip("/"),
            private_token=config.gitlab.token,
            http_client=http_client,
        )
        return GitLabReviewHost(client=client, project_id=args.project_id, mr_iid=args.merge_request_id)

    if config.github is None:
        raise ValueError("GitHub token is required (--github-token or GITHUB_TOKEN)")
    if args.repository is None or args.pull_number is None:
        raise ValueError("--repository and --pull-number are required for github")
    owner, repo = _split_repository(args.repository)
    client = GitHubClient(
        api_base_url=str(config.github.api_base_url).rstrip("/"),
        token=config.github.token,
        http_client=http_client,
    )
    return GitHubReviewHost(client=client, owner=owner, repo=repo, pull_number=args.pull_number)


async def run_cli(args: argparse.Namespace, environ: Mapping[str, str]) -> ReviewRunStats:
    config = load_config_from_env(merge_flags_into_environ(args, environ))
    async with httpx.AsyncClient(timeout=httpx.Timeout(60.0)) as http_client:
        host = build_host(args=args, config=config, http_client=http_client)
        return await review_with_config(config=config, http_client=http_client, host=host)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        asyncio.run(run_cli(args=args, environ=os.environ))
    except (ValueError, SetupError) as exc:
        logger.error(f"Setup failed: {exc}")
        return 1

    print("done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
