"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/枚举/数值范围
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试

CLI 会把命令行参数合并进同一个 mapping，再走这里的校验。
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel, Field, HttpUrl

DEFAULT_GEMINI_API_URL = "https://generativelanguage.googleapis.com"
DEFAULT_GITLAB_BASE_URL = "https://gitlab.com"
DEFAULT_GITHUB_API_BASE_URL = "https://api.github.com"
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS = 60.0


class SetupError(RuntimeError):
    """启动阶段的致命错误（缺密钥、prompt 加载失败等），整次 run 直接中止。"""

    pass


class AIProvider(str, Enum):
    GEMINI = "gemini"
    BEDROCK = "bedrock"
    OPENAI = "openai"


class AIConfig(BaseModel):
    """AI reviewer 配置；api_secret 只有 bedrock 需要。"""

    provider: AIProvider = AIProvider.GEMINI
    api_key: str
    api_secret: str | None = None
    region: str = DEFAULT_AWS_REGION
    model: str | None = None
    api_url: HttpUrl | None = None


class PromptSource(BaseModel):
    """单个 prompt 的来源：text 优先，其次 path（本地或 s3://），都没有就用内置默认值。"""

    text: str | None = None
    path: str | None = None


class S3Config(BaseModel):
    region: str | None = None
    access_key: str | None = None
    secret_key: str | None = None


class PromptConfig(BaseModel):
    system: PromptSource = Field(default_factory=PromptSource)
    code_review: PromptSource = Field(default_factory=PromptSource)
    s3: S3Config = Field(default_factory=S3Config)


class GitLabConfig(BaseModel):
    base_url: HttpUrl
    token: str
    webhook_secret: str | None = None


class GitHubConfig(BaseModel):
    api_base_url: HttpUrl
    token: str
    webhook_secret: str | None = None


class ReviewConfig(BaseModel):
    """orchestrator 行为参数：限流冷却必须 > 0（保证重新入队后一定有进展）。"""

    rate_limit_cooldown_seconds: float = Field(default=DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS, gt=0)


class AppConfig(BaseModel):
    """至少配置一个代码托管平台（GitLab / GitHub）。"""

    ai: AIConfig
    prompts: PromptConfig = Field(default_factory=PromptConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    gitlab: GitLabConfig | None = None
    github: GitHubConfig | None = None


def _get(environ: Mapping[str, str], key: str) -> str | None:
    """空字符串视为未配置。"""
    value = environ.get(key)
    if value is None or not value.strip():
        return None
    return value


def _load_ai_config(environ: Mapping[str, str]) -> AIConfig:
    api_key = _get(environ, "AI_API_KEY")
    if api_key is None:
        raise ValueError("Missing required env vars: AI_API_KEY")

    raw_provider = (_get(environ, "AI_PROVIDER") or AIProvider.GEMINI.value).lower()
    try:
        provider = AIProvider(raw_provider)
    except ValueError as exc:
        raise ValueError(f"Unsupported AI provider: {raw_provider}") from exc

    api_secret = _get(environ, "AI_API_SECRET")
    if provider is AIProvider.BEDROCK and api_secret is None:
        raise ValueError("Missing required env vars: AI_API_SECRET (AWS Secret Access Key is required for Bedrock)")

    model = _get(environ, "AI_MODEL")
    if provider is AIProvider.OPENAI and model is None:
        raise ValueError("Missing required env vars: AI_MODEL (required for openai provider)")

    api_url = _get(environ, "AI_API_URL")
    if api_url is None and provider is AIProvider.GEMINI:
        api_url = DEFAULT_GEMINI_API_URL

    return AIConfig(
        provider=provider,
        api_key=api_key,
        api_secret=api_secret,
        region=_get(environ, "AI_REGION") or DEFAULT_AWS_REGION,
        model=model,
        api_url=api_url,
    )


def _load_prompt_config(environ: Mapping[str, str]) -> PromptConfig:
    return PromptConfig(
        system=PromptSource(text=_get(environ, "SYSTEM_PROMPT"), path=_get(environ, "SYSTEM_PROMPT_PATH")),
        code_review=PromptSource(
            text=_get(environ, "CODE_REVIEW_PROMPT"),
            path=_get(environ, "CODE_REVIEW_PROMPT_PATH"),
        ),
        s3=S3Config(
            region=_get(environ, "S3_REGION"),
            access_key=_get(environ, "S3_ACCESS_KEY"),
            secret_key=_get(environ, "S3_SECRET_KEY"),
        ),
    )


def _load_scm_section(
    environ: Mapping[str, str],
    url_key: str,
    token_key: str,
    secret_key: str,
    require_webhook_secret: bool,
) -> tuple[str | None, str | None, str | None]:
    """
    读取一个平台的配置段。

    - 全部未设置：返回 (None, None, None)，表示未启用
    - 部分设置：直接报错（避免半配置状态）
    """
    url = _get(environ, url_key)
    token = _get(environ, token_key)
    secret = _get(environ, secret_key)
    if url is None and token is None and secret is None:
        return None, None, None

    required = [token_key] + ([secret_key] if require_webhook_secret else [])
    missing = [key for key in required if _get(environ, key) is None]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")
    return url, token, secret


def load_config_from_env(environ: Mapping[str, str], require_webhook_secret: bool = False) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）；webhook 服务传 `require_webhook_secret=True`
    - **输出**：`AppConfig`
    - **失败**：缺失/非法则抛 `ValueError`（pydantic 的 ValidationError 也是 ValueError）
    """
    ai = _load_ai_config(environ)
    prompts = _load_prompt_config(environ)

    cooldown = _get(environ, "RATE_LIMIT_COOLDOWN_SECONDS")
    review = ReviewConfig() if cooldown is None else ReviewConfig(rate_limit_cooldown_seconds=cooldown)

    gitlab_url, gitlab_token, gitlab_secret = _load_scm_section(
        environ, "GITLAB_BASE_URL", "GITLAB_TOKEN", "GITLAB_WEBHOOK_SECRET", require_webhook_secret
    )
    github_url, github_token, github_secret = _load_scm_section(
        environ, "GITHUB_API_BASE_URL", "GITHUB_TOKEN", "GITHUB_WEBHOOK_SECRET", require_webhook_secret
    )

    gitlab = None
    if gitlab_token is not None:
        gitlab = GitLabConfig(
            base_url=gitlab_url or DEFAULT_GITLAB_BASE_URL,
            token=gitlab_token,
            webhook_secret=gitlab_secret,
        )
    github = None
    if github_token is not None:
        github = GitHubConfig(
            api_base_url=github_url or DEFAULT_GITHUB_API_BASE_URL,
            token=github_token,
            webhook_secret=github_secret,
        )

    if gitlab is None and github is None:
        raise ValueError("Missing SCM config: set GITLAB_TOKEN and/or GITHUB_TOKEN")

    # 交给 Pydantic 做类型校验（例如 URL 合法性）
    return AppConfig(ai=ai, prompts=prompts, review=review, gitlab=gitlab, github=github)
