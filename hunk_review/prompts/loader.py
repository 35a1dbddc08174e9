"""
Prompt 加载（每次 run 解析一次，显式传给 reviewer）。

解析顺序：
- PromptSource.text（直接覆盖）
- PromptSource.path（本地文件，或 `s3://bucket/key`）
- 内置默认值

两个 prompt 并发加载（asyncio.gather），都完成后才会发第一次 AI 调用。
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from hunk_review.config import PromptConfig
from hunk_review.config import PromptSource
from hunk_review.config import S3Config
from hunk_review.config import SetupError
from hunk_review.prompts.defaults import DEFAULT_CODE_REVIEW_PROMPT
from hunk_review.prompts.defaults import DEFAULT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

S3_SCHEME = "s3"


class PromptLoadError(SetupError):
    pass


class ReviewPrompts(BaseModel):
    """解析完成的 prompt 对（不可变）。"""

    model_config = ConfigDict(frozen=True)

    system_prompt: str
    code_review_prompt: str


def _split_s3_uri(uri: str) -> tuple[str, str]:
    parsed = urlparse(uri)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")
    if not bucket or not key:
        raise PromptLoadError(f"Invalid S3 path (expected s3://bucket/key): {uri}")
    return bucket, key


def _read_s3_object(uri: str, s3: S3Config) -> str:
    bucket, key = _split_s3_uri(uri)
    client = boto3.client(
        "s3",
        region_name=s3.region,
        aws_access_key_id=s3.access_key,
        aws_secret_access_key=s3.secret_key,
    )
    try:
        response = client.get_object(Bucket=bucket, Key=key)
        return response["Body"].read().decode("utf-8")
    except (BotoCoreError, ClientError) as exc:
        raise PromptLoadError(f"Failed to load prompt from {uri}: {exc}") from exc


def _read_local_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise PromptLoadError(f"Failed to load prompt from {path}: {exc}") from exc


async def read_prompt_path(path: str, s3: S3Config) -> str:
    """读取 path 指向的 prompt（阻塞 IO 放到线程里，便于和另一个 prompt 并发）。"""
    if urlparse(path).scheme == S3_SCHEME:
        return await asyncio.to_thread(_read_s3_object, path, s3)
    return await asyncio.to_thread(_read_local_file, path)


async def resolve_prompt(source: PromptSource, default: str, s3: S3Config) -> str:
    if source.text is not None:
        return source.text.strip()
    if source.path is not None:
        content = (await read_prompt_path(source.path, s3)).strip()
        logger.info(f"Loaded prompt from {source.path} ({len(content)} chars)")
        return content
    return default


async def load_prompts(config: PromptConfig) -> ReviewPrompts:
    system_prompt, code_review_prompt = await asyncio.gather(
        resolve_prompt(source=config.system, default=DEFAULT_SYSTEM_PROMPT, s3=config.s3),
        resolve_prompt(source=config.code_review, default=DEFAULT_CODE_REVIEW_PROMPT, s3=config.s3),
    )
    return ReviewPrompts(system_prompt=system_prompt, code_review_prompt=code_review_prompt)
