from __future__ import annotations

import asyncio
import io
import json

import httpx
import pytest
from botocore.exceptions import ClientError

from hunk_review.config import AIConfig
from hunk_review.config import AIProvider
from hunk_review.config import SetupError
from hunk_review.llm.bedrock import BedrockReviewer
from hunk_review.llm.client import OpenAICompatReviewer
from hunk_review.llm.factory import create_ai_reviewer
from hunk_review.llm.gemini import GeminiReviewer
from hunk_review.llm.reviewer import ReviewerHTTPError
from hunk_review.llm.reviewer import ReviewerResponseError
from hunk_review.prompts.loader import ReviewPrompts

PROMPTS = ReviewPrompts(system_prompt="SYSTEM", code_review_prompt="REVIEW")
HUNK = "@@ -1,2 +1,3 @@\n a\n+b\n"


def _gemini(handler: httpx.MockTransport) -> GeminiReviewer:
    http_client = httpx.AsyncClient(transport=handler)
    return GeminiReviewer(
        api_key="secret-key",
        api_url="https://gemini.example.com/",
        http_client=http_client,
        prompts=PROMPTS,
    )


def test_gemini_review_code_change_builds_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Rename x\n"}]}}]})

    reviewer = _gemini(httpx.MockTransport(handler))
    assert asyncio.run(reviewer.review_code_change(HUNK)) == "Rename x"

    request = seen[0]
    assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert request.url.params["key"] == "secret-key"
    body = json.loads(request.content)
    assert body["contents"][0]["parts"][0]["text"] == HUNK
    assert [p["text"] for p in body["systemInstruction"]["parts"]] == ["SYSTEM", "REVIEW"]
    assert len(body["safetySettings"]) == 4


def test_gemini_rate_limit_carries_status_code() -> None:
    reviewer = _gemini(httpx.MockTransport(lambda request: httpx.Response(429, text="quota")))
    with pytest.raises(ReviewerHTTPError) as exc_info:
        asyncio.run(reviewer.review_code_change(HUNK))
    assert exc_info.value.status_code == 429


def test_gemini_unexpected_response_shape() -> None:
    reviewer = _gemini(httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []})))
    with pytest.raises(ReviewerResponseError):
        asyncio.run(reviewer.review_code_change(HUNK))


def test_gemini_rejects_empty_change() -> None:
    reviewer = _gemini(httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(ValueError):
        asyncio.run(reviewer.review_code_change("   "))


class FakeBedrockClient:
    def __init__(self, results: list[str | int]) -> None:
        self._results = list(results)
        self.calls: list[dict[str, object]] = []

    def invoke_model(self, **kwargs: object) -> dict[str, object]:
        self.calls.append(kwargs)
        result = self._results.pop(0)
        if isinstance(result, int):
            raise ClientError(
                {"Error": {"Code": "ThrottlingException", "Message": "slow"}, "ResponseMetadata": {"HTTPStatusCode": result}},
                "InvokeModel",
            )
        payload = {"content": [{"text": result}]}
        return {"body": io.BytesIO(json.dumps(payload).encode("utf-8"))}


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _bedrock(client: FakeBedrockClient, sleep: RecordingSleep) -> BedrockReviewer:
    return BedrockReviewer(api_key="AKIA", api_secret="secret", prompts=PROMPTS, client=client, sleep=sleep)


def test_bedrock_review_code_change_builds_prompt() -> None:
    client = FakeBedrockClient(["Looks good"])
    reviewer = _bedrock(client, RecordingSleep())
    assert asyncio.run(reviewer.review_code_change(HUNK)) == "Looks good"

    call = client.calls[0]
    assert call["modelId"] == "anthropic.claude-3-5-sonnet-20241022-v2:0"
    body = json.loads(str(call["body"]))
    assert body["anthropic_version"] == "bedrock-2023-05-31"
    assert body["messages"][0]["content"] == f"SYSTEM\n\nREVIEW\n\n{HUNK}"


def test_bedrock_retries_transient_errors_with_backoff() -> None:
    client = FakeBedrockClient([503, 429, "ok"])
    sleep = RecordingSleep()
    assert asyncio.run(_bedrock(client, sleep).review_code_change(HUNK)) == "ok"
    assert sleep.calls == [1.0, 2.0]


def test_bedrock_exhausted_retries_surface_rate_limit() -> None:
    client = FakeBedrockClient([429, 429, 429, 429])
    sleep = RecordingSleep()
    with pytest.raises(ReviewerHTTPError) as exc_info:
        asyncio.run(_bedrock(client, sleep).review_code_change(HUNK))
    assert exc_info.value.status_code == 429
    assert len(client.calls) == 4
    assert sleep.calls == [1.0, 2.0, 4.0]


def test_bedrock_invalid_response_is_not_retried() -> None:
    client = FakeBedrockClient([""])
    sleep = RecordingSleep()
    with pytest.raises(ReviewerResponseError):
        asyncio.run(_bedrock(client, sleep).review_code_change(HUNK))
    assert sleep.calls == []


def test_bedrock_requires_secret() -> None:
    with pytest.raises(SetupError):
        BedrockReviewer(api_key="AKIA", api_secret=None, prompts=PROMPTS, client=FakeBedrockClient([]))


def test_openai_compat_reviewer_sends_prompts_and_hunk() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-1",
                "object": "chat.completion",
                "created": 0,
                "model": "m",
                "choices": [
                    {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": "204"}}
                ],
            },
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = AIConfig(provider=AIProvider.OPENAI, api_key="k", model="m", api_url="https://llm.example.com")
    reviewer = create_ai_reviewer(config=config, prompts=PROMPTS, http_client=http_client)
    assert isinstance(reviewer, OpenAICompatReviewer)
    assert asyncio.run(reviewer.review_code_change(HUNK)) == "204"

    messages = seen[0]["messages"]
    assert messages == [
        {"role": "system", "content": "SYSTEM\n\nREVIEW"},
        {"role": "user", "content": HUNK},
    ]


def test_factory_selects_gemini_by_default() -> None:
    config = AIConfig(api_key="k")
    reviewer = create_ai_reviewer(config=config, prompts=PROMPTS, http_client=httpx.AsyncClient())
    assert isinstance(reviewer, GeminiReviewer)


def test_factory_bedrock_without_secret_is_setup_error() -> None:
    config = AIConfig(provider=AIProvider.BEDROCK, api_key="k")
    with pytest.raises(SetupError):
        create_ai_reviewer(config=config, prompts=PROMPTS, http_client=httpx.AsyncClient())


def test_openai_compat_reviewer_without_api_url_uses_sdk_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-2",
                "object": "chat.completion",
                "created": 0,
                "model": "m",
                "choices": [{"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": "ok"}}],
            },
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = AIConfig(provider=AIProvider.OPENAI, api_key="k", model="m")
    reviewer = create_ai_reviewer(config=config, prompts=PROMPTS, http_client=http_client)
    assert asyncio.run(reviewer.review_code_change(HUNK)) == "ok"
    assert seen[0].url.host == "api.openai.com"
