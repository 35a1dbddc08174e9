from __future__ import annotations

import asyncio

import pytest

from hunk_review.llm.reviewer import NO_REVIEW_CONTENT_PLACEHOLDER
from hunk_review.llm.reviewer import ReviewerHTTPError
from hunk_review.llm.reviewer import ReviewerResponseError
from hunk_review.review.hosting import HostingAPIError
from hunk_review.review.models import ChangedFile
from hunk_review.review.models import LineAnchor
from hunk_review.review.models import ReviewRunStats
from hunk_review.review.orchestrator import build_review_orchestrator
from hunk_review.review.orchestrator import run_review


class FakeReviewer:
    """按调用顺序返回预设结果（str 或异常）。"""

    def __init__(self, results: list[str | Exception]) -> None:
        self._results = list(results)
        self.calls: list[str] = []

    async def review_code_change(self, change: str) -> str:
        self.calls.append(change)
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeHost:
    def __init__(
        self,
        changes: list[ChangedFile],
        init_error: Exception | None = None,
        changes_error: Exception | None = None,
        comment_errors: list[Exception] | None = None,
    ) -> None:
        self._changes = changes
        self._init_error = init_error
        self._changes_error = changes_error
        self._comment_errors = list(comment_errors or [])
        self.comments: list[tuple[LineAnchor, str, str]] = []
        self.notes: list[str] = []

    async def init(self) -> None:
        if self._init_error is not None:
            raise self._init_error

    async def get_merge_request_changes(self) -> list[ChangedFile]:
        if self._changes_error is not None:
            raise self._changes_error
        return self._changes

    async def add_review_comment(self, anchor: LineAnchor, change: ChangedFile, suggestion: str) -> None:
        if self._comment_errors:
            raise self._comment_errors.pop(0)
        self.comments.append((anchor, change.new_path, suggestion))

    async def add_comment(self, body: str) -> None:
        self.notes.append(body)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _change(path: str, diff: str, **flags: bool) -> ChangedFile:
    return ChangedFile(new_path=path, old_path=path, diff=diff, **flags)


def _run(reviewer: FakeReviewer, host: FakeHost, sleep: RecordingSleep | None = None) -> ReviewRunStats:
    orchestrator = build_review_orchestrator(reviewer=reviewer, cooldown_seconds=60.0, sleep=sleep or RecordingSleep())
    return asyncio.run(run_review(orchestrator=orchestrator, host=host))


TWO_HUNKS = "@@ -1,2 +1,3 @@\n a\n+b\n@@ -10,2 +11,1 @@\n c\n-d\n"


def test_end_to_end_single_inline_comment() -> None:
    reviewer = FakeReviewer(["Looks fine, consider renaming x"])
    host = FakeHost([_change("src/a.py", "@@ -1,2 +1,3 @@\n context\n+added\n")])
    stats = _run(reviewer, host)
    assert reviewer.calls == ["@@ -1,2 +1,3 @@\n context\n+added\n"]
    assert host.comments == [(LineAnchor(new_line=3), "src/a.py", "Looks fine, consider renaming x")]
    assert host.notes == []
    assert stats.comments_posted == 1
    assert stats.files_reviewed == 1


def test_all_sentinel_results_post_one_summary_and_no_inline_comments() -> None:
    reviewer = FakeReviewer([NO_REVIEW_CONTENT_PLACEHOLDER] * 3)
    host = FakeHost([_change("a.py", TWO_HUNKS), _change("b.py", "@@ -3,1 +3,2 @@\n x\n+y\n")])
    stats = _run(reviewer, host)
    assert host.comments == []
    assert len(host.notes) == 1
    summary = host.notes[0]
    assert "`a.py`, Line: 3 - n/a" in summary
    assert "`a.py`, Line: n/a - 11" in summary
    assert "`b.py`, Line: 4 - n/a" in summary
    assert [r.path for r in stats.no_feedback] == ["a.py", "a.py", "b.py"]
    assert stats.no_feedback[0].code == "b"
    assert stats.no_feedback[1].code == "d"


def test_sentinel_result_produces_one_record_for_that_hunk_only() -> None:
    reviewer = FakeReviewer([NO_REVIEW_CONTENT_PLACEHOLDER, "fix this"])
    host = FakeHost([_change("a.py", TWO_HUNKS)])
    stats = _run(reviewer, host)
    assert len(stats.no_feedback) == 1
    assert stats.no_feedback[0].anchor == LineAnchor(new_line=3)
    assert host.comments == [(LineAnchor(old_line=11), "a.py", "fix this")]
    assert len(host.notes) == 1


def test_no_sentinel_results_post_no_summary() -> None:
    reviewer = FakeReviewer(["one", "two"])
    host = FakeHost([_change("a.py", TWO_HUNKS)])
    _run(reviewer, host)
    assert len(host.comments) == 2
    assert host.notes == []


def test_rate_limited_hunk_is_requeued_at_the_tail() -> None:
    hunk_1 = "@@ -1,2 +1,3 @@\n a\n+b\n"
    hunk_2 = "@@ -10,2 +11,1 @@\n c\n-d\n"
    reviewer = FakeReviewer([ReviewerHTTPError("slow down", status_code=429), "second", "first"])
    host = FakeHost([_change("a.py", TWO_HUNKS)])
    sleep = RecordingSleep()
    stats = _run(reviewer, host, sleep)
    assert reviewer.calls == [hunk_1, hunk_2, hunk_1]
    assert sleep.calls == [60.0]
    assert [c[2] for c in host.comments] == ["second", "first"]
    assert stats.rate_limit_retries == 1
    assert stats.dropped_failures == 0


def test_each_rate_limit_failure_sleeps_once() -> None:
    limited = ReviewerHTTPError("slow down", status_code=429)
    reviewer = FakeReviewer([limited, limited, "ok"])
    host = FakeHost([_change("a.py", "@@ -1,2 +1,3 @@\n a\n+b\n")])
    sleep = RecordingSleep()
    stats = _run(reviewer, host, sleep)
    assert sleep.calls == [60.0, 60.0]
    assert len(reviewer.calls) == 3
    assert stats.comments_posted == 1


def test_rate_limited_comment_post_is_requeued() -> None:
    reviewer = FakeReviewer(["fix", "fix"])
    host = FakeHost(
        [_change("a.py", "@@ -1,2 +1,3 @@\n a\n+b\n")],
        comment_errors=[HostingAPIError("GitLab API error 429", status_code=429)],
    )
    sleep = RecordingSleep()
    stats = _run(reviewer, host, sleep)
    assert sleep.calls == [60.0]
    assert len(host.comments) == 1
    assert stats.rate_limit_retries == 1


def test_other_reviewer_failure_drops_hunk_and_continues() -> None:
    reviewer = FakeReviewer([ReviewerResponseError("bad shape"), "second"])
    host = FakeHost([_change("a.py", TWO_HUNKS)])
    sleep = RecordingSleep()
    stats = _run(reviewer, host, sleep)
    assert len(reviewer.calls) == 2
    assert [c[2] for c in host.comments] == ["second"]
    assert sleep.calls == []
    assert stats.dropped_failures == 1


def test_server_error_is_dropped_not_retried() -> None:
    reviewer = FakeReviewer([ReviewerHTTPError("boom", status_code=500)])
    host = FakeHost([_change("a.py", "@@ -1,2 +1,3 @@\n a\n+b\n")])
    stats = _run(reviewer, host)
    assert len(reviewer.calls) == 1
    assert stats.dropped_failures == 1
    assert stats.rate_limit_retries == 0


def test_non_positive_anchor_never_reaches_reviewer() -> None:
    # 单行 hunk 省略 count：1 + 0 - 1 = 0
    reviewer = FakeReviewer([])
    host = FakeHost([_change("a.py", "@@ -1 +1 @@\n+x\n"), _change("b.py", "@@ -0,0 +0,0 @@\n+y\n")])
    stats = _run(reviewer, host)
    assert reviewer.calls == []
    assert stats.hunks_skipped == 2


def test_malformed_hunk_header_is_skipped_without_review() -> None:
    reviewer = FakeReviewer([])
    host = FakeHost([_change("a.py", "@@ -x +y @@\n+z\n")])
    stats = _run(reviewer, host)
    assert reviewer.calls == []
    assert stats.hunks_skipped == 1
    assert host.comments == []
    assert host.notes == []


def test_malformed_block_does_not_stop_following_hunks() -> None:
    reviewer = FakeReviewer(["Rename b"])
    host = FakeHost([_change("a.py", "@@ -x +y @@\n+z\n@@ -1,2 +1,3 @@\n a\n+b\n")])
    stats = _run(reviewer, host)
    assert reviewer.calls == ["@@ -1,2 +1,3 @@\n a\n+b\n"]
    assert stats.hunks_skipped == 1
    assert host.comments == [(LineAnchor(new_line=3), "a.py", "Rename b")]


def test_filtered_files_are_not_reviewed() -> None:
    reviewer = FakeReviewer([])
    host = FakeHost(
        [
            _change("renamed.py", "@@ -1,2 +1,3 @@\n a\n+b\n", is_renamed_file=True),
            _change("deleted.py", "@@ -1,2 +0,0 @@\n-a\n-b\n", is_deleted_file=True),
            _change("image.png", "Binary files differ\n"),
            _change("empty.py", ""),
        ]
    )
    stats = _run(reviewer, host)
    assert reviewer.calls == []
    assert stats.files_reviewed == 0


def test_files_are_processed_sequentially_in_order() -> None:
    reviewer = FakeReviewer(["a", "b"])
    host = FakeHost([_change("first.py", "@@ -1,2 +1,3 @@\n a\n+b\n"), _change("second.py", "@@ -5,2 +5,3 @@\n a\n+b\n")])
    _run(reviewer, host)
    assert [c[1] for c in host.comments] == ["first.py", "second.py"]


def test_upstream_fetch_failure_is_a_no_op() -> None:
    reviewer = FakeReviewer([])
    host = FakeHost([], init_error=RuntimeError("init"), changes_error=RuntimeError("changes"))
    stats = _run(reviewer, host)
    assert stats == ReviewRunStats()
    assert host.comments == []
    assert host.notes == []


def test_init_failure_alone_still_reviews_changes() -> None:
    reviewer = FakeReviewer(["note"])
    host = FakeHost([_change("a.py", "@@ -1,2 +1,3 @@\n a\n+b\n")], init_error=RuntimeError("init"))
    stats = _run(reviewer, host)
    assert stats.comments_posted == 1


def test_build_review_orchestrator_rejects_non_positive_cooldown() -> None:
    with pytest.raises(ValueError):
        build_review_orchestrator(reviewer=FakeReviewer([]), cooldown_seconds=0)
