from __future__ import annotations

import re

from hunk_review.review.models import ChangedFile
from hunk_review.review.models import HunkHeader

# @@ -a[,b] +c[,d] @@
HUNK_HEADER_PATTERN = r"@@\s-(\d+)(?:,(\d+))?\s\+(\d+)(?:,(\d+))?\s@@"

_HUNK_HEADER_RE = re.compile(HUNK_HEADER_PATTERN)
_HUNK_SPLIT_RE = re.compile(r"(?=@@\s-\d+(?:,\d+)?\s\+\d+(?:,\d+)?\s@@)")


class MalformedHunkHeaderError(ValueError):
    pass


def is_reviewable_change(change: ChangedFile) -> bool:
    if change.is_renamed_file or change.is_deleted_file:
        return False
    return change.diff.startswith("@@")


def split_into_hunks(diff: str) -> list[str]:
    """按 hunk header 零宽切分；各段拼接后与输入完全一致。"""
    return [block for block in _HUNK_SPLIT_RE.split(diff) if block]


def parse_hunk_header(text: str) -> HunkHeader:
    match = _HUNK_HEADER_RE.search(text)
    if match is None:
        raise MalformedHunkHeaderError(f"Invalid diff hunk header: {text[:80]!r}")
    old_start, old_count, new_start, new_count = match.groups()
    return HunkHeader(
        old_start=int(old_start),
        old_count=int(old_count or 0),
        new_start=int(new_start),
        new_count=int(new_count or 0),
    )


def extract_changed_code(hunk_text: str) -> str:
    lines = hunk_text.split("\n")
    return "\n".join(line[1:] for line in lines if line.startswith(("+", "-")))
