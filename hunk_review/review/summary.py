from __future__ import annotations

"""
No-feedback 汇总（确定性输出，不依赖 LLM）。

整次 run 结束后最多发一条全局评论；没有记录就不发。
"""

import logging
from collections.abc import Sequence

from hunk_review.review.hosting import ReviewHostingClient
from hunk_review.review.models import NoFeedbackRecord

logger = logging.getLogger(__name__)


def _format_line(value: int | None) -> str:
    return "n/a" if value is None else str(value)


def build_no_feedback_summary(records: Sequence[NoFeedbackRecord]) -> str:
    """每条记录一行：文件路径 + new_line - old_line。"""
    lines: list[str] = []
    lines.append("### No Feedback Summary")
    lines.append("")
    lines.append("The following changes were reviewed and required no further feedback, great work 💪 :")
    lines.append("")
    for r in records:
        lines.append(
            f"- File: `{r.path}`, Line: {_format_line(r.anchor.new_line)} - {_format_line(r.anchor.old_line)}"
        )
    return "\n".join(lines)


async def post_no_feedback_summary(host: ReviewHostingClient, records: Sequence[NoFeedbackRecord]) -> bool:
    """发出汇总评论；返回是否真的发了。"""
    if not records:
        return False
    await host.add_comment(build_no_feedback_summary(records=records))
    logger.info(f"Posted no-feedback summary for {len(records)} hunk(s)")
    return True
