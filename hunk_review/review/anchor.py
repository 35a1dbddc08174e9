"""
Line Anchor Resolver（非 AI，确定性）。

根据 hunk header + hunk 文本计算评论挂载行：
- 倒数第二行以 `+` 开头：只挂 new side
- 倒数第二行以 `-` 开头：只挂 old side
- 其他（上下文行 / hunk 不足两行）：两侧都挂

注意：行号算法是 `start + count - 1`，count 省略时按 0 计算。
单行 hunk（`@@ -5 +7 @@`）会得到 start - 1，这是评论后端现有的约定，不要“修正”。
"""

from __future__ import annotations

import re

from hunk_review.review.models import HunkHeader
from hunk_review.review.models import LineAnchor

_LINE_SPLIT_RE = re.compile(r"\r?\n")


def _second_to_last_line(hunk_text: str) -> str:
    lines = _LINE_SPLIT_RE.split(hunk_text)
    if len(lines) < 2:
        return ""
    return lines[-2].rstrip()


def resolve_anchor(header: HunkHeader, hunk_text: str) -> LineAnchor:
    """计算 hunk 的评论锚点（只依赖 header 数字与倒数第二行的前缀）。"""
    new_line = header.new_start + header.new_count - 1
    old_line = header.old_start + header.old_count - 1

    terminal = _second_to_last_line(hunk_text)
    if terminal.startswith("+"):
        return LineAnchor(new_line=new_line)
    if terminal.startswith("-"):
        return LineAnchor(old_line=old_line)
    return LineAnchor(new_line=new_line, old_line=old_line)
