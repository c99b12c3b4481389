"""
Utilities to normalize model output into renderer-friendly Markdown.

normalize_markdown applies, in order:

  - close an unterminated ``` code fence
  - convert `*` / `•` bullets to `-`
  - blank line before and after every heading
  - blank line before the first and after the last item of each list
  - canonical horizontal rules
  - escape isolated asterisks
  - collapse 3+ newlines to 2 and trim

Lines inside fenced code blocks are left untouched by the line-level
steps. The transform is idempotent.
"""

from __future__ import annotations

import re
from typing import Callable, List


FENCE = "```"

_FENCE_LINE = re.compile(r"^\s*```")
_HEADING = re.compile(r"^#{1,6} \S")
_BULLET_MARKER = re.compile(r"^[ \t]*[•*] +")
_BULLET = re.compile(r"^-\s+\S")
_RULE = re.compile(r"^[ \t]*[-_]{3,}[ \t]*$")
_LONE_ASTERISK = re.compile(r"(?<!\S)\*(?!\S)")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _is_blank(line: str) -> bool:
    return line.strip() == ""


def _code_mask(lines: List[str]) -> List[bool]:
    """True for fence lines and every line inside a fenced block."""
    mask = []
    in_code = False
    for line in lines:
        if _FENCE_LINE.match(line):
            mask.append(True)
            in_code = not in_code
        else:
            mask.append(in_code)
    return mask


def _map_prose_lines(text: str, fn: Callable[[str], str]) -> str:
    lines = text.split("\n")
    mask = _code_mask(lines)
    return "\n".join(line if code else fn(line) for line, code in zip(lines, mask))


# -------------------------------------------------------------------
# Individual steps
# -------------------------------------------------------------------


def close_unclosed_code_fences(text: str) -> str:
    if text.count(FENCE) % 2 != 0:
        return text + "\n" + FENCE
    return text


def normalize_bullet_markers(text: str) -> str:
    return _map_prose_lines(text, lambda line: _BULLET_MARKER.sub("- ", line))


def ensure_blank_lines_around_headings(text: str) -> str:
    lines = text.split("\n")
    mask = _code_mask(lines)
    out: List[str] = []
    for i, line in enumerate(lines):
        if mask[i] or not _HEADING.match(line):
            out.append(line)
            continue
        if out and not _is_blank(out[-1]):
            out.append("")
        out.append(line)
        if i + 1 < len(lines) and not _is_blank(lines[i + 1]):
            out.append("")
    return "\n".join(out)


def ensure_blank_lines_around_lists(text: str) -> str:
    lines = text.split("\n")
    mask = _code_mask(lines)
    out: List[str] = []
    in_list = False
    for i, line in enumerate(lines):
        is_item = not mask[i] and bool(_BULLET.match(line))
        if not is_item:
            out.append(line)
            in_list = False
            continue
        if not in_list and out and not _is_blank(out[-1]):
            out.append("")
        in_list = True
        out.append(line)

        next_is_item = (
            i + 1 < len(lines)
            and not mask[i + 1]
            and bool(_BULLET.match(lines[i + 1]))
        )
        if not next_is_item and i + 1 < len(lines) and not _is_blank(lines[i + 1]):
            out.append("")
            in_list = False
    return "\n".join(out)


def normalize_horizontal_rules(text: str) -> str:
    return _map_prose_lines(
        text, lambda line: "\n---\n" if _RULE.match(line) else line
    )


def escape_dangling_asterisks(text: str) -> str:
    return _map_prose_lines(text, lambda line: _LONE_ASTERISK.sub(r"\\*", line))


def trim_excess_blank_lines(text: str) -> str:
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


def sanitize_html_angles(text: str) -> str:
    """Escape angle brackets for renderers that do not escape HTML."""
    return text.replace("<", "&lt;").replace(">", "&gt;")


# -------------------------------------------------------------------
# Public entry point
# -------------------------------------------------------------------


def normalize_markdown(text) -> str:
    if not text or not isinstance(text, str):
        return ""
    # Trim first so a leading heading or list item starts at column 0.
    t = text.replace("\r\n", "\n").strip()
    t = close_unclosed_code_fences(t)
    t = normalize_bullet_markers(t)
    t = ensure_blank_lines_around_headings(t)
    t = ensure_blank_lines_around_lists(t)
    t = normalize_horizontal_rules(t)
    t = escape_dangling_asterisks(t)
    t = trim_excess_blank_lines(t)
    return t
