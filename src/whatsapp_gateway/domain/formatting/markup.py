"""Conversion between generic markdown and the provider's markup subset."""
from __future__ import annotations

import re

HORIZONTAL_RULE = "─" * 17
BULLET = "• "

_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_STRIKE_RE = re.compile(r"~~([^~]+)~~")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_HEADING_RE = re.compile(r"^#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
# Single backticks only; ```fenced``` spans are already valid.
_INLINE_CODE_RE = re.compile(r"(?<!`)`([^`\n]+)`(?!`)")
_RULE_RE = re.compile(r"^[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*$", re.MULTILINE)
_BULLET_RE = re.compile(r"^([ \t]*)[-*][ \t]+", re.MULTILINE)
_TAG_RE = re.compile(r"<[^>\n]+>")
_BLANK_RUN_RE = re.compile(r"\n(?:[ \t]*\n){2,}")

_PLAIN_BOLD_RE = re.compile(r"\*([^*\n]+)\*")
_PLAIN_ITALIC_RE = re.compile(r"_([^_\n]+)_")
_PLAIN_STRIKE_RE = re.compile(r"~([^~\n]+)~")
_PLAIN_CODE_RE = re.compile(r"```([^`]+)```")
_PLAIN_RULE_RE = re.compile(r"─+")


def to_wire_markup(text: str) -> str:
    result = _BOLD_RE.sub(r"*\1*", text)
    result = _STRIKE_RE.sub(r"~\1~", result)
    result = _LINK_RE.sub(r"\1: \2", result)
    result = _HEADING_RE.sub(r"*\1*", result)
    result = _INLINE_CODE_RE.sub(r"```\1```", result)
    result = _RULE_RE.sub(HORIZONTAL_RULE, result)
    result = _BULLET_RE.sub(rf"\g<1>{BULLET}", result)
    result = _TAG_RE.sub("", result)
    result = _BLANK_RUN_RE.sub("\n\n", result)
    return result.strip()


def strip_formatting(text: str) -> str:
    """Best-effort plain text for audit logs and previews."""
    result = _PLAIN_CODE_RE.sub(r"\1", text)
    result = _PLAIN_BOLD_RE.sub(r"\1", result)
    result = _PLAIN_ITALIC_RE.sub(r"\1", result)
    result = _PLAIN_STRIKE_RE.sub(r"\1", result)
    result = result.replace(BULLET, "- ")
    result = _PLAIN_RULE_RE.sub("---", result)
    return result.strip()
