"""Markup stripping and word counting helpers."""

from __future__ import annotations

import re

# Order matters: fenced blocks before inline code, images before links.
_MARKUP_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```[\s\S]*?```"), ""),
    (re.compile(r"^[ \t]*#{1,6}[ \t]+", re.MULTILINE), ""),
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"<[^>]+>"), ""),
]

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")


def strip_markdown(text: str) -> str:
    """Remove lightweight markup and normalize whitespace.

    Paragraphs (separated by blank lines) are rejoined with ``\\n\\n`` and
    line breaks inside a paragraph are kept; every other whitespace run
    becomes a single space and each line is trimmed.
    """
    if not text:
        return ""

    for pattern, replacement in _MARKUP_RULES:
        text = pattern.sub(replacement, text)

    paragraphs = []
    for block in _PARAGRAPH_BREAK.split(text.replace("\r\n", "\n")):
        lines = [" ".join(line.split()) for line in block.split("\n")]
        paragraph = "\n".join(line for line in lines if line)
        if paragraph:
            paragraphs.append(paragraph)

    return "\n\n".join(paragraphs)


def count_words(text: str) -> int:
    return len(text.split())


def truncate_words(text: str, max_words: int) -> str:
    """Cut text to ``max_words`` words, appending ``...`` when shortened."""
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "..."
