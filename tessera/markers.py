"""Core-text and merge-boundary markers, plus entity escaping helpers."""

from __future__ import annotations

import re

CORE_OPEN = "<mrk mtype='x-coretext'>"
CORE_CLOSE = "</mrk>"

CORE_TEXT_OPEN_PATTERN = re.compile(r"<mrk\s+mtype=['\"]x-coretext['\"]\s*>")
MERGE_BOUNDARY_OPEN_PATTERN = re.compile(r"<mrk[^>]*?mtype=['\"]x-mergeboundary['\"][^>]*>")
MRK_CLOSE_PATTERN = re.compile(r"</mrk\s*>")
LT_CORE_PATTERN = re.compile(r"</?lt:core>|&lt;/?lt:core&gt;")
DOUBLE_ESCAPE_PATTERN = re.compile(r"&amp;(lt|gt|quot|apos|amp);")
BARE_AMPERSAND_PATTERN = re.compile(r"&(?!(?:[A-Za-z]+|#\d+|#x[0-9A-Fa-f]+);)")
TAG_PATTERN = re.compile(r"<[^>]*>")


def mark_core(content: str) -> str:
    """Wrap the non-blank middle of ``content`` in a core-text marker.

    Leading and trailing whitespace stays outside the marker so that it is
    preserved verbatim when the segment is rendered back.
    """

    stripped = content.strip()
    if not stripped:
        return content
    start = content.index(stripped)
    end = start + len(stripped)
    return f"{content[:start]}{CORE_OPEN}{stripped}{CORE_CLOSE}{content[end:]}"


def strip_markers(text: str) -> str:
    text = LT_CORE_PATTERN.sub("", text)
    text = CORE_TEXT_OPEN_PATTERN.sub("", text)
    text = MERGE_BOUNDARY_OPEN_PATTERN.sub("", text)
    return MRK_CLOSE_PATTERN.sub("", text)


def collapse_double_escapes(text: str) -> str:
    """``&amp;lt;`` becomes ``&lt;``; other entities are left alone."""

    return DOUBLE_ESCAPE_PATTERN.sub(r"&\1;", text)


def escape_bare_ampersands(text: str) -> str:
    return BARE_AMPERSAND_PATTERN.sub("&amp;", text)


def plain_text(text: str) -> str:
    """Drop every tag and collapse whitespace; entities are kept."""

    return " ".join(TAG_PATTERN.sub("", strip_markers(text)).split())
