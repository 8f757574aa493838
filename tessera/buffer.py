"""Forward-cursor text buffer used while merging a trace into a skeleton."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

TAG_NAME_BOUNDARY = frozenset(" \t\r\n/>")

# Spans whose content is never markup.
OPAQUE_OPEN_PATTERN = re.compile(r"<!--|<!\[CDATA\[|<\?")
OPAQUE_CLOSERS = {"<!--": "-->", "<![CDATA[": "]]>", "<?": "?>"}

# Rest of a tag after its name; quoted attribute values may hold ">".
TAG_REST_PATTERN = re.compile(r"""(?:[^>"']|"[^"]*"|'[^']*')*>""")


def _is_boundary(text: str, index: int) -> bool:
    return index < len(text) and text[index] in TAG_NAME_BOUNDARY


def find_markup(text: str, needle: str, start: int = 0) -> int:
    """Offset of the next ``needle`` at or after ``start``, or -1.

    Matches inside comments, CDATA sections and processing instructions are
    skipped. An unterminated span hides the rest of the text.
    """

    position = start
    while True:
        found = text.find(needle, position)
        if found == -1:
            return -1
        opaque = OPAQUE_OPEN_PATTERN.search(text, position)
        if opaque is None or opaque.start() > found:
            return found
        closer = OPAQUE_CLOSERS[opaque.group()]
        end = text.find(closer, opaque.end())
        if end == -1:
            return -1
        position = end + len(closer)


def tag_end(text: str, index: int) -> int:
    """Offset just past the ``>`` that closes the tag running at ``index``, or -1."""

    match = TAG_REST_PATTERN.match(text, index)
    return match.end() if match else -1


def iter_start_tags(text: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` of every element start tag, in document order."""

    position = 0
    while True:
        start = find_markup(text, "<", position)
        if start == -1:
            return
        end = tag_end(text, start + 1)
        if end == -1:
            return
        if text[start + 1:start + 2] not in ("/", "!", ""):
            yield start, end
        position = end


class SkeletonBuffer:
    """The original text with a cursor that only moves forward.

    Everything before the cursor is final and kept as a list of chunks;
    everything after it is still a slice of the original string, addressed by
    ``tail``. Searches return offsets into the original string.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self._tail = 0
        self._head: List[str] = []
        self._position = 0

    @property
    def cursor(self) -> int:
        """Cursor offset in the output built so far."""

        return self._position

    @property
    def tail(self) -> int:
        return self._tail

    def find_tag(self, prefix: str) -> Optional[Tuple[int, int]]:
        """Locate the next tag starting with ``prefix`` at or after the cursor.

        The character after the prefix must be whitespace, ``/`` or ``>`` so
        that ``<b`` never matches ``<body``. Comments, CDATA sections and
        processing instructions are not searched. Returns ``(start, end)``
        with ``end`` just past the ``>`` that closes the tag, which is the
        first one outside a quoted attribute value.
        """

        start = find_markup(self._text, prefix, self._tail)
        while start != -1:
            if _is_boundary(self._text, start + len(prefix)):
                end = tag_end(self._text, start + len(prefix))
                if end == -1:
                    return None
                return start, end
            start = find_markup(self._text, prefix, start + 1)
        return None

    def text_between(self, start: int, end: int) -> str:
        return self._text[start:end]

    def seek_past(self, end: int) -> None:
        if end < self._tail:
            raise ValueError("Cannot seek backwards")
        chunk = self._text[self._tail:end]
        self._head.append(chunk)
        self._position += len(chunk)
        self._tail = end

    def delete_to(self, start: int) -> None:
        """Drop the unread text up to ``start`` without moving the output cursor."""

        if start < self._tail:
            raise ValueError("Cannot delete backwards")
        self._tail = start

    def insert(self, text: str) -> None:
        self._head.append(text)
        self._position += len(text)

    def getvalue(self) -> str:
        return "".join(self._head) + self._text[self._tail:]


def strip_excluded(
    text: str,
    opener: str = "<sub",
    closer: str = "</sub>",
    on_unmatched: Optional[Callable[[int], None]] = None,
) -> str:
    """Remove every ``opener … closer`` region, innermost first.

    A closer without a preceding opener is reported through ``on_unmatched``
    (with its offset) and ends the pass; the rest of the text is left as is.
    Markers inside comments, CDATA sections and processing instructions are
    not markers.
    """

    while True:
        close_at = find_markup(text, closer)
        if close_at == -1:
            return text

        open_at = -1
        candidate = find_markup(text, opener)
        while candidate != -1 and candidate < close_at:
            if _is_boundary(text, candidate + len(opener)):
                open_at = candidate
            candidate = find_markup(text, opener, candidate + 1)

        if open_at == -1:
            if on_unmatched is not None:
                on_unmatched(close_at)
            else:
                logger.warning("Closing exclude marker at offset %d has no opener", close_at)
            return text

        text = text[:open_at] + text[close_at + len(closer):]
