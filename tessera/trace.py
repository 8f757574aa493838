"""Structural trace: the line-oriented record an adapter writes while parsing.

Each line is one of::

    <name seq='N'>
    </name seq='N'>
    <tu id='X' istarget='no' xml:lang='en'[ depth='k']>
    <format id='N'>

The merger replays these lines against the original text to build a
skeleton. Traces are never persisted by the import pipeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Union

from .ids import IdAllocator

TU_LINE_PATTERN = re.compile(
    r"^<tu\s+id=(['\"])(?P<id>[^'\"]*)\1"
    r"(?:\s+istarget=(['\"])(?P<istarget>[^'\"]*)\3)?"
    r"(?:\s+xml:lang=(['\"])(?P<lang>[^'\"]*)\5)?"
    r"(?:\s+depth=(['\"])(?P<depth>\d+)\7)?"
    r"\s*(?:>|&gt;)$"
)
FORMAT_LINE_PATTERN = re.compile(r"^<format\s+id=(['\"])(?P<id>[^'\"]+)\1\s*(?:>|&gt;)$")
TAG_LINE_PATTERN = re.compile(
    r"^<(?P<slash>/?)(?P<name>[^\s<>/'\"]+)\s+seq=(['\"])(?P<seq>\d+)\3\s*(?:>|&gt;)$"
)


@dataclass(frozen=True)
class TagLine:
    name: str
    seq: int
    closing: bool = False

    @property
    def prefix(self) -> str:
        """The text that starts this tag in the original document."""

        return f"</{self.name}" if self.closing else f"<{self.name}"


@dataclass(frozen=True)
class TuLine:
    tu_id: str
    is_target: Optional[str] = None
    locale: Optional[str] = None
    depth: int = 1


@dataclass(frozen=True)
class FormatLine:
    markup_id: str


TraceLine = Union[TagLine, TuLine, FormatLine]


def parse_trace_line(line: str) -> Optional[TraceLine]:
    """Parse one trace line; ``None`` means the line is not recognised."""

    line = line.rstrip("\r\n").strip()
    match = TU_LINE_PATTERN.match(line)
    if match:
        depth = match.group("depth")
        return TuLine(
            tu_id=match.group("id"),
            is_target=match.group("istarget"),
            locale=match.group("lang"),
            depth=int(depth) if depth else 1,
        )
    match = FORMAT_LINE_PATTERN.match(line)
    if match:
        return FormatLine(markup_id=match.group("id"))
    match = TAG_LINE_PATTERN.match(line)
    if match:
        return TagLine(
            name=match.group("name"),
            seq=int(match.group("seq")),
            closing=bool(match.group("slash")),
        )
    return None


def iter_trace_lines(trace: Union[str, Iterable[str]]) -> Iterator[str]:
    """Yield trace lines from a string, a text stream or any iterable of lines."""

    if isinstance(trace, str):
        yield from trace.splitlines()
        return
    for line in trace:
        yield line.rstrip("\r\n")


class TraceWriter:
    """Builds a structural trace, numbering tag lines from an allocator."""

    def __init__(self, allocator: Optional[IdAllocator] = None) -> None:
        self.allocator = allocator or IdAllocator()
        self.lines: List[str] = []

    def open_tag(self, name: str) -> int:
        seq = self.allocator.advance_structural_position()
        self.lines.append(f"<{name} seq='{seq}'>")
        return seq

    def close_tag(self, name: str) -> int:
        seq = self.allocator.advance_structural_position()
        self.lines.append(f"</{name} seq='{seq}'>")
        return seq

    def tu(
        self,
        tu_id: str,
        locale: str,
        is_target: str = "no",
        depth: Optional[int] = None,
    ) -> None:
        line = f"<tu id='{tu_id}' istarget='{is_target}' xml:lang='{locale}'"
        if depth is not None and depth != 1:
            line += f" depth='{depth}'"
        self.lines.append(line + ">")

    def format(self, markup_id: Union[str, int]) -> None:
        self.lines.append(f"<format id='{markup_id}'>")

    def getvalue(self) -> str:
        return "".join(line + "\n" for line in self.lines)
