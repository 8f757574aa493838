"""Merge a structural trace with the original text into a skeleton."""

from __future__ import annotations

import codecs
import io
import logging
from dataclasses import dataclass, field
from typing import IO, Iterable, List, Optional, Sequence, Union

from .buffer import SkeletonBuffer, strip_excluded
from .errors import ConversionError, ErrorCategory, TraceSequenceError
from .policy import ErrorPolicy
from .structures import TuPlaceholder, format_placeholder
from .trace import FormatLine, TagLine, TuLine, iter_trace_lines, parse_trace_line

logger = logging.getLogger(__name__)

TraceInput = Union[str, IO[str], Iterable[str]]
TextInput = Union[str, IO[str]]


@dataclass
class MergeReport:
    """Outcome of one merge."""

    skeleton: str
    cursor: int
    placeholders: int = 0
    warnings: List[str] = field(default_factory=list)


class _MergeState:
    """Everything that changes while one trace is replayed."""

    def __init__(self, buffer: SkeletonBuffer, policy: ErrorPolicy, max_depth: int) -> None:
        self.buffer = buffer
        self.policy = policy
        self.max_depth = max_depth
        self.warnings: List[str] = []
        self.placeholders = 0
        self.current_tu: Optional[str] = None
        self.pending_delete = False
        self.last_tag: Optional[TagLine] = None
        self.matched_seq: Optional[int] = None
        self.matched_self_closing = False

    def warn(self, message: str, category: ErrorCategory = ErrorCategory.STRUCTURE) -> None:
        self.warnings.append(message)
        self.policy.handle_warning(category, message)

    def insert_placeholder(self, text: str) -> None:
        self.buffer.insert(text)
        self.placeholders += 1


class SkeletonMerger:
    """Builds a skeleton by replaying a structural trace over the original text.

    The merger is stateless between calls; a single instance can merge any
    number of documents in sequence.
    """

    def __init__(
        self,
        container_tag: str = "trans-unit",
        exclude_markers: Optional[Sequence[str]] = ("<sub", "</sub>"),
        policy: Optional[ErrorPolicy] = None,
    ) -> None:
        self.container_tag = container_tag
        self.exclude_markers = tuple(exclude_markers) if exclude_markers else None
        self.policy = policy or ErrorPolicy()

    def merge(
        self,
        trace: TraceInput,
        original: TextInput,
        out: Union[IO[str], IO[bytes]],
        encoding: str = "utf-8",
        max_depth: int = 1,
    ) -> MergeReport:
        """Merge and write the skeleton to ``out``; binary streams get ``encoding``."""

        try:
            codecs.lookup(encoding)
        except LookupError as exc:
            raise ConversionError(f"Unknown encoding: {encoding}") from exc

        report = self.merge_text(trace, original, max_depth=max_depth)
        try:
            if isinstance(out, io.TextIOBase):
                out.write(report.skeleton)
            else:
                out.write(report.skeleton.encode(encoding))
        except (OSError, UnicodeEncodeError) as exc:
            raise ConversionError(f"Cannot write skeleton: {exc}") from exc
        return report

    def merge_text(self, trace: TraceInput, original: TextInput, max_depth: int = 1) -> MergeReport:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")

        if not isinstance(original, str):
            try:
                original = original.read()
            except OSError as exc:
                raise ConversionError(f"Cannot read original text: {exc}") from exc

        state = _MergeState(SkeletonBuffer(""), self.policy, max_depth)
        if self.exclude_markers:
            opener, closer = self.exclude_markers
            original = strip_excluded(
                original,
                opener,
                closer,
                on_unmatched=lambda offset: state.warn(
                    f"Closing exclude marker {closer} at offset {offset} has no opener"
                ),
            )
        state.buffer = SkeletonBuffer(original)

        for raw in iter_trace_lines(trace):
            if not raw.strip():
                continue
            line = parse_trace_line(raw)
            if line is None:
                state.warn(f"Unrecognised trace line: {raw.strip()}")
            elif isinstance(line, TuLine):
                self._on_tu(state, line)
            elif isinstance(line, FormatLine):
                state.insert_placeholder(format_placeholder(line.markup_id))
            else:
                self._on_tag(state, line)

        if state.pending_delete:
            state.warn(f"Trace ended before the end of TU {state.current_tu}")

        return MergeReport(
            skeleton=state.buffer.getvalue(),
            cursor=state.buffer.cursor,
            placeholders=state.placeholders,
            warnings=state.warnings,
        )

    def _on_tu(self, state: _MergeState, line: TuLine) -> None:
        if line.depth > state.max_depth:
            state.warn(
                f"TU {line.tu_id} is nested {line.depth} deep (maximum {state.max_depth}); "
                "left in place"
            )
            return
        placeholder = TuPlaceholder(tu_id=line.tu_id, is_target=line.is_target, locale=line.locale)
        state.insert_placeholder(placeholder.render())
        state.current_tu = line.tu_id
        state.pending_delete = True

    def _on_tag(self, state: _MergeState, line: TagLine) -> None:
        self._check_sequence(state, line)
        state.last_tag = line

        delete = state.pending_delete
        state.pending_delete = False

        if (
            not delete
            and line.closing
            and state.matched_self_closing
            and state.matched_seq is not None
            and line.seq == state.matched_seq + 1
        ):
            # The element was written as <name/>, so there is no end tag to find.
            state.matched_self_closing = False
            return

        if line.closing and line.name == self.container_tag and state.current_tu is not None:
            state.insert_placeholder(TuPlaceholder.wildcard(state.current_tu).render())
            state.current_tu = None

        found = state.buffer.find_tag(line.prefix)
        if found is None:
            state.warn(f"Cannot find tag {line.prefix}> (seq {line.seq}) at or after the cursor")
            return

        start, end = found
        if delete:
            state.buffer.delete_to(start)
        state.buffer.seek_past(end)
        state.matched_seq = line.seq
        state.matched_self_closing = state.buffer.text_between(start, end).endswith("/>")

    @staticmethod
    def _check_sequence(state: _MergeState, line: TagLine) -> None:
        previous = state.last_tag
        if previous is None or line.seq > previous.seq:
            return
        if (
            line.seq == previous.seq
            and line.closing
            and not previous.closing
            and line.name == previous.name
        ):
            return
        raise TraceSequenceError(
            f"Trace sequence {line.seq} for {line.prefix}> does not follow {previous.seq}"
        )


def merge(
    trace: TraceInput,
    original: TextInput,
    out: Union[IO[str], IO[bytes]],
    encoding: str = "utf-8",
    max_depth: int = 1,
    **options,
) -> MergeReport:
    """One-call form of :meth:`SkeletonMerger.merge`."""

    return SkeletonMerger(**options).merge(trace, original, out, encoding=encoding, max_depth=max_depth)
