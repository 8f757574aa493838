"""XLIFF-shaped interchange document: segments, targets and alternatives."""

from __future__ import annotations

import html
import logging
import pathlib
import re
from typing import Dict, Iterable, Iterator, Optional

from .errors import ConversionError
from .structures import Target, TranslatableSegment

logger = logging.getLogger(__name__)

LT_NAMESPACE = "http://www.lingotek.com/"
XLIFF_NAMESPACE = "urn:oasis:names:tc:xliff:document:1.2"

FILE_PATTERN = re.compile(r"<file\b(?P<attrs>[^>]*)>", re.DOTALL)
TRANS_UNIT_PATTERN = re.compile(
    r"<trans-unit\b(?P<attrs>[^>]*)>(?P<body>.*?)</trans-unit>", re.DOTALL
)
SOURCE_PATTERN = re.compile(r"<source\b(?P<attrs>[^>]*)>(?P<text>.*?)</source>", re.DOTALL)
TARGET_PATTERN = re.compile(
    r"<target\b(?P<attrs>[^>]*?)(?:/>|>(?P<text>.*?)</target>)", re.DOTALL
)
ALT_TRANS_PATTERN = re.compile(r"<alt-trans\b(?P<attrs>[^>]*)>(?P<body>.*?)</alt-trans>", re.DOTALL)


def _attribute(attrs: str, name: str) -> Optional[str]:
    match = re.search(r"(?<![\w:.-])" + re.escape(name) + r"=(['\"])(.*?)\1", attrs, re.DOTALL)
    if match is None:
        return None
    return html.unescape(match.group(2))


def _attr(name: str, value: Optional[str]) -> str:
    if value is None:
        return ""
    return f' {name}="{html.escape(value, quote=True)}"'


class InterchangeDocument:
    """In-memory interchange document, indexed by TU id once at load time."""

    def __init__(
        self,
        original: str = "",
        source_locale: str = "en",
        datatype: str = "xml",
        segments: Optional[Iterable[TranslatableSegment]] = None,
    ) -> None:
        self.original = original
        self.source_locale = source_locale
        self.datatype = datatype
        self.segments: Dict[str, TranslatableSegment] = {}
        for segment in segments or ():
            self.add_segment(segment)

    def __iter__(self) -> Iterator[TranslatableSegment]:
        return iter(self.segments.values())

    def __len__(self) -> int:
        return len(self.segments)

    def __contains__(self, tu_id: object) -> bool:
        return tu_id in self.segments

    def add_segment(self, segment: TranslatableSegment) -> None:
        if segment.tu_id in self.segments:
            raise ValueError(f"Duplicate TU id: {segment.tu_id}")
        self.segments[segment.tu_id] = segment

    def segment(self, tu_id: str) -> Optional[TranslatableSegment]:
        return self.segments.get(tu_id)

    def add_target(self, tu_id: str, locale: str, text: str, phase: Optional[str] = None) -> Target:
        segment = self.segments.get(tu_id)
        if segment is None:
            raise KeyError(tu_id)
        target = Target(locale=locale, text=text, phase=phase)
        segment.add_target(target)
        return target

    def remove_target(self, tu_id: str, locale: str, phase: Optional[str] = None) -> bool:
        segment = self.segments.get(tu_id)
        if segment is None:
            return False
        return segment.remove_target(locale, phase)

    @classmethod
    def from_text(cls, text: str) -> "InterchangeDocument":
        file_match = FILE_PATTERN.search(text)
        file_attrs = file_match.group("attrs") if file_match else ""
        document = cls(
            original=_attribute(file_attrs, "original") or "",
            source_locale=_attribute(file_attrs, "source-language") or "en",
            datatype=_attribute(file_attrs, "datatype") or "xml",
        )

        for match in TRANS_UNIT_PATTERN.finditer(text):
            attrs, body = match.group("attrs"), match.group("body")
            tu_id = _attribute(attrs, "id")
            if tu_id is None:
                logger.warning("Skipping trans-unit without an id")
                continue

            source_match = SOURCE_PATTERN.search(body)
            source, source_locale = "", document.source_locale
            if source_match:
                source = source_match.group("text")
                source_locale = _attribute(source_match.group("attrs"), "xml:lang") or source_locale

            segment = TranslatableSegment(
                tu_id=tu_id,
                source=source,
                source_locale=source_locale,
                next_tu_id=_attribute(attrs, "lt:next-tu-id"),
            )

            for alt in ALT_TRANS_PATTERN.finditer(body):
                target_match = TARGET_PATTERN.search(alt.group("body"))
                if target_match is None:
                    continue
                locale = _attribute(alt.group("attrs"), "xml:lang") or _attribute(
                    target_match.group("attrs"), "xml:lang"
                )
                if locale is None:
                    continue
                segment.alternatives.append(
                    Target(
                        locale=locale,
                        text=target_match.group("text") or "",
                        phase=_attribute(target_match.group("attrs"), "phase-name"),
                    )
                )

            direct_body = ALT_TRANS_PATTERN.sub("", body)
            for target_match in TARGET_PATTERN.finditer(direct_body):
                target_attrs = target_match.group("attrs")
                locale = _attribute(target_attrs, "xml:lang")
                if locale is None:
                    logger.warning("Skipping target without xml:lang in TU %s", tu_id)
                    continue
                segment.add_target(
                    Target(
                        locale=locale,
                        text=target_match.group("text") or "",
                        phase=_attribute(target_attrs, "phase-name"),
                    )
                )

            if tu_id in document.segments:
                logger.warning("Duplicate TU id %s; keeping the first", tu_id)
                continue
            document.add_segment(segment)

        return document

    @classmethod
    def from_path(cls, path: pathlib.Path, encoding: str = "utf-8") -> "InterchangeDocument":
        try:
            text = pathlib.Path(path).read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError, LookupError) as exc:
            raise ConversionError(f"Cannot read interchange document {path}: {exc}") from exc
        return cls.from_text(text)

    def render(self) -> str:
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<xliff version="1.2" xmlns="{XLIFF_NAMESPACE}" xmlns:lt="{LT_NAMESPACE}">',
            "<file"
            + _attr("original", self.original)
            + _attr("source-language", self.source_locale)
            + _attr("datatype", self.datatype)
            + ">",
            "<header/>",
            "<body>",
        ]
        for segment in self.segments.values():
            lines.append(
                "<trans-unit"
                + _attr("id", segment.tu_id)
                + _attr("lt:next-tu-id", segment.next_tu_id)
                + ">"
            )
            lines.append(f'<source{_attr("xml:lang", segment.source_locale)}>{segment.source}</source>')
            for target in segment.targets:
                lines.append(
                    "<target"
                    + _attr("xml:lang", target.locale)
                    + _attr("phase-name", target.phase)
                    + f">{target.text}</target>"
                )
            for target in segment.alternatives:
                lines.append(
                    f'<alt-trans{_attr("xml:lang", target.locale)}>'
                    f'<target{_attr("phase-name", target.phase)}>{target.text}</target>'
                    "</alt-trans>"
                )
            lines.append("</trans-unit>")
        lines.extend(["</body>", "</file>", "</xliff>"])
        return "\n".join(lines) + "\n"

    def write(self, path: pathlib.Path, encoding: str = "utf-8") -> None:
        try:
            pathlib.Path(path).write_text(self.render(), encoding=encoding)
        except (OSError, UnicodeEncodeError, LookupError) as exc:
            raise ConversionError(f"Cannot write interchange document {path}: {exc}") from exc
