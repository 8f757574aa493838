"""Format table: the side store for inline-markup placeholders."""

from __future__ import annotations

import logging
import pathlib
import re
from typing import Dict, Iterable, List, Optional, Union

from .errors import ConversionError
from .structures import InlineMarkupEntry

logger = logging.getLogger(__name__)

MARKUP_OPEN_DELIMITER = "<"
WELL_FORMED_FORMATTING = "&lt;"

ROOT_PATTERN = re.compile(r"<tags\s+formatting=(['\"])(?P<value>.*?)\1", re.DOTALL)
ENTRY_PATTERN = re.compile(
    r"<tag\s+id=(['\"])(?P<id>[^'\"]+)\1(?P<attrs>[^>]*)>"
    r"(?:<!\[CDATA\[)?(?P<text>.*?)(?:\]\]>)?</tag>",
    re.DOTALL,
)
ATTR_PATTERN = re.compile(r"([\w:.-]+)=(['\"])(.*?)\2", re.DOTALL)

MarkupId = Union[str, int]


class FormatStore:
    """Read side of the format table, indexed by markup id at load time.

    The table is either a set of well-formed fragments stored without their
    leading ``<`` (root ``formatting='&lt;'``) or a set of literal CDATA
    payloads (any other ``formatting`` value). The convenience form of
    :meth:`lookup` picks the delimiter behaviour from that flag.
    """

    def __init__(
        self,
        entries: Optional[Iterable[InlineMarkupEntry]] = None,
        *,
        uses_cdata: bool = False,
    ) -> None:
        self.uses_cdata = uses_cdata
        self._entries: Dict[str, InlineMarkupEntry] = {}
        for entry in entries or ():
            self._entries[entry.markup_id] = entry

    @classmethod
    def from_text(cls, text: str) -> "FormatStore":
        uses_cdata = False
        root = ROOT_PATTERN.search(text)
        if root and root.group("value") != WELL_FORMED_FORMATTING:
            uses_cdata = True

        entries: List[InlineMarkupEntry] = []
        for match in ENTRY_PATTERN.finditer(text):
            attrs = {name: value for name, _, value in ATTR_PATTERN.findall(match.group("attrs"))}
            entries.append(
                InlineMarkupEntry(
                    markup_id=match.group("id"),
                    text=match.group("text"),
                    uses_cdata_literal=attrs.get("cdataTagIsLiteral") == "true",
                    recursive=attrs.get("recursive"),
                )
            )
        return cls(entries, uses_cdata=uses_cdata)

    @classmethod
    def from_path(cls, path: pathlib.Path, encoding: str = "utf-8") -> "FormatStore":
        try:
            text = pathlib.Path(path).read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError, LookupError) as exc:
            raise ConversionError(f"Cannot read format table {path}: {exc}") from exc
        return cls.from_text(text)

    def __contains__(self, markup_id: object) -> bool:
        return str(markup_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, markup_id: MarkupId) -> Optional[InlineMarkupEntry]:
        return self._entries.get(str(markup_id))

    def lookup(self, markup_id: MarkupId, prepend_delimiter: Optional[bool] = None) -> str:
        """Return the markup for ``markup_id``, or ``""`` when it is unknown."""

        if prepend_delimiter is None:
            # CDATA payloads need not be well formed, so never complete them.
            # A rewrapped CDATA-literal entry is already complete.
            entry = self.entry(markup_id)
            prepend_delimiter = not self.uses_cdata and not (entry and entry.uses_cdata_literal)
        return self.lookup_formatted(markup_id, prepend_delimiter)

    def lookup_formatted(self, markup_id: MarkupId, prepend_delimiter: bool) -> str:
        entry = self.entry(markup_id)
        if entry is None:
            logger.debug("Format id %s not present in the format table", markup_id)
            return ""

        text = entry.text
        if entry.uses_cdata_literal:
            text = f"<![CDATA[{text}]]>"
        if text and prepend_delimiter:
            return MARKUP_OPEN_DELIMITER + text
        return text


class FormatTableWriter:
    """Accumulates inline-markup entries during import and renders the table."""

    def __init__(self, *, uses_cdata: bool = False) -> None:
        self.uses_cdata = uses_cdata
        self.entries: List[InlineMarkupEntry] = []

    def add(self, entry: InlineMarkupEntry) -> None:
        self.entries.append(entry)

    def add_markup(
        self,
        markup_id: MarkupId,
        text: str,
        *,
        cdata_literal: bool = False,
        recursive: Optional[str] = None,
    ) -> InlineMarkupEntry:
        entry = InlineMarkupEntry(
            markup_id=str(markup_id),
            text=text,
            uses_cdata_literal=cdata_literal,
            recursive=recursive,
        )
        self.add(entry)
        return entry

    def render(self) -> str:
        formatting = "" if self.uses_cdata else WELL_FORMED_FORMATTING
        lines = [
            '<?xml version="1.0" encoding="utf-8" ?>',
            f"<tags formatting='{formatting}'>",
        ]
        for entry in self.entries:
            attrs = ""
            if entry.recursive is not None:
                attrs += f" recursive='{entry.recursive}'"
            if entry.uses_cdata_literal:
                attrs += " cdataTagIsLiteral='true'"
            body = entry.text
            if self.uses_cdata or entry.uses_cdata_literal:
                body = f"<![CDATA[{body}]]>"
            lines.append(f"  <tag id='{entry.markup_id}'{attrs}>{body}</tag>")
        lines.append("</tags>")
        return "\n".join(lines) + "\n"

    def write(self, path: pathlib.Path, encoding: str = "utf-8") -> None:
        try:
            pathlib.Path(path).write_text(self.render(), encoding=encoding)
        except OSError as exc:
            raise ConversionError(f"Cannot write format table {path}: {exc}") from exc

    def to_store(self) -> FormatStore:
        return FormatStore(self.entries, uses_cdata=self.uses_cdata)
