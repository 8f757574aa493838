"""Native-format adapters: turn a document into a trace plus segments."""

from __future__ import annotations

import html
import logging
import pathlib
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .buffer import iter_start_tags
from .errors import MalformedDocumentError, TesseraError, UnsupportedFileTypeError
from .formats import FormatTableWriter
from .ids import IdAllocator
from .markers import mark_core
from .structures import InlineMarkupEntry, TranslatableSegment, TuPlaceholder
from .trace import TraceWriter

logger = logging.getLogger(__name__)

DEFAULT_TRANSLATABLE = (
    "p", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "td", "th", "title", "caption", "dt", "dd",
)
DEFAULT_TRANSLATABLE_ATTRIBUTES = ("alt", "title")
MARKUP_SUFFIXES = (".xml", ".xhtml", ".html", ".htm", ".svg", ".xlf", ".xliff")
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

# CDATA sections are handed to the parser as processing instructions so the
# tree still says where they were. Comments and real PIs are left alone.
CDATA_PATTERN = re.compile(
    r"<!--.*?-->|<\?.*?\?>|<!\[CDATA\[(?P<payload>.*?)\]\]>",
    re.DOTALL,
)
CDATA_TARGET = "tessera-cdata"
ATTRIBUTE_PATTERN = re.compile(
    r"""(?<![\w:.-])(?P<name>[\w:.-]+)(?P<eq>\s*=\s*)(?P<quote>["'])(?P<value>.*?)(?P=quote)""",
    re.DOTALL,
)


def _import_etree():
    try:
        from lxml import etree  # type: ignore
    except ImportError as exc:  # pragma: no cover - import guard
        raise TesseraError(
            "lxml is required to parse markup documents. "
            "Install it with `pip install lxml`."
        ) from exc
    return etree


def _escape_attribute_text(value: str) -> str:
    return html.escape(value, quote=False).replace('"', "&quot;").replace("'", "&apos;")


@dataclass
class TracedStream:
    """What an adapter produces for one physical stream."""

    name: str
    original: str
    trace: str
    segments: List[TranslatableSegment] = field(default_factory=list)
    markup: List[InlineMarkupEntry] = field(default_factory=list)


@dataclass
class _TraceContext:
    """Everything one ``trace`` call accumulates."""

    writer: TraceWriter
    formats: FormatTableWriter = field(default_factory=FormatTableWriter)
    segments: List[TranslatableSegment] = field(default_factory=list)
    cdata: List[str] = field(default_factory=list)
    # element -> {attribute name as written: TU id}
    attribute_units: Dict[Any, Dict[str, str]] = field(default_factory=dict)

    @property
    def allocator(self) -> IdAllocator:
        return self.writer.allocator

    def hold_cdata(self, match: re.Match) -> str:
        payload = match.group("payload")
        if payload is None:
            return match.group(0)
        self.cdata.append(payload)
        return f"<?{CDATA_TARGET} {len(self.cdata) - 1}?>"


class NativeAdapter(ABC):
    """Common base class for native-format adapters."""

    def __init__(self, source_locale: str = "en") -> None:
        self.source_locale = source_locale

    @abstractmethod
    def trace(self, name: str, text: str, allocator: IdAllocator) -> TracedStream:
        """Parse ``text`` and record its structure, numbering from ``allocator``."""

    def new_tu_id(self) -> str:
        return str(uuid.uuid4())


class MarkupAdapter(NativeAdapter):
    """Generic adapter for well-formed XML and XHTML-like markup.

    Elements named in ``translatable`` become translation units unless they
    contain another translatable element, in which case they are treated as
    structure and their children are examined instead. Inline children of a
    translation unit are replaced by ``<bx/>``/``<ex/>`` pairs, or ``<x/>``
    for empty elements, and their markup goes to the format table. CDATA
    sections inside a unit travel as literal ``<x/>`` codes.

    Non-blank values of attributes named in ``translatable_attributes`` become
    units of their own. Their placeholders are written into the attribute
    value: in the returned original text for structural elements, and in the
    format table entry for inline children.
    """

    def __init__(
        self,
        translatable: Iterable[str] = DEFAULT_TRANSLATABLE,
        source_locale: str = "en",
        translatable_attributes: Iterable[str] = DEFAULT_TRANSLATABLE_ATTRIBUTES,
    ) -> None:
        super().__init__(source_locale)
        self.translatable = frozenset(name.strip().lower() for name in translatable if name.strip())
        self.translatable_attributes = frozenset(
            name.strip().lower() for name in translatable_attributes if name.strip()
        )
        self._etree = _import_etree()

    def trace(self, name: str, text: str, allocator: IdAllocator) -> TracedStream:
        etree = self._etree
        parser = etree.XMLParser(
            encoding="utf-8",
            resolve_entities=False,
            strip_cdata=False,
            remove_comments=False,
            remove_pis=False,
        )
        context = _TraceContext(writer=TraceWriter(allocator))
        parsed = CDATA_PATTERN.sub(context.hold_cdata, text)
        try:
            root = etree.fromstring(parsed.encode("utf-8"), parser)
        except etree.XMLSyntaxError as exc:
            raise MalformedDocumentError(f"{name} is not well-formed XML: {exc}") from exc

        self._walk(root, context)
        original = self._place_attribute_units(text, root, context.attribute_units)

        logger.debug(
            "Traced %s: %d segments, %d markup entries",
            name,
            len(context.segments),
            len(context.formats.entries),
        )
        return TracedStream(
            name=name,
            original=original,
            trace=context.writer.getvalue(),
            segments=context.segments,
            markup=context.formats.entries,
        )

    # --- Internal helpers -------------------------------------------------

    def _walk(self, element, context: _TraceContext) -> None:
        if not isinstance(element.tag, str):
            return

        name = self._element_name(element)
        units = self._attribute_segments(element, context)
        if units:
            context.attribute_units[element] = units

        context.writer.open_tag(name)
        if self._is_unit(element, context):
            content = self._inline_content(element, context)
            segment = self._add_segment(content, context)
            context.writer.tu(segment.tu_id, self.source_locale)
        else:
            for child in element:
                self._walk(child, context)
        context.writer.close_tag(name)

    def _add_segment(self, content: str, context: _TraceContext) -> TranslatableSegment:
        segment = TranslatableSegment(
            tu_id=self.new_tu_id(),
            source=mark_core(content),
            source_locale=self.source_locale,
        )
        context.segments.append(segment)
        return segment

    def _attribute_segments(self, element, context: _TraceContext) -> Dict[str, str]:
        """Create units for translatable attribute values, keyed by attribute name."""

        units: Dict[str, str] = {}
        for key, value in element.attrib.items():
            if self._etree.QName(key).localname.lower() not in self.translatable_attributes:
                continue
            if not value.strip():
                continue
            segment = self._add_segment(_escape_attribute_text(value), context)
            units[self._attribute_name(element, key)] = segment.tu_id
        return units

    def _place_attribute_units(self, text: str, root, attribute_units: Dict[Any, Dict[str, str]]) -> str:
        """Swap translatable attribute values in ``text`` for TU placeholders."""

        if not attribute_units:
            return text

        elements = [node for node in root.iter() if isinstance(node.tag, str)]
        wanted = {
            index: attribute_units[element]
            for index, element in enumerate(elements)
            if element in attribute_units
        }

        parts: List[str] = []
        position = 0
        for index, (start, end) in enumerate(iter_start_tags(text)):
            units = wanted.get(index)
            if units is None:
                continue
            parts.append(text[position:start])
            parts.append(self._placeholders_in_tag(text[start:end], units))
            position = end
        parts.append(text[position:])
        return "".join(parts)

    def _placeholders_in_tag(self, tag: str, units: Dict[str, str]) -> str:
        def replace(match: re.Match) -> str:
            tu_id = units.get(match.group("name"))
            if tu_id is None:
                return match.group(0)
            quote = match.group("quote")
            placeholder = TuPlaceholder(tu_id, "no", self.source_locale).render(
                quote='"' if quote == "'" else "'"
            )
            return f"{match.group('name')}{match.group('eq')}{quote}{placeholder}{quote}"

        return ATTRIBUTE_PATTERN.sub(replace, tag)

    def _cdata_payload(self, node, context: _TraceContext) -> Optional[str]:
        if node.tag is self._etree.PI and node.target == CDATA_TARGET:
            return context.cdata[int(node.text)]
        return None

    def _is_translatable(self, element) -> bool:
        if not isinstance(element.tag, str):
            return False
        return self._etree.QName(element).localname.lower() in self.translatable

    def _is_unit(self, element, context: _TraceContext) -> bool:
        if not self._is_translatable(element):
            return False
        pieces = [element.text or ""]
        for node in element.iterdescendants():
            if self._is_translatable(node):
                return False
            payload = self._cdata_payload(node, context)
            if payload is not None:
                pieces.append(payload)
            elif isinstance(node.tag, str):
                pieces.append(node.text or "")
            pieces.append(node.tail or "")
        return bool("".join(pieces).strip())

    def _inline_content(self, element, context: _TraceContext) -> str:
        parts = [html.escape(element.text or "", quote=False)]
        for child in element:
            parts.append(self._inline_child(child, context))
            parts.append(html.escape(child.tail or "", quote=False))
        return "".join(parts)

    def _inline_child(self, child, context: _TraceContext) -> str:
        etree = self._etree
        allocator = context.allocator
        if child.tag is etree.Entity:
            return child.text

        payload = self._cdata_payload(child, context)
        if payload is not None:
            markup_id = allocator.next_inline_markup_id()
            context.formats.add_markup(markup_id, payload, cdata_literal=True)
            return f"<x id='{markup_id}'/>"

        if not isinstance(child.tag, str):
            # Comments and processing instructions travel as opaque codes.
            markup = etree.tostring(child, with_tail=False, encoding="unicode")
            markup_id = allocator.next_inline_markup_id()
            context.formats.add_markup(markup_id, markup[1:])
            return f"<x id='{markup_id}'/>"

        name = self._element_name(child)
        attributes = self._namespace_declarations(child) + self._attributes(child, context)
        if len(child) == 0 and not child.text:
            markup_id = allocator.next_inline_markup_id()
            context.formats.add_markup(markup_id, f"{name}{attributes}/>")
            return f"<x id='{markup_id}'/>"

        open_id = allocator.next_inline_markup_id()
        context.formats.add_markup(open_id, f"{name}{attributes}>")
        inner = self._inline_content(child, context)
        close_id = allocator.next_inline_markup_id()
        context.formats.add_markup(close_id, f"/{name}>")
        return f"<bx id='{open_id}'/>{inner}<ex id='{close_id}'/>"

    def _element_name(self, element) -> str:
        localname = self._etree.QName(element).localname
        return f"{element.prefix}:{localname}" if element.prefix else localname

    def _namespace_declarations(self, element) -> str:
        """``xmlns`` attributes for namespaces first declared on ``element``."""

        parent = element.getparent()
        inherited = parent.nsmap if parent is not None else {}
        parts = []
        for prefix, uri in sorted(element.nsmap.items(), key=lambda item: item[0] or ""):
            if inherited.get(prefix) == uri:
                continue
            name = f"xmlns:{prefix}" if prefix else "xmlns"
            parts.append(f' {name}="{html.escape(uri, quote=True)}"')
        return "".join(parts)

    def _attributes(self, element, context: _TraceContext) -> str:
        units = self._attribute_segments(element, context)
        parts = []
        for key, value in element.attrib.items():
            name = self._attribute_name(element, key)
            if name in units:
                value_text = TuPlaceholder(units[name], "no", self.source_locale).render()
            else:
                value_text = html.escape(value, quote=True)
            parts.append(f' {name}="{value_text}"')
        return "".join(parts)

    def _attribute_name(self, element, key: str) -> str:
        qname = self._etree.QName(key)
        if qname.namespace is None:
            return qname.localname
        if qname.namespace == XML_NAMESPACE:
            return f"xml:{qname.localname}"
        for prefix, uri in element.nsmap.items():
            if uri == qname.namespace and prefix:
                return f"{prefix}:{qname.localname}"
        return qname.localname


def detect_adapter(
    path: pathlib.Path,
    *,
    translatable: Optional[Iterable[str]] = None,
    source_locale: str = "en",
    translatable_attributes: Optional[Iterable[str]] = None,
) -> Tuple[str, NativeAdapter]:
    """Select an adapter for the provided file."""

    suffix = path.suffix.lower()
    if suffix in MARKUP_SUFFIXES:
        adapter = MarkupAdapter(
            translatable=translatable if translatable is not None else DEFAULT_TRANSLATABLE,
            source_locale=source_locale,
            translatable_attributes=(
                translatable_attributes
                if translatable_attributes is not None
                else DEFAULT_TRANSLATABLE_ATTRIBUTES
            ),
        )
        return "markup", adapter
    raise UnsupportedFileTypeError(
        f"No adapter handles {suffix or 'files without a suffix'}; "
        f"use one of {', '.join(MARKUP_SUFFIXES)}."
    )
