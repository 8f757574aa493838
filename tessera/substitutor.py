"""Replay a skeleton, expanding TU and inline-markup placeholders."""

from __future__ import annotations

import html
import logging
import re
from typing import IO, Callable, Iterable, Optional, Sequence, Union

from .formats import FormatStore
from .markers import collapse_double_escapes, strip_markers
from .resolver import TranslationResolver
from .structures import TuPlaceholder

logger = logging.getLogger(__name__)

TextFilter = Callable[[str], str]

MAX_EXPANSION_DEPTH = 16
RECURSIVE_VALUES = frozenset({"yes", "true"})

PLACEHOLDER_PATTERN = re.compile(
    r"<lt:tu\s+id=(['\"])(?P<tu_id>[^'\"]*)\1(?P<tu_attrs>[^>]*?)/>"
    r"|<lt:tu\s+ids=(['\"])(?P<ids>[^'\"]*)\4[^>]*?/>"
    r"|<lt:format\s+id=(['\"])(?P<format_id>[^'\"]+)\6\s*/>"
)
ISTARGET_PATTERN = re.compile(r"\bistarget=(['\"])(?P<value>[^'\"]*)\1")
INLINE_CODE_PATTERN = re.compile(r"<(?:bx|ex|x)\b[^>]*?\bid=(['\"])(?P<id>[^'\"]+)\1[^>]*?/?>")
EMBEDDED_TU_PATTERN = re.compile(r"<lt:tu\s+id=(['\"])(?P<tu_id>[^'\"]*)\1[^>]*?/>")


def double_quotes(text: str) -> str:
    """Double every ``"`` for formats that quote strings that way."""

    return text.replace('"', '""')


def hex_escape_non_ascii(text: str) -> str:
    """Write characters above 127 as ``\\xhhhh``."""

    return "".join(char if ord(char) < 128 else "\\x%04x" % ord(char) for char in text)


class PlaceholderSubstitutor:
    """Turns a skeleton back into a native document for one locale."""

    def __init__(
        self,
        resolver: TranslationResolver,
        format_store: FormatStore,
        text_filters: Sequence[TextFilter] = (),
        wildcard_expander: Optional[Callable[[str], str]] = None,
        unescape_entities: bool = False,
    ) -> None:
        self.resolver = resolver
        self.format_store = format_store
        self.text_filters = tuple(text_filters)
        self.wildcard_expander = wildcard_expander
        self.unescape_entities = unescape_entities

    def render(self, skeleton: Union[str, IO[str]]) -> str:
        return "".join(self._iter_rendered(skeleton))

    def render_to(self, skeleton: Union[str, IO[str]], out: IO[str]) -> None:
        for line in self._iter_rendered(skeleton):
            out.write(line)

    def _iter_rendered(self, skeleton: Union[str, IO[str]]) -> Iterable[str]:
        lines = skeleton.splitlines(keepends=True) if isinstance(skeleton, str) else skeleton
        for line in lines:
            yield PLACEHOLDER_PATTERN.sub(self._replace, line)

    def _replace(self, match: re.Match) -> str:
        if match.group("format_id") is not None:
            return self.expand_format(match.group("format_id"))
        if match.group("ids") is not None:
            return self._expand_sequence(match.group("ids"))

        tu_id = match.group("tu_id")
        istarget = ISTARGET_PATTERN.search(match.group("tu_attrs"))
        if istarget and istarget.group("value") == TuPlaceholder.WILDCARD:
            return self.wildcard_expander(tu_id) if self.wildcard_expander else ""
        return self.expand_tu(tu_id)

    def _expand_sequence(self, ids: str) -> str:
        parts = []
        for token in ids.split():
            kind, _, value = token.partition(":")
            if kind == "tu":
                parts.append(self.expand_tu(value))
            elif kind == "format":
                parts.append(self.expand_format(value))
            else:
                logger.warning("Ignoring unknown placeholder reference %s", token)
        return "".join(parts)

    def expand_tu(self, tu_id: str) -> str:
        """Resolved text for ``tu_id`` with markers removed and inline codes expanded."""

        text = strip_markers(self.resolver.resolve(tu_id))
        text = self.expand_inline_codes(text)
        text = collapse_double_escapes(text)
        if self.unescape_entities:
            text = html.unescape(text)
        for text_filter in self.text_filters:
            text = text_filter(text)
        return text

    def expand_format(self, markup_id: str) -> str:
        """Markup for ``markup_id`` with any TU placeholders in it expanded."""

        markup = self.format_store.lookup(markup_id)
        return EMBEDDED_TU_PATTERN.sub(lambda match: self.expand_tu(match.group("tu_id")), markup)

    def expand_inline_codes(self, text: str, depth: int = 0) -> str:
        """Replace inline codes with their markup.

        TU placeholders inside that markup, such as translated attribute
        values, are expanded too. Entries flagged ``recursive`` have their own
        inline codes expanded, down to ``MAX_EXPANSION_DEPTH`` levels.
        """

        def replace(match: re.Match) -> str:
            markup_id = match.group("id")
            markup = self._expand_embedded_units(self.format_store.lookup(markup_id), depth + 1)
            entry = self.format_store.entry(markup_id)
            if entry is not None and (entry.recursive or "").lower() in RECURSIVE_VALUES:
                if depth + 1 >= MAX_EXPANSION_DEPTH:
                    logger.warning("Inline code %s nests deeper than %d", markup_id, MAX_EXPANSION_DEPTH)
                    return markup
                return self.expand_inline_codes(markup, depth + 1)
            return markup

        return INLINE_CODE_PATTERN.sub(replace, text)

    def _expand_embedded_units(self, markup: str, depth: int) -> str:
        def replace(match: re.Match) -> str:
            tu_id = match.group("tu_id")
            if depth >= MAX_EXPANSION_DEPTH:
                logger.warning("TU %s nests deeper than %d", tu_id, MAX_EXPANSION_DEPTH)
                return ""
            return self.expand_inline_codes(strip_markers(self.resolver.resolve(tu_id)), depth)

        return EMBEDDED_TU_PATTERN.sub(replace, markup)


def render(
    skeleton: Union[str, IO[str]],
    resolver: TranslationResolver,
    format_store: FormatStore,
    out: Optional[IO[str]] = None,
    **options,
) -> str:
    """One-call form: render ``skeleton`` and optionally write it to ``out``."""

    result = PlaceholderSubstitutor(resolver, format_store, **options).render(skeleton)
    if out is not None:
        out.write(result)
    return result
