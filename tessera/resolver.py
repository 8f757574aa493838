"""Per-locale, per-phase resolution of TU ids to translated strings."""

from __future__ import annotations

import logging
import pathlib
from typing import Dict, List, Optional, Union

from .interchange import InterchangeDocument
from .markers import escape_bare_ampersands, plain_text
from .structures import Target, TranslatableSegment

logger = logging.getLogger(__name__)

UNTRANSLATED_NOTICE = " [Segment {number} not yet translated: {source}] "


def phase_candidates(phase_name: str, max_phase: int) -> List[str]:
    """Phase names to try, in order, when looking for ``phase_name``.

    A numeric phase ``v`` with ``1 < v <= max_phase`` falls back through
    ``v-1`` down to ``1``; phase ``"0"`` means "the highest phase up to
    ``max_phase``". Any other name must match exactly.
    """

    candidates = [phase_name]
    if not (phase_name.isascii() and phase_name.isdigit()):
        return candidates
    value = int(phase_name)
    if 1 < value <= max_phase:
        candidates.extend(str(phase) for phase in range(value - 1, 0, -1))
    elif value == 0 and max_phase >= 0:
        candidates.extend(str(phase) for phase in range(max_phase, 0, -1))
    return candidates


def select_target(
    segment: TranslatableSegment,
    locale: str,
    phase_name: Optional[str] = None,
    max_phase: int = 0,
) -> Optional[Target]:
    """The target to use, or ``None`` when the segment counts as untranslated.

    Without a phase the first target for ``locale`` wins. With one, the first
    phase in fallback order that has a target decides; an empty target there
    means untranslated.
    """

    if not phase_name:
        return segment.find_target(locale, include_alternatives=True)
    for candidate in phase_candidates(phase_name, max_phase):
        target = segment.find_target(locale, candidate, include_alternatives=True)
        if target is not None:
            return target if target.text else None
    return None


class TranslationResolver:
    """Loads the strings of one locale and phase, then answers ``resolve`` calls."""

    def __init__(self, untranslated_notice: bool = False) -> None:
        self.untranslated_notice = untranslated_notice
        self.locale: Optional[str] = None
        self._strings: Dict[str, str] = {}
        self._next: Dict[str, Optional[str]] = {}
        self._sources: Dict[str, str] = {}

    def __contains__(self, tu_id: object) -> bool:
        return tu_id in self._strings

    def __len__(self) -> int:
        return len(self._strings)

    def load(
        self,
        document: Union[InterchangeDocument, str, pathlib.Path],
        locale: str,
        phase_name: Optional[str] = None,
        max_phase: int = 0,
        escape_ampersands: bool = False,
    ) -> Dict[str, str]:
        """Resolve every TU of ``document`` for ``locale`` and return the map.

        ``document`` is a parsed :class:`InterchangeDocument` or a path to
        one. A previous load is discarded.
        """

        if not isinstance(document, InterchangeDocument):
            document = InterchangeDocument.from_path(pathlib.Path(document))

        self.locale = locale
        self._strings = {}
        self._next = {}
        self._sources = {}

        for number, segment in enumerate(document, start=1):
            self._sources[segment.tu_id] = segment.source
            self._next[segment.tu_id] = segment.next_tu_id

            target = select_target(segment, locale, phase_name, max_phase)
            if target is not None:
                text = target.text
                if escape_ampersands:
                    text = escape_bare_ampersands(text)
            elif self.untranslated_notice:
                text = self._notice(number, segment, escape_ampersands)
            else:
                logger.debug("TU %s has no %s target", segment.tu_id, locale)
                continue
            self._strings[segment.tu_id] = text

        logger.debug("Resolved %d of %d TUs for %s", len(self._strings), len(document), locale)
        return dict(self._strings)

    def load_text(self, text: str, locale: str, **options) -> Dict[str, str]:
        return self.load(InterchangeDocument.from_text(text), locale, **options)

    @staticmethod
    def _notice(number: int, segment: TranslatableSegment, escape_ampersands: bool) -> str:
        source = plain_text(segment.source)
        if escape_ampersands:
            source = escape_bare_ampersands(source)
        else:
            source = source.replace("&amp;", "&")
        return UNTRANSLATED_NOTICE.format(number=number, source=source)

    def resolve(self, tu_id: str, follow_chain: bool = False) -> str:
        """Return the string for ``tu_id``, or ``""`` when there is none.

        With ``follow_chain`` the strings of the segments linked through
        ``lt:next-tu-id`` are appended in order.
        """

        text = self._lookup(tu_id)
        if not follow_chain:
            return text

        parts = [text]
        seen = {tu_id}
        next_id = self._next.get(tu_id)
        while next_id and next_id not in seen:
            seen.add(next_id)
            parts.append(self._lookup(next_id))
            next_id = self._next.get(next_id)
        return "".join(parts)

    def _lookup(self, tu_id: str) -> str:
        text = self._strings.get(tu_id)
        if text is None:
            logger.debug("No resolved string for TU %s", tu_id)
            return ""
        return text

    def source(self, tu_id: str) -> str:
        return self._sources.get(tu_id, "")
