"""Core data structures for the Tessera round-trip engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Target:
    """A translated string for one locale and, optionally, one phase."""

    locale: str
    text: str
    phase: Optional[str] = None

    def matches(self, locale: str, phase: Optional[str] = None) -> bool:
        if self.locale.lower() != locale.lower():
            return False
        return phase is None or self.phase == phase


@dataclass
class TranslatableSegment:
    """Represents a single translation unit of an interchange document."""

    tu_id: str
    source: str
    source_locale: str
    targets: List[Target] = field(default_factory=list)
    next_tu_id: Optional[str] = None
    alternatives: List[Target] = field(default_factory=list)

    def find_target(
        self,
        locale: str,
        phase: Optional[str] = None,
        include_alternatives: bool = False,
    ) -> Optional[Target]:
        """Return the first target for ``locale`` (and ``phase`` when given).

        Direct targets win; ``<alt-trans>`` candidates are consulted only when
        ``include_alternatives`` is set.
        """

        for target in self.targets:
            if target.matches(locale, phase):
                return target
        if include_alternatives:
            for target in self.alternatives:
                if target.matches(locale, phase):
                    return target
        return None

    def add_target(self, target: Target) -> None:
        self.targets.append(target)

    def remove_target(self, locale: str, phase: Optional[str] = None) -> bool:
        """Drop the first matching target; report whether one was removed."""

        target = self.find_target(locale, phase)
        if target is None:
            return False
        self.targets.remove(target)
        return True


@dataclass(frozen=True)
class InlineMarkupEntry:
    """The literal native markup an inline-markup placeholder stands for."""

    markup_id: str
    text: str
    uses_cdata_literal: bool = False
    recursive: Optional[str] = None


@dataclass(frozen=True)
class TuPlaceholder:
    """A TU placeholder as written into a skeleton."""

    tu_id: str
    is_target: Optional[str] = None
    locale: Optional[str] = None

    WILDCARD = "wildcard"

    @property
    def is_wildcard(self) -> bool:
        return self.is_target == self.WILDCARD

    def render(self, quote: str = "'") -> str:
        """Placeholder text; pass ``quote='"'`` when it sits inside a ``'``-quoted value."""

        parts = [f"<lt:tu id={quote}{self.tu_id}{quote}"]
        if self.is_target is not None:
            parts.append(f" istarget={quote}{self.is_target}{quote}")
        if self.locale is not None:
            parts.append(f" xml:lang={quote}{self.locale}{quote}")
        parts.append("/>")
        return "".join(parts)

    @classmethod
    def wildcard(cls, tu_id: str) -> "TuPlaceholder":
        """Marks where targets added after import are to be inserted."""

        return cls(tu_id=tu_id, is_target=cls.WILDCARD, locale="remaining")


def format_placeholder(markup_id: str) -> str:
    """Render the skeleton placeholder for an inline-markup entry."""

    return f"<lt:format id='{markup_id}'/>"
