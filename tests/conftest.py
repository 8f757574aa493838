"""Shared fixtures for the Tessera test-suite."""

from types import SimpleNamespace

import pytest

from tessera.formats import FormatStore
from tessera.interchange import InterchangeDocument
from tessera.structures import InlineMarkupEntry, Target, TranslatableSegment

SAMPLE_DOCUMENT = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    "<doc>\n"
    "  <title>Report</title>\n"
    '  <p class="intro">Hello <b>bold</b> world &amp; more</p>\n'
    '  <div><br/><p>Second<img src="a.png"/></p></div>\n'
    "</doc>\n"
)


@pytest.fixture
def sample_document() -> str:
    return SAMPLE_DOCUMENT


@pytest.fixture
def format_store() -> FormatStore:
    return FormatStore(
        [
            InlineMarkupEntry("1", "b>"),
            InlineMarkupEntry("2", "/b>"),
            InlineMarkupEntry("3", "br/>"),
            InlineMarkupEntry("4", "span class=\"k\"><bx id='1'/>", recursive="yes"),
        ]
    )


@pytest.fixture
def french_document() -> InterchangeDocument:
    segments = [
        TranslatableSegment(
            tu_id="t1",
            source="<mrk mtype='x-coretext'>Bold <bx id='1'/>x<ex id='2'/></mrk>",
            source_locale="en",
            targets=[
                Target("fr", "<mrk mtype='x-coretext'>Gras <bx id='1'/>x<ex id='2'/></mrk>"),
            ],
        ),
        TranslatableSegment(
            tu_id="t2",
            source="Hello",
            source_locale="en",
            targets=[Target("fr", "Bonjour")],
        ),
        TranslatableSegment(
            tu_id="t3",
            source="Escaped",
            source_locale="en",
            targets=[Target("fr", "a &amp;lt; b")],
        ),
    ]
    return InterchangeDocument(original="sample", segments=segments)


@pytest.fixture
def settings() -> SimpleNamespace:
    """Stand-in for the validated configuration model."""

    return SimpleNamespace(
        TESSERA_SOURCE_LOCALE="en",
        TESSERA_ENCODING="utf-8",
        TESSERA_MAX_PHASE=0,
        TESSERA_MAX_TU_DEPTH=1,
        TESSERA_STRICT=False,
        TESSERA_WARNING_LIMIT=0,
        TESSERA_ESCAPE_AMPERSANDS=False,
        TESSERA_MARK_UNTRANSLATED=False,
        TESSERA_TRANSLATABLE_ELEMENTS="p,h1,h2,h3,h4,h5,h6,li,td,th,title,caption,dt,dd",
        TESSERA_TRANSLATABLE_ATTRIBUTES="alt,title",
        TESSERA_CONTAINER_TAG="trans-unit",
        TESSERA_LOG_LEVEL="WARNING",
    )
