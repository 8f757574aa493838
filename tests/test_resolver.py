import pytest

from tessera.errors import ConversionError
from tessera.interchange import InterchangeDocument
from tessera.resolver import TranslationResolver, phase_candidates

XLIFF = """<?xml version="1.0" encoding="UTF-8"?>
<xliff version="1.2" xmlns:lt="http://www.lingotek.com/">
<file original="sample" source-language="en" datatype="xml">
<body>
<trans-unit id="1">
<source xml:lang="en">One</source>
<target xml:lang="fr" phase-name="1">Un-1</target>
<target xml:lang="fr" phase-name="3">Un-3</target>
<target xml:lang="FR" phase-name="review">Un-review</target>
</trans-unit>
<trans-unit id="2">
<source xml:lang="en"><mrk mtype='x-coretext'>Two &amp; <bx id='1'/>more<ex id='2'/></mrk></source>
</trans-unit>
<trans-unit id="3" lt:next-tu-id="4">
<source xml:lang="en">A</source>
<target xml:lang="fr">Salt & pepper</target>
</trans-unit>
<trans-unit id="4" lt:next-tu-id="3">
<source xml:lang="en">B</source>
<alt-trans xml:lang="fr"><target>B-alt</target></alt-trans>
</trans-unit>
</body>
</file>
</xliff>
"""


def load(locale="fr", **options):
    resolver = TranslationResolver(untranslated_notice=options.pop("notice", False))
    resolver.load_text(XLIFF, locale, **options)
    return resolver


def test_without_phase_the_first_target_wins():
    resolver = load()
    assert resolver.resolve("1") == "Un-1"
    assert resolver.resolve("4") == "B-alt"


@pytest.mark.parametrize(
    "phase, max_phase, expected",
    [
        ("3", 5, "Un-3"),
        ("2", 5, "Un-1"),
        ("5", 3, ""),
        ("0", 4, "Un-3"),
        ("1", 0, "Un-1"),
        ("review", 0, "Un-review"),
        ("draft", 9, ""),
    ],
)
def test_phase_fallback(phase, max_phase, expected):
    resolver = load(phase_name=phase, max_phase=max_phase)
    assert resolver.resolve("1") == expected


def test_phase_candidates():
    assert phase_candidates("4", 4) == ["4", "3", "2", "1"]
    assert phase_candidates("0", 2) == ["0", "2", "1"]
    assert phase_candidates("7", 3) == ["7"]
    assert phase_candidates("final", 3) == ["final"]


def test_unknown_ids_resolve_to_empty_string():
    resolver = load()
    assert resolver.resolve("nope") == ""
    assert "2" not in resolver
    assert resolver.resolve("2") == ""


def test_chained_segments_concatenate_once():
    resolver = load()
    assert resolver.resolve("3", follow_chain=True) == "Salt & pepperB-alt"


def test_escape_ampersands_only_touches_bare_ampersands():
    resolver = load(escape_ampersands=True)
    assert resolver.resolve("3") == "Salt &amp; pepper"


def test_untranslated_notice_uses_plain_source():
    resolver = load(notice=True)
    assert resolver.resolve("2") == " [Segment 2 not yet translated: Two & more] "

    escaped = load(notice=True, escape_ampersands=True)
    assert escaped.resolve("2") == " [Segment 2 not yet translated: Two &amp; more] "


def test_locale_matching_is_case_insensitive():
    resolver = load(locale="Fr", phase_name="review")
    assert resolver.resolve("1") == "Un-review"


def test_source_and_len():
    resolver = load()
    assert resolver.source("3") == "A"
    assert len(resolver) == 3


def test_load_accepts_paths(tmp_path):
    path = tmp_path / "doc.xlf"
    path.write_text(XLIFF, encoding="utf-8")
    resolver = TranslationResolver()
    strings = resolver.load(path, "fr")
    assert strings["1"] == "Un-1"

    with pytest.raises(ConversionError):
        resolver.load(tmp_path / "missing.xlf", "fr")


def test_interchange_targets_accumulate_and_round_trip():
    document = InterchangeDocument.from_text(XLIFF)
    document.add_target("2", "de", "Zwei", phase="1")
    assert document.remove_target("1", "fr", phase="3")
    assert not document.remove_target("missing", "fr")
    with pytest.raises(KeyError):
        document.add_target("missing", "fr", "x")

    reloaded = InterchangeDocument.from_text(document.render())

    assert [segment.tu_id for segment in reloaded] == ["1", "2", "3", "4"]
    assert reloaded.segment("2").find_target("de", "1").text == "Zwei"
    assert reloaded.segment("1").find_target("fr", "3") is None
    assert reloaded.segment("3").next_tu_id == "4"
    assert reloaded.segment("4").alternatives[0].text == "B-alt"
    assert reloaded.source_locale == "en"


def test_highest_phase_falls_back_as_phases_are_removed():
    document = InterchangeDocument.from_text(XLIFF)
    for phase in ("1", "2", "3"):
        document.add_target("2", "de", f"Zwei-{phase}", phase=phase)
    resolver = TranslationResolver()

    resolver.load(document, "de", phase_name="0", max_phase=3)
    assert resolver.resolve("2") == "Zwei-3"

    document.remove_target("2", "de", phase="3")
    document = InterchangeDocument.from_text(document.render())
    resolver.load(document, "de", phase_name="0", max_phase=3)
    assert resolver.resolve("2") == "Zwei-2"

    document.remove_target("2", "de", phase="2")
    resolver.load(document, "de", phase_name="0", max_phase=3)
    assert resolver.resolve("2") == "Zwei-1"


def test_empty_phased_target_counts_as_untranslated():
    document = InterchangeDocument.from_text(XLIFF)
    document.add_target("2", "de", "Zwei", phase="1")
    document.add_target("2", "de", "", phase="2")

    resolver = TranslationResolver(untranslated_notice=True)
    resolver.load(document, "de", phase_name="2", max_phase=2)
    assert resolver.resolve("2") == " [Segment 2 not yet translated: Two & more] "

    resolver.load(document, "de")
    assert resolver.resolve("2") == "Zwei"
