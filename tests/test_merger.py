import io

import pytest

from tessera.buffer import SkeletonBuffer, iter_start_tags, strip_excluded, tag_end
from tessera.errors import ConversionError, StrictModeAbort, TraceSequenceError
from tessera.merger import SkeletonMerger, merge
from tessera.policy import ErrorPolicy
from tessera.trace import FormatLine, TagLine, TuLine, parse_trace_line


def test_source_tu_is_replaced_by_placeholder():
    trace = [
        "<source seq='3'>",
        "<tu id='T1' istarget='false' xml:lang='en'>",
        "</source seq='3'>",
    ]
    original = "<x><source seq='3'>Hello</source></x>"

    report = SkeletonMerger().merge_text(trace, original)

    expected_head = "<x><source seq='3'><lt:tu id='T1' istarget='false' xml:lang='en'/></source>"
    assert report.skeleton == expected_head + "</x>"
    assert report.cursor == len(expected_head)
    assert report.placeholders == 1
    assert report.warnings == []


def test_wildcard_is_inserted_before_container_close():
    trace = "\n".join(
        [
            "<trans-unit seq='1'>",
            "<source seq='2'>",
            "<tu id='T1' istarget='no' xml:lang='en'>",
            "</source seq='3'>",
            "</trans-unit seq='4'>",
        ]
    )
    original = "<trans-unit id='a'><source>Hi</source></trans-unit>"

    report = SkeletonMerger().merge_text(trace, original)

    assert report.skeleton == (
        "<trans-unit id='a'><source><lt:tu id='T1' istarget='no' xml:lang='en'/></source>"
        "<lt:tu id='T1' istarget='wildcard' xml:lang='remaining'/></trans-unit>"
    )
    assert report.placeholders == 2


def test_phantom_close_of_self_closing_tag_is_ignored():
    trace = [
        "<a seq='1'>",
        "<br seq='2'>",
        "</br seq='3'>",
        "<c seq='4'>",
        "</c seq='5'>",
        "</a seq='6'>",
    ]
    original = "<a><br/><c>x</c></a>"

    report = SkeletonMerger().merge_text(trace, original)

    assert report.skeleton == original
    assert report.warnings == []
    assert report.cursor == len(original)


def test_tag_matching_respects_name_boundary():
    trace = ["<b seq='1'>", "<tu id='T' istarget='no' xml:lang='en'>", "</b seq='2'>"]
    original = "<body><b>bold</b></body>"

    report = SkeletonMerger().merge_text(trace, original)

    assert report.skeleton == "<body><b><lt:tu id='T' istarget='no' xml:lang='en'/></b></body>"


def test_missing_tag_warns_and_leaves_cursor():
    report = SkeletonMerger().merge_text(["<a seq='1'>", "<zzz seq='2'>"], "<a>text</a>")

    assert report.skeleton == "<a>text</a>"
    assert report.cursor == 3
    assert len(report.warnings) == 1
    assert "zzz" in report.warnings[0]


def test_unrecognised_lines_warn_and_blank_lines_are_skipped():
    report = SkeletonMerger().merge_text("<a seq='1'>\n\nnot a trace line\n", "<a>x</a>")
    assert len(report.warnings) == 1


def test_format_lines_insert_inline_placeholders():
    report = SkeletonMerger().merge_text(["<a seq='1'>", "<format id='7'>"], "<a>x</a>")
    assert report.skeleton == "<a><lt:format id='7'/>x</a>"


@pytest.mark.parametrize(
    "trace",
    [
        ["<a seq='2'>", "<b seq='1'>"],
        ["<a seq='1'>", "<b seq='1'>"],
        ["<a seq='1'>", "</b seq='1'>"],
        ["<a seq='1'>", "</a seq='1'>", "</a seq='1'>"],
    ],
)
def test_sequence_numbers_must_increase(trace):
    with pytest.raises(TraceSequenceError):
        SkeletonMerger().merge_text(trace, "<a><b></b></a>")


def test_strict_policy_aborts_on_first_warning():
    merger = SkeletonMerger(policy=ErrorPolicy(strict=True))
    with pytest.raises(StrictModeAbort):
        merger.merge_text(["<missing seq='1'>"], "<a/>")


def test_warning_limit_aborts():
    merger = SkeletonMerger(policy=ErrorPolicy(warning_limit=2))
    with pytest.raises(StrictModeAbort):
        merger.merge_text(["<m seq='1'>", "<n seq='2'>"], "<a/>")


def test_tu_deeper_than_max_depth_is_left_in_place():
    trace = ["<p seq='1'>", "<tu id='T' istarget='no' xml:lang='en' depth='2'>", "</p seq='2'>"]

    shallow = SkeletonMerger().merge_text(trace, "<p>Hi</p>")
    assert shallow.skeleton == "<p>Hi</p>"
    assert shallow.placeholders == 0
    assert len(shallow.warnings) == 1

    deep = SkeletonMerger().merge_text(trace, "<p>Hi</p>", max_depth=2)
    assert deep.skeleton == "<p><lt:tu id='T' istarget='no' xml:lang='en'/></p>"


def test_max_depth_below_one_is_rejected():
    with pytest.raises(ValueError):
        SkeletonMerger().merge_text([], "", max_depth=0)


def test_excluded_regions_are_removed_before_matching():
    trace = ["<a seq='1'>", "<tu id='T' istarget='no' xml:lang='en'>", "</a seq='2'>", "<c seq='3'>"]
    original = "<a>x<sub>nested<sub>inner</sub></sub>y</a><c/>"

    report = SkeletonMerger().merge_text(trace, original)

    assert report.skeleton == "<a><lt:tu id='T' istarget='no' xml:lang='en'/></a><c/>"


def test_merger_is_reusable():
    merger = SkeletonMerger()
    trace = ["<p seq='1'>", "<tu id='T' istarget='no' xml:lang='en'>", "</p seq='2'>"]
    first = merger.merge_text(trace, "<p>one</p>")
    second = merger.merge_text(trace, "<p>two</p>")
    assert first.skeleton == second.skeleton


def test_merge_writes_text_and_binary_streams():
    trace = "<p seq='1'>\n</p seq='2'>\n"
    text_out = io.StringIO()
    merge(trace, io.StringIO("<p>café</p>"), text_out)
    assert text_out.getvalue() == "<p>café</p>"

    binary_out = io.BytesIO()
    SkeletonMerger().merge(trace, "<p>café</p>", binary_out, encoding="latin-1")
    assert binary_out.getvalue() == "<p>café</p>".encode("latin-1")


def test_unknown_encoding_raises_conversion_error():
    with pytest.raises(ConversionError):
        SkeletonMerger().merge([], "", io.BytesIO(), encoding="no-such-codec")


def test_strip_excluded_is_idempotent():
    text = "a<sub>x<sub>y</sub>z</sub>b<sub id='1'/>c"
    once = strip_excluded(text)
    assert once == "ab<sub id='1'/>c"
    assert strip_excluded(once) == once


def test_strip_excluded_stops_at_unmatched_closer():
    seen = []
    text = "a</sub>b<sub>c</sub>"
    assert strip_excluded(text, on_unmatched=seen.append) == text
    assert seen == [1]
    assert strip_excluded("<subtitle>x</sub>", on_unmatched=seen.append) == "<subtitle>x</sub>"


def test_buffer_only_moves_forward():
    buffer = SkeletonBuffer("<a>one</a>")
    start, end = buffer.find_tag("<a")
    buffer.seek_past(end)
    buffer.insert("[x]")
    close_start, close_end = buffer.find_tag("</a")
    buffer.delete_to(close_start)
    buffer.seek_past(close_end)

    assert buffer.getvalue() == "<a>[x]</a>"
    assert buffer.cursor == len("<a>[x]</a>")
    with pytest.raises(ValueError):
        buffer.seek_past(start)


def test_parse_trace_line_shapes():
    assert parse_trace_line("<p seq='4'>\r\n") == TagLine("p", 4)
    assert parse_trace_line("</w:p seq='5'>") == TagLine("w:p", 5, closing=True)
    assert parse_trace_line("<tu id='x' istarget='no' xml:lang='fr' depth='3'>") == TuLine(
        "x", "no", "fr", 3
    )
    assert parse_trace_line("<format id='12'>") == FormatLine("12")
    assert parse_trace_line("<p>") is None


def test_quoted_greater_than_does_not_end_a_tag():
    trace = ["<p seq='1'>", "<tu id='T' istarget='no' xml:lang='en'>", "</p seq='2'>"]
    original = "<doc><p title=\"a>b\" alt='c>d'>Hi</p></doc>"

    report = SkeletonMerger().merge_text(trace, original)

    assert report.skeleton == (
        "<doc><p title=\"a>b\" alt='c>d'><lt:tu id='T' istarget='no' xml:lang='en'/></p></doc>"
    )
    assert report.warnings == []


def test_comments_cdata_and_instructions_are_not_searched():
    trace = ["<p seq='1'>", "<tu id='T' istarget='no' xml:lang='en'>", "</p seq='2'>"]
    skipped = "<!-- <p>old</p> --><?pi <p>?><![CDATA[<p>]]>"
    original = f"<doc>{skipped}<p>Hi</p></doc>"

    report = SkeletonMerger().merge_text(trace, original)

    assert report.skeleton == f"<doc>{skipped}<p><lt:tu id='T' istarget='no' xml:lang='en'/></p></doc>"


def test_unterminated_comment_hides_the_rest():
    report = SkeletonMerger().merge_text(["<p seq='1'>"], "<!-- <p>")
    assert len(report.warnings) == 1


def test_strip_excluded_leaves_commented_markers():
    text = "a<!-- <sub>x</sub> -->b<sub>y</sub>c<![CDATA[</sub>]]>"
    assert strip_excluded(text) == "a<!-- <sub>x</sub> -->bc<![CDATA[</sub>]]>"


def test_tag_scanning_helpers():
    text = '<?xml version="1.0"?><!-- <a> --><a x="1>2"><b/></a>'

    assert [text[start:end] for start, end in iter_start_tags(text)] == ['<a x="1>2">', "<b/>"]
    assert tag_end("<a x='>'>rest", 2) == len("<a x='>'>")
    assert tag_end("<a x='unclosed", 2) == -1
