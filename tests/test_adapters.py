import pathlib

import pytest

from tessera.adapters import MarkupAdapter, detect_adapter
from tessera.errors import MalformedDocumentError, UnsupportedFileTypeError
from tessera.ids import IdAllocator
from tessera.structures import InlineMarkupEntry


def test_trace_lines_and_segments(sample_document):
    traced = MarkupAdapter().trace("doc.xml", sample_document, IdAllocator())
    lines = traced.trace.splitlines()
    tu_ids = [segment.tu_id for segment in traced.segments]

    assert lines == [
        "<doc seq='0'>",
        "<title seq='1'>",
        f"<tu id='{tu_ids[0]}' istarget='no' xml:lang='en'>",
        "</title seq='2'>",
        "<p seq='3'>",
        f"<tu id='{tu_ids[1]}' istarget='no' xml:lang='en'>",
        "</p seq='4'>",
        "<div seq='5'>",
        "<br seq='6'>",
        "</br seq='7'>",
        "<p seq='8'>",
        f"<tu id='{tu_ids[2]}' istarget='no' xml:lang='en'>",
        "</p seq='9'>",
        "</div seq='10'>",
        "</doc seq='11'>",
    ]
    assert [segment.source for segment in traced.segments] == [
        "<mrk mtype='x-coretext'>Report</mrk>",
        "<mrk mtype='x-coretext'>Hello <bx id='1'/>bold<ex id='2'/> world &amp; more</mrk>",
        "<mrk mtype='x-coretext'>Second<x id='3'/></mrk>",
    ]
    assert [entry.text for entry in traced.markup] == ["b>", "/b>", 'img src="a.png"/>']
    assert len(set(tu_ids)) == 3


def test_whitespace_stays_outside_core_marker():
    traced = MarkupAdapter().trace("a.xml", "<p>  Hi there \n</p>", IdAllocator())
    assert traced.segments[0].source == "  <mrk mtype='x-coretext'>Hi there</mrk> \n"


def test_elements_holding_translatable_children_are_structure():
    text = "<ul><li><p>One</p></li><li>Two</li><li>  </li></ul>"
    traced = MarkupAdapter().trace("list.xml", text, IdAllocator())

    assert [segment.source for segment in traced.segments] == [
        "<mrk mtype='x-coretext'>One</mrk>",
        "<mrk mtype='x-coretext'>Two</mrk>",
    ]


def test_prefixed_names_and_attributes_are_preserved():
    text = (
        '<x:doc xmlns:x="urn:x" xmlns:y="urn:y">'
        '<x:p>Hi <x:span y:role="a" xml:lang="fr">there</x:span></x:p></x:doc>'
    )
    traced = MarkupAdapter(translatable=["p"]).trace("ns.xml", text, IdAllocator())

    assert traced.trace.splitlines()[0] == "<x:doc seq='0'>"
    assert traced.markup[0].text == 'x:span y:role="a" xml:lang="fr">'
    assert traced.markup[1].text == "/x:span>"


def test_comments_inside_units_become_codes():
    traced = MarkupAdapter().trace("c.xml", "<p>A<!-- note -->B</p>", IdAllocator())
    assert traced.segments[0].source == "<mrk mtype='x-coretext'>A<x id='1'/>B</mrk>"
    assert traced.markup[0].text == "!-- note -->"


def test_shared_allocator_continues_numbering():
    allocator = IdAllocator()
    adapter = MarkupAdapter()
    adapter.trace("one.xml", "<p>A<b/></p>", allocator)
    second = adapter.trace("two.xml", "<p>B<i/></p>", allocator)

    assert second.trace.splitlines()[0] == "<p seq='2'>"
    assert second.markup[0].markup_id == "2"


def test_malformed_documents_raise():
    with pytest.raises(MalformedDocumentError):
        MarkupAdapter().trace("bad.xml", "<p>unclosed", IdAllocator())


def test_detect_adapter_by_suffix():
    kind, adapter = detect_adapter(pathlib.Path("page.XHTML"), source_locale="de")
    assert kind == "markup"
    assert adapter.source_locale == "de"
    with pytest.raises(UnsupportedFileTypeError):
        detect_adapter(pathlib.Path("report.docx"))


def test_namespace_declarations_on_inline_children_are_kept():
    traced = MarkupAdapter().trace("ns.xml", '<p>See <m:b xmlns:m="urn:m">x</m:b></p>', IdAllocator())
    assert traced.markup[0].text == 'm:b xmlns:m="urn:m">'
    assert traced.markup[1].text == "/m:b>"


def test_cdata_inside_units_travels_as_literal_code():
    text = "<doc><p>a <![CDATA[x<y]]> b</p><div><![CDATA[<p>]]></div></doc>"
    traced = MarkupAdapter().trace("c.xml", text, IdAllocator())

    assert [segment.source for segment in traced.segments] == [
        "<mrk mtype='x-coretext'>a <x id='1'/> b</mrk>",
    ]
    assert traced.markup == [InlineMarkupEntry("1", "x<y", uses_cdata_literal=True)]
    assert traced.original == text


def test_attribute_units_are_placed_in_the_original():
    text = "<doc><img alt='Logo' src=\"a.png\"/><p title=\"T\" class=\"c\">Hi</p></doc>"
    traced = MarkupAdapter().trace("a.xml", text, IdAllocator())
    logo, title, para = traced.segments

    assert traced.original == (
        f"<doc><img alt='<lt:tu id=\"{logo.tu_id}\" istarget=\"no\" xml:lang=\"en\"/>' src=\"a.png\"/>"
        f"<p title=\"<lt:tu id='{title.tu_id}' istarget='no' xml:lang='en'/>\" class=\"c\">Hi</p></doc>"
    )
    assert logo.source == "<mrk mtype='x-coretext'>Logo</mrk>"
    assert para.source == "<mrk mtype='x-coretext'>Hi</mrk>"


def test_attribute_units_of_inline_children_go_to_the_format_table():
    traced = MarkupAdapter().trace("a.xml", '<p>Hi <img alt="O\'Neil &amp; co"/></p>', IdAllocator())
    icon, para = traced.segments

    assert icon.source == "<mrk mtype='x-coretext'>O&apos;Neil &amp; co</mrk>"
    assert traced.markup[0].text == (
        f"img alt=\"<lt:tu id='{icon.tu_id}' istarget='no' xml:lang='en'/>\"/>"
    )
    assert para.source == "<mrk mtype='x-coretext'>Hi <x id='1'/></mrk>"


def test_attribute_units_can_be_disabled():
    text = '<doc><img alt="Logo"/><p title="T">Hi</p></doc>'
    traced = MarkupAdapter(translatable_attributes=()).trace("a.xml", text, IdAllocator())
    assert traced.original == text
    assert len(traced.segments) == 1
