import pytest
from stamp.stamp_document import (
    DocxPart, Tag, W_NS, new_tag, new_run, text_of, unwrap_tags,
    get_tag_attribute, set_tag_attribute, has_tag_attribute, is_stamp_tag, w,
)

XML = f"""<w:document xmlns:w="{W_NS}"><w:body>
<w:p><w:r><w:t>Dear </w:t></w:r><w:smartTag w:uri="urn:stamp" w:element="stamp"><w:smartTagPr><w:attr w:name="comment" w:val="1"/></w:smartTagPr><w:r><w:t>NAME</w:t></w:r></w:smartTag></w:p>
<w:p><w:smartTag w:uri="urn:other" w:element="date"><w:r><w:t>today</w:t></w:r></w:smartTag><w:smartTag w:uri="urn:stamp" w:element="stamp"><w:smartTagPr><w:attr w:name="comment" w:val="2"/></w:smartTagPr><w:smartTag w:uri="urn:stamp" w:element="stamp"><w:smartTagPr><w:attr w:name="comment" w:val="3"/></w:smartTagPr></w:smartTag></w:smartTag></w:p>
</w:body></w:document>"""


@pytest.fixture
def part():
    return DocxPart.from_string(XML)


def test_stream_tags_in_document_order(part):
    assert [t.comment_id for t in part.stream_tags()] == ["1", "2", "3"]


def test_stream_tags_within_includes_the_element_itself(part):
    outer = [t for t in part.stream_tags() if t.comment_id == "2"][0]
    assert [t.comment_id for t in part.stream_tags(outer.element)] == ["2", "3"]


def test_foreign_smart_tags_are_ignored(part):
    foreign = [e for e in part.root.iter(w("smartTag")) if not is_stamp_tag(e)]
    assert len(foreign) == 1


def test_tag_attributes(part):
    tag = next(part.stream_tags())
    assert tag.status is None
    assert tag.context_key is None
    tag.set_attribute("status", "executed")
    tag.set_attribute("context", "4")
    tag.set_attribute("status", "executed")
    assert tag.status == "executed"
    assert tag.context_key == "4"
    assert len(tag.element.find(w("smartTagPr"))) == 3
    assert has_tag_attribute(tag.element, "context", "4")


def test_set_attribute_creates_property_block():
    element = new_run("x")
    set_tag_attribute(element, "comment", "7")
    assert element[0].tag == w("smartTagPr")
    assert get_tag_attribute(element, "comment") == "7"


def test_tag_paragraph_and_content(part):
    tag = next(part.stream_tags())
    assert tag.paragraph is part.paragraphs()[0]
    assert [text_of(c) for c in tag.content()] == ["NAME"]
    removed = tag.clear_content()
    assert len(removed) == 1
    assert tag.content() == []
    assert tag.element.find(w("smartTagPr")) is not None


def test_tags_compare_by_element(part):
    a = list(part.stream_tags())
    b = list(part.stream_tags())
    assert a == b
    assert len({*a, *b}) == 3


def test_new_run_preserves_spaces():
    run = new_run(" padded ")
    t = run.find(w("t"))
    assert t.get("{http://www.w3.org/XML/1998/namespace}space") == "preserve"
    assert text_of(new_tag("1", run)) == " padded "


def test_unwrap_tags(part):
    assert unwrap_tags(part) == 3
    assert list(part.stream_tags()) == []
    assert text_of(part.root) == "Dear NAMEtoday"
    assert "urn:other" in part.to_string()
