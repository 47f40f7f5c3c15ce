"""
The document-location side of stamping.

Annotations are anchored by WordprocessingML smart tags:

    <w:smartTag w:uri="urn:stamp" w:element="stamp">
      <w:smartTagPr>
        <w:attr w:name="comment" w:val="3"/>
        <w:attr w:name="status" w:val="executed"/>
        <w:attr w:name="context" w:val="2"/>
      </w:smartTagPr>
      <w:r><w:t>...</w:t></w:r>
    </w:smartTag>

Status and context key live on the tag itself, so they survive any
in-memory structure and stay visible to other tools reading the part.
Parsing and serialising whole packages is left to the caller; a part
here is just an ElementTree root.
"""

import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NSMAP = {"w": W_NS}
STAMP_URI = "urn:stamp"
STAMP_ELEMENT = "stamp"


def w(tag: str) -> str:
    return f"{{{W_NS}}}{tag}"


ET.register_namespace("w", W_NS)


# -----------------------------------------------------------------
# Smart tag attributes
# -----------------------------------------------------------------

def _find_attr(tag_element: ET.Element, name: str) -> Optional[ET.Element]:
    pr = tag_element.find(w("smartTagPr"))
    if pr is None:
        return None
    for attr in pr.findall(w("attr")):
        if attr.get(w("name")) == name:
            return attr
    return None


def get_tag_attribute(tag_element: ET.Element, name: str) -> Optional[str]:
    attr = _find_attr(tag_element, name)
    return None if attr is None else attr.get(w("val"))


def has_tag_attribute(tag_element: ET.Element, name: str, value: str) -> bool:
    return get_tag_attribute(tag_element, name) == value


def set_tag_attribute(tag_element: ET.Element, name: str, value: str) -> None:
    attr = _find_attr(tag_element, name)
    if attr is None:
        pr = tag_element.find(w("smartTagPr"))
        if pr is None:
            pr = ET.Element(w("smartTagPr"))
            tag_element.insert(0, pr)
        attr = ET.SubElement(pr, w("attr"))
        attr.set(w("name"), name)
    attr.set(w("val"), value)


def is_stamp_tag(element: ET.Element) -> bool:
    return element.tag == w("smartTag") and element.get(w("element")) == STAMP_ELEMENT


def new_tag(comment_id: str, *content: ET.Element) -> ET.Element:
    """Builds a stamp smart tag pointing at comment_id, wrapping content."""
    tag = ET.Element(w("smartTag"), {w("uri"): STAMP_URI, w("element"): STAMP_ELEMENT})
    set_tag_attribute(tag, "comment", str(comment_id))
    for child in content:
        tag.append(child)
    return tag


def new_run(text: str) -> ET.Element:
    run = ET.Element(w("r"))
    t = ET.SubElement(run, w("t"))
    t.text = text
    if text != text.strip():
        t.set("{http://www.w3.org/XML/1998/namespace}space", "preserve")
    return run


def text_of(element: ET.Element) -> str:
    return "".join(t.text or "" for t in element.iter(w("t")))


# -----------------------------------------------------------------
# Parts and tags
# -----------------------------------------------------------------

class DocxPart:
    """One XML part of a document (body, header, footer...)."""

    def __init__(self, root: ET.Element, name: str = "document"):
        self.root = root
        self.name = name

    @classmethod
    def from_string(cls, xml: str, name: str = "document") -> "DocxPart":
        return cls(ET.fromstring(xml), name)

    def to_string(self) -> str:
        return ET.tostring(self.root, encoding="unicode")

    def parent_map(self) -> Dict[ET.Element, ET.Element]:
        return {child: parent for parent in self.root.iter() for child in parent}

    def parent_of(self, element: ET.Element) -> Optional[ET.Element]:
        return self.parent_map().get(element)

    def paragraph_of(self, element: ET.Element) -> Optional[ET.Element]:
        parents = self.parent_map()
        cur = parents.get(element)
        while cur is not None:
            if cur.tag == w("p"):
                return cur
            cur = parents.get(cur)
        return None

    def stream_tags(self, within: Optional[ET.Element] = None) -> Iterator['Tag']:
        """Yields stamp tags in document order, optionally only those inside `within`."""
        for element in (within if within is not None else self.root).iter(w("smartTag")):
            if is_stamp_tag(element):
                yield Tag(self, element)

    def paragraphs(self) -> List[ET.Element]:
        return list(self.root.iter(w("p")))

    def __repr__(self):
        return f"DocxPart{{name={self.name}}}"


class Tag:
    """A document location carrying one annotation."""

    def __init__(self, part: DocxPart, element: ET.Element):
        self.part = part
        self.element = element

    def get_attribute(self, name: str) -> Optional[str]:
        return get_tag_attribute(self.element, name)

    def set_attribute(self, name: str, value: str) -> None:
        set_tag_attribute(self.element, name, value)

    @property
    def comment_id(self) -> Optional[str]:
        return self.get_attribute("comment")

    @property
    def context_key(self) -> Optional[str]:
        return self.get_attribute("context")

    @property
    def status(self) -> Optional[str]:
        return self.get_attribute("status")

    @property
    def paragraph(self) -> Optional[ET.Element]:
        return self.part.paragraph_of(self.element)

    def content(self) -> List[ET.Element]:
        """Children of the tag except its property block."""
        return [c for c in self.element if c.tag != w("smartTagPr")]

    def clear_content(self) -> List[ET.Element]:
        removed = self.content()
        for child in removed:
            self.element.remove(child)
        return removed

    def __eq__(self, other):
        return isinstance(other, Tag) and other.element is self.element

    def __hash__(self):
        return id(self.element)

    def __repr__(self):
        return f"<Tag comment={self.comment_id!r} status={self.status!r} context={self.context_key!r}>"


def unwrap_tags(part: DocxPart) -> int:
    """Replaces every stamp tag by its content. Returns how many were removed."""
    count = 0
    while True:
        tag = next(part.stream_tags(), None)
        if tag is None:
            return count
        parent = part.parent_of(tag.element)
        if parent is None:
            # The part root itself is a tag; nothing to splice into.
            return count
        index = list(parent).index(tag.element)
        parent.remove(tag.element)
        for offset, child in enumerate(tag.content()):
            parent.insert(index + offset, child)
        count += 1
