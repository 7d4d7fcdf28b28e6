"""Collection and CNXML markup parsing.

Raw XML is parsed with BeautifulSoup (``lxml-xml``) and immediately converted
into a small typed node tree. Everything downstream (module listing and plain
text extraction) works on that tree only and never probes raw tags.

Node kinds:
  Collection / Subcollection / Module : table-of-contents side (collection.xml)
  Content / Paragraph / Text          : module body side (index.cnxml)

``Content`` appears on both sides: it wraps module references in collection
files and body sections in module files.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from openstax_mcp.errors import ErrorCode, OpenStaxError
from openstax_mcp.models.textbook import ModuleRef

_WHITESPACE_RE = re.compile(r"\s+")
_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)

# CNXML elements that hold a paragraph of prose
_PARAGRAPH_TAGS = frozenset({"para", "item"})
# CNXML elements that only group other blocks
_CONTAINER_TAGS = frozenset(
    {"content", "section", "note", "example", "exercise", "problem", "solution", "list"}
)


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Paragraph:
    children: tuple[ContentNode, ...] = ()


@dataclass(frozen=True)
class Content:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Module:
    document: str | None
    title: str | None = None


@dataclass(frozen=True)
class Subcollection:
    title: str | None = None
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Collection:
    title: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Document:
    """A parsed module file: its title and body."""

    title: str | None
    content: Content | None


ContentNode = Content | Paragraph | Text
CollectionNode = Collection | Subcollection | Content | Module
Node = Collection | Subcollection | Module | Content | Paragraph | Text


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_modules(node: CollectionNode) -> list[ModuleRef]:
    """Flatten a collection tree into module references in document order.

    Subcollections are walked depth-first. Module elements without a
    ``document`` attribute are skipped rather than failing the whole listing.
    """
    modules: list[ModuleRef] = []
    _walk_modules(node, modules)
    return modules


def _walk_modules(node: Node, modules: list[ModuleRef]) -> None:
    if isinstance(node, Module):
        if node.document:
            modules.append(ModuleRef(id=node.document, title=node.title or "Untitled"))
        return
    if isinstance(node, (Collection, Subcollection, Content)):
        for child in node.children:
            _walk_modules(child, modules)
        return
    if isinstance(node, (Paragraph, Text)):
        return
    raise TypeError(f"Unexpected node in collection tree: {type(node).__name__}")


def extract_text(node: ContentNode | None) -> str:
    """Return the plain text of a body subtree.

    Each nested paragraph (or nested section) contributes its own text followed
    by a blank line; the node's direct text comes last. The result is stripped.
    Absent input yields ``""``.
    """
    if node is None:
        return ""
    if isinstance(node, Text):
        return node.value
    if isinstance(node, (Content, Paragraph)):
        blocks: list[str] = []
        direct: list[str] = []
        for child in node.children:
            if isinstance(child, (Paragraph, Content)):
                blocks.append(extract_text(child) + "\n\n")
            elif isinstance(child, Text):
                direct.append(child.value)
        return ("".join(blocks) + "".join(direct)).strip()
    raise TypeError(f"Cannot extract text from {type(node).__name__}")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_collection(xml: str) -> Collection:
    """Parse a ``*.collection.xml`` file into a ``Collection`` tree."""
    root = _root_element(xml, "collection")

    metadata_tag = _first_child(root, "metadata")
    metadata = _metadata_dict(metadata_tag) if metadata_tag is not None else {}
    title = _child_text(root, "title") or metadata.get("title")

    children = tuple(
        _collection_node(child) for child in _tag_children(root) if child.name == "content"
    )
    return Collection(title=title, metadata=metadata, children=children)


def parse_document(xml: str) -> Document:
    """Parse a module ``index.cnxml`` file into a ``Document``."""
    root = _root_element(xml, "document")
    content_tag = _first_child(root, "content")
    return Document(
        title=_child_text(root, "title"),
        content=_content_node(content_tag) if content_tag is not None else None,
    )


def _root_element(xml: str, expected: str) -> Tag:
    soup = BeautifulSoup(xml, "xml")
    root = next(_tag_children(soup), None)
    if root is None or root.name != expected:
        found = root.name if root is not None else "nothing"
        raise OpenStaxError(
            code=ErrorCode.MARKUP_INVALID,
            message=f"Expected a <{expected}> root element, found {found}",
            suggestion="The upstream file is not in the expected OpenStax format.",
        )
    return root


def _collection_node(tag: Tag) -> CollectionNode:
    if tag.name == "module":
        return Module(document=tag.get("document") or None, title=_child_text(tag, "title"))
    children = tuple(
        _collection_node(child)
        for child in _tag_children(tag)
        if child.name in ("content", "subcollection", "module")
    )
    if tag.name == "subcollection":
        return Subcollection(title=_child_text(tag, "title"), children=children)
    return Content(children=children)


def _content_node(tag: Tag) -> Content:
    children: list[ContentNode] = []
    for child in tag.children:
        if isinstance(child, Tag):
            if child.name in _PARAGRAPH_TAGS:
                children.append(_paragraph_node(child))
            elif child.name in _CONTAINER_TAGS:
                children.append(_content_node(child))
            elif child.name == "title":
                heading = _normalise(child.get_text())
                if heading.strip():
                    children.append(Paragraph(children=(Text(heading),)))
        elif _is_text(child) and child.strip():
            children.append(Text(_normalise(child)))
    return Content(children=tuple(children))


def _paragraph_node(tag: Tag) -> Paragraph:
    children: list[ContentNode] = []
    for child in tag.children:
        if isinstance(child, Tag):
            if child.name in _PARAGRAPH_TAGS:
                children.append(_paragraph_node(child))
            elif child.name in _CONTAINER_TAGS:
                children.append(_content_node(child))
            else:
                # Inline markup (emphasis, term, link, math) flattens to text
                children.append(Text(_normalise(child.get_text())))
        elif _is_text(child):
            children.append(Text(_normalise(child)))
    return Paragraph(children=tuple(children))


def _tag_children(tag: Tag | BeautifulSoup) -> Iterator[Tag]:
    for child in tag.children:
        if isinstance(child, Tag):
            yield child


def _first_child(tag: Tag, name: str) -> Tag | None:
    return next((child for child in _tag_children(tag) if child.name == name), None)


def _child_text(tag: Tag, name: str) -> str | None:
    child = _first_child(tag, name)
    if child is None:
        return None
    text = " ".join(child.get_text().split())
    return text or None


def _metadata_dict(tag: Tag) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for child in _tag_children(tag):
        text = " ".join(child.get_text().split())
        if not text:
            continue
        if child.name in metadata:
            metadata[child.name] = f"{metadata[child.name]}, {text}"
        else:
            metadata[child.name] = text
    return metadata


def _is_text(node: object) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, _NON_TEXT_STRINGS)


def _normalise(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text)
