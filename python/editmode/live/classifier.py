from typing import Iterator, Optional

import lxml.html
from lxml.html import HtmlElement

from editmode.models import EditorConfig


def load_document(source: str) -> HtmlElement:
    """Parses page source into the tree the session edits."""
    return lxml.html.document_fromstring(source)


def is_element(node) -> bool:
    # Comments and processing instructions carry a callable as .tag
    return isinstance(node.tag, str)


def has_direct_text(el: HtmlElement) -> bool:
    """
    True if one of the element's own text nodes has non-whitespace content.
    In lxml those are el.text and the .tail of each child; text further
    down the tree does not count.
    """
    if el.text and el.text.strip():
        return True
    for child in el:
        if child.tail and child.tail.strip():
            return True
    return False


def in_chrome(el: HtmlElement, toolbar_id: str) -> bool:
    if el.get("id") == toolbar_id:
        return True
    for ancestor in el.iterancestors():
        if ancestor.get("id") == toolbar_id:
            return True
    return False


def _qualifies_locally(el: HtmlElement, config: EditorConfig) -> bool:
    return is_element(el) and el.tag.lower() in config.editable_tags and has_direct_text(el)


def is_editable_target(el: HtmlElement, config: Optional[EditorConfig] = None) -> bool:
    """
    Pure predicate: allowed tag, direct text, outside the toolbar, and no
    qualifying descendant (only the innermost node of a nested pair is
    ever a target).
    """
    config = config or EditorConfig()

    if not _qualifies_locally(el, config):
        return False
    if in_chrome(el, config.toolbar_id):
        return False

    for descendant in el.iterdescendants():
        if _qualifies_locally(descendant, config) and not in_chrome(descendant, config.toolbar_id):
            return False
    return True


def iter_editable_targets(root: HtmlElement, config: Optional[EditorConfig] = None) -> Iterator[HtmlElement]:
    """Yields edit targets in document order."""
    config = config or EditorConfig()
    for el in root.iter():
        if is_editable_target(el, config):
            yield el


def text_of(el: HtmlElement) -> str:
    return el.text_content()
