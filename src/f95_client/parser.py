"""
Post content parsing with CSS selector fallback chains.

This module turns the free-form HTML of a post body into a tree of
PostElement objects. Each node is first classified (text, spoiler,
link/image or unknown) and then handed to the matching parse function;
parse_post() walks the whole body and keeps nested spoilers nested.

Selectors are organized in fallback chains so a template change on the
platform degrades gracefully instead of breaking the parser outright.
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .models import EMPTY, IMAGE, LINK, ROOT, SPOILER, TEXT, Link, PostElement
from .utils import clean_invisible_characters, collapse_whitespace

logger = logging.getLogger(__name__)

Node = Union[Tag, NavigableString]


class SelectorChain:
    """
    CSS selector fallback chain for resilient parsing.

    Tries multiple selectors in order until one succeeds. This makes the
    parser more resilient to HTML template changes.
    """

    def __init__(self, selectors: List[str], name: str = "unnamed"):
        """
        Initialize selector chain.

        Args:
            selectors: List of CSS selectors to try in order
            name: Descriptive name for this selector chain (for logging)
        """
        self.selectors = selectors
        self.name = name
        # Records the selector that matched last, for logging only. Chains are
        # module-level and shared, so it never changes the order of the tries
        self.last_successful_index = 0

    def select_one(self, soup: Union[BeautifulSoup, Tag]) -> Optional[Tag]:
        """
        Find first matching element using selector fallback chain.

        Args:
            soup: BeautifulSoup object or Tag to search

        Returns:
            First matching element or None if no selector matched
        """
        for i, selector in enumerate(self.selectors):
            result = soup.select_one(selector)
            if result:
                if i > 0 and i != self.last_successful_index:
                    logger.warning("%s: using fallback selector #%d: %s", self.name, i + 1, selector)
                self.last_successful_index = i
                return result

        logger.debug("%s: all selectors failed", self.name)
        return None


# -------------------------------------------------------
# SELECTORS
# -------------------------------------------------------
POST_BODY = SelectorChain([
    'article.message--post .message-body .bbWrapper',
    'article.message .bbWrapper',
    '.bbWrapper',
], name="post_body")

SPOILER_NAME = SelectorChain([
    'button.bbCodeSpoiler-button span.bbCodeSpoiler-button-title',
    '.bbCodeSpoiler-button-title',
    'button.bbCodeSpoiler-button',
], name="spoiler_name")

SPOILER_BODY = SelectorChain([
    'div.bbCodeBlock--spoiler > div.bbCodeBlock-content',
    '.bbCodeBlock-content',
    '.bbCodeSpoiler-content',
], name="spoiler_body")

# Inline and formatting tags whose own text is post content
TEXT_TAGS = {
    "b", "strong", "i", "em", "u", "s", "strike", "del", "ins", "span",
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "sub", "sup", "small",
    "code", "mark", "font", "pre",
}

# Never part of the visible content
IGNORED_TAGS = {"script", "style", "noscript", "button", "template", "head"}


class NodeType(str, Enum):
    TEXT = "Text"
    SPOILER = "Spoiler"
    LINK = "Link"
    UNKNOWN = "Unknown"


def _has_class(tag: Tag, css_class: str) -> bool:
    return css_class in (tag.get("class") or [])


def classify_node(node: Node) -> NodeType:
    """Decide how a node of a post body should be parsed."""
    if isinstance(node, Comment):
        return NodeType.UNKNOWN
    if isinstance(node, NavigableString):
        return NodeType.TEXT
    if not isinstance(node, Tag) or node.name in IGNORED_TAGS:
        return NodeType.UNKNOWN
    if node.name == "div" and _has_class(node, "bbCodeSpoiler"):
        return NodeType.SPOILER
    if node.name in ("a", "img"):
        return NodeType.LINK
    if node.name in TEXT_TAGS:
        return NodeType.TEXT
    return NodeType.UNKNOWN


def own_text(node: Node) -> str:
    """
    Text of the node only, excluding descendant elements.

    Whitespace runs are collapsed to single spaces and the result trimmed.
    """
    if isinstance(node, NavigableString):
        return collapse_whitespace(str(node))
    strings = [
        str(s) for s in node.find_all(string=True, recursive=False)
        if not isinstance(s, Comment)
    ]
    return collapse_whitespace(" ".join(strings))


def _parse_text_node(node: Node) -> PostElement:
    return PostElement(type=TEXT, text=own_text(node))


def _parse_spoiler_node(node: Tag) -> PostElement:
    # The body is not inlined here: parse_post() recurses into it so that
    # spoilers inside spoilers stay nested
    title = SPOILER_NAME.select_one(node)
    name = collapse_whitespace(title.get_text()) if title else ""
    return PostElement(type=SPOILER, name=name)


def _parse_link_node(node: Tag) -> Link:
    link = Link()
    if node.name == "img":
        link.type = IMAGE
        link.text = node.get("alt") or ""
        link.href = node.get("data-src") or node.get("src") or ""
    elif node.name == "a":
        link.type = LINK
        link.text = collapse_whitespace(node.get_text())
        link.href = node.get("href") or ""
    return link


_PARSERS: Dict[NodeType, Callable[[Node], PostElement]] = {
    NodeType.TEXT: _parse_text_node,
    NodeType.SPOILER: _parse_spoiler_node,
    NodeType.LINK: _parse_link_node,
}


def parse_node(node: Node) -> PostElement:
    """
    Parse a single node of a post body into a PostElement.

    Children are not visited (see parse_post()). Unrecognized nodes yield an
    Empty element. Invisible characters are stripped from ``text`` and
    ``name`` before returning.
    """
    parse = _PARSERS.get(classify_node(node))
    element = parse(node) if parse else PostElement(type=EMPTY)

    element.text = clean_invisible_characters(element.text)
    element.name = clean_invisible_characters(element.name)
    return element


def _parse_children(node: Node, skip_strings: bool = False) -> List[PostElement]:
    elements: List[PostElement] = []
    for child in getattr(node, "children", []):
        if skip_strings and isinstance(child, NavigableString):
            continue
        elements.extend(_build(child))
    return elements


def _build(node: Node) -> List[PostElement]:
    """Parse ``node`` and its subtree; returns 0 or 1 elements (more when flattening)."""
    node_type = classify_node(node)

    if node_type == NodeType.UNKNOWN:
        # Plain containers (div, blockquote, ...) are flattened into the parent
        if isinstance(node, Tag) and node.name not in IGNORED_TAGS:
            return _parse_children(node)
        return []

    element = parse_node(node)
    if isinstance(node, Tag):
        if node_type == NodeType.SPOILER:
            body = SPOILER_BODY.select_one(node)
            element.content = _parse_children(body if body is not None else node)
        elif node_type == NodeType.LINK:
            # The text of a link is already in element.text; keep images
            # and other non-text children only
            element.content = [e for e in _parse_children(node) if e.type != TEXT]
        else:
            # Direct strings are already the element's own text
            element.content = _parse_children(node, skip_strings=True)

    return [] if element.is_empty else [element]


def parse_post(node: Node) -> PostElement:
    """
    Parse a whole post body into a tree rooted at a "Root" element.

    Example:
        soup = BeautifulSoup(html, "lxml")
        tree = parse_post(soup.select_one(".bbWrapper"))
        for element in tree.content:
            print(element.type, element.text)
    """
    return PostElement(type=ROOT, content=_parse_children(node))


def parse_post_html(html: str, selector: Optional[str] = None) -> PostElement:
    """
    Parse the first post body found in ``html``.

    Args:
        html: HTML of a thread page (or a bare post fragment)
        selector: CSS selector of the post body; defaults to the POST_BODY
            fallback chain

    Returns:
        The Root element; the whole document is parsed when no post body
        is found
    """
    soup = BeautifulSoup(html, "lxml")
    body = soup.select_one(selector) if selector else POST_BODY.select_one(soup)
    if body is None:
        body = soup.body or soup
    return parse_post(body)
