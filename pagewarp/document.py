"""HTML document access, text extraction, and visibility heuristics."""

from __future__ import annotations

import logging
import pathlib
import re
from typing import FrozenSet, Iterable, Iterator, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag

from .errors import UnsupportedFileTypeError
from .structures import TextUnit

logger = logging.getLogger(__name__)

DEFAULT_OPAQUE_TAGS: FrozenSet[str] = frozenset(
    {"script", "style", "textarea", "input", "code", "pre"}
)

SUPPORTED_SUFFIXES = (".html", ".htm", ".xhtml")

_DISPLAY_NONE = re.compile(r"(?:^|;)\s*display\s*:\s*none\s*(?:!important\s*)?(?:;|$)", re.I)
_VISIBILITY = re.compile(r"(?:^|;)\s*visibility\s*:\s*([a-z-]+)", re.I)


class HtmlDocument:
    """A parsed HTML page whose text nodes can be read and rewritten."""

    def __init__(self, soup: BeautifulSoup, source_path: Optional[pathlib.Path] = None):
        self.soup = soup
        self.source_path = source_path

    @classmethod
    def from_string(cls, markup: str) -> "HtmlDocument":
        return cls(BeautifulSoup(markup, "html.parser"))

    @classmethod
    def from_path(cls, path: pathlib.Path) -> "HtmlDocument":
        if path.suffix.lower() not in SUPPORTED_SUFFIXES:
            raise UnsupportedFileTypeError(
                "This file type is not supported; please use .html or .htm."
            )
        # UnicodeDammit takes the encoding from <meta charset> or sniffs it.
        return cls(BeautifulSoup(path.read_bytes(), "html.parser"), source_path=path)

    @property
    def root(self) -> Tag:
        """The body element, or the whole document when there is none."""

        return self.soup.body or self.soup

    def contains(self, node: object) -> bool:
        """Return True while ``node`` is still attached below :attr:`root`."""

        root = self.root
        current = node
        while current is not None:
            if current is root:
                return True
            current = getattr(current, "parent", None)
        return False

    def replace_text(self, node: NavigableString, text: str) -> NavigableString:
        """Swap a text node for a new one carrying ``text``."""

        replacement = NavigableString(text)
        node.replace_with(replacement)
        return replacement

    def render(self) -> str:
        return str(self.soup)

    def save(self, destination: pathlib.Path) -> None:
        destination.write_text(self.render(), encoding="utf-8")


def _declares_display_none(element: Tag) -> bool:
    style = element.get("style")
    return bool(style) and bool(_DISPLAY_NONE.search(str(style)))


def _declared_visibility(element: Tag) -> Optional[str]:
    style = element.get("style")
    if not style:
        return None
    matches = _VISIBILITY.findall(str(style))
    return matches[-1].lower() if matches else None


def is_hidden(element: Tag) -> bool:
    """Approximate computed ``display``/``visibility`` from inline markup."""

    visibility: Optional[str] = None
    current: Optional[Tag] = element
    while current is not None and isinstance(current, Tag):
        if current.has_attr("hidden") or _declares_display_none(current):
            return True
        if visibility is None:
            visibility = _declared_visibility(current)
        current = current.parent
    return visibility in {"hidden", "collapse"}


class TextUnitExtractor:
    """Yields visible, translatable text nodes in document order."""

    def __init__(self, opaque_tags: Iterable[str] = DEFAULT_OPAQUE_TAGS) -> None:
        self.opaque_tags = frozenset(tag.lower() for tag in opaque_tags)

    def is_translatable(self, node: object) -> bool:
        # Comments, CDATA, doctype and script/style strings are subclasses.
        if type(node) is not NavigableString:
            return False
        if not node.strip():
            return False
        parent = node.parent
        if parent is None or not isinstance(parent, Tag):
            return False
        if parent.name and parent.name.lower() in self.opaque_tags:
            return False
        return not is_hidden(parent)

    def iter_text_nodes(self, root: Tag) -> Iterator[Tuple[NavigableString, str]]:
        """Lazily walk ``root`` depth-first, yielding ``(node, stripped_text)``."""

        for node in root.descendants:
            if self.is_translatable(node):
                yield node, node.strip()

    def extract(self, document: HtmlDocument, session) -> Iterator[TextUnit]:
        """Register each qualifying node into ``session`` and yield its unit."""

        count = 0
        for node, text in self.iter_text_nodes(document.root):
            count += 1
            yield session.register(node, text)
        logger.debug("Extracted %d text units.", count)
