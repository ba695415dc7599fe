"""Render CMS page JSON as a semantic HTML document.

The page JSON is a JCR node tree::

    {"jcr:content": {"jcr:title": ..., "root": {<section>: {<component>: {...}}}}}

Every child object of ``root`` becomes a ``<div>`` section; every child
object of a section is a component rendered according to its
``sling:resourceType``.  Missing or malformed nodes are skipped.  The only
error that aborts a render is :class:`~content_api.services.blocks.GroupingError`.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, Doctype, Tag
from markdownify import markdownify

from content_api.services.blocks import (
    asset_url,
    create_field,
    group_fields,
    parse_fragment,
)

logger = logging.getLogger(__name__)

METADATA_PREFIXES = ("jcr:", "sling:", "cq:")
RESOURCE_TYPE = "sling:resourceType"
COMPONENT_PREFIX = "core/franklin/components/"
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}


def component_name(node: Dict[str, Any]) -> Optional[str]:
    """Return ``title`` for ``core/franklin/components/title/v1/title`` and so on."""
    resource_type = node.get(RESOURCE_TYPE)
    if not isinstance(resource_type, str) or not resource_type.startswith(COMPONENT_PREFIX):
        return None
    return resource_type[len(COMPONENT_PREFIX) :].split("/", 1)[0]


def child_nodes(node: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield ``(key, child)`` for every child object that is not CMS metadata."""
    for key, value in node.items():
        if key.startswith(METADATA_PREFIXES):
            continue
        if isinstance(value, dict):
            yield key, value


def model_fields(node: Dict[str, Any]) -> List[str]:
    """Return the declared field names of *node*, ignoring entries that are not names."""
    fields = node.get("modelFields")
    if not isinstance(fields, list):
        return []
    return [field for field in fields if isinstance(field, str) and field]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = ", ".join(str(item) for item in value if item is not None)
    if value is None or value == "" or isinstance(value, dict):
        return None
    return str(value)


class ContentRenderer:
    """Builds one document; create a new renderer per page."""

    def __init__(self, publish_host: Optional[str] = None) -> None:
        self.publish_host = publish_host
        self.soup = BeautifulSoup("", "html.parser")
        self._components: Dict[str, Callable[[Dict[str, Any]], List[Any]]] = {
            "title": self.title,
            "text": self.text,
            "image": self.image,
            "button": self.button,
            "block": self.block,
            "columns": self.columns,
        }
        self._column_items = ("title", "text", "image")

    # -- document -----------------------------------------------------------

    def document(self, content: Dict[str, Any]) -> BeautifulSoup:
        page = content.get("jcr:content")
        page = page if isinstance(page, dict) else {}

        html = self.soup.new_tag("html")
        lang = _text(content.get("htmlLang")) or _text(page.get("jcr:language"))
        if lang:
            html["lang"] = lang

        body = self.soup.new_tag("body")
        body.append(self.soup.new_tag("header"))
        body.append(self.main(page))
        body.append(self.soup.new_tag("footer"))

        html.append(self.head(page))
        html.append(body)

        self.soup.append(Doctype("html"))
        self.soup.append(html)
        return self.soup

    def head(self, page: Dict[str, Any]) -> Tag:
        head = self.soup.new_tag("head")

        title = _text(page.get("jcr:title"))
        if title:
            tag = self.soup.new_tag("title")
            tag.string = title
            head.append(tag)

        description = _text(page.get("jcr:description"))
        if description:
            head.append(self._meta("description", description))

        modified = _text(page.get("jcr:lastModified")) or _text(page.get("cq:lastModified"))
        if modified:
            head.append(self._meta("modified-time", modified))

        for field in model_fields(page):
            value = _text(page.get(field))
            if value:
                head.append(self._meta(field, value))
        return head

    def main(self, page: Dict[str, Any]) -> Tag:
        main = self.soup.new_tag("main")
        root = page.get("root")
        if isinstance(root, dict):
            for _, section in child_nodes(root):
                main.append(self.section(section))
        return main

    def section(self, node: Dict[str, Any]) -> Tag:
        section = self.soup.new_tag("div")
        for _, child in child_nodes(node):
            for element in self.component(child):
                section.append(element)

        if model_fields(node):
            section.append(self.section_metadata(node))
        return section

    def section_metadata(self, node: Dict[str, Any]) -> Tag:
        block = self.soup.new_tag("div", attrs={"class": "section-metadata"})
        for field in model_fields(node):
            value = _text(node.get(field))
            if value:
                block.append(self._row(self._div(field), self._div(value)))
        return block

    def component(self, node: Dict[str, Any], allowed: Optional[Tuple[str, ...]] = None) -> List[Any]:
        name = component_name(node)
        if name is None or (allowed is not None and name not in allowed):
            return []
        handler = self._components.get(name)
        if handler is None:
            logger.debug("Skipping unsupported component %s", node.get(RESOURCE_TYPE))
            return []
        return handler(node)

    # -- components ---------------------------------------------------------

    def title(self, node: Dict[str, Any]) -> List[Any]:
        tag_name = _text(node.get("type"))
        if tag_name not in HEADING_TAGS:
            tag_name = "h1"
        heading = self.soup.new_tag(tag_name)
        heading.string = _text(node.get("title")) or _text(node.get("jcr:title")) or ""
        return [heading]

    def text(self, node: Dict[str, Any]) -> List[Any]:
        markup = _text(node.get("text"))
        return parse_fragment(markup) if markup else []

    def image(self, node: Dict[str, Any]) -> List[Any]:
        src = _text(node.get("image")) or _text(node.get("fileReference"))
        if not src:
            return []
        alt = _text(node.get("imageAlt")) or _text(node.get("alt")) or ""
        return [self.soup.new_tag("img", attrs={"src": asset_url(src, self.publish_host), "alt": alt})]

    def button(self, node: Dict[str, Any]) -> List[Any]:
        href = _text(node.get("link"))
        if not href:
            return []
        anchor = self.soup.new_tag("a", href=href)
        anchor.string = _text(node.get("linkText")) or href

        wrapper = {"primary": "strong", "secondary": "em"}.get(_text(node.get("linkType")) or "")
        if wrapper is None:
            return [anchor]
        emphasis = self.soup.new_tag(wrapper)
        emphasis.append(anchor)
        return [emphasis]

    def block(self, node: Dict[str, Any]) -> List[Any]:
        model = _text(node.get("model"))
        if not model:
            return []
        classes = [model] + (_text(node.get("classes")) or "").replace(",", " ").split()
        block = self.soup.new_tag("div", attrs={"class": " ".join(classes)})

        if model_fields(node):
            for group in group_fields(model_fields(node)):
                cell = self.soup.new_tag("div")
                for field in group.fields:
                    for element in create_field(self.soup, node, field, self.publish_host):
                        cell.append(element)
                block.append(self._row(cell))
        else:
            # container block: each child item declares its own fields
            for _, item in child_nodes(node):
                if not model_fields(item):
                    continue
                for group in group_fields(model_fields(item)):
                    elements = create_field(self.soup, item, group.fields[0], self.publish_host)
                    if elements:
                        block.append(self._row(self._div(*elements)))
        return [block]

    def columns(self, node: Dict[str, Any]) -> List[Any]:
        columns = self.soup.new_tag("div", attrs={"class": "columns"})
        for _, row_node in child_nodes(node):
            row = self.soup.new_tag("div")
            for _, cell_node in child_nodes(row_node):
                cell = self.soup.new_tag("div")
                for _, item in child_nodes(cell_node):
                    for element in self.component(item, allowed=self._column_items):
                        cell.append(element)
                row.append(cell)
            columns.append(row)
        return [columns]

    # -- helpers ------------------------------------------------------------

    def _meta(self, name: str, content: str) -> Tag:
        return self.soup.new_tag("meta", attrs={"name": name, "content": content})

    def _div(self, *children: Any) -> Tag:
        div = self.soup.new_tag("div")
        for child in children:
            div.append(child)
        return div

    def _row(self, *cells: Any) -> Tag:
        return self._div(*cells)


def json_to_html(content: Dict[str, Any], publish_host: Optional[str] = None) -> str:
    """Render page *content* JSON as a complete, formatted HTML document.

    Raises:
        GroupingError: when a block declares a decorated field without its base field.
    """
    return ContentRenderer(publish_host).document(content).prettify()


def json_to_markdown(content: Dict[str, Any], publish_host: Optional[str] = None) -> str:
    """Render the ``<main>`` part of page *content* as Markdown."""
    soup = ContentRenderer(publish_host).document(content)
    return markdownify(str(soup.find("main")), heading_style="ATX").strip()
