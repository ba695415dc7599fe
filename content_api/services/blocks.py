"""Block field grouping and per-field rendering.

A block declares its editable fields as a flat list of property names
(``modelFields``).  Some names are *decorated variants* of another field and
carry an auxiliary attribute of it, e.g. ``logoAlt`` and ``logoMimeType``
belong to ``logo``.  Names qualified with ``_`` (``cta_link``,
``cta_linkText``) additionally share the group named by their prefix.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from content_api.models.block import BlockField, BlockFieldGroup

SUFFIXES = ("Alt", "MimeType", "Type", "Text", "Title")
GROUP_SEPARATOR = "_"
RESERVED_FIELDS = {"classes"}

ASSET_PREFIX = "/content/dam/"
_ABSOLUTE_PREFIXES = ("http://", "https://", "mailto:", "tel:")
_TAG_RE = re.compile(r"<[^>]*>")


class GroupingError(ValueError):
    """A decorated field was declared without a base field to attach it to."""


def _split_suffix(field: str, suffixes: Sequence[str]) -> Optional[str]:
    """Return the base name of a decorated *field*, or ``None`` if it is not decorated."""
    for suffix in suffixes:
        if field.endswith(suffix) and len(field) > len(suffix):
            return field[: -len(suffix)]
    return None


def _find_field(fields: Iterable[BlockField], name: str) -> Optional[BlockField]:
    return next((field for field in fields if field.name == name), None)


def group_fields(
    model_fields: Iterable[str],
    suffixes: Sequence[str] = SUFFIXES,
    separator: str = GROUP_SEPARATOR,
) -> List[BlockFieldGroup]:
    """Group a block's declared field names into logical fields.

    Raises:
        GroupingError: when an unqualified decorated field (``fooAlt``) has no
            base field (``foo``) declared before it.
    """
    groups: List[BlockFieldGroup] = []

    for field in model_fields:
        if not isinstance(field, str) or not field or field in RESERVED_FIELDS:
            continue

        base = _split_suffix(field, suffixes)

        if separator in field:
            group_name = field.split(separator, 1)[0]
            group = next((g for g in groups if g.name == group_name), None)
            if group is None:
                group = BlockFieldGroup(name=group_name)
                groups.append(group)

            base_field = _find_field(group.fields, base) if base else None
            if base_field is not None:
                base_field.collapsed.append(field)
            else:
                group.fields.append(BlockField(name=field))
            continue

        if base is None:
            groups.append(BlockFieldGroup(name=field, fields=[BlockField(name=field)]))
            continue

        base_field = None
        for group in groups:
            base_field = _find_field(group.fields, base)
            if base_field is not None:
                break
        if base_field is None:
            raise GroupingError(f"Unable to find the collapsed field for field: {field}")
        base_field.collapsed.append(field)

    return groups


def asset_url(value: str, publish_host: Optional[str]) -> str:
    """Point a ``/content/dam/`` reference at the publish tier."""
    if publish_host and value.startswith(ASSET_PREFIX):
        return f"https://{publish_host}{value}"
    return value


def is_rich_text(value: str) -> bool:
    """True when *value* contains markup and still has text once the tags are stripped."""
    if not _TAG_RE.search(value):
        return False
    return _TAG_RE.sub("", value).strip() != ""


def parse_fragment(markup: str) -> List[Any]:
    """Parse *markup* as an HTML fragment and return its top-level nodes, detached."""
    fragment = BeautifulSoup(markup, "html.parser")
    return [node.extract() for node in list(fragment.contents)]


def _text_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value if item is not None)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def create_field(
    soup: BeautifulSoup,
    block: Dict[str, Any],
    field: BlockField,
    publish_host: Optional[str] = None,
) -> List[Any]:
    """Render one block field as a list of nodes (empty when the field has no value)."""
    raw = block.get(field.name)
    if raw is None or raw == "" or raw == []:
        return []
    value = _text_value(raw)

    if value.startswith("/"):
        if value.startswith(ASSET_PREFIX):
            return [_image(soup, asset_url(value, publish_host), block.get(f"{field.name}Alt"))]
        return [_link(soup, value, block.get(f"{field.name}Text"))]

    if value.startswith(_ABSOLUTE_PREFIXES):
        mime_type = block.get(f"{field.name}MimeType")
        if isinstance(mime_type, str) and mime_type.startswith("image/"):
            return [_image(soup, value, block.get(f"{field.name}Alt"))]
        return [_link(soup, value, block.get(f"{field.name}Text"))]

    if is_rich_text(value):
        return parse_fragment(value)

    paragraph = soup.new_tag("p")
    paragraph.string = value
    return [paragraph]


def _image(soup: BeautifulSoup, src: str, alt: Any) -> Tag:
    return soup.new_tag("img", attrs={"src": src, "alt": alt if isinstance(alt, str) else ""})


def _link(soup: BeautifulSoup, href: str, text: Any) -> Tag:
    anchor = soup.new_tag("a", href=href)
    anchor.string = text if isinstance(text, str) and text else href
    return anchor
