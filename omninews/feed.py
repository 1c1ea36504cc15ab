"""Reading RSS channels from XML documents and from the web."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import requests

from .models import ParseRssChannelError, RequestError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


@dataclass
class Item:
    """One entry of an RSS channel."""

    title: str | None = None
    link: str | None = None
    description: str | None = None
    author: str | None = None
    pub_date: str | None = None


@dataclass
class Channel:
    """An RSS channel with its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    image_url: str | None = None
    language: str | None = None
    generator: str | None = None
    items: list[Item] = field(default_factory=list)


def _namespace(tag: str) -> str:
    return tag[: tag.index("}") + 1] if tag.startswith("{") else ""


def _local_name(tag: object) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _child(element: ET.Element, name: str, namespace: str) -> ET.Element | None:
    wanted = namespace + name
    return next((child for child in element if child.tag == wanted), None)


def _text(element: ET.Element, name: str, namespace: str) -> str | None:
    child = _child(element, name, namespace)
    if child is None:
        return None
    return "".join(child.itertext())


def _parse_item(element: ET.Element, namespace: str) -> Item:
    return Item(
        title=_text(element, "title", namespace),
        link=_text(element, "link", namespace),
        description=_text(element, "description", namespace),
        author=_text(element, "author", namespace),
        pub_date=_text(element, "pubDate", namespace),
    )


def parse_channel(data: str | bytes) -> Channel:
    """Parse an RSS 0.9x/1.0/2.0 document into a Channel."""
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, ValueError) as exc:
        logger.error("failed to read rss body: %s", exc)
        raise ParseRssChannelError(f"invalid XML: {exc}") from exc

    root_name = _local_name(root.tag)
    if root_name == "rss":
        namespace = ""
        channel_element = _child(root, "channel", namespace)
        item_parent = channel_element
    elif root_name == "RDF":
        channel_element = next(
            (child for child in root if _local_name(child.tag) == "channel"), None
        )
        namespace = _namespace(channel_element.tag) if channel_element is not None else ""
        item_parent = root
    else:
        raise ParseRssChannelError(f"unexpected root element: {root_name!r}")

    if channel_element is None or item_parent is None:
        raise ParseRssChannelError("document has no channel element")

    image = _child(channel_element, "image", namespace)
    image_url = _text(image, "url", namespace) if image is not None else None

    return Channel(
        title=_text(channel_element, "title", namespace) or "",
        link=_text(channel_element, "link", namespace) or "",
        description=_text(channel_element, "description", namespace) or "",
        image_url=image_url,
        language=_text(channel_element, "language", namespace),
        generator=_text(channel_element, "generator", namespace),
        items=[
            _parse_item(child, namespace)
            for child in item_parent
            if child.tag == namespace + "item"
        ],
    )


def fetch_channel(link: str) -> Channel:
    """Download a feed and parse it."""
    try:
        response = requests.get(link, timeout=REQUEST_TIMEOUT)
        body = response.content
    except requests.RequestException as exc:
        logger.error("not found url: %s", link)
        raise RequestError(f"request to {link} failed: {exc}") from exc
    return parse_channel(body)