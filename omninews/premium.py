"""Generating feeds for sites, either by host type or from CSS selectors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from enum import Enum
from typing import Any, Callable
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup

from . import channel_service, discovery, item_service, sites
from .db import Database
from .embedding import EmbeddingService
from .feed import Channel, Item
from .models import NotFoundError, OmniNewsError, RequestError, RssChannel

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
GENERATOR = "omninews"


class SiteType(Enum):
    """The kind of site a feed is generated for."""

    NAVER = "naver"
    TISTORY = "tistory"
    MEDIUM = "medium"
    DEFAULT = "default"


_GENERATORS: dict[SiteType, Callable[[Database, EmbeddingService, str], int]] = {
    SiteType.NAVER: sites.generate_naver_rss,
    SiteType.TISTORY: sites.generate_tistory_rss,
    SiteType.MEDIUM: sites.generate_medium_rss,
    SiteType.DEFAULT: discovery.generate_default_rss,
}


@dataclass
class CssGenerateRequest:
    """A site description and the CSS selectors that pick its posts apart."""

    channel_link: str
    channel_title: str
    channel_description: str
    channel_language: str
    channel_image_link: str
    item_title_css: str
    item_description_css: str
    item_link_css: str
    item_author_css: str = ""
    item_pub_date_css: str = ""
    item_image_css: str = ""


@dataclass
class GenerateResult:
    """The channel for a site, and whether it was stored before."""

    is_exist: bool
    channel: RssChannel


def _existing_channel(db: Database, channel_link: str) -> RssChannel | None:
    try:
        return channel_service.find_rss_channel_by_channel_link(db, channel_link)
    except OmniNewsError:
        return None


def generate_rss(
    db: Database, service: EmbeddingService, channel_link: str, kind: SiteType | str
) -> GenerateResult:
    """Store the feed of a site of the given kind, unless the site is already known."""
    kind = SiteType(kind)
    existing = _existing_channel(db, channel_link)
    if existing is not None:
        return GenerateResult(is_exist=True, channel=existing)

    channel_id = _GENERATORS[kind](db, service, channel_link)
    return GenerateResult(
        is_exist=False, channel=channel_service.find_rss_channel_by_id(db, channel_id)
    )


def generate_rss_by_css(
    db: Database, service: EmbeddingService, request: CssGenerateRequest
) -> GenerateResult:
    """Build a feed from a page's elements picked by CSS selectors, and store it."""
    existing = _existing_channel(db, request.channel_link)
    if existing is not None:
        return GenerateResult(is_exist=True, channel=existing)

    try:
        html = requests.get(request.channel_link, timeout=REQUEST_TIMEOUT).text
    except requests.RequestException as exc:
        raise RequestError(f"request to {request.channel_link} failed: {exc}") from exc

    channel_id, channel = make_channel(db, service, request)
    items, image_links = make_items(request, html)
    channel.items = items
    try:
        item_service.create_rss_items_and_embedding(
            db, service, channel, image_links, channel_id
        )
    except OmniNewsError as exc:
        logger.error("failed to create rss items and embeddings: %s", exc)

    return GenerateResult(
        is_exist=False, channel=channel_service.find_rss_channel_by_id(db, channel_id)
    )


def make_channel(
    db: Database, service: EmbeddingService, request: CssGenerateRequest
) -> tuple[int, Channel]:
    """Store the channel described by the request; return its id and the feed channel."""
    channel = Channel(
        title=request.channel_title,
        link=request.channel_link,
        description=request.channel_description,
        image_url=request.channel_image_link,
        language=request.channel_language,
        generator=GENERATOR,
    )
    new_channel = channel_service.make_rss_channel(
        channel, f"Generated by Omninews, {request.channel_title}", True
    )
    channel_id = channel_service.store_channel_and_embedding(db, service, new_channel)
    return channel_id, channel


def _select(document: BeautifulSoup, css: str, required: bool) -> list[Any] | None:
    if not css:
        if required:
            raise NotFoundError("a required CSS selector is empty")
        return None
    try:
        return document.select(css)
    except Exception as exc:
        if required:
            raise NotFoundError(f"invalid CSS selector {css!r}: {exc}") from exc
        return None


def _nth(elements: list[Any] | None, position: int) -> Any | None:
    if elements is None or position >= len(elements):
        return None
    return elements[position]


def _text(element: Any | None) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""


def _attr(element: Any | None, name: str) -> str | None:
    if element is None:
        return None
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value


def _resolve(raw: str, base: str) -> str:
    if urlsplit(raw).scheme:
        return raw
    return urljoin(base, raw)


def _rfc3339(value: str) -> datetime | None:
    text = value.strip()
    if text and text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else None


def _pub_date(raw: str | None) -> str:
    moment = None
    if raw is not None:
        moment = _rfc3339(raw) or _rfc3339(raw + "Z")
    if moment is None:
        moment = datetime.now(timezone.utc)
    return format_datetime(moment)


def make_items(request: CssGenerateRequest, html: str) -> tuple[list[Item], list[str]]:
    """Feed items taken from a page, with an image link for each."""
    document = BeautifulSoup(html, "html.parser")
    base = request.channel_link

    titles = _select(document, request.item_title_css, True)
    descriptions = _select(document, request.item_description_css, True)
    links = _select(document, request.item_link_css, True)
    authors = _select(document, request.item_author_css, False)
    pub_dates = _select(document, request.item_pub_date_css, False)
    images = _select(document, request.item_image_css, False)

    items: list[Item] = []
    image_links: list[str] = []
    for position, (title, description, link) in enumerate(zip(titles, descriptions, links)):
        raw_link = _attr(link, "href") or ""
        raw_image = _attr(_nth(images, position), "src")
        date_element = _nth(pub_dates, position)
        items.append(
            Item(
                title=_text(title),
                link=_resolve(raw_link, base),
                description=_text(description),
                author=_text(_nth(authors, position)),
                pub_date=_pub_date(_text(date_element) if pub_dates is not None else None),
            )
        )
        image_links.append(_resolve(raw_image, base) if raw_image is not None else "")
    return items, image_links