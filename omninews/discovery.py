"""Finding the feed of an arbitrary web site."""

from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup

from . import channel_service
from .db import Database
from .embedding import EmbeddingService
from .models import NotFoundError, RequestError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30

_COLLECTIONS = frozenset({"blog", "news", "posts", "articles", "stories", "updates", "press"})
_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}

_ROOT_SUFFIXES = (
    "/rss",
    "/rss.xml",
    "/feed",
    "/feed/",
    "/feed.xml",
    "/atom.xml",
    "/index.xml",
    "/rss/",
    "/feed.json",
    "/?format=rss",
    "/feeds/posts/default?alt=rss",
)

_SECTION_SUFFIXES = (
    "/rss",
    "/rss.xml",
    "/rss/",
    "/feed",
    "/feed/",
    "/feed.xml",
    "/atom.xml",
    "/index.xml",
    "/feed.json",
)

_FEED_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/xml;q=0.9, "
    "text/xml;q=0.8, application/feed+json;q=0.9, */*;q=0.1"
)


def generate_default_rss(db: Database, service: EmbeddingService, link: str) -> int:
    """Discover a site's feed, store it and return the channel id."""
    feeds = extract_feed(link)
    logger.info("discovered feed urls: %s", feeds)
    if not feeds:
        logger.error("no feed links found for the provided link: %s", link)
        raise NotFoundError("Failed to find feed links")
    rss_link = next((feed for feed in feeds if "comments" not in feed), feeds[0])
    return channel_service.create_rss_and_embedding(db, service, rss_link)


def extract_feed(start_url: str) -> list[str]:
    """Feed links declared by the page, or common feed paths that answer as feeds."""
    try:
        response = requests.get(start_url, timeout=REQUEST_TIMEOUT)
        html = response.text
        base = response.url or start_url
    except requests.RequestException as exc:
        raise RequestError(f"request to {start_url} failed: {exc}") from exc

    feeds = detect_feed_links(html, base)
    if not feeds:
        logger.info("no feed links in link[rel='alternate'], trying common feed paths")
        candidates = build_feed_candidates(start_url)
        if candidates:
            feeds.extend(verify_feed_candidates(candidates))
    return feeds


def detect_feed_links(html: str, base_url: str) -> list[str]:
    """Absolute hrefs of ``<link rel="alternate">`` elements of RSS, Atom or JSON Feed type."""
    document = BeautifulSoup(html, "html.parser")
    found = []
    for element in document.find_all("link"):
        rel = element.get("rel")
        rel_text = " ".join(rel) if isinstance(rel, list) else (rel or "")
        if rel_text != "alternate":
            continue
        type_text = (element.get("type") or "").lower()
        href = element.get("href") or ""
        if not href:
            continue
        if "rss" in type_text or "atom" in type_text or type_text == "application/feed+json":
            found.append(make_absolute_url(href, base_url))
    return found


def _origin(input_url: str) -> tuple[str, list[str]] | None:
    try:
        parts = urlsplit(input_url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    origin = f"{parts.scheme}://{parts.hostname or ''}"
    if port is not None and _DEFAULT_PORTS.get(parts.scheme) != port:
        origin += f":{port}"
    segments = [segment for segment in parts.path.split("/") if segment]
    return origin, segments


def build_feed_candidates(input_url: str) -> list[str]:
    """Common feed addresses for a page, without repeats; empty for an invalid URL."""
    parsed = _origin(input_url)
    if parsed is None:
        return []
    origin, segments = parsed

    out = [f"{origin}{suffix}" for suffix in _ROOT_SUFFIXES]

    if segments and looks_like_collection(segments[0]):
        prefix = f"/{segments[0]}"
        out.extend(f"{origin}{prefix}{suffix}" for suffix in _SECTION_SUFFIXES)

    if len(segments) >= 2 and segments[0].lower() in ("category", "tag"):
        name = segments[1]
        out.extend(
            [
                f"{origin}/category/{name}/feed",
                f"{origin}/tag/{name}/feed",
                f"{origin}/category/{name}/rss",
                f"{origin}/tag/{name}/rss",
            ]
        )

    out.append(f"{origin}/?feed=rss2")
    out.append(f"{origin}/?feed=atom")
    return dedup(out)


def _is_feed(candidate: str) -> bool:
    try:
        response = requests.get(
            candidate,
            headers={"Accept": _FEED_ACCEPT, "Cache-Control": "no-store"},
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            return False
        content_type = response.headers.get("content-type") or ""
        if any(kind in content_type for kind in ("xml", "rss", "atom", "feed+json")):
            return True
        text = response.text.lower()
    except requests.RequestException:
        return False
    return (
        "<rss" in text
        or "<feed" in text
        or ("<?xml" in text and ("<channel" in text or "<feed" in text))
        or "jsonfeed" in text
    )


def verify_feed_candidates(candidates: Iterable[str]) -> list[str]:
    """The candidates that answer with a feed, in their given order."""
    return [candidate for candidate in candidates if _is_feed(candidate)]


def make_absolute_url(href: str, base: str) -> str:
    """Resolve ``href`` against ``base``; ``href`` unchanged if ``base`` is not absolute."""
    parts = urlsplit(base)
    if not parts.scheme:
        return href
    return urljoin(base, href)


def looks_like_collection(segment: str) -> bool:
    """True for path segments that usually hold a list of posts."""
    return segment.lower() in _COLLECTIONS


def dedup(values: Iterable[str]) -> list[str]:
    """Drop repeats, keeping the first occurrence of each value."""
    return list(dict.fromkeys(values))