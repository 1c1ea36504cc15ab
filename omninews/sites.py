"""Feed links for blog hosts whose feed address follows from the blog address."""

from __future__ import annotations

import logging

from . import channel_service
from .db import Database
from .embedding import EmbeddingService
from .models import ExtractLinkError, OmniNewsError

logger = logging.getLogger(__name__)


def _last_segment(link: str, site: str) -> str:
    last = link.split("/")[-1]
    if last:
        return last
    logger.error("unable to extract %s user in rss link", site)
    raise ExtractLinkError(f"unable to extract {site} user from {link!r}")


def extract_medium_user(link: str) -> str:
    """The last path segment of a Medium profile link, e.g. ``@name``."""
    return _last_segment(link, "Medium")


def extract_naver_user(link: str) -> str:
    """The last path segment of a Naver blog link."""
    return _last_segment(link, "Naver")


def extract_tistory_user(link: str) -> str:
    """The blog name of a Tistory link: the first label of its host."""
    parts = link.split("/")
    if len(parts) == 1:
        return parts[0]
    host = parts[2] if len(parts) > 2 else ""
    if host:
        return host.split(".")[0]
    logger.error("unable to extract Tistory user in rss link")
    raise ExtractLinkError(f"unable to extract Tistory user from {link!r}")


def _create(db: Database, service: EmbeddingService, rss_link: str, site: str) -> int:
    try:
        return channel_service.create_rss_and_embedding(db, service, rss_link)
    except OmniNewsError as exc:
        logger.error("failed to create %s rss channel through rss generator: %s", site, exc)
        raise


def generate_medium_rss(db: Database, service: EmbeddingService, link: str) -> int:
    """Store the feed of a Medium profile and return the channel id."""
    user = extract_medium_user(link)
    return _create(db, service, f"https://medium.com/{user}/feed", "Medium")


def generate_naver_rss(db: Database, service: EmbeddingService, link: str) -> int:
    """Store the feed of a Naver blog and return the channel id."""
    user = extract_naver_user(link)
    return _create(db, service, f"https://blog.rss.naver.com/{user}", "Naver")


def generate_tistory_rss(db: Database, service: EmbeddingService, link: str) -> int:
    """Store the feed of a Tistory blog and return the channel id."""
    user = extract_tistory_user(link)
    return _create(db, service, f"https://{user}.tistory.com/rss", "Tistory")