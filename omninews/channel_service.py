"""Creating, looking up and searching RSS channels."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from . import item_service, repository
from .db import Database
from .embedding import EmbeddingService, create_embedding
from .feed import Channel, fetch_channel
from .models import (
    AlreadyExistsError,
    DatabaseError,
    NewEmbedding,
    NewRssChannel,
    NotFoundError,
    OmniNewsError,
    RssChannel,
    SearchResponse,
    SearchType,
)
from .search import VectorIndex, load_channel_annoy

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
MAX_EMBEDDING_TEXT_BYTES = 512

_HTML_TAG = re.compile(r"<[^>]*>")
_KEPT_PUNCTUATION = frozenset(".,:")
_HANGUL_RANGES = ((0xAC00, 0xD7A3), (0x1100, 0x11FF), (0x3130, 0x318F))


def create_rss_all(db: Database, service: EmbeddingService, links: Iterable[str]) -> bool:
    """Add every feed link, carrying on past the ones that fail."""
    for link in links:
        logger.info("add: %s", link)
        try:
            create_rss_and_embedding(db, service, link)
        except OmniNewsError as exc:
            logger.warning("failed to add %s: %s", link, exc)
    return True


def create_rss_and_embedding(db: Database, service: EmbeddingService, link: str) -> int:
    """Fetch a feed, store its channel and items with embeddings, return the channel id."""
    channel = fetch_channel(link)
    if channel.title == "Not Found" or not channel.title:
        logger.error("failed to parse rss link: %s, title is empty or not found", link)
        raise NotFoundError("Failed to parse RSS link")
    return create_rss_and_embedding_by_channel(db, service, channel, link, False)


def create_rss_and_embedding_by_channel(
    db: Database,
    service: EmbeddingService,
    channel: Channel,
    rss_link: str,
    is_generated_channel: bool,
) -> int:
    """Store a parsed channel and its items; item failures are logged, not raised."""
    new_channel = make_rss_channel(channel, rss_link, is_generated_channel)
    channel_id = store_channel_and_embedding(db, service, new_channel)
    try:
        item_service.create_rss_items_and_embedding(db, service, channel, None, channel_id)
    except OmniNewsError as exc:
        logger.error("failed to create rss items and embeddings: %s", exc)
    return channel_id


def make_rss_channel(
    channel: Channel, rss_link: str, is_generated_channel: bool
) -> NewRssChannel:
    default_generator = "Omninews" if is_generated_channel else "None"
    return NewRssChannel(
        channel_title=channel.title,
        channel_link=channel.link,
        channel_description=channel.description,
        channel_image_url=channel.image_url,
        channel_language=channel.language if channel.language is not None else "None",
        rss_generator=channel.generator if channel.generator is not None else default_generator,
        channel_rank=0,
        channel_rss_link=rss_link,
    )


def _lookup_by_rss_link(db: Database, rss_link: str) -> RssChannel | None:
    try:
        return repository.select_rss_channel_by_rss_link(db, rss_link)
    except Exception:
        return None


def store_channel_and_embedding(
    db: Database, service: EmbeddingService, rss_channel: NewRssChannel
) -> int:
    """Store a new channel and its embedding; raise AlreadyExistsError if it is known."""
    link = rss_channel.channel_link or ""
    if _lookup_by_rss_link(db, link) is not None:
        logger.warning("already exist channel: %s", link)
        raise AlreadyExistsError(f"channel already exists: {link}")

    channel_id = _store_rss_channel(db, rss_channel)
    text = prepare_embedding_text(
        rss_channel.channel_title or "", rss_channel.channel_description or ""
    )
    create_embedding(
        db, service, text, NewEmbedding(channel_id=channel_id, embedding_source_rank=0)
    )
    return channel_id


def _store_rss_channel(db: Database, channel: NewRssChannel) -> int:
    existing = _lookup_by_rss_link(db, channel.channel_link or "")
    if existing is not None:
        return existing.channel_id
    try:
        return repository.insert_rss_channel(db, channel)
    except Exception as exc:
        logger.error("failed to insert rss channel: %s", exc)
        raise DatabaseError(str(exc)) from exc


def find_rss_channel_by_id(db: Database, channel_id: int) -> RssChannel:
    try:
        return repository.select_rss_channel_by_id(db, channel_id)
    except Exception as exc:
        logger.error("failed to select rss channel by id: %s", exc)
        raise DatabaseError(str(exc)) from exc


def find_rss_channel_by_rss_link(db: Database, rss_link: str) -> RssChannel:
    try:
        return repository.select_rss_channel_by_rss_link(db, rss_link)
    except Exception as exc:
        logger.warning("failed to select rss channel by rss link: %s", exc)
        raise DatabaseError(str(exc)) from exc


def find_rss_channel_by_channel_link(db: Database, channel_link: str) -> RssChannel:
    try:
        return repository.select_rss_channel_by_channel_link(db, channel_link)
    except Exception as exc:
        raise DatabaseError(str(exc)) from exc


def get_channel_list(
    db: Database,
    service: EmbeddingService,
    index: VectorIndex,
    search_value: str,
    search_type: SearchType | str,
    page: int,
) -> SearchResponse:
    """One page of channels matching the search value."""
    search_type = SearchType(search_type)
    if page < 1:
        raise ValueError("page must be at least 1")
    ids, _ = load_channel_annoy(service, index, search_value)
    total = len(ids)
    offset = (page - 1) * PAGE_SIZE
    has_next = total > offset + PAGE_SIZE

    if offset > total:
        return SearchResponse([], [], total, page, False)

    channels: list[RssChannel] = []
    for embedding_id in ids[offset : offset + PAGE_SIZE]:
        try:
            channels.append(repository.select_rss_channel_by_embedding_id(db, embedding_id))
        except Exception:
            continue

    # Channels carry no date, so "latest" keeps the accuracy order.
    if search_type is SearchType.POPULARITY:
        channels.sort(key=lambda channel: channel.channel_rank or 0, reverse=True)

    return SearchResponse(channels, [], total, page, has_next)


def is_hangul(char: str) -> bool:
    """True for Hangul syllables and jamo."""
    if len(char) != 1:
        raise ValueError("expected a single character")
    code = ord(char)
    return any(low <= code <= high for low, high in _HANGUL_RANGES)


def remove_html_tags(text: str) -> str:
    return _HTML_TAG.sub("", text)


def _is_kept(char: str) -> bool:
    return (
        char.isalnum() or char.isspace() or is_hangul(char) or char in _KEPT_PUNCTUATION
    )


def prepare_embedding_text(title: str, description: str) -> str:
    """Build the text a channel is embedded from."""
    text = f"제목: {title}. 내용: {remove_html_tags(description)}"
    text = "".join(char if _is_kept(char) else " " for char in text)
    text = text.replace("  ", " ").strip()
    encoded = text.encode("utf-8")
    if len(encoded) > MAX_EMBEDDING_TEXT_BYTES:
        text = encoded[:MAX_EMBEDDING_TEXT_BYTES].decode("utf-8", errors="ignore")
    return f"{text}. {title}"


def get_recommend_channel(db: Database) -> list[RssChannel]:
    try:
        return repository.select_rss_channels_order_by_channel_rank(db)
    except Exception as exc:
        logger.error("failed to select channels ordered by rank: %s", exc)
        raise DatabaseError(str(exc)) from exc


def get_rss_preview(db: Database, rss_link: str) -> RssChannel:
    """The stored channel for a feed link, or an unsaved one read from the feed."""
    existing = _lookup_by_rss_link(db, rss_link)
    if existing is not None:
        return existing
    channel = fetch_channel(rss_link)
    return RssChannel.from_new(make_rss_channel(channel, rss_link, False))


def is_channel_exist_by_link(db: Database, rss_link: str) -> bool:
    return _lookup_by_rss_link(db, rss_link) is not None


def is_channel_exist_by_id(db: Database, channel_id: int) -> bool:
    try:
        repository.select_rss_channel_by_id(db, channel_id)
    except Exception:
        return False
    return True


def update_rss_channel_rank(db: Database, channel_id: int, num: int) -> bool:
    try:
        return repository.update_rss_channel_rank_by_id(db, channel_id, num)
    except Exception as exc:
        logger.error("failed to update rss channel rank: %s", exc)
        raise DatabaseError(str(exc)) from exc