"""Storing feed items with their embeddings, and looking them up."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Sequence

from bs4 import BeautifulSoup

from . import repository
from .db import Database
from .embedding import EmbeddingService, create_embedding
from .feed import Channel, Item
from .models import (
    AlreadyExistsError,
    DatabaseError,
    NewEmbedding,
    NewRssItem,
    NotFoundError,
    RssItem,
    SearchResponse,
    SearchType,
)
from .search import VectorIndex, load_rss_annoy

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
PASSAGE_LENGTH = 200
MAX_IMAGE_LINK_LENGTH = 1000

_EPOCH = datetime(1970, 1, 1)
_KST = timedelta(hours=9)


def create_rss_items_and_embedding(
    db: Database,
    service: EmbeddingService,
    channel: Channel,
    item_image_links: Sequence[str] | None,
    channel_id: int,
) -> None:
    """Store every item of a channel and embed it."""
    channel_image_url = channel.image_url or ""
    links = list(item_image_links) if item_image_links is not None else None
    for position, item in enumerate(channel.items):
        link = links[position] if links is not None and position < len(links) else None
        create_rss_item_and_embedding(db, service, channel_id, channel_image_url, link, item)


def create_rss_item_and_embedding(
    db: Database,
    service: EmbeddingService,
    channel_id: int,
    channel_image_url: str,
    item_image_link: str | None,
    rss_item: Item,
) -> bool:
    """Store one item, replacing its description with a plain-text passage."""
    passage, extracted_image = extract_html_passage(rss_item.description or "None")
    image_link = item_image_link if item_image_link is not None else extracted_image
    rss_item.description = passage

    try:
        new_item = make_rss_item(channel_id, rss_item, image_link or channel_image_url)
    except NotFoundError as exc:
        logger.error("failed to make rss item: %s", exc)
        raise

    item_id = _store_rss_item(db, new_item)

    sentence = f"{new_item.rss_title or ''}\n{passage}\n{new_item.rss_author or ''}"
    create_embedding(
        db, service, sentence, NewEmbedding(rss_id=item_id, embedding_source_rank=0)
    )
    return True


def extract_html_passage(html: str) -> tuple[str, str | None]:
    """Return the leading text of headings and paragraphs and the first image source."""
    document = BeautifulSoup(html, "html.parser")
    texts = [" ".join(element.strings) for element in document.select("h3, p")]
    text = " ".join(texts) if texts else html
    text = text[:PASSAGE_LENGTH].strip()

    image = document.find("img")
    source = image.get("src") if image is not None else None
    if isinstance(source, list):
        source = " ".join(source)
    if source is not None and len(source) > MAX_IMAGE_LINK_LENGTH:
        source = None
    return text, source


def make_rss_item(channel_id: int, item: Item, item_image_link: str) -> NewRssItem:
    pub_date = parse_pub_date(item.pub_date)
    if item.title is None or item.description is None:
        raise NotFoundError("RSS item must have a title and description")
    return NewRssItem(
        channel_id=channel_id,
        rss_title=item.title,
        rss_description=item.description,
        rss_link=item.link,
        rss_author=item.author,
        rss_pub_date=pub_date,
        rss_rank=0,
        rss_image_link=item_image_link,
    )


def parse_pub_date(pub_date: str | None) -> datetime:
    """Parse an RFC 2822 date into a naive datetime.

    Korean time (+09:00) keeps its wall-clock value, other zones become UTC,
    and anything unreadable becomes the Unix epoch.
    """
    if pub_date:
        try:
            parsed = parsedate_to_datetime(pub_date)
        except (TypeError, ValueError, IndexError):
            parsed = None
        if parsed is not None:
            offset = parsed.utcoffset()
            if offset is None:
                return parsed
            if offset == _KST:
                return parsed.replace(tzinfo=None)
            return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return _EPOCH


def _store_rss_item(db: Database, item: NewRssItem) -> int:
    if item.rss_description is not None:
        item.rss_description = item.rss_description[:PASSAGE_LENGTH]
    try:
        existing = repository.select_item_by_link(db, item.rss_link or "")
    except Exception:
        try:
            return repository.insert_rss_item(db, item)
        except Exception as exc:
            logger.error("failed to insert rss item: %s", exc)
            raise DatabaseError(str(exc)) from exc
    logger.warning("item already exists with link: %s", existing.rss_link or "")
    raise AlreadyExistsError(f"item already exists: {existing.rss_link}")


def _pub_date_key(item: RssItem) -> datetime:
    value = item.rss_pub_date
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return _EPOCH
    return value or _EPOCH


def get_rss_list(
    db: Database,
    service: EmbeddingService,
    index: VectorIndex,
    search_value: str,
    search_type: SearchType | str,
    page: int,
) -> SearchResponse:
    """One page of items matching the search value, ordered as asked."""
    search_type = SearchType(search_type)
    if page < 1:
        raise ValueError("page must be at least 1")
    ids, _ = load_rss_annoy(service, index, search_value)
    total = len(ids)
    offset = (page - 1) * PAGE_SIZE
    has_next = total > offset + PAGE_SIZE

    if offset > total:
        return SearchResponse([], [], total, page, False)

    items: list[RssItem] = []
    for embedding_id in ids[offset : offset + PAGE_SIZE]:
        try:
            items.append(repository.select_rss_item_by_embedding_id(db, embedding_id))
        except Exception:
            continue

    if search_type is SearchType.POPULARITY:
        items.sort(key=lambda item: item.rss_rank or 0, reverse=True)
    elif search_type is SearchType.LATEST:
        items.sort(key=_pub_date_key, reverse=True)

    return SearchResponse([], items, total, page, has_next)


def get_recommend_item(db: Database) -> list[RssItem]:
    try:
        return repository.select_rss_items_order_by_rss_rank(db)
    except Exception as exc:
        logger.error("failed to select items ordered by rank: %s", exc)
        raise DatabaseError(str(exc)) from exc


def get_rss_item_by_channel_id(db: Database, channel_id: int) -> list[RssItem]:
    try:
        return repository.select_rss_items_by_channel_id(db, channel_id)
    except Exception as exc:
        logger.error("failed to select items by channel id: %s", exc)
        raise DatabaseError(str(exc)) from exc


def update_rss_item_rank(db: Database, rss_id: int, num: int) -> bool:
    try:
        return repository.update_rss_item_rank_by_id(db, rss_id, num)
    except Exception as exc:
        raise DatabaseError(str(exc)) from exc