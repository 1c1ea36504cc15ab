import sqlite3
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import requests

from omninews import channel_service, repository
from omninews.db import Database
from omninews.embedding import EmbeddingService
from omninews.feed import Channel
from omninews.models import (
    AlreadyExistsError,
    DatabaseError,
    NewEmbedding,
    NewRssChannel,
    NotFoundError,
)
from omninews.search import DIMENSION, VectorIndex

SCHEMA = """
CREATE TABLE rss_channel (
    channel_id INTEGER PRIMARY KEY AUTOINCREMENT,
    channel_title TEXT, channel_description TEXT, channel_link TEXT,
    channel_image_url TEXT, channel_language TEXT, rss_generator TEXT,
    channel_rank INTEGER, channel_rss_link TEXT
);
CREATE TABLE rss_item (
    rss_id INTEGER PRIMARY KEY AUTOINCREMENT,
    channel_id INTEGER, rss_title TEXT, rss_description TEXT, rss_link TEXT,
    rss_author TEXT, rss_pub_date TEXT, rss_rank INTEGER, rss_image_link TEXT
);
CREATE TABLE embedding (
    embedding_id INTEGER PRIMARY KEY AUTOINCREMENT,
    embedding_value BLOB, channel_id INTEGER, rss_id INTEGER, news_id INTEGER,
    embedding_source_rank INTEGER
);
"""

FEED = """<rss version="2.0"><channel>
<title>Example Feed</title>
<link>https://example.com/</link>
<description>News about things</description>
<language>ko</language>
<image><url>https://example.com/logo.png</url></image>
<item><title>First</title><link>https://example.com/1</link>
<description>&lt;p&gt;Hello&lt;/p&gt;</description>
<pubDate>Tue, 02 Jan 2024 03:04:05 +0900</pubDate></item>
<item><title>Second</title><link>https://example.com/2</link>
<description>Plain</description></item>
</channel></rss>"""

EMPTY_TITLE_FEED = """<rss version="2.0"><channel><title></title>
<link>https://example.com/</link><description>d</description></channel></rss>"""

UNIT = [1.0] + [0.0] * (DIMENSION - 1)


@pytest.fixture
def db():
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    database = Database(connection)
    yield database
    database.close()


@pytest.fixture
def service():
    embedder = EmbeddingService(lambda text: UNIT)
    yield embedder
    embedder.close()


def _feed_response(body=FEED):
    return SimpleNamespace(content=body.encode("utf-8"))


def _count(db, table):
    return len(db.fetch_all(f"SELECT * FROM {table}"))


def test_make_rss_channel_maps_fields():
    channel = Channel(
        title="T",
        link="https://example.com/",
        description="D",
        image_url="https://example.com/i.png",
        language="en",
        generator="gen",
    )
    new = channel_service.make_rss_channel(channel, "https://example.com/rss", False)
    assert new == NewRssChannel(
        channel_title="T",
        channel_link="https://example.com/",
        channel_description="D",
        channel_image_url="https://example.com/i.png",
        channel_language="en",
        rss_generator="gen",
        channel_rank=0,
        channel_rss_link="https://example.com/rss",
    )


@pytest.mark.parametrize("generated, expected", [(False, "None"), (True, "Omninews")])
def test_make_rss_channel_defaults(generated, expected):
    new = channel_service.make_rss_channel(Channel(title="T"), "link", generated)
    assert new.rss_generator == expected
    assert new.channel_language == "None"
    assert new.channel_image_url is None


@pytest.mark.parametrize("char, expected", [("가", True), ("힣", True), ("ㄱ", True), ("a", False), ("1", False)])
def test_is_hangul(char, expected):
    assert channel_service.is_hangul(char) is expected


def test_remove_html_tags():
    assert channel_service.remove_html_tags("<p class='x'>hi <b>there</b></p>") == "hi there"


def test_prepare_embedding_text_example():
    assert (
        channel_service.prepare_embedding_text("Hello", "<b>World!</b>")
        == "제목: Hello. 내용: World. Hello"
    )


def test_prepare_embedding_text_truncates_to_byte_limit():
    text = channel_service.prepare_embedding_text("T", "a" * 1000)
    assert text.endswith(". T")
    body = text[: -len(". T")]
    assert len(body.encode("utf-8")) == channel_service.MAX_EMBEDDING_TEXT_BYTES
    assert body.startswith("제목: T. 내용: aaa")


def test_prepare_embedding_text_keeps_whole_hangul_characters():
    text = channel_service.prepare_embedding_text("T", "가" * 300)
    body = text[: -len(". T")]
    assert len(body.encode("utf-8")) <= channel_service.MAX_EMBEDDING_TEXT_BYTES
    assert set(body[len("제목: T. 내용: ") :]) == {"가"}


def test_store_channel_and_embedding_then_already_exists(db, service):
    new = NewRssChannel(
        channel_title="T",
        channel_link="https://example.com/rss",
        channel_description="D",
        channel_rss_link="https://example.com/rss",
    )
    channel_id = channel_service.store_channel_and_embedding(db, service, new)
    stored = channel_service.find_rss_channel_by_id(db, channel_id)
    assert stored.channel_title == "T"
    embeddings = db.fetch_all("SELECT * FROM embedding")
    assert [row["channel_id"] for row in embeddings] == [channel_id]
    with pytest.raises(AlreadyExistsError):
        channel_service.store_channel_and_embedding(db, service, new)


def test_create_rss_and_embedding_stores_channel_and_items(db, service):
    link = "https://example.com/feed.xml"
    with patch("omninews.feed.requests.get", return_value=_feed_response()):
        channel_id = channel_service.create_rss_and_embedding(db, service, link)
    channel = channel_service.find_rss_channel_by_id(db, channel_id)
    assert channel.channel_title == "Example Feed"
    assert channel.channel_rss_link == link
    assert channel.rss_generator == "None"
    items = repository.select_rss_items_by_channel_id(db, channel_id)
    assert sorted(item.rss_title for item in items) == ["First", "Second"]
    assert _count(db, "embedding") == 3


def test_create_rss_and_embedding_rejects_empty_title(db, service):
    with patch("omninews.feed.requests.get", return_value=_feed_response(EMPTY_TITLE_FEED)):
        with pytest.raises(NotFoundError):
            channel_service.create_rss_and_embedding(db, service, "https://example.com/x")
    assert _count(db, "rss_channel") == 0


def test_create_rss_all_continues_past_failures(db, service):
    def fake_get(url, timeout):
        if "broken" in url:
            raise requests.ConnectionError("down")
        return _feed_response()

    with patch("omninews.feed.requests.get", side_effect=fake_get):
        result = channel_service.create_rss_all(
            db, service, ["https://broken.example.com/rss", "https://example.com/rss"]
        )
    assert result is True
    assert channel_service.is_channel_exist_by_link(db, "https://example.com/rss")
    assert not channel_service.is_channel_exist_by_link(db, "https://broken.example.com/rss")


def test_find_rss_channel_by_id_missing_raises(db):
    with pytest.raises(DatabaseError):
        channel_service.find_rss_channel_by_id(db, 42)


def test_find_rss_channel_by_links(db):
    channel_id = repository.insert_rss_channel(
        db,
        NewRssChannel(
            channel_title="T",
            channel_link="https://example.com/",
            channel_rss_link="https://example.com/rss",
        ),
    )
    assert channel_service.find_rss_channel_by_rss_link(db, "https://example.com/rss").channel_id == channel_id
    assert channel_service.find_rss_channel_by_channel_link(db, "https://example.com/").channel_id == channel_id
    with pytest.raises(DatabaseError):
        channel_service.find_rss_channel_by_rss_link(db, "https://other.example.com/rss")


def test_get_recommend_channel_orders_by_rank(db):
    for title, rank in [("low", 1), ("high", 9), ("mid", 5)]:
        repository.insert_rss_channel(db, NewRssChannel(channel_title=title, channel_rank=rank))
    channels = channel_service.get_recommend_channel(db)
    ranks = [channel.channel_rank for channel in channels]
    assert ranks == sorted(ranks, reverse=True)
    assert channels[0].channel_title == "high"


def test_update_rss_channel_rank(db):
    channel_id = repository.insert_rss_channel(db, NewRssChannel(channel_title="T", channel_rank=0))
    assert channel_service.update_rss_channel_rank(db, channel_id, 3) is True
    assert channel_service.find_rss_channel_by_id(db, channel_id).channel_rank == 3
    assert channel_service.update_rss_channel_rank(db, channel_id + 100, 1) is False


def test_is_channel_exist_by_id(db):
    channel_id = repository.insert_rss_channel(db, NewRssChannel(channel_title="T"))
    assert channel_service.is_channel_exist_by_id(db, channel_id) is True
    assert channel_service.is_channel_exist_by_id(db, channel_id + 1) is False


def test_get_rss_preview_of_stored_channel(db):
    channel_id = repository.insert_rss_channel(
        db, NewRssChannel(channel_title="Stored", channel_rss_link="https://example.com/rss")
    )
    with patch("omninews.feed.requests.get") as fake_get:
        preview = channel_service.get_rss_preview(db, "https://example.com/rss")
    assert preview.channel_id == channel_id
    assert preview.channel_title == "Stored"
    assert fake_get.call_count == 0


def test_get_rss_preview_of_new_feed_is_not_stored(db):
    with patch("omninews.feed.requests.get", return_value=_feed_response()):
        preview = channel_service.get_rss_preview(db, "https://example.com/feed.xml")
    assert preview.channel_id is None
    assert preview.channel_title == "Example Feed"
    assert preview.channel_rss_link == "https://example.com/feed.xml"
    assert _count(db, "rss_channel") == 0


def _indexed_channels(db, count):
    index = VectorIndex()
    for number in range(count):
        channel_id = repository.insert_rss_channel(
            db, NewRssChannel(channel_title=f"c{number}", channel_rank=number)
        )
        embedding_id = repository.insert_embedding(db, NewEmbedding(channel_id=channel_id))
        index.add_item(embedding_id, UNIT)
    return index


def test_get_channel_list_pages(db, service):
    index = _indexed_channels(db, 25)
    first = channel_service.get_channel_list(db, service, index, "q", "accuracy", 1)
    assert (first.total, first.page, first.has_next) == (25, 1, True)
    assert len(first.channels) == 20
    assert first.items == []
    second = channel_service.get_channel_list(db, service, index, "q", "accuracy", 2)
    assert len(second.channels) == 5
    assert second.has_next is False
    titles = {c.channel_title for c in first.channels} | {c.channel_title for c in second.channels}
    assert len(titles) == 25
    beyond = channel_service.get_channel_list(db, service, index, "q", "accuracy", 3)
    assert beyond.channels == [] and beyond.has_next is False and beyond.total == 25


def test_get_channel_list_popularity_sorts_by_rank(db, service):
    index = _indexed_channels(db, 5)
    result = channel_service.get_channel_list(db, service, index, "q", "popularity", 1)
    ranks = [channel.channel_rank for channel in result.channels]
    assert ranks == sorted(ranks, reverse=True)
    assert len(ranks) == 5


def test_get_channel_list_rejects_bad_page(db, service):
    with pytest.raises(ValueError):
        channel_service.get_channel_list(db, service, VectorIndex(), "q", "latest", 0)