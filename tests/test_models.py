from dataclasses import asdict

import pytest

from omninews.models import (
    AlreadyExistsError,
    DatabaseError,
    EmbeddingError,
    ExtractLinkError,
    FetchNewsError,
    News,
    NewRssChannel,
    NotFoundError,
    OmniNewsError,
    ParseRssChannelError,
    RequestError,
    RssChannel,
    RssFolder,
    RssItem,
    SearchResponse,
    SearchType,
)


def test_channel_from_row_ignores_extra_and_fills_missing():
    channel = RssChannel.from_row({"channel_id": 3, "channel_title": "t", "extra": 1})
    assert channel.channel_id == 3
    assert channel.channel_title == "t"
    assert channel.channel_rss_link is None


def test_channel_from_new_copies_every_field():
    new = NewRssChannel("title", "http://a.example.com", "desc", None, "ko", "None", 0, "http://a.example.com/rss")
    channel = RssChannel.from_new(new)
    assert channel.channel_id is None
    as_dict = asdict(channel)
    as_dict.pop("channel_id")
    assert as_dict == asdict(new)


def test_item_from_row_round_trip():
    item = RssItem(rss_id=1, channel_id=2, rss_title="x", rss_rank=5)
    assert RssItem.from_row(asdict(item)) == item


def test_folder_and_news_from_row():
    folder = RssFolder.from_row({"folder_id": 1, "user_id": 2, "folder_name": "f"})
    news = News.from_row({"news_id": 4, "news_category": "tech"})
    assert (folder.folder_id, folder.user_id, folder.folder_name) == (1, 2, "f")
    assert news.news_category == "tech" and news.news_title is None


def test_search_type_lookup_by_value():
    assert SearchType("latest") is SearchType.LATEST
    with pytest.raises(ValueError):
        SearchType("random")


def test_search_response_defaults_are_independent():
    first, second = SearchResponse(), SearchResponse()
    first.items.append(1)
    assert second.items == []
    assert first.has_next is False


@pytest.mark.parametrize(
    "error",
    [NotFoundError, AlreadyExistsError, DatabaseError, EmbeddingError, FetchNewsError,
     ParseRssChannelError, ExtractLinkError, RequestError],
)
def test_errors_share_base(error):
    with pytest.raises(OmniNewsError) as excinfo:
        raise error("x")
    assert type(excinfo.value) is error
    assert str(excinfo.value) == "x"


def test_already_exists_default_message():
    assert str(AlreadyExistsError()) == "already exists"