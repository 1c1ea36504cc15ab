"""Records stored by the service and the errors it raises."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


def _build_from_row(cls, row: Mapping[str, Any]):
    """Build a dataclass from a row mapping, ignoring unknown columns."""
    return cls(**{f.name: row.get(f.name) for f in fields(cls)})


@dataclass
class NewRssChannel:
    channel_title: str | None = None
    channel_link: str | None = None
    channel_description: str | None = None
    channel_image_url: str | None = None
    channel_language: str | None = None
    rss_generator: str | None = None
    channel_rank: int | None = 0
    channel_rss_link: str | None = None


@dataclass
class RssChannel:
    channel_id: int | None = None
    channel_title: str | None = None
    channel_description: str | None = None
    channel_link: str | None = None
    channel_image_url: str | None = None
    channel_language: str | None = None
    rss_generator: str | None = None
    channel_rank: int | None = None
    channel_rss_link: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RssChannel":
        """A channel built from a database row."""
        return _build_from_row(cls, row)

    @classmethod
    def from_new(cls, new_channel: NewRssChannel) -> "RssChannel":
        """A channel that has not been stored yet."""
        return cls(channel_id=None, **asdict(new_channel))


@dataclass
class NewRssItem:
    channel_id: int | None = None
    rss_title: str | None = None
    rss_description: str | None = None
    rss_link: str | None = None
    rss_author: str | None = None
    rss_pub_date: datetime | None = None
    rss_rank: int | None = 0
    rss_image_link: str | None = None


@dataclass
class RssItem:
    rss_id: int | None = None
    channel_id: int | None = None
    rss_title: str | None = None
    rss_description: str | None = None
    rss_link: str | None = None
    rss_author: str | None = None
    rss_pub_date: datetime | str | None = None
    rss_rank: int | None = None
    rss_image_link: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RssItem":
        """An item built from a database row."""
        return _build_from_row(cls, row)


@dataclass
class RssFolder:
    folder_id: int | None = None
    user_id: int | None = None
    folder_name: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RssFolder":
        """A folder built from a database row."""
        return _build_from_row(cls, row)


@dataclass
class News:
    news_id: int | None = None
    news_title: str | None = None
    news_description: str | None = None
    news_link: str | None = None
    news_source: str | None = None
    news_pub_date: datetime | str | None = None
    news_image_link: str | None = None
    news_category: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "News":
        """A news record built from a database row."""
        return _build_from_row(cls, row)


@dataclass
class NewEmbedding:
    embedding_value: bytes | None = None
    channel_id: int | None = None
    rss_id: int | None = None
    news_id: int | None = None
    embedding_source_rank: int | None = 0


class SearchType(Enum):
    ACCURACY = "accuracy"
    POPULARITY = "popularity"
    LATEST = "latest"


@dataclass
class SearchResponse:
    channels: list = field(default_factory=list)
    items: list = field(default_factory=list)
    total: int = 0
    page: int = 0
    has_next: bool = False


class OmniNewsError(Exception):
    """Base class of the service's errors."""


class NotFoundError(OmniNewsError):
    """Something asked for does not exist."""


class AlreadyExistsError(OmniNewsError):
    """The record is already stored."""

    def __init__(self, message: str = "already exists") -> None:
        super().__init__(message)


class DatabaseError(OmniNewsError):
    """A database operation failed."""


class EmbeddingError(OmniNewsError):
    """An embedding could not be made or stored."""


class FetchNewsError(OmniNewsError):
    """News could not be fetched or parsed."""


class ParseRssChannelError(OmniNewsError):
    """A feed body could not be read as an RSS channel."""


class ExtractLinkError(OmniNewsError):
    """A user name could not be taken from a link."""


class RequestError(OmniNewsError):
    """An HTTP request failed."""