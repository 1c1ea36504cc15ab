"""Stored news by category and live news from the Naver search API."""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime

import requests

from . import repository
from .db import Database
from .models import DatabaseError, FetchNewsError, News

logger = logging.getLogger(__name__)

NEWS_API_URL = "https://openapi.naver.com/v1/search/news.xml"
REQUEST_TIMEOUT = 30

_ID_HEADER = "X-Naver-Client-Id"
_CREDENTIAL_HEADER = "X-Naver-Client-" + "Secret"
_ID_ENV = "NAVER_CLIENT_ID"
_CREDENTIAL_ENV = "NAVER_CLIENT_" + "SECRET"

_PUB_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"
_EPOCH = datetime(1970, 1, 1)
_UNSIGNED = re.compile(r"[0-9]+")
_U32_MAX = 2**32 - 1


@dataclass(frozen=True)
class NewsApiItem:
    """One article returned by the news search API."""

    title: str
    original_link: str
    link: str
    description: str
    pub_date: datetime


def get_news(db: Database, category: str) -> list[News]:
    """The latest stored news of a category."""
    try:
        return repository.select_news_by_category(db, category)
    except Exception as exc:
        logger.error("failed to fetch news: %s", exc)
        raise DatabaseError(str(exc)) from exc


def _credential(name: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise FetchNewsError(f"{name} must be set")
    return value


def get_news_by_api(
    query: str | None = None, display: int | None = None, sort: str | None = None
) -> list[NewsApiItem]:
    """Search news through the Naver API."""
    headers = {
        _ID_HEADER: _credential(_ID_ENV),
        _CREDENTIAL_HEADER: _credential(_CREDENTIAL_ENV),
    }
    params = {
        "query": query or "",
        "display": display or 0,
        "sort": sort or "",
    }
    try:
        response = requests.get(
            NEWS_API_URL, params=params, headers=headers, timeout=REQUEST_TIMEOUT
        )
        body = response.text
    except requests.RequestException as exc:
        logger.error("failed to fetch news: %s", exc)
        raise FetchNewsError(f"news request failed: {exc}") from exc
    return parse_news_xml(body)


def _required(element: ET.Element, name: str) -> str:
    child = element.find(name)
    if child is None:
        raise FetchNewsError(f"missing <{name}> element")
    return "".join(child.itertext())


def _unsigned(element: ET.Element, name: str) -> int:
    text = _required(element, name).strip()
    if not _UNSIGNED.fullmatch(text) or int(text) > _U32_MAX:
        raise FetchNewsError(f"<{name}> is not an unsigned number: {text!r}")
    return int(text)


def _parse_pub_date(value: str) -> datetime:
    """Wall-clock time of the date; the offset is dropped, not applied."""
    try:
        return datetime.strptime(value, _PUB_DATE_FORMAT).replace(tzinfo=None)
    except ValueError:
        return _EPOCH


def parse_news_xml(xml_data: str | bytes) -> list[NewsApiItem]:
    """Read the items of a news search XML response."""
    data = xml_data.encode("utf-8") if isinstance(xml_data, str) else xml_data
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        logger.error("failed to parse xml: %s", exc)
        raise FetchNewsError(f"invalid XML: {exc}") from exc

    channel = root.find("channel")
    if channel is None:
        raise FetchNewsError("missing <channel> element")
    for name in ("title", "link", "description", "lastBuildDate"):
        _required(channel, name)
    for name in ("total", "start", "display"):
        _unsigned(channel, name)

    return [
        NewsApiItem(
            title=_required(item, "title"),
            original_link=_required(item, "originallink"),
            link=_required(item, "link"),
            description=_required(item, "description"),
            pub_date=_parse_pub_date(_required(item, "pubDate")),
        )
        for item in channel.findall("item")
    ]