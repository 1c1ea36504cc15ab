"""SQL access to channels, items, folders, news, embeddings and subscriptions."""

from __future__ import annotations

from dataclasses import astuple
from typing import Iterable

from .db import Database, RowNotFound
from .models import (
    NewEmbedding,
    News,
    NewRssChannel,
    NewRssItem,
    RssChannel,
    RssFolder,
    RssItem,
)


def insert_embedding(db: Database, embedding: NewEmbedding) -> int:
    result = db.execute(
        "INSERT INTO embedding (embedding_value, channel_id, rss_id, news_id, embedding_source_rank) "
        "VALUES (?, ?, ?, ?, ?)",
        astuple(embedding),
    )
    return result.last_insert_id


def insert_folder(db: Database, user_id: int, folder_name: str) -> int:
    result = db.execute(
        "INSERT INTO rss_folder (user_id, folder_name) VALUES (?, ?)", (user_id, folder_name)
    )
    return result.last_insert_id


def insert_channel_to_folder(db: Database, folder_id: int, channel_id: int) -> None:
    db.execute(
        "INSERT INTO channels_in_folder (folder_id, channel_id) VALUES (?, ?)",
        (folder_id, channel_id),
    )


def select_folders(db: Database, user_id: int) -> list[RssFolder]:
    rows = db.fetch_all("SELECT * FROM rss_folder WHERE user_id = ?", (user_id,))
    return [RssFolder.from_row(row) for row in rows]


def select_channels_in_folder(db: Database, folder_id: int) -> list[RssChannel]:
    rows = db.fetch_all(
        "SELECT rc.* FROM rss_channel rc "
        "JOIN channels_in_folder cic ON rc.channel_id = cic.channel_id "
        "WHERE cic.folder_id = ?",
        (folder_id,),
    )
    return [RssChannel.from_row(row) for row in rows]


def update_folder(db: Database, folder_id: int, folder_name: str) -> int:
    result = db.execute(
        "UPDATE rss_folder SET folder_name = ? WHERE folder_id = ?", (folder_name, folder_id)
    )
    if not result.rows_affected:
        raise RowNotFound(f"no folder with id {folder_id}")
    return folder_id


def delete_folder(db: Database, folder_id: int) -> None:
    result = db.execute("DELETE FROM rss_folder WHERE folder_id = ?", (folder_id,))
    if not result.rows_affected:
        raise RowNotFound(f"no folder with id {folder_id}")


def delete_channel_from_folder(db: Database, folder_id: int, channel_id: int) -> None:
    result = db.execute(
        "DELETE FROM channels_in_folder WHERE folder_id = ? AND channel_id = ?",
        (folder_id, channel_id),
    )
    if not result.rows_affected:
        raise RowNotFound(f"channel {channel_id} is not in folder {folder_id}")


def select_news_by_category(db: Database, category: str) -> list[News]:
    rows = db.fetch_all(
        "SELECT * FROM news WHERE news_category = ? ORDER BY news_pub_date DESC LIMIT 100",
        (category,),
    )
    return [News.from_row(row) for row in rows]


def select_rss_channel_by_id(db: Database, channel_id: int) -> RssChannel:
    return RssChannel.from_row(
        db.fetch_one("SELECT * FROM rss_channel WHERE channel_id = ?", (channel_id,))
    )


def select_rss_channel_by_rss_link(db: Database, rss_link: str) -> RssChannel:
    return RssChannel.from_row(
        db.fetch_one("SELECT * FROM rss_channel WHERE channel_rss_link = ?", (rss_link,))
    )


def select_rss_channel_by_channel_link(db: Database, channel_link: str) -> RssChannel:
    return RssChannel.from_row(
        db.fetch_one("SELECT * FROM rss_channel WHERE channel_link LIKE ?", (channel_link,))
    )


def select_rss_channel_by_embedding_id(db: Database, embedding_id: int) -> RssChannel:
    return RssChannel.from_row(
        db.fetch_one(
            "SELECT r.* FROM rss_channel r JOIN embedding e ON r.channel_id = e.channel_id "
            "WHERE e.embedding_id = ?",
            (embedding_id,),
        )
    )


def select_rss_channels_order_by_channel_rank(db: Database) -> list[RssChannel]:
    rows = db.fetch_all("SELECT * FROM rss_channel ORDER BY channel_rank DESC")
    return [RssChannel.from_row(row) for row in rows]


def insert_rss_channel(db: Database, channel: NewRssChannel) -> int:
    result = db.execute(
        "INSERT INTO rss_channel (channel_title, channel_description, channel_link, "
        "channel_image_url, channel_language, rss_generator, channel_rank, channel_rss_link) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            channel.channel_title,
            channel.channel_description,
            channel.channel_link,
            channel.channel_image_url,
            channel.channel_language,
            channel.rss_generator,
            channel.channel_rank,
            channel.channel_rss_link,
        ),
    )
    return result.last_insert_id


def update_rss_channel_rank_by_id(db: Database, channel_id: int, num: int) -> bool:
    result = db.execute(
        "UPDATE rss_channel SET channel_rank = channel_rank + ? WHERE channel_id = ?",
        (num, channel_id),
    )
    return result.rows_affected > 0


def select_item_by_link(db: Database, item_link: str) -> RssItem:
    return RssItem.from_row(db.fetch_one("SELECT * FROM rss_item WHERE rss_link = ?", (item_link,)))


def select_rss_item_by_embedding_id(db: Database, embedding_id: int) -> RssItem:
    return RssItem.from_row(
        db.fetch_one(
            "SELECT r.* FROM rss_item r JOIN embedding e ON r.rss_id = e.rss_id "
            "WHERE e.embedding_id = ?",
            (embedding_id,),
        )
    )


def select_rss_items_order_by_rss_rank(db: Database) -> list[RssItem]:
    rows = db.fetch_all("SELECT * FROM rss_item ORDER BY rss_rank DESC LIMIT 100")
    return [RssItem.from_row(row) for row in rows]


def select_rss_items_by_channel_id(db: Database, channel_id: int) -> list[RssItem]:
    rows = db.fetch_all(
        "SELECT * FROM rss_item r WHERE r.channel_id = ? ORDER BY r.rss_pub_date DESC",
        (channel_id,),
    )
    return [RssItem.from_row(row) for row in rows]


def insert_rss_item(db: Database, item: NewRssItem) -> int:
    result = db.execute(
        "INSERT INTO rss_item (channel_id, rss_title, rss_description, rss_link, rss_author, "
        "rss_pub_date, rss_rank, rss_image_link) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        astuple(item),
    )
    return result.last_insert_id


def update_rss_item_rank_by_id(db: Database, rss_id: int, num: int) -> bool:
    result = db.execute(
        "UPDATE rss_item SET rss_rank = rss_rank + ? WHERE rss_id = ?", (num, rss_id)
    )
    return result.rows_affected > 0


def insert_user_subscribe_channel(db: Database, user_id: int, channel_id: int) -> int:
    result = db.execute(
        "INSERT INTO user_subscription_channel (user_id, channel_id) VALUES (?, ?)",
        (user_id, channel_id),
    )
    return result.last_insert_id


def select_subscription_channels(db: Database, user_id: int) -> list[RssChannel]:
    rows = db.fetch_all(
        "SELECT rc.* FROM rss_channel rc "
        "JOIN user_subscription_channel usc ON rc.channel_id = usc.channel_id "
        "WHERE usc.user_id = ?",
        (user_id,),
    )
    return [RssChannel.from_row(row) for row in rows]


def select_subscription_items(db: Database, channel_ids: Iterable[int]) -> list[RssItem]:
    ids = list(channel_ids)
    placeholders = ",".join("?" for _ in ids)
    rows = db.fetch_all(f"SELECT * FROM rss_item WHERE channel_id IN ({placeholders})", ids)
    return [RssItem.from_row(row) for row in rows]


def is_already_subscribe_channel(db: Database, user_id: int, channel_id: int) -> bool:
    try:
        db.fetch_one(
            "SELECT * FROM user_subscription_channel WHERE user_id = ? AND channel_id = ?",
            (user_id, channel_id),
        )
    except RowNotFound:
        return False
    return True


def delete_subscribe_channel(db: Database, user_id: int, channel_id: int) -> int:
    result = db.execute(
        "DELETE FROM user_subscription_channel WHERE user_id = ? AND channel_id = ?",
        (user_id, channel_id),
    )
    return result.last_insert_id