"""
forum/store.py -- SQLAlchemy Core persistence layer for forum posts.

Pattern: Repository + Data Mapper, like auth/store.py.

Likes are a counter on the post row. like() increments it with a single
UPDATE ... SET likes_count = likes_count + 1, so concurrent likes never lose
an increment.

Usage:
    store = ForumStore("sqlite:///gameportal.db")
    post_id = store.create_post(Post(author_aid=1, post_topic="Patch 1.2", post_text="..."))
    store.like(post_id)
    posts = store.list_posts()
    store.close()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from forum.models import Post

logger = logging.getLogger("gameportal.forum")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_posts = Table(
    "forum_posts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("author_aid", Integer, nullable=False),
    Column("author_guid", Integer),
    Column("post_topic", String(255), nullable=False),
    Column("post_text", Text, nullable=False),
    Column("likes_count", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ForumStore:
    """Repository for Post entities."""

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_post(self, post: Post) -> int:
        """Insert a new post and return its id."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _posts.insert().values(
                    author_aid=post.author_aid,
                    author_guid=post.author_guid,
                    post_topic=post.post_topic,
                    post_text=post.post_text,
                    likes_count=0,
                    created_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            conn.commit()
        post_id = result.inserted_primary_key[0]
        logger.info("Created post id=%d by account_id=%d", post_id, post.author_aid)
        return post_id

    def get_post(self, post_id: int) -> Post | None:
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self) -> list[Post]:
        """Return every post, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_posts.select().order_by(_posts.c.id.desc())).fetchall()
        return [_row_to_post(r) for r in rows]

    def like(self, post_id: int) -> Post | None:
        """Add one like to a post. Returns the updated post, or None if it does not exist."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _posts.update().where(_posts.c.id == post_id).values(likes_count=_posts.c.likes_count + 1)
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_post(post_id)

    def close(self) -> None:
        self.engine.dispose()


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        author_aid=row.author_aid,
        author_guid=row.author_guid,
        post_topic=row.post_topic,
        post_text=row.post_text,
        likes_count=row.likes_count,
        created_at=row.created_at,
    )
