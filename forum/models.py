"""
forum/models.py -- Domain dataclasses for forum entities.

Pattern: Data class (pure data container, zero logic).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Post:
    """A news post on the portal front page.

    author_aid is the posting account's id. author_guid optionally names the
    in-game character the post is shown under.
    """

    author_aid: int
    post_topic: str
    post_text: str
    id: int | None = None
    author_guid: int | None = None
    likes_count: int = 0
    created_at: str | None = None
