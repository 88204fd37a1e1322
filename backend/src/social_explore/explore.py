"""Explore feed ranking.

The feed is the union of three candidate sources:

1. posts authored by users the requester follows
2. posts liked by users the requester follows (author exists, is not the requester)
3. posts by strangers (not followed, not the requester) sharing at least one
   of the requester's categories

A post surfaced by several sources appears once, attributed to the lowest
priority number. The feed is ordered by priority, category match, likes,
shares and finally post id (newest first), then truncated.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import settings
from .graph_store import FeedPost, GraphStore
from .scoring import (
    PRIORITY_CATEGORY_STRANGERS,
    PRIORITY_FOLLOWED_AUTHORS,
    PRIORITY_LIKED_BY_FOLLOWEES,
    category_match,
    dedup_by_post_id,
    explore_sort_key,
)


logger = logging.getLogger(__name__)


@dataclass
class ExplorePost:
    id: str
    caption: str
    image: str
    author: str
    author_name: str
    author_avatar: str
    categories: list[str] = field(default_factory=list)
    likes: int = 0
    shares: int = 0
    already_liked: bool = False
    already_shared: bool = False
    is_user_post: bool = True
    category_match: int = 0
    priority: int = PRIORITY_CATEGORY_STRANGERS


def _framed(post: FeedPost, priority: int, my_categories: set[str]) -> ExplorePost:
    return ExplorePost(
        id=post.id,
        caption=post.caption,
        image=post.image,
        author=post.author,
        author_name=post.author_name,
        author_avatar=post.author_avatar,
        categories=post.categories,
        likes=post.likes,
        shares=post.shares,
        already_liked=post.already_liked,
        already_shared=post.already_shared,
        is_user_post=post.is_user_post,
        category_match=category_match(my_categories, post.categories),
        priority=priority,
    )


class ExploreRanker:
    """Ranks the explore feed of a user."""

    def __init__(
        self,
        store: GraphStore,
        limit: Optional[int] = None,
        include_orphans: Optional[bool] = None,
    ):
        self.store = store
        self.limit = limit if limit is not None else settings.explore_limit
        self.include_orphans = (
            include_orphans if include_orphans is not None
            else settings.explore_include_orphans
        )

    def candidates(self, username: str) -> list[ExplorePost]:
        """All source rows, tagged with priority and category match (not deduplicated)."""
        if not self.store.user_exists(username):
            logger.debug(f"Explore requested for unknown user {username}")
            return []

        my_categories = self.store.get_user_categories(username)
        sources = [
            (PRIORITY_FOLLOWED_AUTHORS, self.store.get_followed_authors_posts(username)),
            (
                PRIORITY_LIKED_BY_FOLLOWEES,
                self.store.get_liked_by_followees_posts(
                    username, include_orphans=self.include_orphans
                ),
            ),
            (
                PRIORITY_CATEGORY_STRANGERS,
                self.store.get_category_matched_stranger_posts(username),
            ),
        ]

        rows = []
        for priority, posts in sources:
            logger.debug(f"Explore source {priority} for {username}: {len(posts)} posts")
            for post in posts:
                row = _framed(post, priority, my_categories)
                if priority == PRIORITY_CATEGORY_STRANGERS and row.category_match == 0:
                    continue
                rows.append(row)
        return rows

    def rank(self, username: str) -> list[ExplorePost]:
        feed = dedup_by_post_id(self.candidates(username))
        feed.sort(key=explore_sort_key)
        return feed[:self.limit]
