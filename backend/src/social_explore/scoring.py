"""Shared scoring, ordering and de-duplication primitives for the rankers."""
from __future__ import annotations

from typing import Iterable, Optional, Protocol, TypeVar


MUTUAL_FRIEND_WEIGHT = 15
CATEGORY_MATCH_WEIGHT = 10

# Explore candidate sources, lower is more relevant
PRIORITY_FOLLOWED_AUTHORS = 1
PRIORITY_LIKED_BY_FOLLOWEES = 2
PRIORITY_CATEGORY_STRANGERS = 3


def normalize_categories(value) -> list[str]:
    """Coerce a stored category value into a list of distinct tags.

    Missing or malformed values (None, scalars, non-string entries) count
    as no categories at all.
    """
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    seen: set[str] = set()
    tags: list[str] = []
    for item in value:
        if isinstance(item, str) and item not in seen:
            seen.add(item)
            tags.append(item)
    return tags


def category_match(mine, theirs) -> int:
    """Number of tags the two category sets share."""
    return len(set(normalize_categories(mine)) & set(normalize_categories(theirs)))


def suggestion_score(
    mutual_friends: int,
    matched_categories: int,
    post_count: int,
    follower_count: int,
    mutual_friend_weight: int = MUTUAL_FRIEND_WEIGHT,
    category_match_weight: int = CATEGORY_MATCH_WEIGHT,
) -> int:
    """score = mutual * 15 + categories * 10 + posts + followers"""
    return (
        mutual_friends * mutual_friend_weight
        + matched_categories * category_match_weight
        + post_count
        + follower_count
    )


class _Suggestion(Protocol):
    username: str
    score: int
    mutual_friends: int


class _FeedRow(Protocol):
    id: str
    priority: int
    category_match: int
    likes: int
    shares: int


def suggestion_sort_key(s: _Suggestion) -> tuple:
    return (-s.score, -s.mutual_friends, s.username)


def numeric_post_id(post_id: Optional[str]) -> int:
    """Numeric value of a timestamp-derived post id; non-numeric ids sort last."""
    if post_id is not None and post_id.isascii() and post_id.isdigit():
        return int(post_id)
    return -1


def explore_sort_key(row: _FeedRow) -> tuple:
    return (
        row.priority,
        -row.category_match,
        -row.likes,
        -row.shares,
        -numeric_post_id(row.id),
    )


Row = TypeVar("Row", bound=_FeedRow)


def dedup_by_post_id(rows: Iterable[Row]) -> list[Row]:
    """Keep one row per post id: the one surfaced by the lowest priority source.

    Among equal priorities the first occurrence wins.
    """
    best: dict[str, Row] = {}
    for row in rows:
        current = best.get(row.id)
        if current is None or row.priority < current.priority:
            best[row.id] = row
    return list(best.values())
