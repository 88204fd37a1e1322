"""Follow suggestions ranked from friends-of-friends.

Candidates are users exactly two FOLLOWS hops away from the requester who
are neither the requester nor already followed. Each candidate is scored
once, from aggregates over the whole graph:

    score = mutual_friends * 15 + category_match * 10 + post_count + follower_count

and ordered by score, then mutual friends. The score itself is an internal
signal and is not part of the result.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import settings
from .graph_store import GraphStore
from .scoring import category_match, suggestion_score, suggestion_sort_key


logger = logging.getLogger(__name__)


@dataclass
class Suggestion:
    username: str
    name: str
    avatar: str = ""
    categories: list[str] = field(default_factory=list)
    mutual_friends: int = 0
    category_match: int = 0
    post_count: int = 0
    follower_count: int = 0
    score: int = 0


class SuggestionRanker:
    """Ranks people a user might want to follow."""

    def __init__(
        self,
        store: GraphStore,
        limit: Optional[int] = None,
        mutual_friend_weight: Optional[int] = None,
        category_match_weight: Optional[int] = None,
    ):
        self.store = store
        self.limit = limit if limit is not None else settings.suggestion_limit
        self.mutual_friend_weight = (
            mutual_friend_weight if mutual_friend_weight is not None
            else settings.mutual_friend_weight
        )
        self.category_match_weight = (
            category_match_weight if category_match_weight is not None
            else settings.category_match_weight
        )

    def candidates(self, username: str) -> list[Suggestion]:
        """Score every two-hop candidate, unordered and untruncated."""
        if not self.store.user_exists(username):
            logger.debug(f"Suggestions requested for unknown user {username}")
            return []

        hops = self.store.get_two_hop_candidates(username)
        if not hops:
            return []

        names = [name for name, _ in hops]
        my_categories = self.store.get_user_categories(username)
        profiles = self.store.get_users(names)
        activity = self.store.get_activity_counts(names)

        scored = []
        for name, mutual in hops:
            profile = profiles.get(name)
            if profile is None:
                continue
            post_count, follower_count = activity.get(name, (0, 0))
            match = category_match(my_categories, profile.categories)
            scored.append(Suggestion(
                username=name,
                name=profile.name,
                avatar=profile.avatar,
                categories=profile.categories,
                mutual_friends=mutual,
                category_match=match,
                post_count=post_count,
                follower_count=follower_count,
                score=suggestion_score(
                    mutual, match, post_count, follower_count,
                    mutual_friend_weight=self.mutual_friend_weight,
                    category_match_weight=self.category_match_weight,
                ),
            ))
        return scored

    def rank(self, username: str) -> list[Suggestion]:
        scored = self.candidates(username)
        scored.sort(key=suggestion_sort_key)
        logger.debug(f"{len(scored)} suggestion candidates for {username}")
        return scored[:self.limit]
