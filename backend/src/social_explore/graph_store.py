"""Social graph accessor - translates domain reads into store queries.

Every read the rankers and the HTTP layer need goes through ``GraphStore``.
Transient store failures are retried here, at the connection layer; the
rankers on top never retry.
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import tenacity
from sqlalchemy import String, and_, func, or_, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, aliased

from .config import settings
from .models import User, Post, Follow, Like, Share
from .scoring import category_match, normalize_categories, numeric_post_id


logger = logging.getLogger(__name__)


class GraphStoreUnavailable(Exception):
    """The store could not be reached after all retry attempts."""
    pass


@dataclass
class UserSummary:
    username: str
    name: str
    avatar: str = ""
    bio: str = ""
    categories: list[str] = field(default_factory=list)


@dataclass
class UserProfile(UserSummary):
    following_count: int = 0
    followers_count: int = 0
    posts_count: int = 0


@dataclass
class FeedPost:
    """A post with its author framing, global aggregates and viewer flags."""
    id: str
    caption: str
    image: str
    categories: list[str]
    author: str
    author_name: str
    author_avatar: str
    likes: int = 0
    shares: int = 0
    already_liked: bool = False
    already_shared: bool = False
    is_user_post: bool = True


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    """Log retry attempts for debugging."""
    logger.warning(
        f"Graph store retry attempt {retry_state.attempt_number} after "
        f"{retry_state.outcome.exception() if retry_state.outcome else 'unknown error'}"
    )


def _store_call(method):
    """Run a read with retries on transient store errors."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        def attempt():
            try:
                return method(self, *args, **kwargs)
            except OperationalError:
                self.db.rollback()
                raise

        try:
            return self._retrying.copy()(attempt)
        except OperationalError as exc:
            logger.error(f"Graph store unavailable in {method.__name__}: {exc}")
            raise GraphStoreUnavailable(str(exc)) from exc
    return wrapper


def _summary(user: User) -> UserSummary:
    return UserSummary(
        username=user.username,
        name=user.name,
        avatar=user.avatar or "",
        bio=user.bio or "",
        categories=normalize_categories(user.categories),
    )


class GraphStore:
    """Read-only query layer over the users/posts/follows/likes/shares tables."""

    def __init__(
        self,
        db: Session,
        retry_attempts: Optional[int] = None,
        retry_max_wait: Optional[float] = None,
    ):
        self.db = db
        attempts = retry_attempts if retry_attempts is not None else settings.store_retry_attempts
        max_wait = retry_max_wait if retry_max_wait is not None else settings.store_retry_max_wait
        self._retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(max(1, attempts)),
            wait=tenacity.wait_exponential(multiplier=0.5, min=0, max=max_wait),
            retry=tenacity.retry_if_exception_type(OperationalError),
            before_sleep=_log_retry,
            reraise=True,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _followee_select(username: str):
        edge = aliased(Follow)
        return select(edge.followee).where(
            edge.follower == username, edge.followee != username
        )

    def _annotate(
        self,
        viewer: Optional[str],
        rows: Iterable[tuple[Post, Optional[User]]],
    ) -> list[FeedPost]:
        """Attach like/share counts and the viewer's own flags to each post."""
        rows = list(rows)
        ids = [post.id for post, _ in rows]
        if not ids:
            return []

        like_counts = dict(
            self.db.query(Like.post_id, func.count(Like.username))
            .filter(Like.post_id.in_(ids))
            .group_by(Like.post_id)
            .all()
        )
        share_counts = dict(
            self.db.query(Share.post_id, func.count(Share.username))
            .filter(Share.post_id.in_(ids))
            .group_by(Share.post_id)
            .all()
        )
        my_likes: set[str] = set()
        my_shares: set[str] = set()
        if viewer:
            my_likes = {
                pid for (pid,) in self.db.query(Like.post_id).filter(
                    Like.username == viewer, Like.post_id.in_(ids)
                )
            }
            my_shares = {
                pid for (pid,) in self.db.query(Share.post_id).filter(
                    Share.username == viewer, Share.post_id.in_(ids)
                )
            }

        posts = []
        for post, author in rows:
            if author is not None:
                author_id, author_name, author_avatar = author.username, author.name, author.avatar or ""
            else:
                author_id = post.author_label or "unknown"
                author_name = post.author_label or "Unknown User"
                author_avatar = ""
            posts.append(FeedPost(
                id=post.id,
                caption=post.caption or "",
                image=post.image or "",
                categories=normalize_categories(post.categories),
                author=author_id,
                author_name=author_name,
                author_avatar=author_avatar,
                likes=like_counts.get(post.id, 0),
                shares=share_counts.get(post.id, 0),
                already_liked=post.id in my_likes,
                already_shared=post.id in my_shares,
                is_user_post=author is not None,
            ))
        return posts

    # =========================================================================
    # Ranking collaborator contract
    # =========================================================================

    @_store_call
    def user_exists(self, username: str) -> bool:
        return self.db.query(User.username).filter(User.username == username).first() is not None

    @_store_call
    def get_followees(self, username: str) -> set[str]:
        return {row[0] for row in self.db.execute(self._followee_select(username))}

    @_store_call
    def get_two_hop_candidates(self, username: str) -> list[tuple[str, int]]:
        """Users two FOLLOWS hops away with their number of connecting friends.

        Excludes ``username`` itself and anyone it already follows.
        """
        friend = aliased(Follow)
        hop = aliased(Follow)
        rows = (
            self.db.query(hop.followee, func.count(func.distinct(hop.follower)))
            .join(friend, friend.followee == hop.follower)
            .filter(
                friend.follower == username,
                friend.followee != username,
                hop.followee != username,
                hop.followee.not_in(self._followee_select(username)),
            )
            .group_by(hop.followee)
            .all()
        )
        return [(candidate, mutual) for candidate, mutual in rows]

    @_store_call
    def get_user_categories(self, username: str) -> set[str]:
        return self._categories(username)

    def _categories(self, username: str) -> set[str]:
        row = self.db.query(User.categories).filter(User.username == username).first()
        if row is None:
            return set()
        return set(normalize_categories(row[0]))

    @_store_call
    def get_user_activity_counts(self, username: str) -> tuple[int, int]:
        """(post_count, follower_count) for one user."""
        return self._activity_counts([username]).get(username, (0, 0))

    @_store_call
    def get_activity_counts(self, usernames: Iterable[str]) -> dict[str, tuple[int, int]]:
        """Batched (post_count, follower_count) keyed by username."""
        return self._activity_counts(usernames)

    def _activity_counts(self, usernames: Iterable[str]) -> dict[str, tuple[int, int]]:
        names = list(set(usernames))
        if not names:
            return {}
        post_counts = dict(
            self.db.query(Post.author_username, func.count(Post.id))
            .filter(Post.author_username.in_(names))
            .group_by(Post.author_username)
            .all()
        )
        follower_counts = dict(
            self.db.query(Follow.followee, func.count(Follow.follower))
            .filter(Follow.followee.in_(names))
            .group_by(Follow.followee)
            .all()
        )
        return {
            name: (post_counts.get(name, 0), follower_counts.get(name, 0))
            for name in names
        }

    @_store_call
    def get_users(self, usernames: Iterable[str]) -> dict[str, UserSummary]:
        names = list(set(usernames))
        if not names:
            return {}
        users = self.db.query(User).filter(User.username.in_(names)).all()
        return {u.username: _summary(u) for u in users}

    @_store_call
    def get_followed_authors_posts(self, username: str) -> list[FeedPost]:
        """Every post authored by someone ``username`` follows."""
        rows = (
            self.db.query(Post, User)
            .join(User, Post.author_username == User.username)
            .join(Follow, Follow.followee == User.username)
            .filter(Follow.follower == username, Follow.followee != username)
            .all()
        )
        return self._annotate(username, rows)

    @_store_call
    def get_liked_by_followees_posts(
        self, username: str, include_orphans: bool = False
    ) -> list[FeedPost]:
        """Posts liked by a followee whose author exists and is not ``username``.

        With ``include_orphans`` liked posts without a POSTED edge are kept
        and framed by their denormalized author label.
        """
        liked = (
            select(Like.post_id)
            .join(Follow, Follow.followee == Like.username)
            .where(Follow.follower == username, Follow.followee != username)
        )
        authored = and_(User.username.is_not(None), User.username != username)
        if include_orphans:
            authored = or_(authored, Post.author_username.is_(None))
        rows = (
            self.db.query(Post, User)
            .outerjoin(User, Post.author_username == User.username)
            .filter(Post.id.in_(liked), authored)
            .all()
        )
        return self._annotate(username, rows)

    @_store_call
    def get_category_matched_stranger_posts(self, username: str) -> list[FeedPost]:
        """Posts by users ``username`` does not follow sharing one of its categories."""
        my_categories = self._categories(username)
        if not my_categories:
            return []
        # Categories are JSON, so overlap is checked in Python over every
        # stranger post. Fine for a single-node graph, not for a large one.
        rows = (
            self.db.query(Post, User)
            .join(User, Post.author_username == User.username)
            .filter(
                User.username != username,
                User.username.not_in(self._followee_select(username)),
            )
            .all()
        )
        matched = [
            (post, author) for post, author in rows
            if category_match(my_categories, post.categories) > 0
        ]
        return self._annotate(username, matched)

    # =========================================================================
    # Profiles, listings, search
    # =========================================================================

    @_store_call
    def is_following(self, follower: str, following: str) -> bool:
        return self.db.query(Follow).filter(
            Follow.follower == follower, Follow.followee == following
        ).first() is not None

    @_store_call
    def get_profile(self, username: str) -> Optional[UserProfile]:
        user = self.db.query(User).filter(User.username == username).first()
        if user is None:
            return None
        following = self.db.query(Follow).filter(Follow.follower == username).count()
        posts, followers = self._activity_counts([username])[username]
        summary = _summary(user)
        return UserProfile(
            **vars(summary),
            following_count=following,
            followers_count=followers,
            posts_count=posts,
        )

    @_store_call
    def list_users(self) -> list[UserSummary]:
        return [_summary(u) for u in self.db.query(User).order_by(User.username).all()]

    @_store_call
    def search_users(self, query: str, limit: int = 10) -> list[UserSummary]:
        needle = (query or "").lower()
        users = (
            self.db.query(User)
            .filter(or_(
                func.lower(User.username, type_=String).contains(needle, autoescape=True),
                func.lower(User.name, type_=String).contains(needle, autoescape=True),
            ))
            .order_by(User.username)
            .limit(limit)
            .all()
        )
        return [_summary(u) for u in users]

    @_store_call
    def get_user_posts(self, username: str) -> list[FeedPost]:
        rows = (
            self.db.query(Post, User)
            .join(User, Post.author_username == User.username)
            .filter(User.username == username)
            .all()
        )
        posts = self._annotate(None, rows)
        return sorted(posts, key=lambda p: numeric_post_id(p.id), reverse=True)

    @_store_call
    def list_posts(self) -> list[dict]:
        """All posts, owned or orphaned, newest first."""
        posts = self.db.query(Post).all()
        posts.sort(key=lambda p: numeric_post_id(p.id), reverse=True)
        return [
            {
                "id": p.id,
                "caption": p.caption or "",
                "image": p.image or "",
                "categories": normalize_categories(p.categories),
                "username": p.author_username,
                "exploreAuthor": p.author_label,
            }
            for p in posts
        ]

    @_store_call
    def list_follows(self) -> list[dict]:
        follower = aliased(User)
        followee = aliased(User)
        rows = (
            self.db.query(follower, followee)
            .join(Follow, Follow.follower == follower.username)
            .join(followee, Follow.followee == followee.username)
            .order_by(follower.username, followee.username)
            .all()
        )
        return [
            {
                "follower": a.username,
                "followerName": a.name,
                "following": b.username,
                "followingName": b.name,
            }
            for a, b in rows
        ]

    @_store_call
    def list_likes(self) -> list[dict]:
        rows = (
            self.db.query(User, Post)
            .join(Like, Like.username == User.username)
            .join(Post, Like.post_id == Post.id)
            .order_by(User.username, Post.id)
            .all()
        )
        return [
            {
                "username": u.username,
                "name": u.name,
                "postId": p.id,
                "caption": p.caption or "",
            }
            for u, p in rows
        ]

    @_store_call
    def stats(self) -> dict:
        return {
            "users": self.db.query(User).count(),
            "posts": self.db.query(Post).count(),
            "orphaned_posts": self.db.query(Post).filter(Post.author_username.is_(None)).count(),
            "follows": self.db.query(Follow).count(),
            "likes": self.db.query(Like).count(),
            "shares": self.db.query(Share).count(),
        }
