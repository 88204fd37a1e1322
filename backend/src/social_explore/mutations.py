"""Interaction mutators - idempotent edge upserts/deletes and admin writes.

Creating an edge that already exists and removing one that does not are
both no-ops. The composite primary keys on follows/likes/shares make the
store reject a concurrent duplicate insert; that race is treated the same
as "already present".
"""
import logging
import re
import time
from typing import Optional, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .categories import unknown_categories
from .models import User, Post, Follow, Like, Share
from .scoring import normalize_categories


logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-z0-9._]{3,20}$")
POST_ID_ATTEMPTS = 5


class NotFoundError(Exception):
    """Referenced user or post does not exist."""
    pass


class InvalidInputError(Exception):
    """Rejected write (bad username, categories, self-follow, duplicate)."""
    pass


def _require_user(db: Session, username: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise NotFoundError(f"User not found: {username}")
    return user


def _require_post(db: Session, post_id: str) -> Post:
    post = db.query(Post).filter(Post.id == str(post_id)).first()
    if not post:
        raise NotFoundError(f"Post not found: {post_id}")
    return post


def _insert_edge(db: Session, edge) -> bool:
    """Insert an edge row; returns False if it was already present."""
    db.add(edge)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


# =============================================================================
# Follows
# =============================================================================

def follow(db: Session, follower: str, following: str) -> bool:
    """Create follower -> following if absent. Returns True when created."""
    if follower == following:
        raise InvalidInputError("Users cannot follow themselves")
    _require_user(db, follower)
    _require_user(db, following)

    exists = db.query(Follow).filter(
        Follow.follower == follower, Follow.followee == following
    ).first()
    if exists:
        return False
    created = _insert_edge(db, Follow(follower=follower, followee=following))
    if created:
        logger.info(f"{follower} followed {following}")
    return created


def unfollow(db: Session, follower: str, following: str) -> bool:
    """Remove follower -> following if present. Returns True when removed."""
    removed = db.query(Follow).filter(
        Follow.follower == follower, Follow.followee == following
    ).delete()
    db.commit()
    if removed:
        logger.info(f"{follower} unfollowed {following}")
    return bool(removed)


# =============================================================================
# Likes / shares
# =============================================================================

def _add_post_edge(db: Session, model: Type, username: str, post_id: str) -> bool:
    _require_user(db, username)
    post = _require_post(db, post_id)

    exists = db.query(model).filter(
        model.username == username, model.post_id == post.id
    ).first()
    if exists:
        return False
    created = _insert_edge(db, model(username=username, post_id=post.id))
    if created:
        logger.info(f"{username} added {model.__tablename__} edge to post {post.id}")
    return created


def _remove_post_edge(db: Session, model: Type, username: str, post_id: str) -> bool:
    removed = db.query(model).filter(
        model.username == username, model.post_id == str(post_id)
    ).delete()
    db.commit()
    if removed:
        logger.info(f"{username} removed {model.__tablename__} edge to post {post_id}")
    return bool(removed)


def like(db: Session, username: str, post_id: str) -> bool:
    return _add_post_edge(db, Like, username, post_id)


def unlike(db: Session, username: str, post_id: str) -> bool:
    return _remove_post_edge(db, Like, username, post_id)


def share(db: Session, username: str, post_id: str) -> bool:
    return _add_post_edge(db, Share, username, post_id)


def unshare(db: Session, username: str, post_id: str) -> bool:
    return _remove_post_edge(db, Share, username, post_id)


def _toggle(db: Session, model: Type, username: str, post_id: str) -> bool:
    """Flip the edge; returns the new state (True = edge present)."""
    exists = db.query(model).filter(
        model.username == username, model.post_id == str(post_id)
    ).first()
    if exists:
        _remove_post_edge(db, model, username, post_id)
        return False
    _add_post_edge(db, model, username, post_id)
    return True


def toggle_like(db: Session, username: str, post_id: str) -> bool:
    return _toggle(db, Like, username, post_id)


def toggle_share(db: Session, username: str, post_id: str) -> bool:
    return _toggle(db, Share, username, post_id)


# =============================================================================
# Admin writes
# =============================================================================

def create_user(
    db: Session,
    username: str,
    name: str,
    bio: str = "",
    avatar: str = "",
    categories: Optional[list[str]] = None,
) -> User:
    """Create a user. Usernames are lowercase and immutable."""
    if not USERNAME_PATTERN.match(username or ""):
        raise InvalidInputError(
            "Username must be 3-20 characters of lowercase letters, digits, '.' or '_'"
        )
    tags = normalize_categories(categories)
    if not tags:
        raise InvalidInputError("At least one category is required")
    unknown = unknown_categories(tags)
    if unknown:
        raise InvalidInputError(f"Unknown categories: {', '.join(unknown)}")
    if db.query(User).filter(User.username == username).first():
        raise InvalidInputError(f"Username already taken: {username}")

    user = User(
        username=username,
        name=name or username,
        bio=bio or "",
        avatar=avatar or "",
        categories=tags,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise InvalidInputError(f"Username already taken: {username}") from exc
    db.refresh(user)
    logger.info(f"Created user {username}")
    return user


def new_post_id(db: Session) -> str:
    """Millisecond timestamp id, bumped until unused."""
    candidate = int(time.time() * 1000)
    while db.query(Post.id).filter(Post.id == str(candidate)).first():
        candidate += 1
    return str(candidate)


def create_post(
    db: Session,
    caption: str,
    username: Optional[str] = None,
    image: str = "",
    categories: Optional[list[str]] = None,
    post_id: Optional[str] = None,
    author: Optional[str] = None,
) -> Post:
    """Create a post owned by ``username``.

    Without a username the post is orphaned: it has no POSTED edge and only
    carries ``author`` as a denormalized label.
    """
    tags = normalize_categories(categories)
    unknown = unknown_categories(tags)
    if unknown:
        raise InvalidInputError(f"Unknown categories: {', '.join(unknown)}")
    if username:
        _require_user(db, username)

    requested_id = str(post_id) if post_id else None
    if requested_id and db.query(Post.id).filter(Post.id == requested_id).first():
        raise InvalidInputError(f"Post id already exists: {requested_id}")

    # A generated id can be taken by a concurrent insert between lookup and commit
    for _ in range(POST_ID_ATTEMPTS):
        post = Post(
            id=requested_id or new_post_id(db),
            caption=caption or "",
            image=image or "",
            categories=tags,
            author_username=username or None,
            author_label=None if username else (author or "Unknown User"),
        )
        db.add(post)
        try:
            db.commit()
            break
        except IntegrityError as exc:
            db.rollback()
            if requested_id:
                raise InvalidInputError(f"Post id already exists: {requested_id}") from exc
            logger.warning(f"Post id {post.id} taken concurrently, picking another")
    else:
        raise InvalidInputError("Could not allocate a post id")
    db.refresh(post)
    logger.info(f"Created post {post.id} ({username or 'orphan'})")
    return post


def delete_user(db: Session, username: str) -> bool:
    """Detach every edge of the user and delete it.

    The user's posts stay behind without a POSTED edge.
    """
    user = db.query(User).filter(User.username == username).first()
    if not user:
        return False
    db.query(Follow).filter(
        (Follow.follower == username) | (Follow.followee == username)
    ).delete()
    db.query(Like).filter(Like.username == username).delete()
    db.query(Share).filter(Share.username == username).delete()
    db.query(Post).filter(Post.author_username == username).update(
        {Post.author_username: None}
    )
    db.delete(user)
    db.commit()
    logger.info(f"Deleted user {username}")
    return True


def delete_post(db: Session, post_id: str) -> bool:
    """Detach every like/share of the post and delete it."""
    post = db.query(Post).filter(Post.id == str(post_id)).first()
    if not post:
        return False
    db.query(Like).filter(Like.post_id == post.id).delete()
    db.query(Share).filter(Share.post_id == post.id).delete()
    db.delete(post)
    db.commit()
    logger.info(f"Deleted post {post_id}")
    return True
