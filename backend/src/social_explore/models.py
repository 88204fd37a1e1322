"""SQLAlchemy models for the social graph store.

Nodes:
- users: accounts, keyed by their stable lowercase username
- posts: owned through the POSTED edge (author_username), or orphaned
  legacy posts carrying only a denormalized author_label

Edges (existence-only sets, composite primary keys):
- follows: user -> user
- likes: user -> post
- shares: user -> post
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def utc_now():
    """Timezone-aware UTC now (replaces deprecated datetime.utcnow)."""
    return datetime.now(timezone.utc)


# =============================================================================
# NODES
# =============================================================================

class User(Base):
    """Account node."""
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    bio: Mapped[str] = mapped_column(Text, default="")
    avatar: Mapped[str] = mapped_column(Text, default="")  # opaque blob reference
    categories: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    # Relationships
    posts: Mapped[list["Post"]] = relationship(back_populates="author")


class Post(Base):
    """Post node. ``id`` is a millisecond timestamp string."""
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    caption: Mapped[str] = mapped_column(Text, default="")
    image: Mapped[str] = mapped_column(Text, default="")
    categories: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    # POSTED edge
    author_username: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.username"), nullable=True, index=True
    )
    # Legacy denormalized author of orphaned posts
    author_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    # Relationships
    author: Mapped[Optional["User"]] = relationship(back_populates="posts")


# =============================================================================
# EDGES
# =============================================================================

class Follow(Base):
    """FOLLOWS edge (follower -> followee)."""
    __tablename__ = "follows"

    follower: Mapped[str] = mapped_column(ForeignKey("users.username"), primary_key=True)
    followee: Mapped[str] = mapped_column(ForeignKey("users.username"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    __table_args__ = (
        Index("idx_follows_followee", "followee"),
    )


class Like(Base):
    """LIKES edge (user -> post)."""
    __tablename__ = "likes"

    username: Mapped[str] = mapped_column(ForeignKey("users.username"), primary_key=True)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    __table_args__ = (
        Index("idx_likes_post", "post_id"),
    )


class Share(Base):
    """SHARED edge (user -> post)."""
    __tablename__ = "shares"

    username: Mapped[str] = mapped_column(ForeignKey("users.username"), primary_key=True)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    __table_args__ = (
        Index("idx_shares_post", "post_id"),
    )
