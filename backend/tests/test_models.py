"""Test database models."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from social_explore.database import Base
from social_explore.models import User, Post, Follow, Like, Share, utc_now


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


def test_utc_now_is_timezone_aware():
    assert utc_now().tzinfo is not None


def test_create_user(db_session):
    """Test creating a user with categories."""
    user = User(username="alice", name="Alice", categories=["Art", "Music"])
    db_session.add(user)
    db_session.commit()

    fetched = db_session.get(User, "alice")

    assert fetched is not None
    assert fetched.categories == ["Art", "Music"]
    assert fetched.bio == ""
    assert fetched.avatar == ""


def test_owned_post_has_author(db_session):
    """POSTED edge is the author_username column."""
    db_session.add(User(username="alice", name="Alice", categories=["Art"]))
    db_session.add(Post(id="1700000000000", caption="hi", author_username="alice", categories=["Art"]))
    db_session.commit()

    post = db_session.get(Post, "1700000000000")

    assert post.author.username == "alice"
    assert post.author_label is None
    assert len(db_session.get(User, "alice").posts) == 1


def test_orphan_post(db_session):
    """Legacy posts only carry a denormalized author label."""
    db_session.add(Post(id="1", caption="legacy", author_label="Old Account"))
    db_session.commit()

    post = db_session.get(Post, "1")

    assert post.author is None
    assert post.author_label == "Old Account"


def test_follow_edge_is_unique(db_session):
    """Duplicate FOLLOWS edges are rejected by the store."""
    db_session.add_all([
        User(username="alice", name="Alice", categories=["Art"]),
        User(username="bob", name="Bob", categories=["Art"]),
    ])
    db_session.commit()
    db_session.add(Follow(follower="alice", followee="bob"))
    db_session.commit()

    db_session.add(Follow(follower="alice", followee="bob"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

    assert db_session.query(Follow).count() == 1


def test_like_and_share_edges_are_unique(db_session):
    db_session.add(User(username="alice", name="Alice", categories=["Art"]))
    db_session.add(Post(id="1", caption="hi", author_username="alice"))
    db_session.add(Like(username="alice", post_id="1"))
    db_session.add(Share(username="alice", post_id="1"))
    db_session.commit()

    db_session.add(Like(username="alice", post_id="1"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

    db_session.add(Share(username="alice", post_id="1"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

    assert db_session.query(Like).count() == 1
    assert db_session.query(Share).count() == 1
