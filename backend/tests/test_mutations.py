"""Test idempotent interaction mutators and admin writes."""
import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker

from social_explore import mutations
from social_explore.database import Base
from social_explore.graph_store import GraphStore
from social_explore.models import User, Post, Follow, Like, Share
from social_explore.mutations import InvalidInputError, NotFoundError


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def people(db_session):
    """Two users and one post by bob."""
    mutations.create_user(db_session, "alice", "Alice", categories=["Art"])
    mutations.create_user(db_session, "bob", "Bob", categories=["Music"])
    mutations.create_post(db_session, "hello", username="bob", categories=["Music"], post_id="1000")
    return db_session


class TestFollow:
    """FOLLOWS edges are a set."""

    def test_follow_creates_edge(self, people):
        assert mutations.follow(people, "alice", "bob") is True
        assert people.query(Follow).count() == 1

    def test_repeated_follow_is_noop(self, people):
        mutations.follow(people, "alice", "bob")
        assert mutations.follow(people, "alice", "bob") is False

        assert people.query(Follow).count() == 1
        assert GraphStore(people).get_user_activity_counts("bob") == (1, 1)

    def test_unfollow_is_idempotent(self, people):
        mutations.follow(people, "alice", "bob")

        assert mutations.unfollow(people, "alice", "bob") is True
        assert mutations.unfollow(people, "alice", "bob") is False
        assert people.query(Follow).count() == 0

    def test_cannot_follow_self(self, people):
        with pytest.raises(InvalidInputError):
            mutations.follow(people, "alice", "alice")

    def test_follow_unknown_user(self, people):
        with pytest.raises(NotFoundError):
            mutations.follow(people, "alice", "ghost")


class TestLikesAndShares:
    """LIKES / SHARED edges are sets, counts come from edge cardinality."""

    def test_repeated_like_is_noop(self, people):
        assert mutations.like(people, "alice", "1000") is True
        assert mutations.like(people, "alice", "1000") is False

        posts = GraphStore(people).get_user_posts("bob")
        assert posts[0].likes == 1

    def test_repeated_share_is_noop(self, people):
        mutations.share(people, "alice", "1000")
        mutations.share(people, "alice", "1000")

        assert people.query(Share).count() == 1

    def test_unlike_absent_edge_is_noop(self, people):
        assert mutations.unlike(people, "alice", "1000") is False
        assert mutations.unshare(people, "alice", "1000") is False

    def test_like_unknown_post(self, people):
        with pytest.raises(NotFoundError):
            mutations.like(people, "alice", "999")

    def test_like_unknown_user(self, people):
        with pytest.raises(NotFoundError):
            mutations.like(people, "ghost", "1000")

    def test_toggle_like_decrements_only_likes(self, people):
        """Unliking drops the like count by exactly one and leaves shares alone."""
        mutations.like(people, "alice", "1000")
        mutations.like(people, "bob", "1000")
        mutations.share(people, "alice", "1000")

        assert mutations.toggle_like(people, "alice", "1000") is False

        post = GraphStore(people).get_user_posts("bob")[0]
        assert post.likes == 1
        assert post.shares == 1

    def test_toggle_like_round_trip(self, people):
        assert mutations.toggle_like(people, "alice", "1000") is True
        assert mutations.toggle_like(people, "alice", "1000") is False
        assert mutations.toggle_like(people, "alice", "1000") is True
        assert people.query(Like).count() == 1

    def test_toggle_share(self, people):
        assert mutations.toggle_share(people, "alice", "1000") is True
        assert mutations.toggle_share(people, "alice", "1000") is False
        assert people.query(Share).count() == 0


class TestCreateUser:
    """Signup validation."""

    @pytest.mark.parametrize("username", ["ab", "Alice", "has space", "x" * 21, "bad-dash"])
    def test_rejects_bad_usernames(self, db_session, username):
        with pytest.raises(InvalidInputError):
            mutations.create_user(db_session, username, "Name", categories=["Art"])

    def test_accepts_dots_and_underscores(self, db_session):
        user = mutations.create_user(db_session, "sam.lee_2", "Sam", categories=["Art"])
        assert user.username == "sam.lee_2"

    def test_requires_categories(self, db_session):
        with pytest.raises(InvalidInputError):
            mutations.create_user(db_session, "alice", "Alice", categories=[])

    def test_rejects_unknown_categories(self, db_session):
        with pytest.raises(InvalidInputError):
            mutations.create_user(db_session, "alice", "Alice", categories=["Knitting"])

    def test_rejects_duplicate_username(self, people):
        with pytest.raises(InvalidInputError):
            mutations.create_user(people, "alice", "Other Alice", categories=["Art"])


class TestPosts:
    """Post creation and deletion."""

    def test_generated_ids_are_unique_and_increasing(self, people):
        first = mutations.create_post(people, "one", username="alice", categories=["Art"])
        second = mutations.create_post(people, "two", username="alice", categories=["Art"])

        assert first.id.isdigit()
        assert int(second.id) > int(first.id)

    def test_generated_id_taken_concurrently(self, people, monkeypatch):
        """Another writer commits the generated id first; a fresh id is picked."""
        people.execute(insert(Post).values(id="9000", caption="", categories=[]))
        people.commit()
        ids = iter(["9000", "9001"])
        monkeypatch.setattr(mutations, "new_post_id", lambda db: next(ids))

        post = mutations.create_post(people, "race", username="alice", categories=["Art"])

        assert post.id == "9001"
        assert post.author_username == "alice"
        assert people.query(Post).count() == 3

    def test_orphan_post(self, people):
        post = mutations.create_post(people, "legacy", author="Old Account", post_id="5")

        assert post.author_username is None
        assert post.author_label == "Old Account"

    def test_orphan_post_default_label(self, people):
        post = mutations.create_post(people, "legacy", post_id="6")
        assert post.author_label == "Unknown User"

    def test_post_for_unknown_user(self, people):
        with pytest.raises(NotFoundError):
            mutations.create_post(people, "hi", username="ghost")

    def test_duplicate_post_id(self, people):
        with pytest.raises(InvalidInputError):
            mutations.create_post(people, "again", username="alice", post_id="1000")

    def test_delete_post_detaches_edges(self, people):
        mutations.like(people, "alice", "1000")
        mutations.share(people, "alice", "1000")

        assert mutations.delete_post(people, "1000") is True
        assert people.query(Post).count() == 0
        assert people.query(Like).count() == 0
        assert people.query(Share).count() == 0
        assert mutations.delete_post(people, "1000") is False


class TestDeleteUser:
    """Detach-delete of a user."""

    def test_detaches_all_edges(self, people):
        mutations.follow(people, "alice", "bob")
        mutations.follow(people, "bob", "alice")
        mutations.like(people, "bob", "1000")
        mutations.share(people, "bob", "1000")

        assert mutations.delete_user(people, "bob") is True

        assert people.get(User, "bob") is None
        assert people.query(Follow).count() == 0
        assert people.query(Like).count() == 0
        assert people.query(Share).count() == 0

    def test_posts_lose_posted_edge(self, people):
        mutations.delete_user(people, "bob")

        post = people.get(Post, "1000")
        assert post is not None
        assert post.author_username is None

    def test_unknown_user(self, people):
        assert mutations.delete_user(people, "ghost") is False
