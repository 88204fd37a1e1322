"""Test follow suggestion ranking."""
import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from social_explore.database import Base
from social_explore.models import User, Post, Follow
from social_explore.graph_store import GraphStore, GraphStoreUnavailable
from social_explore.suggestions import SuggestionRanker


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


def add_users(db, **users):
    for username, categories in users.items():
        db.add(User(username=username, name=username.title(), categories=categories))
    db.commit()


def add_follows(db, *edges):
    for follower, followee in edges:
        db.add(Follow(follower=follower, followee=followee))
    db.commit()


def add_posts(db, author, count, start=1000):
    for i in range(count):
        db.add(Post(id=str(start + i), caption="", author_username=author, categories=["Art"]))
    db.commit()


def rank(db, username, **kwargs):
    return SuggestionRanker(GraphStore(db), **kwargs).rank(username)


class TestCandidates:
    """Friends-of-friends candidate generation."""

    def test_friends_of_friends(self, db_session):
        """me -> alice -> {bob, carol}: both suggested with one mutual friend."""
        add_users(db_session, me=["Art"], alice=["Art"], bob=["Music"], carol=["Food"])
        add_follows(db_session, ("me", "alice"), ("alice", "bob"), ("alice", "carol"))

        suggestions = {s.username: s for s in rank(db_session, "me")}

        assert set(suggestions) == {"bob", "carol"}
        assert suggestions["bob"].mutual_friends == 1
        assert suggestions["carol"].mutual_friends == 1

    def test_follows_nobody(self, db_session):
        add_users(db_session, me=["Art"], alice=["Art"], bob=["Art"])
        add_follows(db_session, ("alice", "bob"))

        assert rank(db_session, "me") == []

    def test_unknown_user(self, db_session):
        add_users(db_session, alice=["Art"])
        assert rank(db_session, "ghost") == []

    def test_excludes_self_and_followees(self, db_session):
        add_users(db_session, me=["Art"], alice=["Art"], bob=["Art"], carol=["Art"])
        add_follows(
            db_session,
            ("me", "alice"), ("me", "bob"),
            ("alice", "me"), ("alice", "bob"), ("alice", "carol"),
            ("bob", "me"),
        )

        usernames = [s.username for s in rank(db_session, "me")]

        assert usernames == ["carol"]

    def test_mutual_friends_counts_distinct_friends(self, db_session):
        add_users(db_session, me=["Art"], a=None, b=None, c=None, target=None)
        add_users(db_session, alice=None, bobby=None, chris=None)
        add_follows(
            db_session,
            ("me", "alice"), ("me", "bobby"), ("me", "chris"),
            ("alice", "target"), ("bobby", "target"), ("chris", "target"),
        )

        suggestions = rank(db_session, "me")

        assert len(suggestions) == 1
        assert suggestions[0].mutual_friends == 3


class TestScoring:
    """Aggregate features and score."""

    def test_features(self, db_session):
        add_users(
            db_session,
            me=["Technology", "Music", "Art"],
            alice=["Food"],
            bob=["Music", "Art", "Travel"],
            fan=["Food"],
        )
        add_follows(db_session, ("me", "alice"), ("alice", "bob"), ("fan", "bob"))
        add_posts(db_session, "bob", 3)

        suggestion = rank(db_session, "me")[0]

        assert suggestion.username == "bob"
        assert suggestion.mutual_friends == 1
        assert suggestion.category_match == 2
        assert suggestion.post_count == 3
        assert suggestion.follower_count == 2
        # 1*15 + 2*10 + 3 + 2
        assert suggestion.score == 40

    def test_malformed_categories_count_as_empty(self, db_session):
        db_session.add(User(username="me", name="Me", categories=None))
        db_session.add(User(username="alice", name="Alice", categories=["Art"]))
        db_session.add(User(username="bob", name="Bob", categories="Art"))
        db_session.commit()
        add_follows(db_session, ("me", "alice"), ("alice", "bob"))

        suggestions = rank(db_session, "me")

        assert suggestions[0].category_match == 0
        assert suggestions[0].categories == []


class TestOrdering:
    """Score desc, ties broken by mutual friends."""

    def test_higher_score_first(self, db_session):
        add_users(db_session, me=["Art"], alice=["Art"], bob=["Art"], carol=["Music"], dave=["Food"])
        add_follows(
            db_session,
            ("me", "alice"), ("me", "bob"),
            ("alice", "carol"), ("bob", "carol"),
            ("alice", "dave"),
        )

        usernames = [s.username for s in rank(db_session, "me")]

        assert usernames == ["carol", "dave"]

    def test_score_tie_prefers_mutual_friends(self, db_session):
        """
        zara: 2 mutual, 0 categories, 0 posts, 2 followers -> 32
        yuri: 1 mutual, 1 category, 6 posts, 1 follower   -> 32
        """
        add_users(
            db_session,
            me=["Technology"], alice=["Art"], bob=["Art"],
            zara=["Music"], yuri=["Technology"],
        )
        add_follows(
            db_session,
            ("me", "alice"), ("me", "bob"),
            ("alice", "zara"), ("bob", "zara"),
            ("alice", "yuri"),
        )
        add_posts(db_session, "yuri", 6)

        suggestions = rank(db_session, "me")

        assert [s.score for s in suggestions] == [32, 32]
        assert [s.username for s in suggestions] == ["zara", "yuri"]

    def test_ordering_property(self, db_session):
        add_users(db_session, me=["Art", "Music"], hub=["Art"], hub2=["Music"])
        add_users(db_session, **{f"user{i}": (["Art"] if i % 2 else ["Food"]) for i in range(6)})
        add_follows(db_session, ("me", "hub"), ("me", "hub2"))
        add_follows(db_session, *[("hub", f"user{i}") for i in range(6)])
        add_follows(db_session, *[("hub2", f"user{i}") for i in range(0, 6, 3)])
        add_posts(db_session, "user4", 5)

        suggestions = rank(db_session, "me")

        for a, b in zip(suggestions, suggestions[1:]):
            assert a.score >= b.score
            if a.score == b.score:
                assert a.mutual_friends >= b.mutual_friends


class TestCap:
    """At most eight suggestions."""

    def test_truncated_to_eight(self, db_session):
        add_users(db_session, me=["Art"], hub=["Art"])
        add_users(db_session, **{f"user{i:02d}": ["Art"] for i in range(12)})
        add_follows(db_session, ("me", "hub"))
        add_follows(db_session, *[("hub", f"user{i:02d}") for i in range(12)])

        assert len(rank(db_session, "me")) == 8

    def test_custom_limit(self, db_session):
        add_users(db_session, me=["Art"], hub=["Art"], a1=["Art"], a2=["Art"], a3=["Art"])
        add_follows(db_session, ("me", "hub"), ("hub", "a1"), ("hub", "a2"), ("hub", "a3"))

        assert len(rank(db_session, "me", limit=2)) == 2


class TestFailures:
    """Store failures surface to the caller, the ranker does not retry."""

    def test_store_failure_propagates(self):
        store = MagicMock()
        store.user_exists.return_value = True
        store.get_two_hop_candidates.side_effect = GraphStoreUnavailable("down")

        with pytest.raises(GraphStoreUnavailable):
            SuggestionRanker(store).rank("me")

        assert store.get_two_hop_candidates.call_count == 1
