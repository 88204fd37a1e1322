"""Deterministic demo graph for local previews."""
from __future__ import annotations

import random

from sqlalchemy.orm import Session

from .categories import CATEGORIES
from .models import User, Post, Follow, Like, Share


DEMO_USERS = [
    ("alex", "Alex Rivera"),
    ("jordan", "Jordan Lee"),
    ("taylor", "Taylor Quinn"),
    ("morgan", "Morgan Blake"),
    ("casey", "Casey Drew"),
    ("riley", "Riley Sage"),
    ("avery", "Avery Stone"),
    ("quinn", "Quinn Harper"),
    ("blake", "Blake Morgan"),
    ("jamie", "Jamie Fox"),
    ("sam.lee", "Sam Lee"),
    ("river_k", "River Kim"),
]

CAPTION_SNIPPETS = {
    "Technology": "Shipped a side project over the weekend.",
    "Travel": "Sunrise from the ridge, worth the early alarm.",
    "Food": "Third attempt at sourdough finally worked.",
    "Fashion": "Thrifted jacket of the year.",
    "Fitness": "New deadlift PR today.",
    "Music": "This album has been on repeat all week.",
    "Art": "Finished the mural sketch.",
    "Gaming": "Speedrun attempt number forty.",
    "Sports": "What a finish last night.",
    "Photography": "Golden hour never disappoints.",
    "Business": "Notes from the founders meetup.",
    "Health": "Two weeks of 8 hours of sleep.",
    "Education": "Started a course on linear algebra.",
    "Entertainment": "Series finale reactions, no spoilers.",
    "Lifestyle": "Sunday reset routine.",
}

POSTS_PER_USER = 3
FOLLOW_PROB = 0.25
LIKE_PROB = 0.15
SHARE_PROB = 0.05
BASE_POST_ID = 1_700_000_000_000


def seed_demo_graph(db: Session, seed: int = 42) -> dict:
    """Populate users, posts and edges. Re-running adds nothing new."""
    rng = random.Random(seed)
    created = {"users": 0, "posts": 0, "follows": 0, "likes": 0, "shares": 0}

    usernames = []
    for username, name in DEMO_USERS:
        usernames.append(username)
        categories = rng.sample(CATEGORIES, k=rng.randint(2, 4))
        if db.get(User, username):
            continue
        db.add(User(
            username=username,
            name=name,
            bio=f"Into {', '.join(categories[:2]).lower()}.",
            avatar="",
            categories=categories,
        ))
        created["users"] += 1
    db.flush()

    post_ids = []
    next_id = BASE_POST_ID
    for username in usernames:
        user = db.get(User, username)
        for _ in range(POSTS_PER_USER):
            next_id += rng.randint(60_000, 3_600_000)
            post_id = str(next_id)
            post_ids.append(post_id)
            category = rng.choice(user.categories or CATEGORIES)
            if db.get(Post, post_id):
                continue
            db.add(Post(
                id=post_id,
                caption=CAPTION_SNIPPETS[category],
                image="",
                categories=[category],
                author_username=username,
            ))
            created["posts"] += 1
    db.flush()

    for follower in usernames:
        for followee in usernames:
            if follower == followee or rng.random() >= FOLLOW_PROB:
                continue
            if db.get(Follow, (follower, followee)):
                continue
            db.add(Follow(follower=follower, followee=followee))
            created["follows"] += 1

    for username in usernames:
        for post_id in post_ids:
            if rng.random() < LIKE_PROB and not db.get(Like, (username, post_id)):
                db.add(Like(username=username, post_id=post_id))
                created["likes"] += 1
            if rng.random() < SHARE_PROB and not db.get(Share, (username, post_id)):
                db.add(Share(username=username, post_id=post_id))
                created["shares"] += 1

    db.commit()
    return created
