"""FastAPI application for Social Explore."""
import logging
from contextlib import asynccontextmanager
from typing import Optional, Union

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from . import __version__, mutations
from .categories import CATEGORIES
from .config import settings
from .database import get_db, init_db
from .explore import ExplorePost, ExploreRanker
from .graph_store import FeedPost, GraphStore, GraphStoreUnavailable, UserSummary
from .mutations import InvalidInputError, NotFoundError
from .suggestions import Suggestion, SuggestionRanker


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Social Explore API",
    description="Follow suggestions and explore feed over a social graph",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error mapping
# =============================================================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(GraphStoreUnavailable)
async def store_unavailable_handler(request: Request, exc: GraphStoreUnavailable):
    logger.error(f"{request.method} {request.url.path} failed: store unavailable")
    return JSONResponse(status_code=503, content={"detail": "Graph store unavailable"})


@app.exception_handler(OperationalError)
async def write_failed_handler(request: Request, exc: OperationalError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Graph store unavailable"})


def get_store(db: Session = Depends(get_db)) -> GraphStore:
    """Dependency - per-request graph accessor."""
    return GraphStore(db)


# =============================================================================
# Schemas
# =============================================================================

class UserOut(BaseModel):
    """User listing entry."""
    username: str
    name: str
    bio: str = ""
    avatar: str = ""
    categories: list[str] = []


class UserSearchResult(BaseModel):
    username: str
    name: str
    avatar: str = ""


class UserProfileOut(UserOut):
    """User profile with graph counts."""
    followingCount: int
    followersCount: int
    postsCount: int


class UserPostOut(BaseModel):
    id: str
    caption: str
    image: str = ""
    categories: list[str] = []
    likes: int
    shares: int


class SuggestionOut(BaseModel):
    """Follow suggestion. The ranking score is not exposed."""
    username: str
    name: str
    avatar: str = ""
    categories: list[str] = []
    mutualFriends: int
    categoryMatch: int


class ExplorePostOut(BaseModel):
    """Explore feed entry."""
    id: str
    caption: str
    image: str = ""
    categories: list[str] = []
    author: str
    authorName: str
    authorAvatar: str = ""
    likes: int
    shares: int
    alreadyLiked: bool
    alreadyShared: bool
    isUserPost: bool = True


class PostActionRequest(BaseModel):
    """Like/unlike/share/unshare request."""
    username: str
    postId: Union[str, int]


class FollowRequest(BaseModel):
    follower: str
    following: str


class CreateUserRequest(BaseModel):
    username: str
    name: str
    bio: Optional[str] = ""
    avatar: Optional[str] = ""
    categories: list[str] = Field(default_factory=list)


class CreatePostRequest(BaseModel):
    """Owned post when ``username`` is set, orphaned post otherwise."""
    caption: str
    username: Optional[str] = None
    image: Optional[str] = ""
    id: Optional[Union[str, int]] = None
    author: Optional[str] = None
    categories: list[str] = Field(default_factory=list)


class SuccessResponse(BaseModel):
    success: bool = True


class ToggleResponse(SuccessResponse):
    active: bool


def _user_out(user: UserSummary) -> UserOut:
    return UserOut(
        username=user.username,
        name=user.name,
        bio=user.bio,
        avatar=user.avatar,
        categories=user.categories,
    )


def _suggestion_out(s: Suggestion) -> SuggestionOut:
    return SuggestionOut(
        username=s.username,
        name=s.name,
        avatar=s.avatar,
        categories=s.categories,
        mutualFriends=s.mutual_friends,
        categoryMatch=s.category_match,
    )


def _explore_out(p: ExplorePost) -> ExplorePostOut:
    return ExplorePostOut(
        id=p.id,
        caption=p.caption,
        image=p.image,
        categories=p.categories,
        author=p.author,
        authorName=p.author_name,
        authorAvatar=p.author_avatar,
        likes=p.likes,
        shares=p.shares,
        alreadyLiked=p.already_liked,
        alreadyShared=p.already_shared,
        isUserPost=p.is_user_post,
    )


def _user_post_out(p: FeedPost) -> UserPostOut:
    return UserPostOut(
        id=p.id,
        caption=p.caption,
        image=p.image,
        categories=p.categories,
        likes=p.likes,
        shares=p.shares,
    )


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/")
async def root():
    """Health check."""
    return {
        "service": "social-explore",
        "status": "healthy",
        "version": __version__
    }


@app.get("/api/categories", response_model=list[str])
async def list_categories():
    return CATEGORIES


@app.get("/api/users", response_model=list[UserOut])
async def list_users(store: GraphStore = Depends(get_store)):
    return [_user_out(u) for u in store.list_users()]


@app.get("/api/user/{username}", response_model=UserProfileOut)
async def get_user(username: str, store: GraphStore = Depends(get_store)):
    profile = store.get_profile(username)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return UserProfileOut(
        username=profile.username,
        name=profile.name,
        bio=profile.bio,
        avatar=profile.avatar,
        categories=profile.categories,
        followingCount=profile.following_count,
        followersCount=profile.followers_count,
        postsCount=profile.posts_count,
    )


@app.get("/api/user/{username}/posts", response_model=list[UserPostOut])
async def get_user_posts(username: str, store: GraphStore = Depends(get_store)):
    return [_user_post_out(p) for p in store.get_user_posts(username)]


@app.get("/api/search/users", response_model=list[UserSearchResult])
async def search_users(q: str = "", store: GraphStore = Depends(get_store)):
    return [
        UserSearchResult(username=u.username, name=u.name, avatar=u.avatar)
        for u in store.search_users(q)
    ]


@app.get("/api/suggestions/{username}", response_model=list[SuggestionOut])
async def get_suggestions(username: str, store: GraphStore = Depends(get_store)):
    """People to follow, ranked from friends-of-friends."""
    ranker = SuggestionRanker(store)
    return [_suggestion_out(s) for s in ranker.rank(username)]


@app.get("/api/explore/{username}", response_model=list[ExplorePostOut])
async def get_explore(username: str, store: GraphStore = Depends(get_store)):
    """Ranked, de-duplicated explore feed."""
    ranker = ExploreRanker(store)
    return [_explore_out(p) for p in ranker.rank(username)]


@app.get("/api/stats")
async def get_stats(store: GraphStore = Depends(get_store)):
    """Get overall statistics."""
    return store.stats()


# =============================================================================
# User actions
# =============================================================================

@app.post("/api/like", response_model=SuccessResponse)
async def like_post(request: PostActionRequest, db: Session = Depends(get_db)):
    mutations.like(db, request.username, str(request.postId))
    return SuccessResponse()


@app.post("/api/unlike", response_model=SuccessResponse)
async def unlike_post(request: PostActionRequest, db: Session = Depends(get_db)):
    mutations.unlike(db, request.username, str(request.postId))
    return SuccessResponse()


@app.post("/api/like/toggle", response_model=ToggleResponse)
async def toggle_like(request: PostActionRequest, db: Session = Depends(get_db)):
    liked = mutations.toggle_like(db, request.username, str(request.postId))
    return ToggleResponse(active=liked)


@app.post("/api/share", response_model=SuccessResponse)
async def share_post(request: PostActionRequest, db: Session = Depends(get_db)):
    mutations.share(db, request.username, str(request.postId))
    return SuccessResponse()


@app.post("/api/unshare", response_model=SuccessResponse)
async def unshare_post(request: PostActionRequest, db: Session = Depends(get_db)):
    mutations.unshare(db, request.username, str(request.postId))
    return SuccessResponse()


@app.post("/api/share/toggle", response_model=ToggleResponse)
async def toggle_share(request: PostActionRequest, db: Session = Depends(get_db)):
    shared = mutations.toggle_share(db, request.username, str(request.postId))
    return ToggleResponse(active=shared)


@app.post("/api/follow", response_model=SuccessResponse)
async def follow_user(request: FollowRequest, db: Session = Depends(get_db)):
    mutations.follow(db, request.follower, request.following)
    return SuccessResponse()


@app.post("/api/unfollow", response_model=SuccessResponse)
async def unfollow_user(request: FollowRequest, db: Session = Depends(get_db)):
    mutations.unfollow(db, request.follower, request.following)
    return SuccessResponse()


@app.get("/api/isfollowing/{follower}/{following}")
async def is_following(follower: str, following: str, store: GraphStore = Depends(get_store)):
    return {"isFollowing": store.is_following(follower, following)}


# =============================================================================
# Admin
# =============================================================================

@app.get("/api/admin/posts")
async def admin_list_posts(store: GraphStore = Depends(get_store)):
    """All posts, including orphaned ones (``exploreAuthor`` set)."""
    return store.list_posts()


@app.get("/api/admin/follows")
async def admin_list_follows(store: GraphStore = Depends(get_store)):
    return store.list_follows()


@app.get("/api/admin/likes")
async def admin_list_likes(store: GraphStore = Depends(get_store)):
    return store.list_likes()


@app.post("/api/admin/user", response_model=SuccessResponse)
async def admin_create_user(request: CreateUserRequest, db: Session = Depends(get_db)):
    mutations.create_user(
        db,
        username=request.username,
        name=request.name,
        bio=request.bio or "",
        avatar=request.avatar or "",
        categories=request.categories,
    )
    return SuccessResponse()


@app.post("/api/admin/post")
async def admin_create_post(request: CreatePostRequest, db: Session = Depends(get_db)):
    post = mutations.create_post(
        db,
        caption=request.caption,
        username=request.username,
        image=request.image or "",
        categories=request.categories,
        post_id=str(request.id) if request.id is not None else None,
        author=request.author,
    )
    return {"success": True, "id": post.id}


@app.post("/api/admin/follow", response_model=SuccessResponse)
async def admin_follow(request: FollowRequest, db: Session = Depends(get_db)):
    mutations.follow(db, request.follower, request.following)
    return SuccessResponse()


@app.post("/api/admin/like", response_model=SuccessResponse)
async def admin_like(request: PostActionRequest, db: Session = Depends(get_db)):
    mutations.like(db, request.username, str(request.postId))
    return SuccessResponse()


@app.delete("/api/admin/user/{username}", response_model=SuccessResponse)
async def admin_delete_user(username: str, db: Session = Depends(get_db)):
    mutations.delete_user(db, username)
    return SuccessResponse()


@app.delete("/api/admin/post/{post_id}", response_model=SuccessResponse)
async def admin_delete_post(post_id: str, db: Session = Depends(get_db)):
    mutations.delete_post(db, post_id)
    return SuccessResponse()
