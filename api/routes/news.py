"""
api/routes/news.py -- Front-page news posts and likes.

Routes (registration order matters: fixed paths before /{post_id}):
  GET  /news/              -- all posts, newest first
  GET  /news/getLikes      -- like counters for every post
  POST /news/upLike/{id}   -- add one like (requires auth)
  POST /news/create        -- publish a post (requires auth)
  GET  /news/{post_id}     -- single post
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import Envelope, LikeRow, PostCreate, PostResponse
from auth.dependencies import get_current_account
from auth.models import Account
from forum.models import Post
from forum.store import ForumStore

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Post not found."},
    )


@router.get("/", response_model=Envelope)
def list_posts(request: Request) -> Envelope:
    forum: ForumStore = request.app.state.forum
    return Envelope(data=[PostResponse.from_post(p).model_dump() for p in forum.list_posts()])


@router.get("/getLikes", response_model=Envelope)
def get_likes(request: Request) -> Envelope:
    forum: ForumStore = request.app.state.forum
    rows = [LikeRow(id=p.id, likes_count=p.likes_count, author_aid=p.author_aid) for p in forum.list_posts()]
    return Envelope(data=[r.model_dump() for r in rows])


@router.post("/upLike/{post_id}", response_model=Envelope)
def up_like(request: Request, post_id: int, account: Account = Depends(get_current_account)) -> Envelope:
    forum: ForumStore = request.app.state.forum
    post = forum.like(post_id)
    if post is None:
        raise _not_found()
    return Envelope(data=LikeRow(id=post.id, likes_count=post.likes_count, author_aid=post.author_aid).model_dump())


@router.post("/create", response_model=Envelope)
def create_post(request: Request, body: PostCreate, account: Account = Depends(get_current_account)) -> Envelope:
    """Publish a post authored by the signed-in account."""
    forum: ForumStore = request.app.state.forum
    post_id = forum.create_post(
        Post(
            author_aid=account.id,
            author_guid=body.author_guid,
            post_topic=body.post_topic,
            post_text=body.post_text,
        )
    )
    return Envelope(data=PostResponse.from_post(forum.get_post(post_id)).model_dump(), message="Post created.")


@router.get("/{post_id}", response_model=Envelope)
def get_post(request: Request, post_id: int) -> Envelope:
    forum: ForumStore = request.app.state.forum
    post = forum.get_post(post_id)
    if post is None:
        raise _not_found()
    return Envelope(data=PostResponse.from_post(post).model_dump())
