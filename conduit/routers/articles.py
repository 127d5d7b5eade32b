from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.auth import AuthToken
from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_auth, get_authorization
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleResponse,
    ArticleUpdateRequest,
    CommentCreateRequest,
    CommentResponse,
    MultipleArticlesResponse,
    MultipleCommentsResponse,
    TagsResponse,
)
from conduit.usecases import articles, comments

router = APIRouter(prefix="/api", tags=["articles"])

@router.get("/articles", response_model=MultipleArticlesResponse)
async def list_articles(
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    items = await articles.list_articles(
        db, auth, authorization, tag, author, favorited, pagination.limit, pagination.offset
    )
    return MultipleArticlesResponse(articles=items, articles_count=len(items))

@router.get("/articles/feed", response_model=MultipleArticlesResponse)
async def feed_articles(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    items = await articles.feed_articles(
        db, auth, authorization, pagination.limit, pagination.offset
    )
    return MultipleArticlesResponse(articles=items, articles_count=len(items))

@router.get("/articles/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ArticleResponse(article=await articles.fetch_article(db, auth, authorization, slug))

@router.post("/articles", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreateRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ArticleResponse(
        article=await articles.create_article(db, auth, authorization, data.article)
    )

@router.put("/articles/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: ArticleUpdateRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ArticleResponse(
        article=await articles.update_article(db, auth, authorization, slug, data.article)
    )

@router.delete("/articles/{slug}", status_code=204)
async def delete_article(
    slug: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    await articles.delete_article(db, auth, authorization, slug)

@router.post("/articles/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ArticleResponse(article=await articles.favorite_article(db, auth, authorization, slug))

@router.delete("/articles/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ArticleResponse(
        article=await articles.unfavorite_article(db, auth, authorization, slug)
    )

@router.get("/articles/{slug}/comments", response_model=MultipleCommentsResponse)
async def list_comments(
    slug: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return MultipleCommentsResponse(
        comments=await comments.list_comments(db, auth, authorization, slug)
    )

@router.post("/articles/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    data: CommentCreateRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return CommentResponse(
        comment=await comments.add_comment(db, auth, authorization, slug, data.comment)
    )

@router.delete("/articles/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    await comments.delete_comment(db, auth, authorization, slug, comment_id)

@router.get("/tags", response_model=TagsResponse)
async def list_tags(db: AsyncSession = Depends(get_db)):
    return TagsResponse(tags=await articles.list_tags(db))
