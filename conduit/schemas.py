from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase (``tagList``, ``favoritesCount``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- User ---

class NewUser(BaseModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginUser(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserUpdate(BaseModel):
    email: str | None = None
    username: str | None = None
    password: str | None = None
    bio: str | None = None
    image: str | None = None


class SignedUser(BaseModel):
    email: str
    token: str
    username: str
    bio: str
    image: str | None = None


class NewUserRequest(BaseModel):
    user: NewUser


class LoginRequest(BaseModel):
    user: LoginUser


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserResponse(BaseModel):
    user: SignedUser


# --- Profile ---

class Profile(BaseModel):
    username: str
    bio: str
    image: str | None = None
    following: bool


class ProfileResponse(BaseModel):
    profile: Profile


# --- Article ---

class ArticleCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str
    body: str
    tag_list: list[str] = []


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1)
    description: str | None = None
    body: str | None = None


class Article(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str]
    created_at: datetime
    updated_at: datetime
    favorited: bool
    favorites_count: int
    author: Profile


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class ArticleResponse(BaseModel):
    article: Article


class MultipleArticlesResponse(CamelModel):
    articles: list[Article]
    articles_count: int


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class Comment(CamelModel):
    id: int
    created_at: datetime
    updated_at: datetime
    body: str
    author: Profile


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


class CommentResponse(BaseModel):
    comment: Comment


class MultipleCommentsResponse(BaseModel):
    comments: list[Comment]


# --- Tags ---

class TagsResponse(BaseModel):
    tags: list[str]
