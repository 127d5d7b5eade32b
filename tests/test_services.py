"""
Direct service-layer tests: exercises the repositories without HTTP.

These tests call service functions directly with a database session, giving
accurate coverage of the SQLAlchemy query paths and of the mapping from
database constraint violations to domain errors.  Writes that are expected
to fail roll the session back, so tests commit whatever they seeded first.
"""
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import (
    ArticleNotFound,
    CurrentUserNotFound,
    DuplicateSlug,
    EmailTaken,
    Forbidden,
    InternalError,
    ProfileNotFound,
    UsernameTaken,
)
from conduit.models import ArticleFavorite, Comment, Follow
from conduit.services import article_service, comment_service, user_service
from conduit.services.article_service import ArticleFilter, ArticleUpdate, slugify
from conduit.services.user_service import UserUpdate
from conduit.services.util import single, single_or_none


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _user(db: AsyncSession, username: str) -> uuid.UUID:
    user, _ = await user_service.insert_user(
        db, username, f"{username}@example.com", "$argon2id$placeholder"
    )
    return user.user_id


async def _article(db: AsyncSession, author_id: uuid.UUID, title: str, tags=()):
    return await article_service.insert_article(
        db, author_id, slugify(title), title, f"About {title}", f"Body of {title}", list(tags)
    )


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _slugs(db: AsyncSession, current_user_id=None, **filters) -> list[str]:
    records = await article_service.select_articles(db, current_user_id, ArticleFilter(**filters))
    return [r.slug for r in records]


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "title, slug",
    [
        ("How to train your dragon", "how-to-train-your-dragon"),
        ("Eye's on you!", "eye-s-on-you"),
        ("  multiple   spaces ", "multiple-spaces"),
        ("", ""),
        ("Hello, World", "hello-world"),
        ("snake_case_title", "snake-case-title"),
    ],
)
def test_slugify(title, slug):
    assert slugify(title) == slug


# ---------------------------------------------------------------------------
# single / single_or_none
# ---------------------------------------------------------------------------

def test_single():
    assert single([1], ArticleNotFound()) == 1
    with pytest.raises(ArticleNotFound):
        single([], ArticleNotFound())
    with pytest.raises(InternalError):
        single([1, 2], ArticleNotFound())


def test_single_or_none():
    assert single_or_none([]) is None
    assert single_or_none(["a"]) == "a"
    with pytest.raises(InternalError):
        single_or_none(["a", "b"])


# ---------------------------------------------------------------------------
# user_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_insert_user(db_session: AsyncSession):
    user, credentials = await user_service.insert_user(
        db_session, "jake", "jake@jake.jake", "$argon2id$hash"
    )
    assert user.username == "jake"
    assert user.bio == ""
    assert user.image is None
    assert credentials.email == "jake@jake.jake"
    assert credentials.password_hash == "$argon2id$hash"


@pytest.mark.asyncio
async def test_insert_user_duplicate_username(db_session: AsyncSession):
    await user_service.insert_user(db_session, "jake", "jake@a.com", "h")
    await db_session.commit()
    with pytest.raises(UsernameTaken):
        await user_service.insert_user(db_session, "jake", "other@b.com", "h")


@pytest.mark.asyncio
async def test_insert_user_duplicate_email(db_session: AsyncSession):
    await user_service.insert_user(db_session, "jake", "jake@a.com", "h")
    await db_session.commit()
    with pytest.raises(EmailTaken):
        await user_service.insert_user(db_session, "jacob", "jake@a.com", "h")


@pytest.mark.asyncio
async def test_find_user_by_id_and_email(db_session: AsyncSession):
    user_id = await _user(db_session, "jake")

    user, credentials = await user_service.find_user_by_id(db_session, user_id)
    assert user.username == "jake"
    assert credentials.email == "jake@example.com"

    user, _ = await user_service.find_user_by_email(db_session, "jake@example.com")
    assert user.user_id == user_id

    assert await user_service.find_user_by_id(db_session, uuid.uuid4()) is None
    assert await user_service.find_user_by_email(db_session, "nobody@example.com") is None


@pytest.mark.asyncio
async def test_find_user_by_username_following_flag(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _user(db_session, "celeb")

    profile, following = await user_service.find_user_by_username(db_session, None, "celeb")
    assert profile.username == "celeb"
    assert following is False

    await user_service.insert_follow(db_session, jake, "celeb")
    _, following = await user_service.find_user_by_username(db_session, jake, "celeb")
    assert following is True

    assert await user_service.find_user_by_username(db_session, jake, "ghost") is None


@pytest.mark.asyncio
async def test_update_user_keeps_omitted_fields(db_session: AsyncSession):
    user_id = await _user(db_session, "jake")
    user, credentials = await user_service.update_user(
        db_session, user_id, UserUpdate(bio="I work at statefarm")
    )
    assert user.bio == "I work at statefarm"
    assert user.username == "jake"
    assert user.image is None
    assert credentials.email == "jake@example.com"

    user, credentials = await user_service.update_user(
        db_session, user_id, UserUpdate(image="https://i.example/jake.png", password_hash="new")
    )
    assert user.bio == "I work at statefarm"
    assert user.image == "https://i.example/jake.png"
    assert credentials.password_hash == "new"


@pytest.mark.asyncio
async def test_update_user_unknown(db_session: AsyncSession):
    with pytest.raises(CurrentUserNotFound):
        await user_service.update_user(db_session, uuid.uuid4(), UserUpdate(bio="x"))


@pytest.mark.asyncio
async def test_update_user_to_taken_username(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _user(db_session, "jacob")
    await db_session.commit()
    with pytest.raises(UsernameTaken):
        await user_service.update_user(db_session, jake, UserUpdate(username="jacob"))


@pytest.mark.asyncio
async def test_follow_is_idempotent(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _user(db_session, "celeb")

    await user_service.insert_follow(db_session, jake, "celeb")
    await user_service.insert_follow(db_session, jake, "celeb")
    assert await _count(db_session, Follow) == 1

    await user_service.delete_follow(db_session, jake, "celeb")
    await user_service.delete_follow(db_session, jake, "celeb")
    assert await _count(db_session, Follow) == 0


@pytest.mark.asyncio
async def test_self_follow_forbidden(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    with pytest.raises(Forbidden):
        await user_service.insert_follow(db_session, jake, "jake")


@pytest.mark.asyncio
async def test_follow_unknown_user(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    with pytest.raises(ProfileNotFound):
        await user_service.insert_follow(db_session, jake, "ghost")
    with pytest.raises(ProfileNotFound):
        await user_service.delete_follow(db_session, jake, "ghost")


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_insert_article(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    record = await _article(db_session, jake, "How to train your dragon", ["dragons", "training"])

    assert record.slug == "how-to-train-your-dragon"
    assert record.title == "How to train your dragon"
    assert record.tag_list == ["dragons", "training"]
    assert record.favorited is False
    assert record.favorites_count == 0
    assert record.author_username == "jake"
    assert record.following_author is False
    assert record.created_at is not None


@pytest.mark.asyncio
async def test_insert_article_duplicate_slug(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "Same Title")
    await db_session.commit()
    with pytest.raises(DuplicateSlug) as excinfo:
        await _article(db_session, jake, "Same  title!")
    assert excinfo.value.slug == "same-title"


@pytest.mark.asyncio
async def test_tags_shared_between_articles(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "One", ["python", "sql"])
    await _article(db_session, jake, "Two", ["python", "python"])

    assert await article_service.list_tags(db_session) == ["python", "sql"]
    two = (await article_service.select_articles(db_session, None, ArticleFilter(slug="two")))[0]
    assert two.tag_list == ["python"]


@pytest.mark.asyncio
async def test_select_articles_newest_first_with_paging(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    for title in ("first", "second", "third"):
        await _article(db_session, jake, title)

    assert await _slugs(db_session) == ["third", "second", "first"]
    assert await _slugs(db_session, limit=2) == ["third", "second"]
    assert await _slugs(db_session, limit=2, offset=2) == ["first"]
    assert await _slugs(db_session, offset=5) == []


@pytest.mark.asyncio
async def test_select_articles_filters(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    anna = await _user(db_session, "anna")
    await _article(db_session, jake, "jake python", ["python"])
    await _article(db_session, jake, "jake rust", ["rust"])
    await _article(db_session, anna, "anna python", ["python"])
    await article_service.insert_favorite(db_session, anna, "jake-rust")
    await article_service.insert_favorite(db_session, anna, "anna-python")

    assert await _slugs(db_session, tag="python") == ["anna-python", "jake-python"]
    assert await _slugs(db_session, author="jake") == ["jake-rust", "jake-python"]
    assert await _slugs(db_session, favorited_by="anna") == ["anna-python", "jake-rust"]
    assert await _slugs(db_session, slug="jake-rust") == ["jake-rust"]
    assert await _slugs(db_session, tag="python", author="anna") == ["anna-python"]
    assert await _slugs(db_session, tag="rust", favorited_by="anna") == ["jake-rust"]
    assert await _slugs(db_session, tag="rust", author="anna") == []
    assert await _slugs(db_session, tag="unknown") == []
    assert await _slugs(db_session, author="ghost") == []


@pytest.mark.asyncio
async def test_select_articles_followed_by(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    anna = await _user(db_session, "anna")
    bob = await _user(db_session, "bob")
    await _article(db_session, anna, "anna writes")
    await _article(db_session, bob, "bob writes")

    assert await _slugs(db_session, followed_by=jake) == []

    await user_service.insert_follow(db_session, jake, "anna")
    assert await _slugs(db_session, followed_by=jake) == ["anna-writes"]

    # Conjunction with another filter, no special interaction.
    await article_service.insert_favorite(db_session, jake, "bob-writes")
    assert await _slugs(db_session, followed_by=jake, favorited_by="jake") == []


@pytest.mark.asyncio
async def test_viewer_flags(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    anna = await _user(db_session, "anna")
    await _article(db_session, anna, "flags")
    await user_service.insert_follow(db_session, jake, "anna")
    await article_service.insert_favorite(db_session, jake, "flags")

    seen_by_jake = (await article_service.select_articles(db_session, jake, ArticleFilter()))[0]
    assert seen_by_jake.favorited is True
    assert seen_by_jake.following_author is True
    assert seen_by_jake.favorites_count == 1

    anonymous = (await article_service.select_articles(db_session, None, ArticleFilter()))[0]
    assert anonymous.favorited is False
    assert anonymous.following_author is False
    assert anonymous.favorites_count == 1


@pytest.mark.asyncio
async def test_favorite_is_idempotent(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "fav me")

    await article_service.insert_favorite(db_session, jake, "fav-me")
    await article_service.insert_favorite(db_session, jake, "fav-me")
    assert await _count(db_session, ArticleFavorite) == 1

    await article_service.delete_favorite(db_session, jake, "fav-me")
    await article_service.delete_favorite(db_session, jake, "fav-me")
    assert await _count(db_session, ArticleFavorite) == 0


@pytest.mark.asyncio
async def test_favorite_unknown_article(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    with pytest.raises(ArticleNotFound):
        await article_service.insert_favorite(db_session, jake, "missing")
    with pytest.raises(ArticleNotFound):
        await article_service.delete_favorite(db_session, jake, "missing")


@pytest.mark.asyncio
async def test_update_article_keeps_omitted_fields(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    before = await _article(db_session, jake, "Original", ["keep"])

    await article_service.update_article(
        db_session, jake, "original", ArticleUpdate(body="New body")
    )
    after = (await article_service.select_articles(db_session, jake, ArticleFilter(slug="original")))[0]
    assert after.body == "New body"
    assert after.title == "Original"
    assert after.description == before.description
    assert after.tag_list == ["keep"]


@pytest.mark.asyncio
async def test_update_article_moves_slug(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "Old title")

    await article_service.update_article(
        db_session, jake, "old-title", ArticleUpdate(slug="new-title", title="New title")
    )
    assert await _slugs(db_session) == ["new-title"]


@pytest.mark.asyncio
async def test_update_article_by_other_user_forbidden(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    anna = await _user(db_session, "anna")
    await _article(db_session, jake, "Mine")

    with pytest.raises(Forbidden):
        await article_service.update_article(db_session, anna, "mine", ArticleUpdate(body="x"))
    with pytest.raises(Forbidden):
        await article_service.delete_article(db_session, anna, "mine")
    assert await _slugs(db_session) == ["mine"]


@pytest.mark.asyncio
async def test_update_article_to_taken_slug(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "First")
    await _article(db_session, jake, "Second")
    await db_session.commit()

    with pytest.raises(DuplicateSlug):
        await article_service.update_article(
            db_session, jake, "second", ArticleUpdate(slug="first", title="First")
        )


@pytest.mark.asyncio
async def test_update_or_delete_missing_article(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    with pytest.raises(ArticleNotFound):
        await article_service.update_article(db_session, jake, "missing", ArticleUpdate(body="x"))
    with pytest.raises(ArticleNotFound):
        await article_service.delete_article(db_session, jake, "missing")


@pytest.mark.asyncio
async def test_delete_article_cascades(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "Doomed", ["gone"])
    await article_service.insert_favorite(db_session, jake, "doomed")
    await comment_service.insert_comment(db_session, jake, "doomed", "first!")
    await db_session.commit()

    await article_service.delete_article(db_session, jake, "doomed")
    await db_session.commit()

    assert await _slugs(db_session, slug="doomed") == []
    assert await _count(db_session, ArticleFavorite) == 0
    assert await _count(db_session, Comment) == 0
    # Tags outlive the articles that used them.
    assert await article_service.list_tags(db_session) == ["gone"]


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comments_listed_oldest_first(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    anna = await _user(db_session, "anna")
    await _article(db_session, jake, "Talk")
    article_id = await article_service.fetch_article_id(db_session, "talk")

    first = await comment_service.insert_comment(db_session, jake, "talk", "first")
    second = await comment_service.insert_comment(db_session, anna, "talk", "second")
    assert first.author_username == "jake"
    assert first.following_author is False

    await user_service.insert_follow(db_session, jake, "anna")
    records = await comment_service.list_comments(db_session, jake, article_id)
    assert [r.comment_id for r in records] == [first.comment_id, second.comment_id]
    assert [r.following_author for r in records] == [False, True]


@pytest.mark.asyncio
async def test_comment_on_missing_article(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    with pytest.raises(ArticleNotFound):
        await comment_service.insert_comment(db_session, jake, "missing", "hello")


@pytest.mark.asyncio
async def test_delete_comment(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    anna = await _user(db_session, "anna")
    await _article(db_session, jake, "Talk")
    await _article(db_session, jake, "Other")
    comment = await comment_service.insert_comment(db_session, anna, "talk", "hi")

    with pytest.raises(Forbidden):
        await comment_service.delete_comment(db_session, jake, "talk", comment.comment_id)
    # Right id, wrong article.
    with pytest.raises(ArticleNotFound):
        await comment_service.delete_comment(db_session, anna, "other", comment.comment_id)
    with pytest.raises(ArticleNotFound):
        await comment_service.delete_comment(db_session, anna, "talk", comment.comment_id + 100)

    await comment_service.delete_comment(db_session, anna, "talk", comment.comment_id)
    assert await _count(db_session, Comment) == 0


@pytest.mark.asyncio
async def test_comment_by_vanished_user(db_session: AsyncSession):
    jake = await _user(db_session, "jake")
    await _article(db_session, jake, "Talk")
    with pytest.raises(CurrentUserNotFound):
        await comment_service.insert_comment(db_session, uuid.uuid4(), "talk", "who am I?")
