"""Service level tests for the create/delete compensation rules."""

import asyncio
import io
import pathlib
import sys

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select
from starlette.datastructures import Headers, UploadFile

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app import crud, post_lifecycle
from app.auth import get_password_hash
from app.errors import AccessDenied, NoFamily, UpstreamFailure, ValidationError
from app.models import Dependent, Post, PostLike, User
from app.tests.fakes import FakeMediaStore


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _user(session, email, with_family=True):
    return await crud.create_user(
        session,
        User(
            email=email,
            password_hash=get_password_hash("secret1"),
            first_name=email.split("@")[0].title(),
            last_name="Test",
            role="parent" if with_family else "guardian",
        ),
        with_family=with_family,
    )


def _upload(name="photo.jpg", content_type="image/jpeg", data=b"bytes"):
    return UploadFile(
        file=io.BytesIO(data),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


async def _post_count(session):
    result = await session.execute(select(Post))
    return len(result.scalars().all())


@pytest.mark.parametrize("failing", [1, 2, 3, 4])
def test_upload_failure_discards_earlier_uploads(failing):
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore(fail_on_upload=failing)
        files = [_upload(f"{i}.jpg") for i in range(4)]
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            with pytest.raises(UpstreamFailure):
                await post_lifecycle.create_post(session, store, author, files)
            assert len(store.uploaded) == failing - 1
            assert store.deleted == store.uploaded
            assert store.objects == {}
            assert await _post_count(session) == 0
        assert all(f.file.closed for f in files)

    asyncio.run(run())


def test_persistence_failure_discards_all_uploads(monkeypatch):
    async def failing_create_post(db, post):
        raise RuntimeError("database is locked")

    async def run():
        Session = await _session_factory()
        store = FakeMediaStore()
        files = [_upload("a.jpg"), _upload("b.mp4", "video/mp4")]
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            monkeypatch.setattr(crud, "create_post", failing_create_post)
            with pytest.raises(RuntimeError):
                await post_lifecycle.create_post(session, store, author, files)
            monkeypatch.undo()
            assert len(store.uploaded) == 2
            assert sorted(store.deleted) == sorted(store.uploaded)
            assert store.objects == {}
            assert await _post_count(session) == 0
        assert all(f.file.closed for f in files)

    asyncio.run(run())


def test_failed_cleanup_does_not_mask_upload_error():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore(
            fail_on_upload=3, fail_on_delete={"family-photos/images/1-a.jpg"}
        )
        files = [_upload("a.jpg"), _upload("b.jpg"), _upload("c.jpg")]
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            with pytest.raises(UpstreamFailure):
                await post_lifecycle.create_post(session, store, author, files)
        assert store.deleted == ["family-photos/images/2-b.jpg"]

    asyncio.run(run())


def test_validation_runs_before_any_upload():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore()
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            guardian = await _user(session, "carol@example.com", with_family=False)

            files = [_upload("a.jpg")]
            with pytest.raises(NoFamily):
                await post_lifecycle.create_post(session, store, guardian, files)
            assert files[0].file.closed

            files = [_upload("a.jpg"), _upload("b.exe", "application/octet-stream")]
            with pytest.raises(ValidationError):
                await post_lifecycle.create_post(session, store, author, files)
            assert all(f.file.closed for f in files)

            files = [_upload("big.jpg", data=b"x" * 11)]
            with pytest.raises(ValidationError):
                await post_lifecycle.create_post(
                    session, store, author, files, max_upload_bytes=10
                )
        assert store.calls == 0

    asyncio.run(run())


def test_successful_create_closes_files_and_snapshots_family_code():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore()
        files = [_upload("a.jpg"), _upload("b.mov", "video/quicktime")]
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            post = await post_lifecycle.create_post(
                session, store, author, files, caption="  hi  "
            )
            assert post.caption == "hi"
            assert post.family_code == author.family_code
            assert [m["type"] for m in post.media] == ["image", "video"]
            assert post.author.id == author.id
            assert post.likes == [] and post.comments == []
        assert all(f.file.closed for f in files)
        assert store.deleted == []

    asyncio.run(run())


def test_delete_continues_when_one_object_fails():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore(fail_on_delete={"family-photos/images/2-b.jpg"})
        files = [_upload("a.jpg"), _upload("b.jpg"), _upload("c.jpg")]
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            post = await post_lifecycle.create_post(session, store, author, files)
            await post_lifecycle.delete_post(session, store, author, post.id)
            assert store.deleted == [
                "family-photos/images/1-a.jpg",
                "family-photos/images/3-c.jpg",
            ]
            assert await _post_count(session) == 0

    asyncio.run(run())


def test_only_author_can_delete():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore()
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            other = await _user(session, "bob@example.com")
            post = await post_lifecycle.create_post(
                session, store, author, [_upload("a.jpg")]
            )
            with pytest.raises(AccessDenied):
                await post_lifecycle.delete_post(session, store, other, post.id)
            assert store.deleted == []
            assert await _post_count(session) == 1

    asyncio.run(run())


def test_like_toggle_and_comment_limits():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore()
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            post = await post_lifecycle.create_post(
                session, store, author, [_upload("a.jpg")]
            )
            result = await post_lifecycle.like_post(session, author, post.id)
            assert result.liked and result.like_count == 1
            result = await post_lifecycle.like_post(session, author, post.id)
            assert not result.liked and result.like_count == 0

            comment = await post_lifecycle.add_comment(
                session, author, post.id, "a" * 500
            )
            assert comment.user.id == author.id
            with pytest.raises(ValidationError):
                await post_lifecycle.add_comment(session, author, post.id, "a" * 501)
            with pytest.raises(ValidationError):
                await post_lifecycle.add_comment(session, author, post.id, None)

    asyncio.run(run())


def test_duplicate_like_insert_returns_existing_like():
    async def run():
        Session = await _session_factory()
        store = FakeMediaStore()
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            author_id = author.id
            post = await post_lifecycle.create_post(
                session, store, author, [_upload("a.jpg")]
            )
            post_id = post.id
            first_id = (await crud.add_like(session, post_id, author_id)).id
            # a concurrent request that also saw no like inserts again
            second = await crud.add_like(session, post_id, author_id)
            assert second.id == first_id
            likes = (await session.execute(select(PostLike))).scalars().all()
            assert len(likes) == 1

            await session.refresh(author)
            result = await post_lifecycle.like_post(session, author, post_id)
            assert not result.liked and result.like_count == 0

    asyncio.run(run())


def test_parse_tags_resolves_names_from_visible_dependents():
    async def run():
        Session = await _session_factory()
        async with Session() as session:
            author = await _user(session, "alice@example.com")
            child = await crud.save_dependent(
                session, Dependent(user_id=author.id, name="Milo")
            )
            tags = await post_lifecycle.parse_tags(
                session, author, [child.id, {"id": "x", "name": "Rex"}]
            )
            assert tags == [
                {"id": child.id, "name": "Milo"},
                {"id": "x", "name": "Rex"},
            ]
            assert await post_lifecycle.parse_tags(session, author, "") == []
            with pytest.raises(ValidationError):
                await post_lifecycle.parse_tags(session, author, '{"id": 1}')
            with pytest.raises(ValidationError):
                await post_lifecycle.parse_tags(session, author, ["unknown"])

    asyncio.run(run())
