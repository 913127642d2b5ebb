"""Tests for joining families and family scoped access."""

import asyncio
import pathlib
import sys

import pytest

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, select

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app.main import app
from app.database import get_session
from app.models import FamilyMemberLink, User
from app import crud
from app.auth import get_password_hash
from app.crud import reconcile_family_links
from app.family import can_access_family_resource, grants_family_access


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    return TestSession


async def _register(client, email, first_name, role="parent"):
    resp = await client.post(
        "/auth/register",
        json={
            "email": email,
            "password": "secret1",
            "firstName": first_name,
            "lastName": "Test",
            "role": role,
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    headers = {"Authorization": f"Bearer {body['token']}"}
    return body["user"], headers


def _user(email, password_hash="x", **fields):
    return User(
        email=email,
        password_hash=password_hash,
        first_name=email.split("@")[0].title(),
        last_name="Test",
        **fields,
    )


def test_grants_family_access():
    assert grants_family_access("F1", set(), "F1")
    assert grants_family_access("F2", {"F1"}, "F1")
    assert not grants_family_access("F2", {"F3"}, "F1")
    assert not grants_family_access(None, set(), None)
    assert not grants_family_access(None, {"F1"}, "")


def test_join_family_links_both_sides():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            owner, owner_headers = await _register(client, "a@example.com", "Alice")
            guardian, guardian_headers = await _register(
                client, "b@example.com", "Bob", role="guardian"
            )
            code = owner["familyCode"]

            resp = await client.post(
                "/auth/join-family",
                headers=guardian_headers,
                json={"familyCode": code.lower()},
            )
            assert resp.status_code == 200
            assert resp.json()["message"] == "Successfully joined family"

            resp = await client.get("/auth/profile", headers=owner_headers)
            members = resp.json()["user"]["familyMembers"]
            assert [m["id"] for m in members] == [guardian["id"]]
            assert members[0]["email"] == "b@example.com"

            resp = await client.get("/auth/profile", headers=guardian_headers)
            profile = resp.json()["user"]
            assert [m["id"] for m in profile["familyMembers"]] == [owner["id"]]
            # guardian without a family of their own adopts the joined one
            assert profile["familyCode"] == code

            # Joining twice is rejected
            resp = await client.post(
                "/auth/join-family", headers=guardian_headers, json={"familyCode": code}
            )
            assert resp.status_code == 400
            assert resp.json()["code"] == "family_already_member"

            # Owner cannot join their own family
            resp = await client.post(
                "/auth/join-family", headers=owner_headers, json={"familyCode": code}
            )
            assert resp.status_code == 400

            resp = await client.post(
                "/auth/join-family",
                headers=owner_headers,
                json={"familyCode": "ZZZZZZ" if code != "ZZZZZZ" else "YYYYYY"},
            )
            assert resp.status_code == 404
            assert resp.json()["code"] == "family_not_found"

        async with TestSession() as session:
            links = (await session.execute(select(FamilyMemberLink))).scalars().all()
            pairs = {(link.user_id, link.member_id) for link in links}
            assert pairs == {
                (owner["id"], guardian["id"]),
                (guardian["id"], owner["id"]),
            }

    asyncio.run(run())


def test_membership_is_not_transitive_and_access_is_code_based():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            alice, _ = await _register(client, "a@example.com", "Alice")
            carol, carol_headers = await _register(client, "c@example.com", "Carol")
            dave, dave_headers = await _register(
                client, "d@example.com", "Dave", role="guardian"
            )
            outsider, _ = await _register(client, "e@example.com", "Eve")
            # Carol's own family already has a member
            _, frank_headers = await _register(
                client, "f@example.com", "Frank", role="guardian"
            )
            resp = await client.post(
                "/auth/join-family",
                headers=frank_headers,
                json={"familyCode": carol["familyCode"]},
            )
            assert resp.status_code == 200

            for headers in (carol_headers, dave_headers):
                resp = await client.post(
                    "/auth/join-family",
                    headers=headers,
                    json={"familyCode": alice["familyCode"]},
                )
                assert resp.status_code == 200

            # Carol keeps her own family code
            resp = await client.get("/auth/profile", headers=carol_headers)
            assert resp.json()["user"]["familyCode"] == carol["familyCode"]

            # Dave is linked to Alice only, not to Carol
            resp = await client.get("/auth/profile", headers=dave_headers)
            member_ids = [m["id"] for m in resp.json()["user"]["familyMembers"]]
            assert member_ids == [alice["id"]]

        async with TestSession() as session:
            users = {
                u.id: u for u in (await session.execute(select(User))).scalars().all()
            }
            a, c, d = users[alice["id"]], users[carol["id"]], users[dave["id"]]
            e = users[outsider["id"]]
            # Carol reaches Alice's family through her link to Alice
            assert await can_access_family_resource(session, c, a.family_code)
            # the link is mutual, so Alice reaches Carol's code the same way
            assert await can_access_family_resource(session, a, c.family_code)
            # Dave holds Alice's code but has no link to Carol
            assert await can_access_family_resource(session, d, a.family_code)
            assert not await can_access_family_resource(session, d, c.family_code)
            assert not await can_access_family_resource(session, e, a.family_code)
            assert not await can_access_family_resource(session, a, None)

    asyncio.run(run())


def test_reconcile_repairs_one_sided_links():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            alice, _ = await _register(client, "a@example.com", "Alice")
            bob, bob_headers = await _register(
                client, "b@example.com", "Bob", role="guardian"
            )

        # Simulate a crash between the two writes of a join
        async with TestSession() as session:
            session.add(FamilyMemberLink(user_id=alice["id"], member_id=bob["id"]))
            await session.commit()

        async with TestSession() as session:
            assert await reconcile_family_links(session) == 1
            assert await reconcile_family_links(session) == 0
            links = (await session.execute(select(FamilyMemberLink))).scalars().all()
            assert {(l.user_id, l.member_id) for l in links} == {
                (alice["id"], bob["id"]),
                (bob["id"], alice["id"]),
            }

    asyncio.run(run())


def test_parent_without_active_family_adopts_joined_code():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            alice, _ = await _register(client, "a@example.com", "Alice")
            bob, bob_headers = await _register(client, "b@example.com", "Bob")
            assert bob["familyCode"] and bob["familyCode"] != alice["familyCode"]

            resp = await client.post(
                "/auth/join-family",
                headers=bob_headers,
                json={"familyCode": alice["familyCode"]},
            )
            assert resp.status_code == 200

            resp = await client.get("/auth/profile", headers=bob_headers)
            assert resp.json()["user"]["familyCode"] == alice["familyCode"]

            # Bob's unused code no longer names a family
            resp = await client.post(
                "/auth/join-family",
                headers=bob_headers,
                json={"familyCode": bob["familyCode"]},
            )
            assert resp.status_code == 404

        async with TestSession() as session:
            users = {
                u.id: u for u in (await session.execute(select(User))).scalars().all()
            }
            assert users[alice["id"]].owns_family
            assert not users[bob["id"]].owns_family

    asyncio.run(run())


def test_family_code_has_a_single_owner():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            owner = await crud.create_user(
                session, _user("a@example.com", get_password_hash("secret1"))
            )
            code = owner.family_code
            session.add(_user("b@example.com", family_code=code, owns_family=True))
            with pytest.raises(IntegrityError):
                await session.commit()
            await session.rollback()

            # Members holding an adopted code are not owners
            session.add(_user("c@example.com", family_code=code))
            await session.commit()
            assert (await crud.get_family_owner(session, code)).email == "a@example.com"

    asyncio.run(run())


def test_create_user_retries_when_generated_code_is_taken(monkeypatch):
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            first = await crud.create_user(session, _user("a@example.com"))
            codes = iter([first.family_code, "NEW123"])

            async def racing_generate(db):
                # the existence check passed before another insert took the code
                return next(codes)

            monkeypatch.setattr(crud, "generate_family_code", racing_generate)
            second = await crud.create_user(session, _user("b@example.com"))
            assert second.family_code == "NEW123"
            assert second.owns_family

            with pytest.raises(IntegrityError):
                await crud.create_user(
                    session, _user("b@example.com"), with_family=False
                )

    asyncio.run(run())
