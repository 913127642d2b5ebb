import logging
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from app.config import get_config

config = get_config()
DATABASE_URL = config.database_url  # swap with Postgres URL if needed

# Route SQL echo through logging when enabled
SQL_ECHO = config.sql_echo
if SQL_ECHO:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # bounded wait on a locked database instead of hanging the request
    connect_args["timeout"] = config.database_timeout_seconds

engine = create_async_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)

async_session = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables() -> None:
    from .models import (
        User,
        FamilyMemberLink,
        Dependent,
        Post,
        PostLike,
        PostComment,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
