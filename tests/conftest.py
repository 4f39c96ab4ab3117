import os

# Настройки читаются при импорте petsync.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["OPENAI_API_KEY"] = ""
os.environ["ALIEXPRESS_APP_KEY"] = ""
os.environ["ALIEXPRESS_SECRET"] = ""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from petsync.database import init_db
from petsync.models import Category


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'petsync.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def categories(session_factory):
    """slug -> id"""
    async with session_factory() as session:
        rows = [Category(name=slug.title(), slug=slug) for slug in ("dogs", "cats", "birds", "fish")]
        session.add_all(rows)
        await session.commit()
        return {row.slug: row.id for row in rows}


async def add_all(session_factory, *objects):
    async with session_factory() as session:
        session.add_all(objects)
        await session.commit()
    return objects


def http_response(status_code=200, text="", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.reason = reason
    return response


def mock_session(responses):
    """responses: url -> response (или исключение)"""
    session = MagicMock()

    async def get(url, **kwargs):
        result = responses[url]
        if isinstance(result, Exception):
            raise result
        return result

    session.get = AsyncMock(side_effect=get)
    session.close = AsyncMock()
    return session
