import os
from datetime import datetime, timedelta, timezone

# Settings are read at import time; provide the required values first
os.environ.setdefault("DB_USER", "cabinet")
os.environ.setdefault("DB_PASSWORD", "cabinet")
os.environ.setdefault("DB_NAME", "cabinet_test")
os.environ.setdefault("MINIO_ROOT_USER", "minioadmin")
os.environ.setdefault("MINIO_ROOT_PASSWORD", "minioadmin")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import cabinet.models  # noqa: F401
from cabinet.core.database import Base
from cabinet.core.legacy import LegacyFileStore
from cabinet.core.redis import RedisClient
from cabinet.core.storage import ObjectStorage, StorageAdapter
from cabinet.models.file import File
from cabinet.repositories.user import UserRepository
from cabinet.schemas.user import UserCreate


class InMemoryObjectStorage(ObjectStorage):
    """Object store double; flip the fail_* flags to simulate backend outages"""

    def __init__(self):
        self.objects = {}
        self.fail_put = False
        self.fail_get = False
        self.fail_remove = False

    async def put_object(self, path, data, content_type):
        if self.fail_put:
            raise ConnectionError("storage unavailable")
        self.objects[path] = (data, content_type)

    async def get_object(self, path):
        if self.fail_get:
            raise ConnectionError("storage unavailable")
        return self.objects[path][0]

    async def remove_object(self, path):
        if self.fail_remove:
            raise ConnectionError("storage unavailable")
        self.objects.pop(path, None)

    async def presigned_get_url(self, path, expires):
        if path not in self.objects:
            raise KeyError(path)
        return f"https://objects.test/{path}?expires={expires}"

    def public_url(self, path):
        return f"https://objects.test/{path}"


class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisClient"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.store.pop(key, None) is not None else 0

    async def ping(self):
        return True

    async def aclose(self):
        pass


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite leaves foreign keys unchecked unless asked per connection
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def storage(object_storage):
    return StorageAdapter(object_storage)


@pytest.fixture
def legacy_store(tmp_path):
    return LegacyFileStore(str(tmp_path))


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_client(fake_redis):
    client = RedisClient()
    client.redis = fake_redis
    return client


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def alice(db):
    return await UserRepository(db).create(UserCreate(email="alice@example.com", name="Alice"))


@pytest.fixture
async def bob(db):
    return await UserRepository(db).create(UserCreate(email="bob@example.com", name="Bob"))


@pytest.fixture
def make_legacy_file(db):
    """Insert a pre-object-storage row pointing at a file on local disk"""

    async def factory(owner_id, legacy_path, **kwargs):
        name = legacy_path or "orphan.txt"
        record = File(
            filename=name,
            original_name=kwargs.pop("original_name", name),
            mime_type=kwargs.pop("mime_type", "text/plain"),
            size=kwargs.pop("size", 6),
            storage_path=None,
            legacy_path=legacy_path,
            owner_id=owner_id,
            **kwargs,
        )
        db.add(record)
        await db.commit()
        await db.refresh(record)
        return record

    return factory
