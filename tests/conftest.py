"""
Test infrastructure for the blog panel.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- ``PRAGMA foreign_keys=ON`` is issued on that connection so the
  ``ON DELETE CASCADE`` / ``SET NULL`` rules behave as they do on Postgres.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- The Redis cache is disabled by setting cache._redis = None; cache
  behaviour itself is covered in test_cache.py against an AsyncMock client.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blog_panel.cache import cache
from blog_panel.database import Base, get_db
from blog_panel.main import app
from blog_panel.middleware import install_query_counter
from blog_panel.models import Permission, Role, User
from blog_panel.security import hash_password

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine_test.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

PASSWORD = "password123"
ALL_PERMISSIONS = [p.value for p in Permission]


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            cache.discard_pending(session)
            raise
        await cache.run_pending(session)


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def roles() -> dict[str, int]:
    """Seed the default roles; returns ``{name: id}``."""
    async with async_session_test() as session:
        created = {
            "OWNER": Role(name="OWNER", permissions=ALL_PERMISSIONS),
            "ADMIN": Role(name="ADMIN", permissions=ALL_PERMISSIONS),
            "PUBLIC": Role(name="PUBLIC", permissions=[Permission.READ.value]),
        }
        session.add_all(created.values())
        await session.commit()
        return {name: role.id for name, role in created.items()}


@pytest_asyncio.fixture
async def make_user(roles):
    """
    Factory fixture: ``await make_user("a@example.com", "ADMIN")`` inserts
    a user holding that role (or no role when ``role=None``) and returns
    its id.
    """
    async def _make(email: str, role: str | None = "PUBLIC", name: str = "Tester") -> int:
        async with async_session_test() as session:
            user = User(
                email=email,
                name=name,
                password=hash_password(PASSWORD),
                role_id=roles[role] if role else None,
            )
            session.add(user)
            await session.commit()
            return user.id

    return _make


async def sign_in(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
    """Sign in and return an ``Authorization`` header for the access token."""
    resp = await client.post("/api/v1/auth/signin", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def login(async_client: AsyncClient):
    """``headers = await login("a@example.com")``"""
    async def _login(email: str, password: str = PASSWORD) -> dict:
        return await sign_in(async_client, email, password)

    return _login


@pytest_asyncio.fixture
async def admin_headers(async_client: AsyncClient, make_user) -> dict:
    await make_user("admin@example.com", "ADMIN", name="Admin")
    return await sign_in(async_client, "admin@example.com")


@pytest_asyncio.fixture
async def reader_headers(async_client: AsyncClient, make_user) -> dict:
    await make_user("reader@example.com", "PUBLIC", name="Reader")
    return await sign_in(async_client, "reader@example.com")
