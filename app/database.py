from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.config import settings


def async_database_url(url: str) -> str:
    """Point plain Postgres URLs (as found in .env files) at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    # Already async, e.g. sqlite+aiosqlite:// in tests
    return url


SQLALCHEMY_DATABASE_URL = async_database_url(settings.database_url)

# Replace pooled connections the server closed while they sat idle
engine = create_async_engine(SQLALCHEMY_DATABASE_URL, echo=False, pool_pre_ping=True)

# Rows are reloaded explicitly after each commit
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()


async def get_db():
    async with AsyncSessionLocal() as db:
        yield db
