from typing import AsyncGenerator, Optional
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool
from yingge.config import get_settings

settings = get_settings()

class Base(DeclarativeBase):
    pass

# External-content FTS5 index over the searchable asset columns, kept in sync by triggers.
FTS_STATEMENTS = (
    """CREATE VIRTUAL TABLE IF NOT EXISTS assets_fts USING fts5(
        file_name, description, ai_description,
        content='assets', content_rowid='rowid'
    )""",
    """CREATE TRIGGER IF NOT EXISTS assets_fts_ai AFTER INSERT ON assets BEGIN
        INSERT INTO assets_fts(rowid, file_name, description, ai_description)
        VALUES (new.rowid, new.file_name, new.description, new.ai_description);
    END""",
    """CREATE TRIGGER IF NOT EXISTS assets_fts_ad AFTER DELETE ON assets BEGIN
        INSERT INTO assets_fts(assets_fts, rowid, file_name, description, ai_description)
        VALUES ('delete', old.rowid, old.file_name, old.description, old.ai_description);
    END""",
    """CREATE TRIGGER IF NOT EXISTS assets_fts_au AFTER UPDATE ON assets BEGIN
        INSERT INTO assets_fts(assets_fts, rowid, file_name, description, ai_description)
        VALUES ('delete', old.rowid, old.file_name, old.description, old.ai_description);
        INSERT INTO assets_fts(rowid, file_name, description, ai_description)
        VALUES (new.rowid, new.file_name, new.description, new.ai_description);
    END""",
)

def _enable_sqlite_foreign_keys(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def build_engine(url: str, pool_size: int = 5, max_overflow: int = 0, echo: bool = False) -> AsyncEngine:
    eng = create_async_engine(
        url,
        echo=echo,
        poolclass=AsyncAdaptedQueuePool,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )
    if eng.dialect.name == "sqlite":
        event.listen(eng.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return eng

def build_sessionmaker(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, expire_on_commit=False, class_=AsyncSession)

engine: Optional[AsyncEngine] = None
SessionLocal: Optional[async_sessionmaker[AsyncSession]] = None

if settings.DATABASE_URL_ASYNC:
    engine = build_engine(
        settings.DATABASE_URL_ASYNC,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DB_ECHO,
    )
    SessionLocal = build_sessionmaker(engine)

async def init_models(eng: AsyncEngine) -> None:
    """Create tables (dev path; Alembic owns production schema) and the FTS index."""
    import yingge.models  # noqa: F401  registers the mappers on Base.metadata

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        if eng.dialect.name == "sqlite":
            for stmt in FTS_STATEMENTS:
                await conn.execute(text(stmt))

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL_ASYNC is not configured.")
    async with SessionLocal() as session:
        yield session

async def check_db() -> bool:
    if engine is None:
        return False
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    return True
