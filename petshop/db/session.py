import os
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from petshop.core.config import settings


def _async_url(url: str) -> str:
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """
    创建异步引擎，SQLite 下开启外键约束（级联删除依赖它）
    """
    new_engine = create_async_engine(
        _async_url(url),
        echo=os.getenv("SQL_DEBUG", "false").lower() == "true",
        future=True,
        **kwargs,
    )

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_sessionmaker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(settings.SQLITE_DATABASE_URI)

SessionLocal = build_sessionmaker(engine)
