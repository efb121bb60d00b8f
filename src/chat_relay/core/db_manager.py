from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator
import logging

from chat_relay.config import Config
from .database import Base


class BaseDatabaseManager:
    def __init__(self, config: Config):
        self.config = config
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._logger = logging.getLogger(__name__)

    async def initialize(self):
        raise NotImplementedError()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self.engine:
            await self.initialize()

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def create_tables(self):
        if not self.engine:
            await self.initialize()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """
        Check that the database answers a trivial query
        :return: True if reachable
        """
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            self._logger.error("Database ping failed: %s", e)
            return False

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


class DatabaseManager(BaseDatabaseManager):
    def get_url(self) -> str:
        db = self.config.db
        if db.host:
            return f"postgresql+asyncpg://{db.user}:{db.password}@{db.host}:{db.port}/{db.name}"
        return f"sqlite+aiosqlite:///{db.path}"

    async def initialize(self):
        url = self.get_url()

        if url.startswith("postgresql"):
            self.engine = create_async_engine(
                url=url,
                pool_size=30,
                max_overflow=20,
                pool_pre_ping=True,
                pool_timeout=60,
                pool_recycle=-1,
                echo=False,
            )
        elif self.config.db.path == ":memory:":
            # every session must see the same in-memory database
            self.engine = create_async_engine(
                url=url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=False,
            )
        else:
            Path(self.config.db.path).parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_async_engine(url=url, echo=False)

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._logger.info("Database engine initialized (%s)", self.engine.dialect.name)
