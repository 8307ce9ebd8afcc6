from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from authcore.config import settings
from authcore.db.base import Base


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
)
async_session_maker = create_session_maker(engine)


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    import authcore.models  # noqa: F401 - register tables on Base.metadata

    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
