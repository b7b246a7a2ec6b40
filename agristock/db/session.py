from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from agristock.core.config import Settings, settings


def build_engine(database_url: str | None = None, config: Settings = settings) -> Engine:
    url = database_url or config.database_url
    engine_kwargs: dict[str, object] = {"pool_pre_ping": True}

    if not url.lower().startswith("sqlite"):
        engine_kwargs.update(
            {
                "pool_size": config.db_pool_size,
                "max_overflow": config.db_max_overflow,
                "pool_timeout": config.db_pool_timeout_seconds,
                "pool_recycle": config.db_pool_recycle_seconds,
            }
        )

    return create_engine(url, **engine_kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    # Records leave the session as detached snapshots; keep attributes loaded after commit.
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = build_engine()
SessionLocal = build_session_factory(engine)
