# db.py
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from settings import settings

DATABASE_URL = settings.DATABASE_URL

def make_engine(url: str = DATABASE_URL) -> Engine:
    return create_engine(url, future=True, pool_pre_ping=True)

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

engine = make_engine()
SessionLocal = make_session_factory(engine)
Base = declarative_base()

def init_db(bind: Engine = engine):
    from models_merge import MergeResultRecord  # ensure model is imported
    url = make_url(str(bind.url))
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=bind)
