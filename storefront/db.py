from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import text
from sqlmodel import SQLModel, Session, create_engine

from .config import get_settings


def get_database_url() -> str:
    return get_settings().database_url


def _build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # Handlers run in a threadpool; sqlite connections cross threads.
        connect_args["check_same_thread"] = False
        if url.startswith("sqlite:///") and ":memory:" not in url:
            Path(url.split("sqlite:///", 1)[-1]).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=False, connect_args=connect_args)


engine = _build_engine(get_database_url())


def init_db() -> None:
    from . import models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(engine)


def drop_db() -> None:
    SQLModel.metadata.drop_all(engine)


def ping() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


@contextmanager
def session_scope():
    with Session(engine) as session:
        yield session
