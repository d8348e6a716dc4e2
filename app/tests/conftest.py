import os

# settings are read at import time by app.db.session
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# FORCE model registration
import app.models  # noqa
from app.db.base import Base


@pytest.fixture(scope="function")
def engine(tmp_path):
    # file-backed so separate sessions get separate connections
    eng = create_engine(
        f"sqlite:///{tmp_path / 'archive.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def SessionLocal(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db(SessionLocal):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
