"""
Shared fixtures: a throwaway SQLite database, an in-memory trip roster and
an API client wired to both.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from tripledger.api.dependencies import get_membership_directory
from tripledger.core.security import create_access_token
from tripledger.db.session import build_engine, get_db, init_db
from tripledger.main import app
from tripledger.services.budget_service import BudgetService
from tripledger.services.membership_service import RosterMember, StaticMembershipDirectory

TRIP_ID = "trip-1"


def roster(*user_ids, creator="alice"):
    return [RosterMember(user_id=u, name=u.title(), username=u, is_creator=(u == creator)) for u in user_ids]


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'tripledger.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def directory():
    return StaticMembershipDirectory({TRIP_ID: roster("alice", "bob", "carol")})


@pytest.fixture
def service(db, directory):
    return BudgetService(db, directory)


@pytest.fixture
def client(session_factory, directory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_membership_directory] = lambda: directory
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
