"""Shared fixtures: an in-memory database per test and a client bound to it."""

import os

# Keep the application engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contractflow.database import Base, get_db
from contractflow.models import User, UserRole
from main import app
from tests.helpers import create_contract, create_workflow, start_approval


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    def _make_user(user_id, role=UserRole.INITIATOR, department=None, name=None):
        user = User(
            id=user_id,
            email=f"{user_id}@example.com",
            name=name or user_id.replace("-", " ").title(),
            role=role,
            department=department,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def users(make_user):
    """One user per role involved in the standard workflow."""
    return {
        "initiator": make_user("initiator-1", UserRole.INITIATOR, "Sales"),
        "manager": make_user("manager-1", UserRole.INITIATOR_MANAGER, "Sales"),
        "lawyer": make_user("lawyer-1", UserRole.CHIEF_LAWYER, "Legal"),
        "director": make_user("director-1", UserRole.GENERAL_DIRECTOR, "Management"),
        "office": make_user("office-1", UserRole.OFFICE_MANAGER, "Office"),
    }


STANDARD_STEPS = [
    {"name": "Manager approval", "role": "INITIATOR_MANAGER", "due_days": 2},
    {
        "name": "Legal and executive review",
        "type": "REVIEW",
        "role": "CHIEF_LAWYER",
        "parallel_roles": ["GENERAL_DIRECTOR"],
        "due_days": 3,
    },
    {"name": "Notify office", "type": "NOTIFICATION", "role": "OFFICE_MANAGER"},
]


@pytest.fixture()
def workflow(client, users):
    """Active default workflow: manager, then lawyer and director in parallel."""
    response = create_workflow(client, name="Standard", steps=STANDARD_STEPS)
    assert response.status_code == 201
    return response.json()


@pytest.fixture()
def contract(client, users):
    response = create_contract(client, users["initiator"].id)
    assert response.status_code == 201
    return response.json()


@pytest.fixture()
def in_review(client, users, workflow, contract):
    """Contract routed through the standard workflow."""
    response = start_approval(client, contract["id"], users["initiator"].id)
    assert response.status_code == 201
    return response.json()
