import os
import tempfile

# Keep the app's import-time side effects (engine URL, uploads mount) away from the working tree
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="stockledger-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.api.auth import get_current_user
from stockledger.context import SessionContext
from stockledger.database import Base, get_db, import_models
from stockledger.main import app
from stockledger.models.item import ItemType
from stockledger.models.user import User
from stockledger.schemas.item import ItemCreate
from stockledger.services import catalog_service


@pytest.fixture
def engine():
    import_models()
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ctx():
    return SessionContext(actor_id="clerk@example.org", role="admin", tenant_id="sec-health", user_id="user-1")


@pytest.fixture
def make_item(db):
    def _make(name="Luva de procedimento", quantity=0, **kwargs):
        kwargs.setdefault("unit", "box")
        kwargs.setdefault("type", ItemType.CONSUMABLE)
        return catalog_service.create_item(db, ItemCreate(name=name, quantity=quantity, **kwargs))

    return _make


@pytest.fixture
def admin_user(db):
    user = User(username="clerk@example.org", display_name="Clerk", password_hash="x", role="admin", tenant_id="sec-health")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def client(db, admin_user):
    current = {"user": admin_user}

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: current["user"]
    test_client = TestClient(app)
    test_client.current = current
    yield test_client
    app.dependency_overrides.clear()
