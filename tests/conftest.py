import os

# Must be set before the app modules read their settings
os.environ["ENVIRONMENT"] = "development"
os.environ["LOCAL_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("NO_COLOR", "1")
os.environ["PUBLIC_API_URL"] = "http://localhost:3000"

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.session import get_db, json_serializer
from app.db.base_class import Base
from app.models import File, User
from app.services.supabase_storage import SupabaseStorageService
from tests.utils_jwt import auth_header_for

@pytest.fixture(scope="session")
def engine():
    """In-memory SQLite engine shared by the whole test session."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        json_serializer=json_serializer,
    )
    yield engine
    engine.dispose()

@pytest.fixture
def db_session(engine):
    """Fresh tables and a session for every test."""
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(autouse=True)
def storage():
    """Replace the object store so no test talks to Supabase."""
    with patch.object(SupabaseStorageService, "delete_object") as delete_object, \
         patch.object(SupabaseStorageService, "download_object") as download_object, \
         patch.object(SupabaseStorageService, "create_signed_url") as create_signed_url:
        delete_object.return_value = None
        download_object.return_value = b"image-bytes"
        create_signed_url.return_value = "https://signed.example.com/object"
        yield {
            "delete_object": delete_object,
            "download_object": download_object,
            "create_signed_url": create_signed_url,
        }

@pytest.fixture
def client(db_session):
    """Create a FastAPI test client."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    # Clear dependency overrides
    app.dependency_overrides = {}

def _create_user(db_session, username, role="user"):
    user = User(
        email=f"{username}@example.com",
        username=username,
        full_name=username.title(),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user

@pytest.fixture
def author(db_session):
    return _create_user(db_session, "author")

@pytest.fixture
def other_user(db_session):
    return _create_user(db_session, "stranger")

@pytest.fixture
def admin_user(db_session):
    return _create_user(db_session, "admin", role="admin")

@pytest.fixture
def auth_header(author):
    """Return an Authorization header with a valid JWT for the author."""
    return auth_header_for(author)

@pytest.fixture
def make_file(db_session):
    """Factory for file records, as the upload flow would create them."""
    def _make_file(owner, file_key, file_type="image", mime_type="image/png", file_size=1024):
        db_file = File(
            user_id=owner.id,
            original_name=file_key.rsplit("/", 1)[-1],
            file_name=file_key.rsplit("/", 1)[-1],
            file_key=file_key,
            file_url=file_key,
            mime_type=mime_type,
            file_size=file_size,
            file_type=file_type,
        )
        db_session.add(db_file)
        db_session.commit()
        db_session.refresh(db_file)
        return db_file
    return _make_file
