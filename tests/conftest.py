import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, MagicMock
from jose import jwt
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.config import settings
from app.database import get_db
from app.auth.dependencies import get_current_user
from app.models import Base, Tenant, User, UserRole, Platform
from app.services.credentials import save_credential

from payloads import HOTTOK_A, HOTTOK_B, KIWIFY_TOKEN_A


@pytest.fixture
def mock_db():
    """Mock database session"""
    db = MagicMock()
    db.query.return_value = db
    db.filter.return_value = db
    db.first.return_value = None
    db.all.return_value = []
    db.count.return_value = 0
    return db


@pytest.fixture
def mock_admin():
    """Mock tenant admin"""
    user = Mock(spec=User)
    user.id = 1
    user.tenant_id = 1
    user.email = "admin@loja-a.com"
    user.role = UserRole.ADMIN
    return user


@pytest.fixture
def mock_vendedor():
    """Mock salesperson"""
    user = Mock(spec=User)
    user.id = 2
    user.tenant_id = 1
    user.email = "vendedor@loja-a.com"
    user.role = UserRole.VENDEDOR
    return user


@pytest.fixture
def client_with_admin(mock_db, mock_admin):
    """TestClient with admin auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_admin
    client = TestClient(app)
    yield client, mock_db, mock_admin
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_vendedor(mock_db, mock_vendedor):
    """TestClient with salesperson auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_vendedor
    client = TestClient(app)
    yield client, mock_db, mock_vendedor
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def access_token():
    """Factory for bearer tokens signed like the ones the CRM login issues"""
    def _make(data: dict, expires_delta: timedelta = timedelta(minutes=15), token_type: str = "access") -> str:
        to_encode = data.copy()
        to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta, "type": token_type})
        return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return _make


# ── Real database (SQLite in memory) ─────────────────────────────────────


@pytest.fixture
def db_session():
    """Fresh in-memory database with two tenants and their credentials"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()

    tenant_a = Tenant(id=1, name="Loja A")
    tenant_b = Tenant(id=2, name="Loja B")
    db.add_all([tenant_a, tenant_b])
    db.flush()
    db.add_all([
        User(id=1, tenant_id=1, email="admin@loja-a.com", name="Ana", role=UserRole.ADMIN),
        User(id=2, tenant_id=1, email="vendedor@loja-a.com", name="Bruno", role=UserRole.VENDEDOR),
        User(id=3, tenant_id=2, email="admin@loja-b.com", name="Carla", role=UserRole.ADMIN),
    ])
    db.flush()
    save_credential(db, 1, Platform.HOTMART, HOTTOK_A, is_active=True, owner_user_id=2)
    save_credential(db, 1, Platform.KIWIFY, KIWIFY_TOKEN_A, is_active=True)
    save_credential(db, 2, Platform.HOTMART, HOTTOK_B, is_active=True)
    db.commit()

    yield db

    db.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def api(db_session):
    """TestClient for the webhook endpoint backed by the in-memory database"""
    app.dependency_overrides[get_db] = lambda: db_session
    client = TestClient(app)
    yield client, db_session
    app.dependency_overrides.clear()


@pytest.fixture
def admin_api(db_session):
    """TestClient authenticated as tenant A's admin, backed by the in-memory database"""
    admin = db_session.query(User).filter(User.id == 1).first()
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: admin
    client = TestClient(app)
    yield client, db_session
    app.dependency_overrides.clear()

