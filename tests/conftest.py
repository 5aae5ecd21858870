"""
Shared test fixtures.

Sets up an isolated test database so tests never touch the real
database, an in-memory ORASS database seeded with a few policies,
and an ASACI client whose HTTP traffic is answered by a MockTransport.
"""

import os

# Settings are read at import time, so configure them before the app loads.
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["ASACI_BASE_URL"] = "https://asaci.test/api/v1"
os.environ["ASACI_API_KEY"] = "test-api-key"
os.environ["SEED_DEFAULT_DATA"] = "false"

from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from certify_link.api.deps import get_asaci_client, get_orass_service
from certify_link.main import app
from certify_link.models.base import Base, get_db
from certify_link.models.orass_policy import orass_metadata, orass_policies
from certify_link.models.password_history import PasswordHistory
from certify_link.models.user import User
from certify_link.security import create_token_pair, hash_password
from certify_link.services.asaci_client import AsaciClient
from certify_link.services.orass_service import OrassService
from certify_link.services.role_service import RoleService


# Use SQLite for tests; no external database needed.
TEST_DATABASE_URL = "sqlite:///./test.db"
ASACI_TEST_URL = "https://asaci.test/api/v1"
DEFAULT_PASSWORD = "Secret123!"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# --- Users and roles ---

@pytest.fixture
def roles(db_session):
    """The default roles, keyed by name."""
    seeded = RoleService(db_session).seed_default_roles()
    db_session.commit()
    return {role.name: role for role in seeded}


@pytest.fixture
def make_user(db_session, roles):
    """Factory creating a user with DEFAULT_PASSWORD and a seeded role."""

    def factory(email="user@insurer.ci", role="USER", password=DEFAULT_PASSWORD, **fields):
        password_hash = hash_password(password)
        user = User(
            email=email,
            password_hash=password_hash,
            first_name=fields.pop("first_name", "Awa"),
            last_name=fields.pop("last_name", "Kone"),
            role_id=roles[role].id,
            **fields,
        )
        user.password_history.append(PasswordHistory(password_hash=password_hash))
        db_session.add(user)
        db_session.commit()
        return user

    return factory


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@insurer.ci", role="ADMIN")


def bearer(user) -> dict[str, str]:
    token = create_token_pair(user.id)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def password():
    return DEFAULT_PASSWORD


@pytest.fixture
def auth_headers():
    """Build Authorization headers for any user."""
    return bearer


@pytest.fixture
def user_headers(user):
    return bearer(user)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


# --- ORASS ---

ORASS_ROWS = [
    {
        "POLICY_NUMBER": "POL-001",
        "ORGANIZATION_CODE": "ORG1",
        "OFFICE_CODE": "OFF1",
        "SUBSCRIBER_NAME": "Kouassi Jean",
        "INSURED_NAME": "Kouassi Jean",
        "VEHICLE_REGISTRATION": "AB-123-CD",
        "VEHICLE_CHASSIS_NUMBER": "VF1RFB00012345678",
        "VEHICLE_SEATS": 5,
        "PREMIUM_RC": Decimal("125000.00"),
        "CONTRACT_START_DATE": date(2026, 1, 1),
        "CONTRACT_END_DATE": date(2026, 12, 31),
        "CERTIFICATE_COLOR": "CIMA_YELLOW",
        "CREATED_AT": datetime(2026, 1, 1, 9, 0),
    },
    {
        "POLICY_NUMBER": "POL-002",
        "ORGANIZATION_CODE": "ORG1",
        "OFFICE_CODE": "OFF2",
        "SUBSCRIBER_NAME": "Traore Mariam",
        "INSURED_NAME": "Traore Ibrahim",
        "VEHICLE_REGISTRATION": "EF-456-GH",
        "VEHICLE_CHASSIS_NUMBER": "WVWZZZ1JZXW000001",
        "VEHICLE_SEATS": 2,
        "PREMIUM_RC": Decimal("80000.00"),
        "CONTRACT_START_DATE": date(2026, 3, 1),
        "CONTRACT_END_DATE": date(2027, 2, 28),
        "CERTIFICATE_COLOR": "CIMA_GREEN",
        "CREATED_AT": datetime(2026, 2, 1, 9, 0),
    },
    {
        "POLICY_NUMBER": "POL-003",
        "ORGANIZATION_CODE": "ORG2",
        "OFFICE_CODE": "OFF3",
        "SUBSCRIBER_NAME": "Yao Koffi",
        "INSURED_NAME": "Yao Koffi",
        "VEHICLE_REGISTRATION": "IJ-789-KL",
        "VEHICLE_CHASSIS_NUMBER": "JTDBR32E720000001",
        "VEHICLE_SEATS": 7,
        "PREMIUM_RC": Decimal("150000.00"),
        "CONTRACT_START_DATE": date(2026, 6, 1),
        "CONTRACT_END_DATE": date(2027, 5, 31),
        "CERTIFICATE_COLOR": "CIMA_YELLOW",
        "CREATED_AT": datetime(2026, 3, 1, 9, 0),
    },
]


@pytest.fixture
def orass_engine():
    """In-memory ORASS database holding ORASS_ROWS."""
    orass = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    orass_metadata.create_all(orass)
    with orass.begin() as conn:
        conn.execute(orass_policies.insert(), ORASS_ROWS)
    yield orass
    orass.dispose()


@pytest.fixture
def orass_service(orass_engine):
    return OrassService(orass_engine)


# --- ASACI ---

class AsaciStub:
    """
    Canned ASACI answers keyed by (method, path).

    Paths are relative to the ASACI base URL. Unknown routes answer
    404. Every request received is kept in `requests`.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, dict] | Exception] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, **response):
        """Answer with httpx.Response(status_code, **response)."""
        self.routes[(method.upper(), path)] = (status_code, response)

    def fail(self, method: str, path: str, error: Exception):
        """Raise a transport error instead of answering."""
        self.routes[(method.upper(), path)] = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/v1")
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if isinstance(route, Exception):
            raise route
        status_code, response = route
        return httpx.Response(status_code, **response)


@pytest.fixture
def asaci_stub():
    return AsaciStub()


@pytest.fixture
def asaci_client(asaci_stub):
    client = AsaciClient(
        base_url=ASACI_TEST_URL,
        timeout=5,
        api_key="test-api-key",
        transport=httpx.MockTransport(asaci_stub),
    )
    yield client
    client.close()


# --- Edition requests ---

@pytest.fixture
def edition_payload():
    """A valid CreateEditionFromOrassDataRequest body for POL-001."""
    return {
        "policy_number": "POL-001",
        "organization_code": "ORG1",
        "office_code": "OFF1",
        "certificate_type": "cima",
        "certificate_color": "cima-jaune",
        "subscriber_name": "Kouassi Jean",
        "subscriber_phone": "+2250700000001",
        "subscriber_email": "jean.kouassi@mail.ci",
        "subscriber_po_box": "BP 1234",
        "subscriber_type": "ST01",
        "insured_name": "Kouassi Jean",
        "insured_phone": "+2250700000001",
        "insured_email": "jean.kouassi@mail.ci",
        "insured_po_box": "BP 1234",
        "vehicle_registration_number": "AB-123-CD",
        "vehicle_chassis_number": "VF1RFB00012345678",
        "vehicle_brand": "Renault",
        "vehicle_model": "Clio",
        "vehicle_type": "TV01",
        "vehicle_category": "01",
        "vehicle_usage": "UV01",
        "vehicle_genre": "GV01",
        "vehicle_energy": "SEES",
        "vehicle_seats": 5,
        "vehicle_fiscal_power": 7,
        "vehicle_useful_load": 0,
        "fleet_reduction": 0,
        "premium_rc": 125000,
        "policy_effective_date": "2026-01-01",
        "policy_expiry_date": "2026-12-31",
        "r_num": 1,
    }


# --- API client ---

@pytest.fixture
def client(db_session, asaci_client, orass_service):
    """
    Provide a test client with the test database, the stubbed ASACI
    client and the in-memory ORASS service.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_asaci_client] = lambda: asaci_client
    app.dependency_overrides[get_orass_service] = lambda: orass_service
    yield TestClient(app)
    app.dependency_overrides.clear()
