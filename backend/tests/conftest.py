"""
Pytest fixtures for LR Sync backend tests.

Provides the in-memory database, area-scoped user fixtures, bearer token
helpers and a throwaway local object store.
"""

import uuid

import bcrypt
import pytest

from lrsync import create_app
from lrsync.config import TestingConfig
from lrsync.extensions import db
from lrsync.models import UserProfile
from lrsync.services import session_service
from lrsync.services.attachment_service import IncomingFile
from lrsync.services.storage import LocalObjectStore
from lrsync.services.visibility import RequestContext


TEST_PASSWORD = "Password123!"

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt hash of TEST_PASSWORD at a low cost so fixtures stay fast."""
    return bcrypt.hashpw(TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function', autouse=True)
def object_store(app, tmp_path):
    """Local object store under tmp_path, swapped in for every test."""
    store = LocalObjectStore(str(tmp_path / "objects"), "https://files.test")
    app.extensions["lrsync_object_store"] = store
    yield store
    app.extensions.pop("lrsync_object_store", None)


@pytest.fixture(scope='function')
def make_profile(db_session, password_hash):
    """Factory: make_profile("secretary", area="Cebu", first_name="Ana")."""
    counter = {"n": 0}

    def _make(role="secretary", area=None, first_name=None, last_name="Tester",
              status="active", with_credentials=True):
        counter["n"] += 1
        first_name = first_name or f"{role.title().replace('_', '')}{counter['n']}"
        profile = UserProfile(
            email=f"{first_name.lower()}.{counter['n']}@lrsync.test",
            first_name=first_name,
            last_name=last_name,
            full_name=f"{first_name} {last_name}",
            role=role,
            status=status,
            assigned_area=area,
        )
        if with_credentials:
            profile.auth_user_id = str(uuid.uuid4())
            profile.password_hash = password_hash
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture(scope='function')
def super_admin(make_profile):
    return make_profile("super_admin", first_name="Sofia")


@pytest.fixture(scope='function')
def admin(make_profile):
    return make_profile("admin", first_name="Andres")


@pytest.fixture(scope='function')
def secretary_cebu(make_profile):
    return make_profile("secretary", area="Cebu", first_name="Carla")


@pytest.fixture(scope='function')
def secretary_cebu_2(make_profile):
    return make_profile("secretary", area="Cebu", first_name="Celia")


@pytest.fixture(scope='function')
def secretary_davao(make_profile):
    return make_profile("secretary", area="Davao", first_name="Dario")


@pytest.fixture(scope='function')
def secretary_no_area(make_profile):
    return make_profile("secretary", area=None, first_name="Nora")


def _ctx_for(profile) -> RequestContext:
    return RequestContext.from_profile(profile, ip_address="127.0.0.1", user_agent="pytest")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(profile) -> dict:
    _, token = session_service.create_session(profile.id, user_agent="pytest", ip_address="127.0.0.1")
    return auth_headers(token)


def _sale_payload(**overrides) -> dict:
    payload = {
        "tax_month": "2024-03-01",
        "tin": "123-456-789-000",
        "name": "Acme Trading",
        "substreet_street_brgy": "12 Rizal St, Brgy Lahug",
        "district_city_zip": "Cebu City 6000",
        "tax_type": "vat",
        "gross_taxable": "15,000.50",
        "total_actual_amount": "16800.56",
    }
    payload.update(overrides)
    return payload


def _purchase_payload(**overrides) -> dict:
    payload = {
        "tax_month": "2024-03-01",
        "tin": "987-654-321",
        "name": "Supply House Inc",
        "substreet_street_brgy": "7 Magsaysay Ave",
        "district_city_zip": "Davao City 8000",
        "tax_type": "non-vat",
        "gross_taxable": "2500",
        "total_actual_amount": "2500",
    }
    payload.update(overrides)
    return payload


class _Files:
    """In-memory uploads for service calls."""

    @staticmethod
    def pdf(name="scan.pdf") -> IncomingFile:
        return IncomingFile(filename=name, content_type="application/pdf", data=PDF_BYTES)

    @staticmethod
    def png(name="photo.png") -> IncomingFile:
        return IncomingFile(filename=name, content_type="image/png", data=PNG_BYTES)

    @staticmethod
    def text(name="notes.txt") -> IncomingFile:
        return IncomingFile(filename=name, content_type="text/plain", data=b"hello")


@pytest.fixture
def ctx_for():
    """ctx_for(profile) -> RequestContext for service-level calls."""
    return _ctx_for


@pytest.fixture
def headers_for(db_session):
    """headers_for(profile) -> Authorization headers for a fresh session."""
    return _headers_for


@pytest.fixture
def sale_payload():
    """sale_payload(**overrides) -> valid sales form data."""
    return _sale_payload


@pytest.fixture
def purchase_payload():
    """purchase_payload(**overrides) -> valid purchase form data."""
    return _purchase_payload


@pytest.fixture
def files():
    return _Files
