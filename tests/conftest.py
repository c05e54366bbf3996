from datetime import date

import pytest
from fastapi.testclient import TestClient

from booking_schemas import BookingCreate, CatalogItem, Requester, Role, TravelerDetail
from config import Settings
from lifecycle import build_lifecycle
from main import create_app
from payments.sandbox import SandboxGateway
from persistence.db import init_db, make_engine, make_session_factory
from persistence.memory import InMemoryBookingRepository
from persistence.models import CatalogItemModel, ProfileModel

SECRET = "sk_test_0123456789"


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        paystack_secret_key=SECRET,
        payment_gateway="sandbox",
        callback_base_url="https://app.example.com",
        currency="NGN",
        log_level="DEBUG",
    )


@pytest.fixture
def alice():
    return Requester(user_id="alice", role=Role.CUSTOMER, email="alice@example.com")


@pytest.fixture
def bob():
    return Requester(user_id="bob", role=Role.CUSTOMER, email="bob@example.com")


@pytest.fixture
def admin():
    return Requester(user_id="root", role=Role.ADMIN, email="ops@example.com")


@pytest.fixture
def repository(alice, bob, admin):
    repo = InMemoryBookingRepository()
    for requester in (alice, bob, admin):
        repo.add_profile(requester)
    repo.add_catalog_item(CatalogItem(id="PKG-1", title="Zanzibar getaway", price=250000))
    repo.add_catalog_item(CatalogItem(id="PKG-OFF", title="Retired tour", price=90000, available=False))
    return repo


@pytest.fixture
def gateway():
    return SandboxGateway(secret_key=SECRET)


@pytest.fixture
def lifecycle(repository, gateway, settings):
    return build_lifecycle(repository, gateway, settings)


def travelers(count):
    return [TravelerDetail(name=f"Traveler {i}", age=30 + i) for i in range(count)]


def package_booking(count=2, item_ref="PKG-1"):
    return BookingCreate(
        item_ref=item_ref,
        traveler_count=count,
        travel_date=date(2027, 3, 14),
        traveler_details=travelers(count),
        contact_email="alice@example.com",
    )


@pytest.fixture
def client(settings, gateway):
    engine = make_engine("sqlite://")
    init_db(engine)
    with make_session_factory(engine)() as db:
        db.add_all([
            ProfileModel(id="alice", email="alice@example.com", role="customer"),
            ProfileModel(id="bob", email="bob@example.com", role="customer"),
            ProfileModel(id="root", email="ops@example.com", role="admin"),
            CatalogItemModel(id="PKG-1", title="Zanzibar getaway", price=250000, available=True),
        ])
        db.commit()
    app = create_app(settings, engine=engine, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client
    engine.dispose()
