import sys
import os
import pytest

# 1. Add the parent directory to Python's path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from extensions import db, mail
from models import User, NGO, Donation, Role, DonationType, DonationStatus

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "MAIL_SUPPRESS_SEND": True,
    "MAIL_DEFAULT_SENDER": "noreply@donationhub.test",
    "ADMIN_NOTIFICATION_EMAIL": "admin-inbox@donationhub.test",
    # Send inline so tests can inspect the outbox
    "MAIL_ASYNC": False,
}


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(app):
    with mail.record_messages() as outbox:
        yield outbox


# ==========================================
#  FACTORIES
# ==========================================

@pytest.fixture
def make_user(app):
    def _create(email="donor@test.com", name="Dana Donor", role=Role.USER, password="password", **kwargs):
        user = User(email=email, name=name, role=role, **kwargs)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _create


@pytest.fixture
def make_ngo(make_user):
    """NGO plus its admin account. Returns the NGO."""
    def _create(name="Helping Hands", admin_email=None, **kwargs):
        admin = make_user(
            email=admin_email or f"{name.lower().replace(' ', '.')}@ngo.test",
            name=f"{name} Admin",
            role=Role.ADMIN,
        )
        ngo = NGO(name=name, email=f"contact@{name.lower().replace(' ', '')}.org", admin=admin, **kwargs)
        db.session.add(ngo)
        db.session.commit()
        return ngo
    return _create


@pytest.fixture
def make_donation(app):
    def _create(user, **kwargs):
        defaults = {
            "user_id": user.id,
            "donation_type": DonationType.ITEMS,
            "item_name": "Blankets",
            "quantity": 5,
            "description": "Warm wool blankets",
            "status": DonationStatus.PENDING,
        }
        defaults.update(kwargs)
        donation = Donation(**defaults)
        db.session.add(donation)
        db.session.commit()
        return donation
    return _create


@pytest.fixture
def login(client):
    def _login(user, password="password"):
        resp = client.post('/api/login', json={"email": user.email, "password": password})
        return {'Authorization': f'Bearer {resp.get_json()["access_token"]}'}
    return _login


# ==========================================
#  COMMON ACTORS
# ==========================================

@pytest.fixture
def donor(make_user):
    return make_user()


@pytest.fixture
def ngo(make_ngo):
    return make_ngo("Helping Hands")


@pytest.fixture
def other_ngo(make_ngo):
    return make_ngo("Food For All")


@pytest.fixture
def super_admin(make_user):
    return make_user(email="root@donationhub.test", name="Super Admin", role=Role.ADMIN)


@pytest.fixture
def donor_headers(login, donor):
    return login(donor)
