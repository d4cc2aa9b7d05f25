"""
Pytest fixtures for the ledger backend tests.

Provides an in-memory database, two tenants, actors with different roles,
a small catalog, and bearer-token helpers.
"""

import pytest

from bizledger import create_app
from bizledger.extensions import db
from bizledger.models import Organization, Product, User
from bizledger.services.inventory_service import record_movement
from bizledger.services.session_service import create_session


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test; the schema is kept."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Repairs", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Foods", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def _make_user(db_session, org, username, role, commission_bps=None):
    user = User(
        org_id=org.id,
        username=username,
        name=username.title(),
        role=role,
        default_commission_rate_bps=commission_bps,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    return _make_user(db_session, org_a, "admin_a", "admin")


@pytest.fixture(scope='function')
def seller_a(db_session, org_a):
    """Seller with a 3% default commission rate."""
    return _make_user(db_session, org_a, "seller_a", "seller", commission_bps=300)


@pytest.fixture(scope='function')
def technician_a(db_session, org_a):
    return _make_user(db_session, org_a, "tech_a", "technician")


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return _make_user(db_session, org_b, "admin_b", "admin")


def make_product(db_session, org, name, *, qty=0, sale=0, cost=0, kind="physical",
                 commission_bps=None, min_stock=0, scan_code=None):
    """Insert a product directly; any stock is backed by an opening movement."""
    product = Product(
        org_id=org.id,
        name=name,
        kind=kind,
        sale_price_cents=sale,
        cost_price_cents=cost,
        quantity_on_hand=0,
        min_stock=min_stock,
        commission_rate_bps=commission_bps,
        scan_code=scan_code,
    )
    db_session.add(product)
    db_session.flush()
    if qty:
        record_movement(
            org_id=org.id,
            product=product,
            direction="in",
            quantity=qty,
            reason="adjustment",
            note="Opening balance",
        )
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_factory(db_session):
    """Build products inside a test: product_factory(org, name, qty=..., ...)."""
    def _factory(org, name, **kwargs):
        return make_product(db_session, org, name, **kwargs)
    return _factory


@pytest.fixture(scope='function')
def widget_a(db_session, org_a):
    """Physical product in Org A: 10 on hand, sells for 10.00, costs 5.00."""
    return make_product(db_session, org_a, "Widget", qty=10, sale=1000, cost=500)


@pytest.fixture(scope='function')
def gadget_a(db_session, org_a):
    """Physical product in Org A: 3 on hand, sells for 25.00."""
    return make_product(db_session, org_a, "Gadget", qty=3, sale=2500, cost=1200)


@pytest.fixture(scope='function')
def labor_a(db_session, org_a):
    """Service item in Org A (never carries stock)."""
    return make_product(db_session, org_a, "Labor hour", kind="service", sale=8000)


@pytest.fixture(scope='function')
def widget_b(db_session, org_b):
    return make_product(db_session, org_b, "Widget B", qty=10, sale=1500, cost=700)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def token_for(user) -> str:
    _, token = create_session(user.id)
    return token


@pytest.fixture(scope='function')
def admin_headers(admin_a):
    return auth_headers(token_for(admin_a))


@pytest.fixture(scope='function')
def seller_headers(seller_a):
    return auth_headers(token_for(seller_a))


@pytest.fixture(scope='function')
def technician_headers(technician_a):
    return auth_headers(token_for(technician_a))


@pytest.fixture(scope='function')
def admin_b_headers(admin_b):
    return auth_headers(token_for(admin_b))
