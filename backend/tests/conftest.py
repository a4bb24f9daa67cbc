"""
Pytest fixtures for tillbook backend tests.

Provides an in-memory database, a test client, seeded staff users with
bearer headers, a small catalog, and a temporary file bucket.
"""

import pytest

from tillbook import create_app
from tillbook.extensions import db
from tillbook.models import Product, Customer
from tillbook.services import session_service, transaction_service
from tillbook.services.auth_service import create_user
from tillbook.services.storage_service import LocalBucket


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STORAGE_ROOT': str(tmp_path_factory.mktemp('storage')),
        'BCRYPT_ROUNDS': 4,
        'CLEANUP_TOKEN': None,
        'PROMPTPAY_ID': '0812345678',
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
    """Empty every table before the test; keep the schema."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def bucket(app, tmp_path, monkeypatch):
    """A fresh, empty bucket that get_bucket() also resolves to."""
    monkeypatch.setitem(app.config, 'STORAGE_ROOT', str(tmp_path))
    b = LocalBucket(str(tmp_path), app.config['STORAGE_BUCKET'])
    b.ensure()
    return b


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user("admin", "admin@tillbook.test", "Password123", is_admin=True)


@pytest.fixture(scope='function')
def staff_user(db_session):
    return create_user("clerk", "clerk@tillbook.test", "Password123")


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    _, token = session_service.create_session(admin_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    _, token = session_service.create_session(staff_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def products(db_session):
    """Two active products and one retired one."""
    widget = Product(name="Widget", price_cents=100)
    gadget = Product(name="Gadget", price_cents=250)
    retired = Product(name="Retired", price_cents=999, is_active=False)
    db_session.add_all([widget, gadget, retired])
    db_session.commit()
    return {"widget": widget, "gadget": gadget, "retired": retired}


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Somchai", phone="0811111111", rank="gold")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def order(products, customer):
    """10 x Widget + 5 x Gadget = 2,250 cents."""
    return transaction_service.create_transaction(
        [
            {"product_id": products["widget"].id, "quantity": 10},
            {"product_id": products["gadget"].id, "quantity": 5},
        ],
        customer_id=customer.id,
    )


@pytest.fixture(scope='function')
def line_ids(order):
    """(widget_line_id, gadget_line_id) for the `order` fixture."""
    items = sorted(order.items, key=lambda i: i.id)
    return items[0].id, items[1].id


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
