import pytest
from datetime import datetime
from decimal import Decimal
import uuid

from app import create_app
from app.database import get_session, create_all, drop_all
from app.models import Branch, Profile, Product, Customer, UserRole
from app.services.store import DataStore


@pytest.fixture(scope='function')
def app():
    """Application bound to a fresh in-memory database."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
        yield app
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the requests of the test."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def store(session):
    return DataStore(session)


@pytest.fixture(scope='function')
def branch(session):
    """Nairobi branch trading in KES."""
    branch = Branch(name='Nairobi CBD', country='Kenya', currency='KES')
    session.add(branch)
    session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(session):
    """Second branch for isolation tests."""
    branch = Branch(name='Kampala Road', country='Uganda', currency='UGX')
    session.add(branch)
    session.commit()
    return branch


def _make_profile(session, branch, role, password='password123'):
    suffix = str(uuid.uuid4())[:8]
    profile = Profile(
        email=f'{role}-{suffix}@test.com',
        full_name=f'{role.title()} User',
        role=role,
        branch_id=branch.id if branch else None,
        active=True
    )
    profile.set_password(password)
    session.add(profile)
    session.commit()
    return profile


@pytest.fixture(scope='function')
def cashier(session, branch):
    return _make_profile(session, branch, UserRole.CASHIER.value)


@pytest.fixture(scope='function')
def manager(session, branch):
    return _make_profile(session, branch, UserRole.MANAGER.value)


@pytest.fixture(scope='function')
def other_cashier(session, other_branch):
    return _make_profile(session, other_branch, UserRole.CASHIER.value)


@pytest.fixture(scope='function')
def oil_filter(session, branch):
    """Oil Filter, KES 850, 10 in stock."""
    product = Product(
        branch_id=branch.id,
        sku='OF-001',
        name='Oil Filter',
        category='Filters',
        brand='Masuma',
        part_number='MFC-112',
        price=Decimal('850.00'),
        cost_price=Decimal('600.00'),
        stock_quantity=10,
        min_stock_level=5
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def brake_pads(session, branch):
    """Brake Pads, KES 2,500, 4 in stock."""
    product = Product(
        branch_id=branch.id,
        sku='BP-010',
        name='Brake Pads',
        category='Brakes',
        brand='Masuma',
        part_number='MS-2398',
        price=Decimal('2500.00'),
        cost_price=Decimal('1800.00'),
        stock_quantity=4,
        min_stock_level=5
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def spark_plug(session, branch):
    """Spark Plug, KES 300, out of stock."""
    product = Product(
        branch_id=branch.id,
        sku='SP-003',
        name='Spark Plug',
        category='Ignition',
        price=Decimal('300.00'),
        stock_quantity=0,
        min_stock_level=10
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def customer(session, branch):
    customer = Customer(
        branch_id=branch.id,
        name='Jane Wanjiku',
        phone='+254700000001',
        email='jane@example.com',
        kra_pin='A123456789Z'
    )
    session.add(customer)
    session.commit()
    return customer


def login_as(client, profile):
    with client.session_transaction() as sess:
        sess['user_id'] = profile.id
    return client


@pytest.fixture(scope='function')
def cashier_client(client, cashier):
    """Client logged in as a cashier of the branch."""
    return login_as(client, cashier)


@pytest.fixture(scope='function')
def manager_client(client, manager):
    """Client logged in as a manager of the branch."""
    return login_as(client, manager)


@pytest.fixture
def fixed_now():
    return datetime(2026, 1, 12, 15, 30)
