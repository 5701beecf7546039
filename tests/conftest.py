import os
from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["PAYPAL_CLIENT_ID"] = "paypal_client_test"
os.environ["PAYPAL_CLIENT_SECRET"] = "paypal_secret_test"
os.environ["PAYPAL_MODE"] = "sandbox"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.dependencies import get_paypal_client
from storefront.main import app
from storefront.models import Order, OrderItem, Product, User
from storefront.models.database import Base, get_db
from storefront.schemas.orders import OrderStatus, PaymentStatus
from storefront.services.paypal_service import PayPalClient

TEST_PASSWORD = "testpassword123"

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def paypal_client(client: TestClient) -> MagicMock:
    """Replace the PayPal client dependency with a mock."""
    mock = MagicMock(spec=PayPalClient)
    mock.create_order.return_value = {"id": "PAYPAL-ORDER-1", "status": "CREATED"}
    app.dependency_overrides[get_paypal_client] = lambda: mock
    return mock


def _make_user(db: Session, email: str, **flags) -> User:
    from storefront.api.auth import get_password_hash

    user = User(
        email=email,
        display_name=email.split("@")[0].title(),
        hashed_password=get_password_hash(TEST_PASSWORD),
        **flags,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a customer."""
    return _make_user(db, "test@example.com", email_subscribed=True)


@pytest.fixture
def test_user2(db: Session) -> User:
    """Create a second customer."""
    return _make_user(db, "test2@example.com")


@pytest.fixture
def admin_user(db: Session) -> User:
    """Create an admin."""
    return _make_user(db, "admin@example.com", is_admin=True)


@pytest.fixture
def seller_user(db: Session) -> User:
    """Create a seller."""
    return _make_user(db, "seller@example.com", is_seller=True)


@pytest.fixture
def test_product(db: Session) -> Product:
    """Create an active product priced at 30.00."""
    product = Product(
        name="Brake Pad Set",
        sku="BPS-100",
        price=Decimal("30.00"),
        stock_quantity=10,
        is_active=True,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def test_product_expensive(db: Session) -> Product:
    """Create an active product priced at 100.00."""
    product = Product(
        name="Performance Exhaust",
        sku="EXH-200",
        price=Decimal("100.00"),
        stock_quantity=3,
        is_active=True,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def test_product_inactive(db: Session) -> Product:
    """Create an inactive product."""
    product = Product(
        name="Discontinued Filter",
        sku="FLT-000",
        price=Decimal("12.50"),
        stock_quantity=0,
        is_active=False,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def make_order(db: Session):
    """Factory for persisted orders at a given status."""

    def _make(
        user: User | None = None,
        status: OrderStatus = OrderStatus.PENDING_ADMIN_REVIEW,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        total: Decimal = Decimal("42.47"),
        payment_method: str = "custom_external",
        order_number: str | None = None,
        paypal_order_id: str | None = None,
    ) -> Order:
        order = Order(
            order_number=order_number or f"ORD-TEST-{db.query(Order).count() + 1:05d}",
            user_id=user.id if user else None,
            subtotal=Decimal("30.00"),
            shipping_amount=Decimal("9.99"),
            tax_amount=Decimal("2.48"),
            total_amount=total,
            status=status,
            payment_status=payment_status,
            payment_method=payment_method,
            paypal_order_id=paypal_order_id,
        )
        order.items = [
            OrderItem(
                product_name="Brake Pad Set",
                product_sku="BPS-100",
                quantity=1,
                unit_price=Decimal("30.00"),
                total_price=Decimal("30.00"),
            )
        ]
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


def _login(client: TestClient, email: str) -> dict[str, str]:
    response = client.post("/api/auth/login", json={"email": email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
def auth_token(client: TestClient, test_user: User) -> str:
    """Get auth token for test user."""
    response = client.post(
        "/api/auth/login",
        json={"email": "test@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return response.json()["accessToken"]


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Get auth headers with token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def auth_headers_user2(client: TestClient, test_user2: User) -> dict[str, str]:
    return _login(client, test_user2.email)


@pytest.fixture
def admin_headers(client: TestClient, admin_user: User) -> dict[str, str]:
    return _login(client, admin_user.email)


@pytest.fixture
def seller_headers(client: TestClient, seller_user: User) -> dict[str, str]:
    return _login(client, seller_user.email)
