import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from agrimarket.auth.credentials import identity_for
from agrimarket.auth.security import create_access_token, get_password_hash
from agrimarket.db.session import Base, SessionLocal
from agrimarket.main import app
from agrimarket.models.order import Order
from agrimarket.models.product import Product, ProductImage
from agrimarket.models.user import User
from agrimarket.storage.blob import BlobStoreError, get_blob_store

PASSWORD = "harvest-2024"
PASSWORD_HASH = get_password_hash(PASSWORD)

_sequence = itertools.count(1)


class MemoryBlobStore:
    """Blob store double that records every call; ``fail_on`` makes the n-th put fail."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.blobs = {}
        self.puts = []
        self.deleted = []

    def put(self, key, data, content_type=None):
        self.puts.append(key)
        if self.fail_on is not None and len(self.puts) == self.fail_on:
            raise BlobStoreError("storage unavailable")
        self.blobs[key] = data
        return f"https://blobs.test/{key}"

    def delete(self, key):
        self.deleted.append(key)
        self.blobs.pop(key, None)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'agrimarket-test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal.configure(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def client(engine, blob_store):
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def factory(role="buyer", email=None, name=None, phone=None):
        n = next(_sequence)
        user = User(
            email=email or f"{role}{n}@agrimarket.io",
            name=name or f"{role.title()} {n}",
            phone=phone,
            role=role.upper(),
            password=PASSWORD_HASH,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_product(db):
    def factory(farmer, title=None, category="vegetables", price=10, quantity=100,
                unit="kg", status="AVAILABLE", created_at=None, image_urls=()):
        product = Product(
            title=title or f"Produce {next(_sequence)}",
            category=category,
            price=price,
            quantity=quantity,
            unit=unit,
            status=status,
            farmer_id=farmer.id,
            images=[ProductImage(url=url) for url in image_urls],
        )
        if created_at is not None:
            product.created_at = created_at
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return factory


@pytest.fixture
def make_order(db):
    def factory(product, buyer, total_price=100, quantity=1, status="DELIVERED", created_at=None):
        order = Order(
            product_id=product.id,
            buyer_id=buyer.id,
            quantity=quantity,
            total_price=total_price,
            status=status,
        )
        if created_at is not None:
            order.created_at = created_at
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return factory


def token_for(user):
    return create_access_token(identity_for(user))


def auth(user):
    return {"Authorization": f"Bearer {token_for(user)}"}
