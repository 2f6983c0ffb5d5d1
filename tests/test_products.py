import asyncio
from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from agrimarket.api import products as products_api
from agrimarket.core.errors import ValidationError
from agrimarket.gateway import products as products_gateway
from agrimarket.gateway.products import (
    ImageUpload,
    create_product,
    image_object_key,
    parse_price_bound,
    validate_product_payload,
)
from agrimarket.models.product import Product, ProductImage
from agrimarket.schemas.user import Identity

from conftest import MemoryBlobStore, auth

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

VALID_FORM = {
    "title": "Alphonso mangoes",
    "category": "fruits",
    "unit": "kg",
    "price": "120",
    "quantity": "40",
}


def _images(count, size=None):
    data = PNG if size is None else b"x" * size
    return [("images", (f"photo{i}.png", data, "image/png")) for i in range(count)]


# --------------------------------------------------------------------
# Listing
# --------------------------------------------------------------------
def test_market_listing_only_contains_available_products(client, make_user, make_product):
    farmer = make_user(role="farmer")
    available = make_product(farmer, status="AVAILABLE")
    make_product(farmer, status="SOLD")
    make_product(farmer, status="RESERVED")

    response = client.get("/products")

    assert response.status_code == 200
    products = response.json()["products"]
    assert [p["id"] for p in products] == [available.id]
    assert products[0]["status"] == "available"


def test_market_listing_hides_orders_and_farmer_email(client, make_user, make_product, make_order):
    farmer = make_user(role="farmer")
    buyer = make_user()
    product = make_product(farmer)
    make_order(product, buyer)

    product_view = client.get("/products", headers=auth(buyer)).json()["products"][0]

    assert "orders" not in product_view
    assert product_view["farmer"] == {"id": farmer.id, "name": farmer.name}


def test_listing_is_newest_first(client, make_user, make_product):
    farmer = make_user(role="farmer")
    older = make_product(farmer, created_at=datetime(2024, 1, 1))
    newest = make_product(farmer, created_at=datetime(2024, 3, 1))
    middle = make_product(farmer, created_at=datetime(2024, 2, 1))

    ids = [p["id"] for p in client.get("/products").json()["products"]]

    assert ids == [newest.id, middle.id, older.id]


def test_category_and_inclusive_price_filters(client, make_user, make_product):
    farmer = make_user(role="farmer")
    cheap = make_product(farmer, category="grains", price=10)
    mid = make_product(farmer, category="grains", price=20)
    make_product(farmer, category="grains", price=30)
    make_product(farmer, category="fruits", price=20)

    response = client.get("/products", params={"category": "grains", "minPrice": "10", "maxPrice": "20"})

    assert {p["id"] for p in response.json()["products"]} == {cheap.id, mid.id}


def test_invalid_price_filters_are_ignored(client, make_user, make_product):
    farmer = make_user(role="farmer")
    make_product(farmer, price=5)
    make_product(farmer, price=500)

    response = client.get("/products", params={"minPrice": "cheap", "maxPrice": "NaN"})

    assert response.status_code == 200
    assert len(response.json()["products"]) == 2


def test_price_filter_strict_mode():
    assert parse_price_bound("12.5", lenient=False) == 12.5
    assert parse_price_bound("", lenient=False) is None
    assert parse_price_bound("abc", lenient=True) is None
    assert parse_price_bound("inf", lenient=True) is None
    with pytest.raises(ValidationError):
        parse_price_bound("abc", lenient=False)


@pytest.mark.parametrize("role", [None, "buyer", "admin"])
def test_farmer_scope_requires_farmer(client, make_user, role):
    headers = auth(make_user(role=role)) if role else {}

    response = client.get("/products", params={"scope": "farmer"}, headers=headers)

    assert response.status_code == 403


def test_farmer_scope_lists_own_products_in_every_status(client, make_user, make_product):
    farmer = make_user(role="farmer")
    other = make_user(role="farmer")
    mine = {make_product(farmer, status=s).id for s in ("AVAILABLE", "SOLD", "RESERVED")}
    make_product(other)

    response = client.get("/products", params={"scope": "farmer"}, headers=auth(farmer))

    assert response.status_code == 200
    products = response.json()["products"]
    assert {p["id"] for p in products} == mine
    assert all(p["farmer"]["email"] == farmer.email for p in products)


def test_farmer_scope_embeds_five_most_recent_orders(client, make_user, make_product, make_order):
    farmer = make_user(role="farmer")
    buyer = make_user()
    product = make_product(farmer)
    orders = [make_order(product, buyer, created_at=datetime(2024, 5, day)) for day in range(1, 8)]

    response = client.get("/products", params={"scope": "farmer"}, headers=auth(farmer))

    embedded = response.json()["products"][0]["orders"]
    assert [o["id"] for o in embedded] == [o.id for o in reversed(orders)][:5]
    assert embedded[0]["buyer"] == {"id": buyer.id, "name": buyer.name, "email": buyer.email}
    assert embedded[0]["status"] == "delivered"
    assert embedded[0]["totalPrice"] == 100.0


# --------------------------------------------------------------------
# Detail
# --------------------------------------------------------------------
def test_product_detail_is_public_and_exposes_order_history(client, make_user, make_product, make_order):
    farmer = make_user(role="farmer", phone="+91-98450-00000")
    buyer = make_user()
    product = make_product(farmer, image_urls=["https://cdn.test/1.jpg", "https://cdn.test/2.jpg"])
    orders = [make_order(product, buyer, created_at=datetime(2024, 4, day)) for day in range(1, 13)]

    response = client.get(f"/products/{product.id}")

    assert response.status_code == 200
    detail = response.json()["product"]
    assert detail["farmer"] == {"id": farmer.id, "name": farmer.name, "email": farmer.email,
                                "phone": "+91-98450-00000"}
    assert [i["url"] for i in detail["images"]] == ["https://cdn.test/1.jpg", "https://cdn.test/2.jpg"]
    # order history, buyer identities included, is visible without a session
    assert len(detail["orders"]) == 10
    assert [o["id"] for o in detail["orders"]] == [o.id for o in reversed(orders)][:10]
    assert detail["orders"][0]["buyer"]["email"] == buyer.email
    assert detail["orders"][0]["quantity"] == 1.0


def test_product_detail_not_found(client):
    response = client.get("/products/9999")

    assert response.status_code == 404


def test_product_detail_survives_order_query_failure(client, make_user, make_product, make_order, monkeypatch):
    farmer = make_user(role="farmer")
    product = make_product(farmer)
    make_order(product, make_user())

    def broken(*args, **kwargs):
        raise SQLAlchemyError("orders table unavailable")

    monkeypatch.setattr(products_gateway, "recent_product_orders", broken)

    response = client.get(f"/products/{product.id}")

    assert response.status_code == 200
    assert response.json()["product"]["id"] == product.id
    assert response.json()["product"]["orders"] == []


# --------------------------------------------------------------------
# Creation
# --------------------------------------------------------------------
def test_create_requires_authentication_before_validation(client):
    response = client.post("/products", json={"title": ""})

    assert response.status_code == 401


@pytest.mark.parametrize("role", ["buyer", "admin"])
def test_create_requires_farmer(client, make_user, db, role):
    response = client.post("/products", json={**VALID_FORM}, headers=auth(make_user(role=role)))

    assert response.status_code == 403
    assert db.query(Product).count() == 0


def test_create_from_json_with_hosted_urls(client, make_user, blob_store, db):
    farmer = make_user(role="farmer")
    body = {**VALID_FORM, "price": 120, "quantity": 40.5, "minimumOrder": "5",
            "images": ["https://cdn.test/a.jpg", "  ", 42, "https://cdn.test/b.jpg"]}

    response = client.post("/products", json=body, headers=auth(farmer))

    assert response.status_code == 201
    product = response.json()["product"]
    assert response.json()["message"] == "Product created successfully"
    assert product["farmerId"] == farmer.id
    assert product["status"] == "available"
    assert product["quantity"] == 40.5
    assert product["minimumOrder"] == 5.0
    assert [i["url"] for i in product["images"]] == ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]
    assert blob_store.puts == []


def test_create_multipart_uploads_images_in_submission_order(client, make_user, blob_store):
    farmer = make_user(role="farmer")

    response = client.post("/products", data=VALID_FORM, files=_images(3), headers=auth(farmer))

    assert response.status_code == 201
    product = response.json()["product"]
    assert len(blob_store.puts) == 3
    assert [i["url"] for i in product["images"]] == [f"https://blobs.test/{key}" for key in blob_store.puts]
    assert all(key.startswith(f"{farmer.id}/") and key.endswith(".png") for key in blob_store.puts)

    detail = client.get(f"/products/{product['id']}").json()["product"]
    assert [i["url"] for i in detail["images"]] == [i["url"] for i in product["images"]]


def test_create_rejects_seven_images_before_uploading(client, make_user, blob_store, db):
    response = client.post("/products", data=VALID_FORM, files=_images(7), headers=auth(make_user(role="farmer")))

    assert response.status_code == 400
    assert blob_store.puts == []
    assert db.query(Product).count() == 0


def test_create_rejects_oversized_image(client, make_user, blob_store):
    files = _images(1) + [("images", ("huge.jpg", b"x" * (5 * 1024 * 1024 + 1), "image/jpeg"))]

    response = client.post("/products", data=VALID_FORM, files=files, headers=auth(make_user(role="farmer")))

    assert response.status_code == 400
    assert blob_store.puts == []


@pytest.mark.parametrize("overrides", [
    {"price": "0"},
    {"price": "-3"},
    {"quantity": "0"},
    {"quantity": "-1.5"},
    {"price": "free"},
])
def test_create_rejects_non_positive_numbers(client, make_user, db, overrides):
    response = client.post("/products", json={**VALID_FORM, **overrides}, headers=auth(make_user(role="farmer")))

    assert response.status_code == 400
    assert db.query(Product).count() == 0


@pytest.mark.parametrize("overrides", [
    {"price": "0.001"},
    {"quantity": "0.004"},
    {"price": "0.001", "quantity": "0.004"},
])
def test_create_rejects_amounts_that_round_to_zero(client, make_user, db, overrides):
    response = client.post("/products", json={**VALID_FORM, **overrides}, headers=auth(make_user(role="farmer")))

    assert response.status_code == 400
    assert db.query(Product).count() == 0


@pytest.mark.parametrize("overrides", [
    {"price": "100000000"},
    {"quantity": 1e12},
    {"price": "99999999.995"},
    {"minimumOrder": "123456789"},
])
def test_create_rejects_amounts_beyond_column_precision(client, make_user, db, overrides):
    response = client.post("/products", json={**VALID_FORM, **overrides}, headers=auth(make_user(role="farmer")))

    assert response.status_code == 400
    assert "must be at most 99999999.99" in response.json()["detail"]
    assert db.query(Product).count() == 0


def test_create_stores_amounts_at_column_scale(client, make_user):
    body = {**VALID_FORM, "price": "0.005", "quantity": "99999999.993"}

    response = client.post("/products", json=body, headers=auth(make_user(role="farmer")))

    assert response.status_code == 201
    assert response.json()["product"]["price"] == 0.01
    assert response.json()["product"]["quantity"] == 99999999.99


def test_create_runs_off_the_event_loop(client, make_user, monkeypatch):
    calls = []

    def recording_create(*args):
        try:
            asyncio.get_running_loop()
            calls.append("event loop")
        except RuntimeError:
            calls.append("worker thread")
        return create_product(*args)

    monkeypatch.setattr(products_api, "create_product", recording_create)

    response = client.post("/products", json=VALID_FORM, headers=auth(make_user(role="farmer")))

    assert response.status_code == 201
    assert calls == ["worker thread"]


@pytest.mark.parametrize("missing", ["title", "category", "unit", "price", "quantity"])
def test_create_requires_fields(client, make_user, missing):
    body = {**VALID_FORM, missing: "   "}

    response = client.post("/products", json=body, headers=auth(make_user(role="farmer")))

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields"


def test_create_rejects_negative_minimum_order():
    with pytest.raises(ValidationError):
        validate_product_payload({**VALID_FORM, "minimumOrder": "-1"})
    assert validate_product_payload({**VALID_FORM, "minimumOrder": 0}).minimum_order == 0


def test_upload_failure_aborts_creation_and_removes_stored_images(client, make_user, db):
    failing_store = MemoryBlobStore(fail_on=2)
    from agrimarket.main import app
    from agrimarket.storage.blob import get_blob_store
    app.dependency_overrides[get_blob_store] = lambda: failing_store

    response = client.post("/products", data=VALID_FORM, files=_images(3), headers=auth(make_user(role="farmer")))

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to upload one of the images."
    assert len(failing_store.puts) == 2
    assert failing_store.deleted == failing_store.puts[:1]
    assert failing_store.blobs == {}
    assert db.query(Product).count() == 0


def test_row_insert_failure_deletes_uploaded_blobs(db, make_user, monkeypatch):
    farmer = make_user(role="farmer")
    identity = Identity(id=farmer.id, email=farmer.email, name=farmer.name, role="farmer")
    store = MemoryBlobStore()
    payload = validate_product_payload(VALID_FORM)
    images = [ImageUpload("a.jpg", "image/jpeg", PNG), ImageUpload("b.jpg", "image/jpeg", PNG)]

    def failing_commit():
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(SQLAlchemyError):
        create_product(db, identity, payload, images, store)

    assert len(store.puts) == 2
    assert sorted(store.deleted) == sorted(store.puts)
    assert store.blobs == {}
    monkeypatch.undo()
    assert db.query(ProductImage).count() == 0


@pytest.mark.parametrize("filename, extension", [
    ("photo.PNG", "PNG"),
    ("archive.tar.gz", "gz"),
    ("weird.j p$g", "jpg"),
    ("noextension", "jpg"),
    ("trailingdot.", "jpg"),
    (None, "jpg"),
])
def test_image_object_key(filename, extension):
    key = image_object_key(12, filename)

    prefix, name = key.split("/")
    assert prefix == "12"
    assert name.rsplit(".", 1)[1] == extension
