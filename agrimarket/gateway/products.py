"""Role-scoped product queries and product creation."""
import logging
import math
import re
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from agrimarket.auth.guards import AuthStatus, authorize, ensure_authorized
from agrimarket.core.config import settings
from agrimarket.core.errors import Forbidden, NotFound, UpstreamFailure, ValidationError
from agrimarket.gateway.activity import log_activity
from agrimarket.models.activity import PRODUCT_CREATED
from agrimarket.models.enums import AVAILABLE
from agrimarket.models.order import Order
from agrimarket.models.product import Product, ProductImage
from agrimarket.schemas.product import (
    CreatedProduct,
    FarmerProduct,
    Product as ProductView,
    ProductCreate,
    ProductDetail,
    ProductDetailOrder,
    ProductFilter,
    ProductOrder,
    ProductWithContact,
    ProductWithFarmerDetail,
)
from agrimarket.schemas.user import Identity
from agrimarket.storage.blob import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)

FARMER_SCOPE = "farmer"
FARMER_LISTING_ORDER_LIMIT = 5
PRODUCT_DETAIL_ORDER_LIMIT = 10
DEFAULT_IMAGE_EXTENSION = "jpg"
# Numeric(10, 2) columns
AMOUNT_SCALE = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")


@dataclass
class ImageUpload:
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


# --------------------------------------------------------------------
# Listing
# --------------------------------------------------------------------
def parse_price_bound(raw: Any, lenient: Optional[bool] = None) -> Optional[float]:
    """Parse a minPrice/maxPrice query value.

    Blank means no bound. Under the lenient policy (LENIENT_PRICE_FILTERS) an
    unparseable or non-finite value is also treated as no bound; otherwise it
    is a ValidationError.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if lenient is None:
        lenient = settings.LENIENT_PRICE_FILTERS

    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = None

    if value is None or not math.isfinite(value):
        if lenient:
            return None
        raise ValidationError(f"Invalid price filter: {raw}")
    return value


def build_filters(
    category: Optional[str] = None,
    min_price: Any = None,
    max_price: Any = None,
    scope: Optional[str] = None,
    lenient: Optional[bool] = None,
) -> ProductFilter:
    return ProductFilter(
        category=category or None,
        min_price=parse_price_bound(min_price, lenient),
        max_price=parse_price_bound(max_price, lenient),
        scope=scope or None,
    )


def recent_product_orders(db: Session, product_id: int, limit: int) -> List[Order]:
    return (
        db.query(Order)
        .options(selectinload(Order.buyer))
        .filter(Order.product_id == product_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )


def _with_orders(base_cls, view_cls, order_view_cls, product: Product, orders: Sequence[Order]):
    # Product.orders holds every order; views only carry the recent ones
    data = base_cls.model_validate(product).model_dump()
    data["orders"] = [order_view_cls.model_validate(order) for order in orders]
    return view_cls.model_validate(data)


def list_products(db: Session, identity: Optional[Identity], filters: ProductFilter):
    query = db.query(Product).options(selectinload(Product.farmer), selectinload(Product.images))

    farmer_scope = filters.scope == FARMER_SCOPE
    if farmer_scope:
        if authorize(identity, required_role="farmer") is not AuthStatus.OK:
            raise Forbidden("Farmer access required")
        query = query.filter(Product.farmer_id == identity.id)
    else:
        # market scope only surfaces products that can be bought
        query = query.filter(Product.status == AVAILABLE)

    if filters.category:
        query = query.filter(Product.category == filters.category)
    if filters.min_price is not None:
        query = query.filter(Product.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Product.price <= filters.max_price)

    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    if farmer_scope:
        return [
            _with_orders(
                ProductWithContact,
                FarmerProduct,
                ProductOrder,
                product,
                recent_product_orders(db, product.id, FARMER_LISTING_ORDER_LIMIT),
            )
            for product in products
        ]
    return [ProductView.model_validate(product) for product in products]


# --------------------------------------------------------------------
# Detail
# --------------------------------------------------------------------
def get_product(db: Session, product_id: int) -> ProductDetail:
    """Public catalog detail, including the product's recent order history."""
    try:
        product = (
            db.query(Product)
            .options(selectinload(Product.farmer), selectinload(Product.images))
            .filter(Product.id == product_id)
            .first()
        )
    except SQLAlchemyError as exc:
        logger.exception("Get product detail failed product_id=%s", product_id)
        raise UpstreamFailure(str(exc))

    if product is None:
        raise NotFound("Product not found")

    try:
        orders = recent_product_orders(db, product.id, PRODUCT_DETAIL_ORDER_LIMIT)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Get product detail orders failed product_id=%s", product_id)
        orders = []

    return _with_orders(ProductWithFarmerDetail, ProductDetail, ProductDetailOrder, product, orders)


# --------------------------------------------------------------------
# Creation
# --------------------------------------------------------------------
def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _column_amount(value: Any, label: str) -> Optional[float]:
    """Coerce to a number rounded the way the Numeric(10, 2) column stores it."""
    number = _coerce_number(value)
    if number is None:
        return None
    amount = Decimal(str(number))
    if abs(amount) <= MAX_AMOUNT + AMOUNT_SCALE:
        amount = amount.quantize(AMOUNT_SCALE, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{label} must be at most {MAX_AMOUNT}")
    return float(amount)


def validate_product_payload(raw: Dict[str, Any]) -> ProductCreate:
    """Validate a multipart form or JSON body into a ProductCreate."""
    required = ("title", "category", "unit", "price", "quantity")
    if any(_is_blank(raw.get(field)) for field in required):
        raise ValidationError("Missing required fields")

    price = _column_amount(raw.get("price"), "Price")
    if price is None or price <= 0:
        raise ValidationError("Price must be a positive number")

    quantity = _column_amount(raw.get("quantity"), "Quantity")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be a positive number")

    minimum_order = None
    if not _is_blank(raw.get("minimumOrder")):
        minimum_order = _column_amount(raw.get("minimumOrder"), "Minimum order")
        if minimum_order is None or minimum_order < 0:
            raise ValidationError("Minimum order must be a positive number")

    description = raw.get("description")
    if isinstance(description, str):
        description = description.strip() or None
    elif description is not None:
        description = str(description)

    images = raw.get("images")
    image_urls = []
    if isinstance(images, list):
        image_urls = [url.strip() for url in images if isinstance(url, str) and url.strip()]

    return ProductCreate(
        title=str(raw["title"]).strip(),
        description=description,
        category=str(raw["category"]).strip(),
        price=price,
        quantity=quantity,
        unit=str(raw["unit"]).strip(),
        minimum_order=minimum_order,
        image_urls=image_urls,
    )


def validate_images(images: Sequence[ImageUpload]) -> List[ImageUpload]:
    images = [image for image in images if image.size > 0]
    if len(images) > settings.MAX_IMAGES_PER_PRODUCT:
        raise ValidationError(
            f"You can upload up to {settings.MAX_IMAGES_PER_PRODUCT} images per product."
        )
    if any(image.size > settings.MAX_IMAGE_SIZE for image in images):
        limit_mb = settings.MAX_IMAGE_SIZE // (1024 * 1024)
        raise ValidationError(f"Each image must be {limit_mb}MB or smaller.")
    return images


def image_object_key(farmer_id: int, filename: Optional[str]) -> str:
    extension = ""
    if filename and "." in filename:
        extension = re.sub(r"[^a-zA-Z0-9]", "", filename.rsplit(".", 1)[-1].strip())
    return f"{farmer_id}/{uuid.uuid4().hex}.{extension or DEFAULT_IMAGE_EXTENSION}"


def discard_blobs(blob_store: BlobStore, keys: Sequence[str]) -> None:
    for key in keys:
        try:
            blob_store.delete(key)
        except BlobStoreError:
            logger.exception("Could not delete orphaned image %s", key)


def upload_images(blob_store: BlobStore, farmer_id: int, images: Sequence[ImageUpload]) -> List[Tuple[str, str]]:
    """Upload images in submission order; all or nothing."""
    stored = []
    for image in images:
        key = image_object_key(farmer_id, image.filename)
        try:
            url = blob_store.put(key, image.data, image.content_type or "application/octet-stream")
        except BlobStoreError:
            logger.exception("Image upload failed key=%s", key)
            discard_blobs(blob_store, [k for k, _ in stored])
            raise UpstreamFailure("Failed to upload one of the images.")
        stored.append((key, url))
    return stored


def create_product(
    db: Session,
    identity: Optional[Identity],
    payload: ProductCreate,
    images: Sequence[ImageUpload] = (),
    blob_store: Optional[BlobStore] = None,
) -> CreatedProduct:
    identity = ensure_authorized(identity, required_role="farmer",
                                 forbidden_detail="Only farmers can create products")
    images = validate_images(images)
    if images and blob_store is None:
        raise UpstreamFailure("Image storage is not configured")

    stored = upload_images(blob_store, identity.id, images) if images else []
    urls = list(payload.image_urls) + [url for _, url in stored]

    db_product = Product(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        price=payload.price,
        quantity=payload.quantity,
        unit=payload.unit,
        minimum_order=payload.minimum_order,
        status=AVAILABLE,
        farmer_id=identity.id,
        images=[ProductImage(url=url) for url in urls],
    )
    try:
        db.add(db_product)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Product insert failed, removing %d uploaded images", len(stored))
        discard_blobs(blob_store, [key for key, _ in stored])
        raise
    db.refresh(db_product)

    created = CreatedProduct.model_validate(db_product)
    logger.info("Product created product_id=%s farmer_id=%s images=%d", created.id, identity.id, len(urls))
    log_activity(
        db,
        user_id=identity.id,
        type=PRODUCT_CREATED,
        description=f"Product '{created.title}' created",
        product_id=created.id,
    )
    return created
