from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile
from typing import Optional

from agrimarket.db.session import get_db
from agrimarket.auth.security import get_identity, require_role
from agrimarket.core.errors import ValidationError
from agrimarket.gateway.products import (
    ImageUpload,
    build_filters,
    create_product,
    get_product,
    list_products,
    validate_product_payload,
)
from agrimarket.schemas.product import CreatedProductEnvelope, ProductEnvelope
from agrimarket.schemas.user import Identity
from agrimarket.storage.blob import BlobStore, get_blob_store

router = APIRouter()

PRODUCT_FORM_FIELDS = ("title", "description", "category", "unit", "quantity", "price", "minimumOrder")

only_farmers = require_role("farmer", "Only farmers can create products")


@router.get(
    "",
    response_model=None,
    summary="List products",
    description="Market listing of available products, or a farmer's own products with scope=farmer."
)
def read_products(
    category: Optional[str] = Query(None, description="Exact category match"),
    min_price: Optional[str] = Query(None, alias="minPrice", description="Inclusive lower price bound"),
    max_price: Optional[str] = Query(None, alias="maxPrice", description="Inclusive upper price bound"),
    scope: Optional[str] = Query(None, description="'farmer' for the caller's own products"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity)
):
    """
    List products, newest first.

    - **category**: exact match
    - **minPrice** / **maxPrice**: inclusive bounds; unparseable values are ignored
    - **scope**: `farmer` lists the caller's own products in every status, with
      their five most recent orders. Requires a farmer session.
    """
    filters = build_filters(category, min_price, max_price, scope)
    products = list_products(db, identity, filters)
    return {"products": products}


@router.post(
    "",
    response_model=CreatedProductEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a product from a multipart form with image files, or from JSON with image URLs. Farmers only."
)
async def create_product_route(
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(only_farmers),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """
    Create a product owned by the calling farmer.

    - **title**, **category**, **unit**, **price**, **quantity**: required
    - **description**, **minimumOrder**: optional
    - **images**: up to 6 files of 5MB each (multipart), or a list of URLs (JSON)
    """
    images = []
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        raw = {field: form.get(field) for field in PRODUCT_FORM_FIELDS}
        for upload in form.getlist("images"):
            if isinstance(upload, UploadFile):
                images.append(ImageUpload(
                    filename=upload.filename,
                    content_type=upload.content_type,
                    data=await upload.read(),
                ))
    else:
        try:
            raw = await request.json()
        except ValueError:
            raise ValidationError("Invalid JSON body")
        if not isinstance(raw, dict):
            raise ValidationError("Invalid JSON body")

    payload = validate_product_payload(raw)
    # DB commits and blob writes block; keep them off the event loop
    product = await run_in_threadpool(create_product, db, identity, payload, images, blob_store)
    return {"message": "Product created successfully", "product": product}


@router.get(
    "/{product_id}",
    response_model=ProductEnvelope,
    summary="Get product by ID",
    description="Public product detail with farmer contact and the ten most recent orders."
)
def read_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    return {"product": get_product(db, product_id)}
