"""Role-specific analytics views.

Each branch issues independent read queries concurrently, each on its own
session in the threadpool, and combines them once all complete. A failing
sub-query fails the whole call.
"""
import asyncio
import logging
from functools import partial
from typing import Callable, List, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import and_, extract, func
from sqlalchemy.orm import Session, selectinload

from agrimarket.auth.guards import ensure_authorized
from agrimarket.db import session as db_session
from agrimarket.models.enums import AVAILABLE, DELIVERED
from agrimarket.models.order import Order
from agrimarket.models.product import Product
from agrimarket.models.user import User
from agrimarket.gateway.orders import buyer_orders_query
from agrimarket.schemas.analytics import (
    AdminAnalytics,
    BuyerAnalytics,
    FarmerAnalytics,
    MonthlySales,
    RecommendedProduct,
    TopProduct,
)
from agrimarket.schemas.order import Order as OrderView
from agrimarket.schemas.product import CoverImage
from agrimarket.schemas.user import Identity, UserSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")

SALES_MONTHS = 12
TOP_PRODUCTS = 5
RECENT_ORDERS = 5
RECOMMENDED_PRODUCTS = 5


def _run_query(query: Callable[[Session], T]) -> T:
    db = db_session.SessionLocal()
    try:
        return query(db)
    finally:
        db.close()


async def run_concurrently(*queries: Callable[[Session], T]) -> List[T]:
    return await asyncio.gather(*(run_in_threadpool(_run_query, query) for query in queries))


def _amount(value) -> float:
    return float(value) if value is not None else 0.0


# --------------------------------------------------------------------
# Sub-queries
# --------------------------------------------------------------------
def count_users(db: Session) -> int:
    return db.query(func.count(User.id)).scalar()


def count_products(db: Session, farmer_id: Optional[int] = None) -> int:
    query = db.query(func.count(Product.id))
    if farmer_id is not None:
        query = query.filter(Product.farmer_id == farmer_id)
    return query.scalar()


def count_orders(db: Session, farmer_id: Optional[int] = None, buyer_id: Optional[int] = None) -> int:
    query = db.query(func.count(Order.id))
    if farmer_id is not None:
        query = query.join(Product, Order.product_id == Product.id).filter(Product.farmer_id == farmer_id)
    if buyer_id is not None:
        query = query.filter(Order.buyer_id == buyer_id)
    return query.scalar()


def delivered_revenue(db: Session, farmer_id: Optional[int] = None, buyer_id: Optional[int] = None) -> float:
    query = db.query(func.sum(Order.total_price)).filter(Order.status == DELIVERED)
    if farmer_id is not None:
        query = query.join(Product, Order.product_id == Product.id).filter(Product.farmer_id == farmer_id)
    if buyer_id is not None:
        query = query.filter(Order.buyer_id == buyer_id)
    return _amount(query.scalar())


def average_delivered_order(db: Session, buyer_id: int) -> float:
    value = (
        db.query(func.avg(Order.total_price))
        .filter(Order.status == DELIVERED, Order.buyer_id == buyer_id)
        .scalar()
    )
    return _amount(value)


def sales_by_month(db: Session, limit: int = SALES_MONTHS) -> List[MonthlySales]:
    """Delivered revenue per calendar month, newest first.

    Only months with delivered orders appear; gaps are not zero-filled.
    """
    year = extract("year", Order.created_at).label("year")
    month = extract("month", Order.created_at).label("month")
    rows = (
        db.query(year, month, func.sum(Order.total_price).label("revenue"))
        .filter(Order.status == DELIVERED)
        .group_by(year, month)
        .order_by(year.desc(), month.desc())
        .limit(limit)
        .all()
    )
    return [
        MonthlySales(month=f"{int(row.year):04d}-{int(row.month):02d}", revenue=_amount(row.revenue))
        for row in rows
    ]


def top_products(db: Session, farmer_id: int, limit: int = TOP_PRODUCTS) -> List[TopProduct]:
    revenue = func.coalesce(func.sum(Order.total_price), 0).label("revenue")
    delivered = func.count(Order.id).label("delivered_orders")
    rows = (
        db.query(Product, revenue, delivered)
        .outerjoin(Order, and_(Order.product_id == Product.id, Order.status == DELIVERED))
        .filter(Product.farmer_id == farmer_id)
        .group_by(Product.id)
        .order_by(revenue.desc(), Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )
    return [
        TopProduct(
            id=product.id,
            title=product.title,
            category=product.category,
            price=product.price,
            unit=product.unit,
            status=product.status,
            revenue=_amount(product_revenue),
            delivered_orders=delivered_orders,
        )
        for product, product_revenue, delivered_orders in rows
    ]


def recent_orders(db: Session, buyer_id: int, limit: int = RECENT_ORDERS) -> List[OrderView]:
    orders = buyer_orders_query(db, buyer_id).limit(limit).all()
    return [OrderView.model_validate(order) for order in orders]


def recommended_products(db: Session, buyer_id: int, limit: int = RECOMMENDED_PRODUCTS) -> List[RecommendedProduct]:
    """Newest available products this buyer has never ordered."""
    products = (
        db.query(Product)
        .options(selectinload(Product.farmer), selectinload(Product.images))
        .filter(
            Product.status == AVAILABLE,
            ~Product.orders.any(Order.buyer_id == buyer_id),
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )
    return [
        RecommendedProduct(
            id=product.id,
            title=product.title,
            category=product.category,
            price=product.price,
            unit=product.unit,
            farmer=UserSummary.model_validate(product.farmer),
            cover_image=CoverImage.model_validate(product.images[0]) if product.images else None,
        )
        for product in products
    ]


# --------------------------------------------------------------------
# Views
# --------------------------------------------------------------------
async def admin_analytics() -> AdminAnalytics:
    revenue, orders, users, products, months = await run_concurrently(
        delivered_revenue, count_orders, count_users, count_products, sales_by_month
    )
    return AdminAnalytics(
        total_revenue=revenue,
        total_orders=orders,
        total_users=users,
        total_products=products,
        sales_by_month=months,
    )


async def farmer_analytics(farmer_id: int) -> FarmerAnalytics:
    revenue, orders, products, top = await run_concurrently(
        partial(delivered_revenue, farmer_id=farmer_id),
        partial(count_orders, farmer_id=farmer_id),
        partial(count_products, farmer_id=farmer_id),
        partial(top_products, farmer_id=farmer_id),
    )
    return FarmerAnalytics(
        total_revenue=revenue,
        total_orders=orders,
        total_products=products,
        top_products=top,
    )


async def buyer_analytics(buyer_id: int) -> BuyerAnalytics:
    spent, orders, average, recent, recommended = await run_concurrently(
        partial(delivered_revenue, buyer_id=buyer_id),
        partial(count_orders, buyer_id=buyer_id),
        partial(average_delivered_order, buyer_id=buyer_id),
        partial(recent_orders, buyer_id=buyer_id),
        partial(recommended_products, buyer_id=buyer_id),
    )
    return BuyerAnalytics(
        total_spent=spent,
        total_orders=orders,
        average_order_value=average,
        recent_orders=recent,
        recommended_products=recommended,
    )


async def compute_analytics(identity: Optional[Identity]):
    identity = ensure_authorized(identity)
    logger.debug("Computing analytics role=%s user_id=%s", identity.role, identity.id)
    if identity.role == "admin":
        return await admin_analytics()
    if identity.role == "farmer":
        return await farmer_analytics(identity.id)
    return await buyer_analytics(identity.id)
