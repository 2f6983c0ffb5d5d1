import logging
from agrimarket.models.user import User
from agrimarket.models.product import Product, ProductImage
from agrimarket.models.order import Order
from agrimarket.models.activity import ActivityLog
from agrimarket.db.session import engine, Base, SessionLocal
from agrimarket.auth.credentials import ensure_admin_user

logger = logging.getLogger(__name__)

def init_db():
    # Create all tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready on %s", engine.url.render_as_string(hide_password=True))

    db = SessionLocal()
    try:
        ensure_admin_user(db)
    finally:
        db.close()
