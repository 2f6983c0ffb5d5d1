import logging
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agrimarket.models.activity import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    user_id: int,
    type: str,
    description: str,
    metadata: Optional[Any] = None,
    product_id: Optional[int] = None,
    order_id: Optional[int] = None,
) -> Optional[ActivityLog]:
    """Append an audit entry. A failed write is logged and never fails the caller."""
    entry = ActivityLog(
        user_id=user_id,
        type=type,
        description=description,
        details=metadata,
        product_id=product_id,
        order_id=order_id,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record activity log type=%s user_id=%s", type, user_id)
        return None
    return entry
