from fastapi import APIRouter, Depends

from agrimarket.auth.security import get_current_identity
from agrimarket.gateway.analytics import compute_analytics
from agrimarket.schemas.analytics import AnalyticsEnvelope
from agrimarket.schemas.user import Identity

router = APIRouter()

@router.get("", response_model=AnalyticsEnvelope)
async def read_analytics(current_user: Identity = Depends(get_current_identity)):
    """Dashboard figures shaped by the caller's role (admin, farmer or buyer)."""
    return {"analytics": await compute_analytics(current_user)}
