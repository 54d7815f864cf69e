"""Usage analytics endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from enhancer.app.api.dependencies import get_analytics
from enhancer.app.services.analytics import Analytics

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("")
def get_usage(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    analytics: Analytics = Depends(get_analytics),
) -> Dict[str, Any]:
    return {
        "stats": analytics.get_stats(),
        "events": [e.model_dump(mode="json") for e in analytics.get_events(limit)],
    }


@router.delete("", status_code=204)
def clear_usage(analytics: Analytics = Depends(get_analytics)) -> None:
    analytics.clear_data()
