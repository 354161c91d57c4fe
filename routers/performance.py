"""
PERFORMANCE ROUTER - Published pick record and ROI

Endpoints:
    - /performance/stats?window_days=30   - Summary over graded, published picks (0 = all time)
"""

from fastapi import APIRouter, Query

from performance import published_stats

router = APIRouter(tags=["performance"])


@router.get("/performance/stats")
async def performance_stats(window_days: int = Query(30, ge=0, le=3650)):
    return published_stats(window_days or None)
