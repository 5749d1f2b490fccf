"""
Metrics endpoint for performance monitoring.
"""
from fastapi import APIRouter
from chartsmith.core.performance import PerformanceMonitor
from chartsmith.core.store import get_dataset_store

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """Timing statistics per pipeline stage plus dataset session counts."""
    return {
        'performance': PerformanceMonitor.get_all_metrics(),
        'sessions': get_dataset_store().get_stats(),
    }
