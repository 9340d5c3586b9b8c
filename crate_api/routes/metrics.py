from fastapi import APIRouter, Query

from .. import database as db
from ..models import DailyMetric, DownloadMetrics
from .crates import DOWNLOADS_METRIC

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.get("/downloads", response_model=DownloadMetrics)
async def get_download_metrics(days: int = Query(7, ge=1, le=90)):
    """Total downloads plus the most recent daily buckets."""
    total = await db.get_metric(DOWNLOADS_METRIC)
    daily = await db.get_daily_metrics(DOWNLOADS_METRIC, days)
    return DownloadMetrics(total=total, daily=[DailyMetric(**d) for d in daily])


@router.get("/events")
async def get_recent_events(limit: int = Query(50, ge=1, le=500)):
    """Most recent events, newest first."""
    return await db.get_events(limit)
