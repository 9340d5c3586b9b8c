from pydantic import BaseModel, Field


class DailyMetric(BaseModel):
    """A single day's counter bucket."""
    date: str
    value: int = 0


class DownloadMetrics(BaseModel):
    """Response model for the download counters."""
    total: int = Field(0, description="Downloads since the store was created")
    daily: list[DailyMetric] = Field(default=[], description="Most recent daily buckets, newest first")
