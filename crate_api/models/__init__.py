from .crate import Crate, CrateInfo, SharedSettings
from .identity import ANONYMOUS, ResolvedIdentity
from .metrics import DailyMetric, DownloadMetrics

__all__ = [
    # Crate
    "Crate",
    "CrateInfo",
    "SharedSettings",
    # Identity
    "ANONYMOUS",
    "ResolvedIdentity",
    # Metrics
    "DailyMetric",
    "DownloadMetrics",
]
