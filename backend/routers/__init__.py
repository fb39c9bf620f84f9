from .alerts import router as alerts_router
from .analysis import router as analysis_router
from .history import router as history_router
from .insights import router as insights_router
from .metrics import router as metrics_router
from .positions import router as positions_router
from .protocols import router as protocols_router
from .timeline import router as timeline_router

__all__ = [
    "alerts_router",
    "analysis_router",
    "history_router",
    "insights_router",
    "metrics_router",
    "positions_router",
    "protocols_router",
    "timeline_router",
]
