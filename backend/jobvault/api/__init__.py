"""API package exports for routers."""

from .health import router as health_router  # noqa: F401
from .snapshots import router as snapshots_router  # noqa: F401
