"""
API server module for archiver monitoring.

Provides HTTP endpoints for:
- /health - Health check endpoint
- /status - Sync status as JSON
- /metrics - Prometheus metrics
"""

from .server import ApiServer, ApiServerConfig, StatusGetter

__all__ = [
    "ApiServer",
    "ApiServerConfig",
    "StatusGetter",
]
