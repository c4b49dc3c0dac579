"""HTTP API for statusflow."""

from statusflow.api.dependencies import Services, build_services, get_services, set_services
from statusflow.api.routes import ErrorResponse, create_app

__all__ = [
    "ErrorResponse",
    "Services",
    "build_services",
    "create_app",
    "get_services",
    "set_services",
]
