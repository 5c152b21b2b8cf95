"""Shared FastAPI dependencies."""

from fastapi import Request

from finquest.container import Services


def get_services(request: Request) -> Services:
    """Service graph attached to the app at startup."""
    services: Services | None = getattr(request.app.state, "services", None)
    if services is None:
        msg = "Services not initialized. Call build_services() first."
        raise RuntimeError(msg)
    return services
