"""Request-scoped access to the services built at startup."""

from fastapi import Request


def get_registry(request: Request) -> dict:
    """Service registry created in the application lifespan."""
    return request.app.state.services
