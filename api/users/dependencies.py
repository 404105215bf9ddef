"""
Dependencies for users routes.
"""

from __future__ import annotations

from fastapi import Request

from core.services import ServiceRegistry

from .service import SERVICE_NAME, UsersService


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.services


def users_service(registry: ServiceRegistry) -> UsersService:
    service = registry.get_service(SERVICE_NAME)
    if service is None:
        # Only reachable when startup did not register the service.
        raise RuntimeError(f"Service '{SERVICE_NAME}' is not registered.")
    return service
