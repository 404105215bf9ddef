"""
Service registry.

Maps a name to one service instance. The app factory creates a single
registry and stores it on `app.state.services`; it is filled once during
startup and only read afterwards, so no locking is needed.
"""

from __future__ import annotations

from typing import Any


class ServiceRegistry:
    def __init__(self) -> None:
        self._services: dict[str, Any] = {}

    def set_service(self, key: str, instance: Any) -> None:
        self._services[key] = instance

    def get_service(self, key: str) -> Any | None:
        return self._services.get(key)
