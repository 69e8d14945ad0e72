"""Service lifecycle manager."""

from __future__ import annotations

from city_assistant.log import get_logger
from city_assistant.services.base import Service

logger = get_logger(__name__)


class ServiceManager:
    """Manages startup and shutdown of background services."""

    def __init__(self, services: list[Service] | None = None):
        self._services: list[Service] = list(services or [])

    def add(self, service: Service) -> None:
        self._services.append(service)

    def get(self, name: str) -> Service | None:
        for service in self._services:
            if service.service_name == name:
                return service
        return None

    async def start_all(self) -> None:
        """Start all services. A failing service is logged and does not block the others."""
        for service in self._services:
            try:
                await service.start()
            except Exception as e:
                logger.warning("service_start_failed", service=service.service_name, error=str(e))
        logger.info("all_services_started", count=len(self._services))

    async def stop_all(self) -> None:
        for service in reversed(self._services):
            try:
                await service.stop()
            except Exception as e:
                logger.error("service_stop_error", service=service.service_name, error=str(e))
        logger.info("all_services_stopped")

    async def health_check_all(self) -> dict[str, bool]:
        return {service.service_name: await service.health_check() for service in self._services}
