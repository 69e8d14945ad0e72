"""Lifecycle contract for background jobs owned by the assistant."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Service(ABC):
    """A component started after the knowledge base loads and stopped before the database closes."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Key reported under ``services`` by the health endpoint."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Begin work. A service with nothing configured returns without error."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """False once the service has stopped running or its last run failed."""
        ...
