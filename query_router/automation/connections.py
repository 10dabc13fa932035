"""Service-connection oracle: whether a user has linked a third-party service."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping


class ConnectionOracle(ABC):
    """Answers whether a user has connected a given service."""

    @abstractmethod
    async def is_connected(self, user_id: str, service_id: str) -> bool:
        """Check a user's connection to a service.

        Args:
            user_id: User identifier.
            service_id: Service identifier (e.g. "whatsapp", "venmo").

        Returns:
            True if the service is connected for the user.
        """


class StaticConnectionOracle(ConnectionOracle):
    """In-memory oracle backed by a user -> services map."""

    def __init__(self, connections: Mapping[str, Iterable[str]] | None = None):
        self._connections: dict[str, set[str]] = {
            user_id: set(services) for user_id, services in (connections or {}).items()
        }

    def connect(self, user_id: str, service_id: str) -> None:
        self._connections.setdefault(user_id, set()).add(service_id)

    def disconnect(self, user_id: str, service_id: str) -> None:
        self._connections.get(user_id, set()).discard(service_id)

    async def is_connected(self, user_id: str, service_id: str) -> bool:
        return service_id in self._connections.get(user_id, set())
