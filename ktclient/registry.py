"""
Client Registry

Named factories for preconfigured clients. A registry is an ordinary
object: create one where the application wires itself together and pass
it around, rather than relying on process-wide state.

Usage:
    registry = ClientRegistry()
    registry.configure("sessions", "kt1", 1978, setup=lambda kt: setattr(kt, "db", "sessions.kch"))
    kt = registry.create("sessions")
"""

from typing import Callable, Dict, List, Optional

from .client import KyotoClient
from .config.settings import settings
from .errors import DuplicateClientError, UnknownClientError

ClientFactory = Callable[[], KyotoClient]


class ClientRegistry:
    """Maps configuration names to client factories."""

    def __init__(self):
        self._factories: Dict[str, ClientFactory] = {}

    def register(self, name: str, factory: ClientFactory) -> None:
        """
        Register a factory under a name.

        Raises:
            DuplicateClientError: If the name is already registered
        """
        if name in self._factories:
            raise DuplicateClientError(name)
        self._factories[name] = factory

    def configure(
            self,
            name: str,
            host: str = None,
            port: int = None,
            setup: Optional[Callable[[KyotoClient], None]] = None,
    ) -> None:
        """
        Register a factory building KyotoClient(host, port), then passing
        the new client to setup() for further configuration.
        """
        host = host if host is not None else settings.HOST
        port = port if port is not None else settings.PORT

        def factory() -> KyotoClient:
            client = KyotoClient(host, port)
            if setup is not None:
                setup(client)
            return client

        self.register(name, factory)

    def create(self, name: str) -> KyotoClient:
        """
        Build a new client from a registered configuration.

        Raises:
            UnknownClientError: If nothing is registered under the name
        """
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownClientError(name)
        return factory()

    def names(self) -> List[str]:
        return list(self._factories)

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)
