from abc import ABC, abstractmethod
from typing import Callable, List, Union

from contracts.backend import BackendSpec, BackendState


class Registry(ABC):
    """
    Abstract base class for health-tracking backend registries, as consumed by a router.
    """

    @abstractmethod
    async def add(self, backend: Union[str, BackendSpec, dict]):
        """
        Register a backend and start monitoring it.

        Args:
            backend (Union[str, BackendSpec, dict]): Address or full backend spec.

        Returns:
            Optional[Backend]: The new backend, or None if the address is already registered.
        """

    @abstractmethod
    async def remove(self, backend):
        """
        Stop monitoring a backend and drop it from the registry.

        Args:
            backend (Union[str, Backend]): Address or backend instance.

        Returns:
            Union[Backend, bool]: The removed backend, or False if it was not registered.
        """

    @abstractmethod
    def get(self, address: str):
        """
        Return the backend registered under an address.

        Returns:
            Optional[Backend]: The backend, or None if not registered.
        """

    @abstractmethod
    def get_by_state(self, state: Union[str, BackendState]) -> List:
        """
        Return the backends currently in a state (case-insensitive name match).
        """

    def get_healthy(self) -> List:
        """
        Return the backends currently HEALTHY.
        """
        return self.get_by_state(BackendState.HEALTHY)

    def get_healthy_addresses(self) -> List[str]:
        """
        Return the caller-supplied addresses of the HEALTHY backends.
        """
        return [backend.address for backend in self.get_healthy()]

    @abstractmethod
    def on(self, event: str, handler: Callable) -> None:
        """
        Subscribe to pool-wide 'healthy', 'unhealthy' or 'remove' events.

        Args:
            event (str): Event name.
            handler (Callable): Called with the affected backend.
        """

    @abstractmethod
    def off(self, event: str, handler: Callable) -> bool:
        """
        Unsubscribe a handler previously passed to on().

        Returns:
            bool: True if the handler was subscribed.
        """
