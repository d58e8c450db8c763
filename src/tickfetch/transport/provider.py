"""
Transport provider interface for tickfetch.

This module defines the TransportProvider interface that supplies
connection handles to the client.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .connection import TransportConnection


class TransportProvider(ABC):
    """
    Interface for transport provider implementations.

    A provider opens connection handles on request and, when its I/O is
    driven by the host loop, advances that I/O from ``poll()``.
    """

    @abstractmethod
    def open_connection(
        self,
        host: str,
        port: int,
        use_tls: bool,
        access_reason: Optional[str] = None,
    ) -> Optional[TransportConnection]:
        """
        Open a connection handle.

        Args:
            host: The hostname or IP address to connect to.
            port: The port number to connect to.
            use_tls: Whether to encrypt the connection.
            access_reason: Human-readable text for the provider's
                           permission prompt, if it has one.

        Returns:
            A connection handle, or None if access was denied.
        """
        pass

    def poll(self) -> None:
        """
        Advance pending I/O and fire any due hooks.

        Called once per host loop iteration while a request is in flight.
        Providers that deliver events on their own do nothing here.
        """
        pass
