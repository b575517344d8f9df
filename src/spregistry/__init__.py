"""spregistry - Python client for the Filecoin ServiceProviderRegistry."""

from ._version import __version__
from .client import AsyncRegistryClient, RegistryClient

__all__ = ["__version__", "RegistryClient", "AsyncRegistryClient"]
