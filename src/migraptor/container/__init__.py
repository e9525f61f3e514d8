"""Container engine integration (docker SDK)."""

from .client import ContainerClient, ContainerEngineError

__all__ = ['ContainerClient', 'ContainerEngineError']
