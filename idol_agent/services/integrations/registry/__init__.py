"""Read/write access to the on-chain project registry."""

from .base import REGISTRY_ABI, create_registry_contract, create_web3
from .factory import build_registry_clients
from .reader import RegistryReader
from .writer import RegistryWriter

__all__ = [
    "REGISTRY_ABI",
    "create_registry_contract",
    "create_web3",
    "build_registry_clients",
    "RegistryReader",
    "RegistryWriter",
]
