"""
Managers module - Docker-backed launchers used by the test environment:
- BaseManager: Common Docker client utilities
- NetworkManager: Test environment network
- ChainManager: Simulated EVM chains
- MockAdapterManager: Mock HTTP adapter
- NodeManager: Blockchain node containers
"""

from chainbox.commands.managers.base import BaseManager
from chainbox.commands.managers.chain import ChainManager
from chainbox.commands.managers.mock_adapter import MockAdapter, MockAdapterManager
from chainbox.commands.managers.network import NetworkManager
from chainbox.commands.managers.node import NodeManager

__all__ = [
    "BaseManager",
    "NetworkManager",
    "ChainManager",
    "MockAdapter",
    "MockAdapterManager",
    "NodeManager",
]
