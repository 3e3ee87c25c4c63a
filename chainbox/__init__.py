"""
Chainbox - assemble blockchain node clusters, simulated chains and mock
adapters for integration tests.
"""

__version__ = "0.3.0"
