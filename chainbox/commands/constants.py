"""
Constants and configuration values used across the chainbox codebase.
"""

from enum import Enum


class CleanupResult(Enum):
    """Outcome of a guarded cleanup call."""

    PERFORMED = "performed"
    ALREADY_DONE = "already_done"
    IN_PROGRESS = "in_progress"


# Ambient variables
ENV_TEST_ENV_CONFIG_PATH = "TEST_ENV_CONFIG_PATH"
ENV_TEST_SUMMARY_PATH = "TEST_SUMMARY_PATH"
ENV_DEBUG = "CHAINBOX_DEBUG"

# Default file locations
DEFAULT_LOG_DIR = "logs"
DEFAULT_TEST_SUMMARY_FILE = "test_summary.json"
TEST_SUMMARY_LOG_LOCATION_KEY = "log_location"

# Docker configuration
DEFAULT_NETWORK_PREFIX = "chainbox-network"
DEFAULT_NODE_PREFIX = "cl-node"
DEFAULT_NODE_IMAGE = "public.ecr.aws/chainlink/chainlink"
DEFAULT_NODE_VERSION = "latest"
DEFAULT_MOCK_ADAPTER_IMAGE = "friendsofgo/killgrave:latest"
DEFAULT_MOCK_ADAPTER_NAME = "mock-adapter"
DEFAULT_GETH_IMAGE = "ethereum/client-go:v1.13.15"
DEFAULT_ANVIL_IMAGE = "ghcr.io/foundry-rs/foundry:latest"

# Container ports
NODE_API_PORT = 6688
MOCK_ADAPTER_PORT = 3000
CHAIN_HTTP_PORT = 8545
CHAIN_WS_PORT = 8546

# Simulated network defaults
SIMULATED_NETWORK_NAME = "SIMULATED"
SIMULATED_CHAIN_ID = 1337
SIMULATED_HTTP_URL = "http://localhost:8545"
SIMULATED_WS_URL = "ws://localhost:8546"
# Well-known dev account funded by geth --dev / anvil
SIMULATED_PRIVATE_KEY = (
    "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
)

# Execution layers supported by the chain launcher
EXECUTION_LAYER_GETH = "geth"
EXECUTION_LAYER_ANVIL = "anvil"

# Retry and timeout configuration
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds
DEFAULT_RETRY_BACKOFF = 2.0  # exponential backoff multiplier
CHAIN_READY_ATTEMPTS = 20
CHAIN_READY_DELAY = 0.5  # seconds
NODE_READY_ATTEMPTS = 30
NODE_READY_DELAY = 1.0  # seconds
HTTP_TIMEOUT = 10  # seconds

# Process and container management timeouts
CONTAINER_STOP_TIMEOUT = 10  # seconds
LOG_READER_JOIN_TIMEOUT = 5  # seconds

# Node API
NODE_API_SESSIONS = "/sessions"
NODE_API_CSA_KEYS = "/v2/keys/csa"
DEFAULT_NODE_API_USER = "notreal@fakeemail.ch"
DEFAULT_NODE_API_PASSWORD = "fj293fbBnlQ!f9vNs"
