"""
Centralized constants for near-snapshot configuration.

Environment variable overrides:
- NEAR_SNAPSHOT_RPC_URL: Override the default NEAR RPC endpoint
- NEAR_SNAPSHOT_RPC_TIMEOUT: Override the per-call RPC timeout (seconds)
"""

from __future__ import annotations

import os

# Public testnet RPC. Archival queries against old blocks need an archival node,
# e.g. https://archival-rpc.testnet.near.org
DEFAULT_RPC_URL = os.environ.get(
    "NEAR_SNAPSHOT_RPC_URL",
    "https://rpc.testnet.near.org",
)

# Per-call timeout; a hung node fails the run instead of blocking it
RPC_REQUEST_TIMEOUT_SECONDS = float(os.environ.get("NEAR_SNAPSHOT_RPC_TIMEOUT", "30"))

# JSON-RPC envelope
JSONRPC_VERSION = "2.0"
JSONRPC_REQUEST_ID = 1

# Finality used whenever no explicit block id is given
DEFAULT_FINALITY = "final"

# =============================================================================
# Genesis
# =============================================================================

# Prefix applied to the live chain id so a repro genesis never claims a production id
SANDBOX_CHAIN_ID_PREFIX = "sandbox-"

PRODUCTION_CHAIN_IDS = frozenset({"mainnet", "testnet", "betanet", "shardnet"})

GENESIS_FILENAME = "genesis.json"
GENESIS_BACKUP_SUFFIX = ".bak"

# Only key curve the standalone VM runner accepts
SUPPORTED_KEY_CURVE = "ed25519"

# =============================================================================
# Trie layout
# =============================================================================

# Column marker for contract data in nearcore's state trie
TRIE_CONTRACT_DATA_MARKER = b"\x09"
TRIE_ACCOUNT_DATA_SEPARATOR = b","

# =============================================================================
# VM context pipeline outputs
# =============================================================================

VM_CONTEXT_FILENAME = "vmcontext.json"
CONTRACT_CODE_FILENAME = "contract.wasm"
CONTRACT_STATE_FILENAME = "state.json"
