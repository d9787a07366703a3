"""
Stake Catcher Configuration - TRUE CONSTANTS plus the run context

This file contains:
- CIP-68 NFT labels (defined by the CIP-68 specification)
- Timing and output constants the deployed validators expect
- CatcherContext, built once at process start and read-only afterwards

Pool parameters (reward tiers, pooled asset, owner) are NOT configured here.
They are read from the StakePoolDatum of each pool UTxO at runtime.
"""
from dataclasses import dataclass
from typing import Optional

from pycardano import Network

# =============================================================================
# CIP-68 NFT LABELS - Universal Constants
# =============================================================================
# These are CIP-68 standard labels. They NEVER change.
# Reference: https://cips.cardano.org/cip/CIP-0068/

CIP68_REFERENCE_LABEL: bytes = bytes.fromhex("000643b0")  # Label 100 - Reference NFT
CIP68_USER_LABEL: bytes = bytes.fromhex("000de140")       # Label 222 - User NFT

# =============================================================================
# SETTLEMENT CONSTANTS
# =============================================================================

STAKE_NFT_NAME_LENGTH: int = 28             # blake2b-256 prefix of the pool out ref
VALIDITY_MARGIN_MS: int = 1000 * 60 * 7     # upper bound = lower bound + 7 minutes
SLOT_LAG_MS: int = 100 * 1000               # chain tip estimate runs ahead of the ledger
TIME_LOCK_VERSION: int = 1
TIME_LOCK_OUTPUT_INDEX: int = 1             # pool output 0, time lock output 1
DESTINATION_LOVELACE: int = 1_500_000       # min ADA sent with the stake key NFT
LOVELACE: str = "lovelace"

# =============================================================================
# WALLET ACTIONS
# =============================================================================

STAKE_REQUEST_DEPOSIT_LOVELACE: int = 6_500_000   # lovelace sent to the stake proxy with a request
STAKE_REQUEST_LOVELACE: int = 3_000_000           # carried over to the time lock output
UNLOCK_WINDOW_MS: int = 1000 * 60 * 60            # unlock valid until now + 1 hour

# =============================================================================
# SCHEDULER INTERVALS
# =============================================================================

IDLE_BACKOFF_SECONDS: float = 20.0
SETTLE_COOLDOWN_SECONDS: float = 40.0


# =============================================================================
# RUN CONTEXT
# =============================================================================

@dataclass(frozen=True)
class CatcherContext:
    """
    Everything the batcher needs that is not stored on-chain.

    Fields:
        stake_pool_address: Bech32 address of the stake pool validator
        stake_proxy_address: Bech32 address of the stake proxy validator
        time_lock_address: Bech32 address of the time lock validator
        wallet_address: Batcher wallet holding the batching certificate
        operator_key_hash: Payment key hash owning the pools to settle (28 bytes)
        stake_key_policy_id: Stake key mint policy ID (28 bytes)
        certificate_unit: Unit (policy + name hex) of the batching certificate
        asset_decimals: Decimals of the pooled asset, for display only
        request_owner_key_hash: Only settle requests owned by this key, if set
        network: Network the destination addresses are rendered for
    """
    stake_pool_address: str
    stake_proxy_address: str
    time_lock_address: str
    wallet_address: str
    operator_key_hash: bytes
    stake_key_policy_id: bytes
    certificate_unit: str
    asset_decimals: int = 0
    request_owner_key_hash: Optional[bytes] = None
    network: Network = Network.TESTNET
