#!/usr/bin/env python3
"""Configuration management for the retryable tracker.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import ClassVar
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)


def _validate_rpc_url(rpc_url: str, env_name: str) -> None:
    if not rpc_url:
        raise ValueError(f"RPC URL is required ({env_name})")

    parsed = urlparse(rpc_url)
    # Lookups go through AsyncHTTPProvider
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid RPC URL scheme: {parsed.scheme}. "
            "Expected http or https"
        )


def _checksum(address: str, label: str, env_name: str) -> str:
    if not address:
        raise ValueError(f"{label} is required ({env_name})")

    if not Web3.is_address(address):
        raise ValueError(f"Invalid {label.lower()}: {address}")

    return Web3.to_checksum_address(address)


def _int_from_env(name: str, default: int | None = None) -> int | None:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class ParentChainConfig:
    """Configuration for the parent chain the rollup settles to.

    Attributes:
        chain_id: Parent chain id
        rpc_url: HTTP(S) RPC endpoint (defaults to a public endpoint for known chains)
        inbox_address: Checksummed address of the rollup Inbox
        bridge_address: Checksummed address of the rollup Bridge
    """

    chain_id: int
    inbox_address: str
    bridge_address: str
    rpc_url: str = ""

    # Public endpoints used when PARENT_CHAIN_RPC is unset
    KNOWN_CHAINS: ClassVar[dict[int, tuple[str, str]]] = {
        1: ("Ethereum", "https://ethereum.publicnode.com"),
        11155111: ("Sepolia", "https://ethereum-sepolia.publicnode.com"),
        42161: ("Arbitrum One", "https://arb1.arbitrum.io/rpc"),
        42170: ("Arbitrum Nova", "https://nova.arbitrum.io/rpc"),
        421614: ("Arbitrum Sepolia", "https://sepolia-rollup.arbitrum.io/rpc"),
    }

    def __post_init__(self) -> None:
        """Validate parent chain configuration."""
        if self.chain_id <= 0:
            raise ValueError(f"Parent chain id must be positive, got {self.chain_id}")

        if not self.rpc_url:
            if self.chain_id not in self.KNOWN_CHAINS:
                raise ValueError(
                    f"No default RPC for parent chain {self.chain_id}. "
                    "Set PARENT_CHAIN_RPC or use one of: "
                    f"{', '.join(str(c) for c in sorted(self.KNOWN_CHAINS))}"
                )
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, 'rpc_url', self.KNOWN_CHAINS[self.chain_id][1])

        _validate_rpc_url(self.rpc_url, "PARENT_CHAIN_RPC")

        object.__setattr__(
            self, 'inbox_address',
            _checksum(self.inbox_address, "Inbox address", "PARENT_CHAIN_INBOX_ADDRESS"),
        )
        object.__setattr__(
            self, 'bridge_address',
            _checksum(self.bridge_address, "Bridge address", "PARENT_CHAIN_BRIDGE_ADDRESS"),
        )

    @property
    def name(self) -> str:
        """Human-readable name of a known parent chain."""
        known = self.KNOWN_CHAINS.get(self.chain_id)
        return known[0] if known else f"chain {self.chain_id}"


@dataclass(frozen=True, slots=True)
class ChildChainConfig:
    """Configuration for the Orbit (child) chain.

    Attributes:
        chain_id: Child chain id, part of the derived creation hash
        rpc_url: HTTP(S) RPC endpoint of the child chain
        name: Display name
        deployment_block: Parent-chain block the rollup was deployed at
    """

    chain_id: int
    rpc_url: str
    name: str = "Orbit chain"
    deployment_block: int = 0

    def __post_init__(self) -> None:
        """Validate child chain configuration."""
        if self.chain_id <= 0:
            raise ValueError(f"Orbit chain id must be positive, got {self.chain_id}")

        _validate_rpc_url(self.rpc_url, "ORBIT_CHAIN_RPC")

        if self.deployment_block < 0:
            raise ValueError(
                f"Deployment block must be non-negative, got {self.deployment_block}"
            )


@dataclass(frozen=True, slots=True)
class LookupConfig:
    """Configuration for child chain lookups."""
    max_concurrent_lookups: int = 16  # retryables classified at once

    def __post_init__(self) -> None:
        """Validate lookup configuration."""
        if self.max_concurrent_lookups <= 0:
            raise ValueError(
                f"Max concurrent lookups must be positive, got {self.max_concurrent_lookups}"
            )
        if self.max_concurrent_lookups > 256:
            raise ValueError(
                f"Max concurrent lookups too high (max 256), got {self.max_concurrent_lookups}"
            )


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Main configuration for the retryable tracker.

    Attributes:
        parent_chain: Configuration for the parent chain
        child_chain: Configuration for the Orbit chain
        lookups: Configuration for concurrent lookups
    """

    parent_chain: ParentChainConfig
    child_chain: ChildChainConfig
    lookups: LookupConfig = field(default_factory=LookupConfig)

    REQUIRED_ENV: ClassVar[dict[str, str]] = {
        "PARENT_CHAIN_ID": "Chain id of the parent chain",
        "PARENT_CHAIN_INBOX_ADDRESS": "Inbox contract of the rollup on the parent chain",
        "PARENT_CHAIN_BRIDGE_ADDRESS": "Bridge contract of the rollup on the parent chain",
        "ORBIT_CHAIN_ID": "Chain id of the Orbit chain",
        "ORBIT_CHAIN_RPC": "RPC endpoint of the Orbit chain",
    }

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Load configuration from environment variables.

        Returns:
            TrackerConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        missing = [name for name in cls.REQUIRED_ENV if not os.environ.get(name)]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        parent_config = ParentChainConfig(
            chain_id=_int_from_env("PARENT_CHAIN_ID"),
            rpc_url=os.environ.get("PARENT_CHAIN_RPC", ""),
            inbox_address=os.environ["PARENT_CHAIN_INBOX_ADDRESS"],
            bridge_address=os.environ["PARENT_CHAIN_BRIDGE_ADDRESS"],
        )

        child_config = ChildChainConfig(
            chain_id=_int_from_env("ORBIT_CHAIN_ID"),
            rpc_url=os.environ["ORBIT_CHAIN_RPC"],
            name=os.environ.get("ORBIT_CHAIN_NAME", "Orbit chain"),
            deployment_block=_int_from_env("ORBIT_CHAIN_DEPLOYMENT_BLOCK", 0),
        )

        lookup_config = LookupConfig(
            max_concurrent_lookups=_int_from_env("MAX_CONCURRENT_LOOKUPS", 16),
        )

        return cls(
            parent_chain=parent_config,
            child_chain=child_config,
            lookups=lookup_config,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Retryable Tracker Configuration")
        logger.info("=" * 60)

        logger.info("Parent Chain:")
        logger.info(f"  Chain: {self.parent_chain.name} ({self.parent_chain.chain_id})")
        logger.info(f"  RPC URL: {self.parent_chain.rpc_url}")
        logger.info(f"  Inbox: {self.parent_chain.inbox_address}")
        logger.info(f"  Bridge: {self.parent_chain.bridge_address}")

        logger.info("Orbit Chain:")
        logger.info(f"  Name: {self.child_chain.name}")
        logger.info(f"  Chain ID: {self.child_chain.chain_id}")
        logger.info(f"  RPC URL: {self.child_chain.rpc_url}")
        logger.info(f"  Deployment Block: {self.child_chain.deployment_block}")

        logger.info("Lookup Settings:")
        logger.info(f"  Max Concurrent Lookups: {self.lookups.max_concurrent_lookups}")

        logger.info("=" * 60)
