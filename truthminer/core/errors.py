"""
Error taxonomy for the Truth Miner agent.

Every failure the agent can observe is one of:
- a local per-query failure (missing data, bad format): skip and move on
- a registry submission failure, tagged with an ErrorKind
- a storage failure (corrupt identity is fatal; a corrupt cache is not)
"""

from enum import Enum


class TruthMinerError(Exception):
    """Base class for all agent errors."""


class ConfigError(TruthMinerError):
    """Invalid configuration value."""


class CorruptIdentity(TruthMinerError):
    """Stored identity bytes could not be parsed into a keypair."""


class InvalidFormat(TruthMinerError):
    """A raw answer could not be canonicalized for its declared format."""


class SeedTooLong(TruthMinerError, ValueError):
    """A derivation seed exceeds the registry's limits."""


class InvalidSeeds(TruthMinerError, ValueError):
    """Seeds produce an on-curve address (no program address exists)."""


class DataSourceError(TruthMinerError):
    """An external data source failed to answer."""


class ErrorKind(Enum):
    """Closed set of registry submission failure kinds."""
    # Non-recoverable: resubmission cannot succeed
    ALREADY_COMMITTED = "already_committed"
    ALREADY_REVEALED = "already_revealed"
    ALREADY_CLAIMED = "already_claimed"
    HASH_MISMATCH = "hash_mismatch"
    WRONG_PHASE = "wrong_phase"
    PHASE_CLOSED = "phase_closed"
    NOT_COMMITTED = "not_committed"
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    # Recoverable
    TIMEOUT = "timeout"
    NETWORK = "network"
    CONGESTION = "congestion"
    BLOCKHASH_EXPIRED = "blockhash_expired"
    UNKNOWN = "unknown"


NON_RECOVERABLE = frozenset({
    ErrorKind.ALREADY_COMMITTED,
    ErrorKind.ALREADY_REVEALED,
    ErrorKind.ALREADY_CLAIMED,
    ErrorKind.HASH_MISMATCH,
    ErrorKind.WRONG_PHASE,
    ErrorKind.PHASE_CLOSED,
    ErrorKind.NOT_COMMITTED,
    ErrorKind.UNAUTHORIZED,
    ErrorKind.INSUFFICIENT_FUNDS,
})


class RegistryError(TruthMinerError):
    """
    A registry read or write failed.

    Attributes:
        kind: Classified failure kind
        message: Human-readable detail (RPC message or program log line)
        logs: Program log lines, when the node returned any
    """

    def __init__(self, kind: ErrorKind, message: str = "", logs=None):
        super().__init__(f"{kind.value}: {message}" if message else kind.value)
        self.kind = kind
        self.message = message
        self.logs = list(logs or [])

    @property
    def recoverable(self) -> bool:
        """Whether a later resubmission could succeed."""
        return self.kind not in NON_RECOVERABLE


__all__ = [
    "TruthMinerError",
    "ConfigError",
    "CorruptIdentity",
    "InvalidFormat",
    "SeedTooLong",
    "InvalidSeeds",
    "DataSourceError",
    "ErrorKind",
    "NON_RECOVERABLE",
    "RegistryError",
]
