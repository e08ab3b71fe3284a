"""
Agent configuration for the Truth Miner.

Values come from the environment (optionally seeded from a .env file) and
fall back to the defaults below.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from truthminer.core.errors import ConfigError


DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_PROGRAM_ID = "TrutH6qfNhnAiVwMz2gxBkqGKxCrHZaQBFSTewxVV1j"


@dataclass
class AgentConfig:
    """Runtime configuration for the agent"""

    # Network
    rpc_url: str = DEFAULT_RPC_URL
    program_id: str = DEFAULT_PROGRAM_ID
    rpc_timeout: float = 30.0  # seconds per RPC call
    confirm_timeout: float = 60.0  # seconds to wait for confirmation

    # Local state
    wallet_path: Path = Path("miner_id.json")
    salt_cache_path: Path = Path("salt_cache.json")
    data_source_path: Path = Path("answers.json")
    log_dir: Path = Path("logs")

    # Scheduling
    poll_interval: float = 60.0  # seconds between cycles
    max_priority_fee: int = 5000  # micro-lamports per CU; above this, skip the cycle
    reveal_safety_buffer: int = 0  # seconds before reveal deadline to give up

    # Eligibility
    categories: Tuple[str, ...] = field(default_factory=lambda: ("SPORTS", "CRYPTO"))

    # Hardening
    seal_salt: bool = False  # attach AES-GCM sealed salt to commits


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {raw!r}")
    return value


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {raw!r}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _get_categories(env: Mapping[str, str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = env.get("CATEGORIES")
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_config(
    env_file: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AgentConfig:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional .env file to load first (never overrides set vars)
        env: Mapping to read instead of os.environ (used by tests)

    Returns:
        AgentConfig instance

    Raises:
        ConfigError: a value is present but invalid
    """
    if env is None:
        load_dotenv(dotenv_path=env_file)
        env = os.environ

    defaults = AgentConfig()
    return AgentConfig(
        rpc_url=env.get("TRUTHMINER_RPC_URL", defaults.rpc_url),
        program_id=env.get("TRUTHMINER_PROGRAM_ID", defaults.program_id),
        rpc_timeout=_get_float(env, "RPC_TIMEOUT", defaults.rpc_timeout),
        confirm_timeout=_get_float(env, "CONFIRM_TIMEOUT", defaults.confirm_timeout),
        wallet_path=Path(env.get("WALLET_PATH", str(defaults.wallet_path))),
        salt_cache_path=Path(env.get("SALT_CACHE_PATH", str(defaults.salt_cache_path))),
        data_source_path=Path(env.get("DATA_SOURCE_PATH", str(defaults.data_source_path))),
        log_dir=Path(env.get("LOG_DIR", str(defaults.log_dir))),
        poll_interval=_get_float(env, "POLL_INTERVAL", defaults.poll_interval),
        max_priority_fee=_get_int(env, "MAX_PRIORITY_FEE", defaults.max_priority_fee),
        reveal_safety_buffer=_get_int(env, "REVEAL_SAFETY_BUFFER", defaults.reveal_safety_buffer),
        categories=_get_categories(env, defaults.categories),
        seal_salt=_get_bool(env, "SEAL_SALT", defaults.seal_salt),
    )
