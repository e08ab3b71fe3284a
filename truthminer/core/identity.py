"""
Identity Store - the agent's long-lived signing keypair.

The identity file is a JSON array of the 64 secret key bytes
(seed || public key), the same layout the ledger's own tooling writes.
It is created once on first run and never rotated.
"""

import json
import os
from pathlib import Path
from typing import Union

from truthminer.crypto import KeyPair, generate_keypair, keypair_from_secret_key, SECRET_KEY_SIZE
from truthminer.core.errors import CorruptIdentity
from truthminer.utils.logger import get_logger

logger = get_logger("identity")

# Owner read/write only
IDENTITY_FILE_MODE = 0o600


def _write_identity(path: Path, keypair: KeyPair) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(list(keypair.secret_key))
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, IDENTITY_FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(payload)


def _parse_identity(text: str) -> KeyPair:
    try:
        values = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptIdentity(f"Identity file is not valid JSON: {e}") from e

    if not isinstance(values, list) or len(values) != SECRET_KEY_SIZE:
        raise CorruptIdentity(f"Identity must be a JSON array of {SECRET_KEY_SIZE} bytes")

    # bool is an int subclass; reject it explicitly
    if not all(isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255 for v in values):
        raise CorruptIdentity("Identity array must contain byte values 0-255")

    try:
        return keypair_from_secret_key(bytes(values))
    except ValueError as e:
        raise CorruptIdentity(str(e)) from e


def load_identity(path: Union[str, Path]) -> KeyPair:
    """
    Load an existing identity.

    Raises:
        FileNotFoundError: no identity at path
        CorruptIdentity: stored bytes cannot be parsed
    """
    path = Path(path)
    return _parse_identity(path.read_text(encoding="utf-8"))


def load_or_create(path: Union[str, Path]) -> KeyPair:
    """
    Load the identity at path, creating and persisting a new one if absent.

    Args:
        path: Identity file location

    Returns:
        The agent's KeyPair

    Raises:
        CorruptIdentity: the file exists but cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        keypair = generate_keypair()
        _write_identity(path, keypair)
        logger.info(f"Created new identity {keypair.address} at {path}")
        return keypair

    keypair = load_identity(path)
    logger.debug(f"Loaded identity {keypair.address} from {path}")
    return keypair
