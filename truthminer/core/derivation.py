"""
Account Address Deriver - program-derived addresses (PDAs).

The registry locates its accounts at addresses derived from fixed seeds, so
the agent can compute every account it needs without asking the network:

    address = SHA-256(seed_1 || ... || seed_n || bump || program_id || "ProgramDerivedAddress")

where bump is the largest byte (255 down to 0) that puts the address OFF the
Ed25519 curve, so that no private key can ever sign for it.

Seed layout used by the truth_pool program:
    miner profile   ["miner", voter]
    category stats  ["category", category_id]
    query           ["query", category_id, event_id]
    vote stats      ["stats", query]
    voter record    ["vote", query, miner_profile]
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from truthminer.crypto import sha256, as_pubkey, is_on_curve, to_base58, AddressLike
from truthminer.core.errors import SeedTooLong, InvalidSeeds


# =============================================================================
# Constants
# =============================================================================

MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

SEED_MINER = "miner"
SEED_CATEGORY = "category"
SEED_QUERY = "query"
SEED_STATS = "stats"
SEED_VOTE = "vote"

SYSTEM_PROGRAM_ID = bytes(32)

Seed = Union[bytes, str]


# =============================================================================
# Core Derivation
# =============================================================================


def _seed_bytes(seed: Seed) -> bytes:
    return seed.encode("utf-8") if isinstance(seed, str) else bytes(seed)


def _check_seeds(seeds: Sequence[bytes], reserve: int = 0) -> None:
    if len(seeds) + reserve > MAX_SEEDS:
        raise SeedTooLong(f"At most {MAX_SEEDS} seeds allowed, got {len(seeds) + reserve}")
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LENGTH:
            raise SeedTooLong(
                f"Seed {i} is {len(seed)} bytes, max is {MAX_SEED_LENGTH}"
            )


def create_program_address(seeds: Sequence[Seed], program_id: AddressLike) -> bytes:
    """
    Hash seeds into a program address.

    Args:
        seeds: Seed components (str seeds are UTF-8 encoded)
        program_id: Owning program

    Returns:
        32-byte address

    Raises:
        SeedTooLong: too many seeds, or a seed longer than 32 bytes
        InvalidSeeds: the hash lands on the curve
    """
    raw = [_seed_bytes(s) for s in seeds]
    _check_seeds(raw)

    address = sha256(b"".join(raw) + as_pubkey(program_id) + PDA_MARKER)
    if is_on_curve(address):
        raise InvalidSeeds("Derived address is on the Ed25519 curve")
    return address


def find_program_address(seeds: Sequence[Seed], program_id: AddressLike) -> Tuple[bytes, int]:
    """
    Find the canonical (highest-bump) program address for seeds.

    Returns:
        (address, bump)

    Raises:
        SeedTooLong: seed limits exceeded
        InvalidSeeds: no bump yields an off-curve address (practically never)
    """
    raw = [_seed_bytes(s) for s in seeds]
    _check_seeds(raw, reserve=1)
    program = as_pubkey(program_id)

    for bump in range(255, -1, -1):
        try:
            return create_program_address(raw + [bytes([bump])], program), bump
        except InvalidSeeds:
            continue

    raise InvalidSeeds("Unable to find a viable program address bump seed")


def derive(seed_label: str, *components: Seed, program_id: AddressLike) -> bytes:
    """
    Derive a sub-account address from a fixed ASCII label and components.

    Args:
        seed_label: Fixed ASCII label (e.g. "miner")
        components: Identity / public key bytes or string ids
        program_id: Owning program

    Returns:
        32-byte address
    """
    address, _ = find_program_address([seed_label.encode("ascii"), *components], program_id)
    return address


# =============================================================================
# Registry Accounts
# =============================================================================


def miner_profile_address(voter: AddressLike, program_id: AddressLike) -> bytes:
    return derive(SEED_MINER, as_pubkey(voter), program_id=program_id)


def category_stats_address(category_id: str, program_id: AddressLike) -> bytes:
    return derive(SEED_CATEGORY, category_id, program_id=program_id)


def query_address(category_id: str, event_id: str, program_id: AddressLike) -> bytes:
    return derive(SEED_QUERY, category_id, event_id, program_id=program_id)


def vote_stats_address(query: AddressLike, program_id: AddressLike) -> bytes:
    return derive(SEED_STATS, as_pubkey(query), program_id=program_id)


def voter_record_address(
    query: AddressLike, miner_profile: AddressLike, program_id: AddressLike
) -> bytes:
    return derive(SEED_VOTE, as_pubkey(query), as_pubkey(miner_profile), program_id=program_id)


@dataclass(frozen=True)
class CommitAccounts:
    """Accounts referenced by a commit_vote instruction."""
    voter: bytes
    miner_profile: bytes
    query: bytes
    category_stats: bytes
    voter_record: bytes

    def describe(self) -> List[str]:
        return [to_base58(a) for a in (self.miner_profile, self.category_stats, self.voter_record)]


@dataclass(frozen=True)
class RevealAccounts:
    """Accounts referenced by a reveal_vote instruction."""
    voter: bytes
    miner_profile: bytes
    query: bytes
    voter_record: bytes
    vote_stats: bytes

    def describe(self) -> List[str]:
        return [to_base58(a) for a in (self.miner_profile, self.voter_record, self.vote_stats)]


def derive_commit_accounts(
    voter: AddressLike, query: AddressLike, category_id: str, program_id: AddressLike
) -> CommitAccounts:
    """Derive every account a commit needs."""
    voter = as_pubkey(voter)
    query = as_pubkey(query)
    miner = miner_profile_address(voter, program_id)
    return CommitAccounts(
        voter=voter,
        miner_profile=miner,
        query=query,
        category_stats=category_stats_address(category_id, program_id),
        voter_record=voter_record_address(query, miner, program_id),
    )


def derive_reveal_accounts(
    voter: AddressLike, query: AddressLike, program_id: AddressLike
) -> RevealAccounts:
    """Derive every account a reveal needs."""
    voter = as_pubkey(voter)
    query = as_pubkey(query)
    miner = miner_profile_address(voter, program_id)
    return RevealAccounts(
        voter=voter,
        miner_profile=miner,
        query=query,
        voter_record=voter_record_address(query, miner, program_id),
        vote_stats=vote_stats_address(query, program_id),
    )
