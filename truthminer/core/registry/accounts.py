"""
Registry Accounts - decoding of the truth_pool program's on-chain state.

Accounts are Anchor/Borsh encoded:

    discriminator (8) = SHA-256("account:<Name>")[:8]
    fields in declaration order, little-endian
    String = u32 length || UTF-8 bytes
    Vec<u8> = u32 length || bytes
    enum   = u8 variant index

Phase and format are decoded ONCE here into explicit enumerations; nothing
downstream inspects raw status bytes.
"""

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum

from truthminer.crypto import sha256, to_base58
from truthminer.core.normalizer import AnswerFormat


# =============================================================================
# Discriminators
# =============================================================================


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator."""
    return sha256(f"account:{name}".encode("utf-8"))[:8]


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator (snake_case method name)."""
    return sha256(f"global:{name}".encode("utf-8"))[:8]


QUERY_ACCOUNT_DISCRIMINATOR = account_discriminator("QueryAccount")
VOTER_RECORD_DISCRIMINATOR = account_discriminator("VoterRecord")


# =============================================================================
# Enums
# =============================================================================


class QueryStatus(IntEnum):
    """Raw query status as stored by the registry."""
    UNINITIALIZED = 0
    COMMIT_PHASE = 1
    REVEAL_PHASE = 2
    FINALIZED = 3
    UNDER_APPEAL = 4
    VOIDED = 5


class ResponseFormat(IntEnum):
    """Raw response format as stored by the registry."""
    BINARY = 0
    SCORE = 1
    DECIMAL = 2
    STRING = 3
    OPTION_INDEX = 4


class QueryPhase(Enum):
    """Phase of a query as the agent sees it."""
    COMMIT_OPEN = "commit"
    REVEAL_OPEN = "reveal"
    CLOSED = "closed"


_PHASES = {
    QueryStatus.COMMIT_PHASE: QueryPhase.COMMIT_OPEN,
    QueryStatus.REVEAL_PHASE: QueryPhase.REVEAL_OPEN,
}

_FORMATS = {
    ResponseFormat.BINARY: AnswerFormat.BINARY,
    ResponseFormat.SCORE: AnswerFormat.SCORE,
    ResponseFormat.DECIMAL: AnswerFormat.DECIMAL,
    ResponseFormat.STRING: AnswerFormat.FREE_TEXT,
    ResponseFormat.OPTION_INDEX: AnswerFormat.OPTION_INDEX,
}


# =============================================================================
# Borsh
# =============================================================================


class BorshReader:
    """Sequential little-endian reader over account data."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def _take(self, n: int) -> bytes:
        if self.offset + n > len(self.data):
            raise ValueError(
                f"Account data truncated: need {n} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def bool(self) -> bool:
        value = self.u8()
        if value > 1:
            raise ValueError(f"Invalid bool byte {value}")
        return value == 1

    def fixed(self, n: int) -> bytes:
        return self._take(n)

    def bytes_vec(self) -> bytes:
        return self._take(self.u32())

    def string(self) -> str:
        return self.bytes_vec().decode("utf-8")


class BorshWriter:
    """Little-endian writer, the inverse of BorshReader."""

    def __init__(self):
        self.parts = []

    def u8(self, value: int) -> "BorshWriter":
        self.parts.append(struct.pack("<B", value))
        return self

    def u32(self, value: int) -> "BorshWriter":
        self.parts.append(struct.pack("<I", value))
        return self

    def u64(self, value: int) -> "BorshWriter":
        self.parts.append(struct.pack("<Q", value))
        return self

    def i64(self, value: int) -> "BorshWriter":
        self.parts.append(struct.pack("<q", value))
        return self

    def bool(self, value: bool) -> "BorshWriter":
        return self.u8(1 if value else 0)

    def fixed(self, value: bytes) -> "BorshWriter":
        self.parts.append(bytes(value))
        return self

    def bytes_vec(self, value: bytes) -> "BorshWriter":
        self.u32(len(value))
        self.parts.append(bytes(value))
        return self

    def string(self, value: str) -> "BorshWriter":
        return self.bytes_vec(value.encode("utf-8"))

    def to_bytes(self) -> bytes:
        return b"".join(self.parts)


# =============================================================================
# Query Account
# =============================================================================


@dataclass
class QueryAccount:
    """
    A registry query (read-only to the agent).

    Attributes:
        address: Account address (raw 32 bytes); the query identity
        unique_event_id: External event identifier
        category_id: Category tag
        status: Raw registry status
        format: Raw registry response format
        commit_deadline: Unix seconds
        reveal_deadline: Unix seconds
    """
    address: bytes
    unique_event_id: str
    category_id: str
    status: QueryStatus
    format: ResponseFormat
    commit_deadline: int
    reveal_deadline: int
    bounty_total: int = 0
    min_responses: int = 0
    finalized_at: int = 0
    commit_count: int = 0
    sentinel_commit_count: int = 0
    sentinel_reveal_count: int = 0
    reveal_count: int = 0
    result: str = ""
    winning_ticket_id: int = 0

    @property
    def key(self) -> str:
        """Base58 address, used as the Salt Cache key."""
        return to_base58(self.address)

    @property
    def phase(self) -> QueryPhase:
        return _PHASES.get(self.status, QueryPhase.CLOSED)

    @property
    def answer_format(self) -> AnswerFormat:
        return _FORMATS[self.format]

    def commit_deadline_passed(self, now: float) -> bool:
        return now > self.commit_deadline

    def reveal_deadline_passed(self, now: float, buffer: int = 0) -> bool:
        return now > self.reveal_deadline - buffer

    @classmethod
    def from_bytes(cls, address: bytes, data: bytes) -> "QueryAccount":
        """
        Decode account data.

        Raises:
            ValueError: wrong discriminator, truncated data or unknown enum value
        """
        if data[:8] != QUERY_ACCOUNT_DISCRIMINATOR:
            raise ValueError("Not a QueryAccount (discriminator mismatch)")

        r = BorshReader(data, offset=8)
        unique_event_id = r.string()
        category_id = r.string()
        bounty_total = r.u64()
        status = QueryStatus(r.u8())
        response_format = ResponseFormat(r.u8())
        min_responses = r.u32()
        commit_deadline = r.i64()
        reveal_deadline = r.i64()
        finalized_at = r.i64()
        commit_count = r.u32()
        sentinel_commit_count = r.u32()
        sentinel_reveal_count = r.u32()
        reveal_count = r.u32()
        result = r.string()
        winning_ticket_id = r.u32()
        # Trailing bytes are account padding (fixed allocation)

        return cls(
            address=bytes(address),
            unique_event_id=unique_event_id,
            category_id=category_id,
            status=status,
            format=response_format,
            commit_deadline=commit_deadline,
            reveal_deadline=reveal_deadline,
            bounty_total=bounty_total,
            min_responses=min_responses,
            finalized_at=finalized_at,
            commit_count=commit_count,
            sentinel_commit_count=sentinel_commit_count,
            sentinel_reveal_count=sentinel_reveal_count,
            reveal_count=reveal_count,
            result=result,
            winning_ticket_id=winning_ticket_id,
        )

    def to_bytes(self) -> bytes:
        """Encode as account data (without padding)."""
        return (
            BorshWriter()
            .fixed(QUERY_ACCOUNT_DISCRIMINATOR)
            .string(self.unique_event_id)
            .string(self.category_id)
            .u64(self.bounty_total)
            .u8(self.status)
            .u8(self.format)
            .u32(self.min_responses)
            .i64(self.commit_deadline)
            .i64(self.reveal_deadline)
            .i64(self.finalized_at)
            .u32(self.commit_count)
            .u32(self.sentinel_commit_count)
            .u32(self.sentinel_reveal_count)
            .u32(self.reveal_count)
            .string(self.result)
            .u32(self.winning_ticket_id)
            .to_bytes()
        )

    def __repr__(self) -> str:
        return (
            f"QueryAccount({self.category_id}/{self.unique_event_id}, "
            f"{self.phase.value}, {self.answer_format.value})"
        )


# =============================================================================
# Voter Record
# =============================================================================


@dataclass
class VoterRecord:
    """The registry's record of one miner's vote on one query."""
    authority: bytes
    vote_hash: bytes
    encrypted_salt: bytes = b""
    revealed_value: str = ""
    ticket_id: int = 0
    has_committed: bool = False
    has_revealed: bool = False
    bond_released: bool = False

    @classmethod
    def from_bytes(cls, data: bytes) -> "VoterRecord":
        if data[:8] != VOTER_RECORD_DISCRIMINATOR:
            raise ValueError("Not a VoterRecord (discriminator mismatch)")
        r = BorshReader(data, offset=8)
        return cls(
            authority=r.fixed(32),
            vote_hash=r.fixed(32),
            encrypted_salt=r.bytes_vec(),
            revealed_value=r.string(),
            ticket_id=r.u32(),
            has_committed=r.bool(),
            has_revealed=r.bool(),
            bond_released=r.bool(),
        )

    def to_bytes(self) -> bytes:
        return (
            BorshWriter()
            .fixed(VOTER_RECORD_DISCRIMINATOR)
            .fixed(self.authority)
            .fixed(self.vote_hash)
            .bytes_vec(self.encrypted_salt)
            .string(self.revealed_value)
            .u32(self.ticket_id)
            .bool(self.has_committed)
            .bool(self.has_revealed)
            .bool(self.bond_released)
            .to_bytes()
        )

