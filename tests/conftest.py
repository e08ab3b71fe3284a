"""
Shared fixtures: an in-memory registry that enforces the program's
commit/reveal rules, plus query and identity factories.
"""

import dataclasses
from typing import Dict, List, Optional

import pytest

from truthminer.crypto import keypair_from_seed, as_pubkey, to_base58, verify_vote_hash
from truthminer.core.errors import ErrorKind, RegistryError
from truthminer.core.derivation import query_address
from truthminer.core.registry.accounts import (
    QueryAccount,
    QueryPhase,
    QueryStatus,
    ResponseFormat,
    VoterRecord,
)
from truthminer.core.retry import RetryExecutor
from truthminer.core.scanner import PhaseScanner
from truthminer.core.sources import StaticDataSource


PROGRAM_ID = bytes(range(32))
NOW = 1_700_000_000


class FakeRegistry:
    """
    Registry double keyed the same way as the real program.

    Commits are stored per voter-record address; reveals are checked with
    sha256(value || salt) == vote_hash, just like reveal_vote.
    """

    def __init__(self):
        self.queries: Dict[str, QueryAccount] = {}
        self.voter_records: Dict[bytes, VoterRecord] = {}
        self.priority_fee = 0
        self.commit_calls = 0
        self.reveal_calls = 0
        self.list_calls = 0
        self.commit_failures: List[Exception] = []
        self.reveal_failures: List[Exception] = []
        # Commits applied on chain whose confirmation is then lost (TIMEOUT)
        self.unconfirmed_commits = 0
        self.commits_landed = 0

    # -- test helpers ---------------------------------------------------------

    def add(self, query: QueryAccount) -> QueryAccount:
        self.queries[query.key] = query
        return query

    def set_status(self, query: QueryAccount, status: QueryStatus) -> QueryAccount:
        updated = dataclasses.replace(self.queries[query.key], status=status)
        self.queries[query.key] = updated
        return updated

    def remove(self, query: QueryAccount) -> None:
        del self.queries[query.key]

    # -- registry interface ---------------------------------------------------

    def list_queries(self) -> List[QueryAccount]:
        self.list_calls += 1
        return list(self.queries.values())

    def fetch_query(self, address) -> Optional[QueryAccount]:
        return self.queries.get(to_base58(as_pubkey(address)))

    def get_priority_fee(self) -> int:
        return self.priority_fee

    def submit_commit(self, signer, accounts, vote_hash, encrypted_salt=b""):
        self.commit_calls += 1
        if self.commit_failures:
            raise self.commit_failures.pop(0)

        existing = self.voter_records.get(accounts.voter_record)
        if existing is not None and existing.has_committed:
            if existing.vote_hash == bytes(vote_hash):
                return ""
            raise RegistryError(ErrorKind.ALREADY_COMMITTED, "voter record holds another vote")

        query = self.queries[to_base58(accounts.query)]
        if query.phase is not QueryPhase.COMMIT_OPEN:
            raise RegistryError(ErrorKind.PHASE_CLOSED, "commit phase over")

        self.voter_records[accounts.voter_record] = VoterRecord(
            authority=signer.public_key,
            vote_hash=bytes(vote_hash),
            encrypted_salt=bytes(encrypted_salt),
            has_committed=True,
        )
        self.commits_landed += 1
        if self.unconfirmed_commits:
            self.unconfirmed_commits -= 1
            raise RegistryError(ErrorKind.TIMEOUT, "not confirmed")
        return f"commit-{self.commit_calls}"

    def submit_reveal(self, signer, accounts, answer, salt):
        self.reveal_calls += 1
        if self.reveal_failures:
            raise self.reveal_failures.pop(0)

        record = self.voter_records.get(accounts.voter_record)
        if record is None:
            raise RegistryError(ErrorKind.NOT_COMMITTED, "no voter record")
        if record.has_revealed:
            raise RegistryError(ErrorKind.ALREADY_REVEALED, "already revealed")

        query = self.queries[to_base58(accounts.query)]
        if query.phase is not QueryPhase.REVEAL_OPEN:
            raise RegistryError(ErrorKind.WRONG_PHASE, "not in reveal phase")
        if not verify_vote_hash(answer, salt, record.vote_hash):
            raise RegistryError(ErrorKind.HASH_MISMATCH, "hash mismatch")

        record.has_revealed = True
        record.revealed_value = answer
        return f"reveal-{self.reveal_calls}"


class Clock:
    """Settable clock."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def program_id():
    return PROGRAM_ID


@pytest.fixture
def identity():
    return keypair_from_seed(b"\x01" * 32)


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def delays():
    """Backoff delays requested by the retry executor."""
    return []


@pytest.fixture
def executor(delays):
    return RetryExecutor(sleep=delays.append)


@pytest.fixture
def make_query():
    """Build a QueryAccount at its real derived address."""

    def _make(
        event_id: str = "match-1",
        category: str = "SPORTS",
        status: QueryStatus = QueryStatus.COMMIT_PHASE,
        fmt: ResponseFormat = ResponseFormat.BINARY,
        commit_deadline: int = NOW + 3600,
        reveal_deadline: int = NOW + 7200,
    ) -> QueryAccount:
        return QueryAccount(
            address=query_address(category, event_id, PROGRAM_ID),
            unique_event_id=event_id,
            category_id=category,
            status=status,
            format=fmt,
            commit_deadline=commit_deadline,
            reveal_deadline=reveal_deadline,
        )

    return _make


@pytest.fixture
def answers():
    return StaticDataSource()


@pytest.fixture
def scanner(registry, identity, answers, executor, clock):
    return PhaseScanner(
        registry=registry,
        identity=identity,
        data_source=answers,
        categories=("SPORTS", "CRYPTO"),
        executor=executor,
        program_id=PROGRAM_ID,
        clock=clock,
    )
