"""
Phase Scanner - per-query commit and reveal decisions.

Commit scan (for each eligible query in COMMIT_OPEN without a record):
    fetch raw answer -> normalize -> fresh salt -> vote hash
    -> derive accounts -> submit commit (retried) -> store record

Reveal scan (for each stored record):
    resolve query -> drop if gone or reveal deadline passed
    -> REVEAL_OPEN: submit reveal (retried) -> drop record on success,
       ALREADY_REVEALED or any other non-recoverable failure

Records are written only after a confirmed commit and removed only once a
reveal is settled or futile, so a commitment is never duplicated and a
salt is never discarded while its reveal can still succeed.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from truthminer.crypto import KeyPair, AddressLike, compute_vote_hash, generate_salt, seal_salt
from truthminer.core.errors import ErrorKind, InvalidFormat, RegistryError
from truthminer.core.derivation import derive_commit_accounts, derive_reveal_accounts
from truthminer.core.normalizer import normalize
from truthminer.core.registry.accounts import QueryAccount, QueryPhase
from truthminer.core.retry import RetryExecutor
from truthminer.core.sources import DataSource
from truthminer.core.storage.salt_cache import CommitmentMap, CommitmentRecord
from truthminer.utils.logger import get_logger

logger = get_logger("scanner")


@dataclass
class ScanReport:
    """Outcome counts for one scan."""
    committed: int = 0
    revealed: int = 0
    skipped: int = 0
    failed: int = 0
    expired: int = 0

    def __str__(self) -> str:
        return (
            f"committed={self.committed} revealed={self.revealed} "
            f"skipped={self.skipped} failed={self.failed} expired={self.expired}"
        )


class PhaseScanner:
    """Decides, per query, whether to commit, reveal or leave it alone."""

    def __init__(
        self,
        registry,
        identity: KeyPair,
        data_source: DataSource,
        categories: Iterable[str],
        executor: RetryExecutor,
        program_id: AddressLike,
        clock: Callable[[], float] = time.time,
        reveal_safety_buffer: int = 0,
        seal_salt: bool = False,
        stop_event: Optional[threading.Event] = None,
    ):
        self.registry = registry
        self.identity = identity
        self.data_source = data_source
        self.categories = frozenset(categories)
        self.executor = executor
        self.program_id = program_id
        self.clock = clock
        self.reveal_safety_buffer = reveal_safety_buffer
        self.seal_salt = seal_salt
        self.stop_event = stop_event

    def _stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def is_eligible(self, query: QueryAccount) -> bool:
        return query.category_id in self.categories

    def list_queries(self) -> List[QueryAccount]:
        return self.registry.list_queries()

    # =========================================================================
    # Commit
    # =========================================================================

    def commit_scan(self, queries: Sequence[QueryAccount], records: CommitmentMap) -> ScanReport:
        """Commit to every eligible open query that has no record yet."""
        report = ScanReport()
        for query in queries:
            if self._stopped():
                logger.info("Stop requested, ending commit scan")
                break
            if not self.is_eligible(query):
                continue
            if query.phase is not QueryPhase.COMMIT_OPEN or query.key in records:
                continue
            try:
                self._commit(query, records, report)
            except Exception as e:
                report.failed += 1
                logger.error(f"Commit failed for {query.unique_event_id} ({query.key}): {e}")
        return report

    def _commit(self, query: QueryAccount, records: CommitmentMap, report: ScanReport) -> None:
        now = self.clock()
        if query.commit_deadline_passed(now):
            report.skipped += 1
            return

        raw = self.data_source.fetch(query.unique_event_id)
        if raw is None:
            logger.debug(f"No data for {query.unique_event_id}")
            report.skipped += 1
            return
        if self._stopped():
            return

        try:
            answer = normalize(raw, query.answer_format)
        except InvalidFormat as e:
            logger.warning(f"Skipping {query.unique_event_id}: {e}")
            report.skipped += 1
            return

        salt = generate_salt()
        vote_hash = compute_vote_hash(answer, salt)
        accounts = derive_commit_accounts(
            self.identity.public_key, query.address, query.category_id, self.program_id
        )
        encrypted_salt = seal_salt(salt, self.identity) if self.seal_salt else b""

        signature = self.executor.execute(
            lambda: self.registry.submit_commit(self.identity, accounts, vote_hash, encrypted_salt),
            name=f"commit {query.unique_event_id}",
        )
        records[query.key] = CommitmentRecord.create(answer, salt, committed_at=now)
        report.committed += 1
        logger.info(f"Committed {query.unique_event_id} -> {answer!r} (tx {signature or 'already on chain'})")

    # =========================================================================
    # Reveal
    # =========================================================================

    def reveal_scan(self, queries: Sequence[QueryAccount], records: CommitmentMap) -> ScanReport:
        """Reveal, expire or keep every stored record."""
        report = ScanReport()
        listed: Dict[str, QueryAccount] = {q.key: q for q in queries}
        for key in list(records):
            if self._stopped():
                logger.info("Stop requested, ending reveal scan")
                break
            try:
                self._reveal(key, listed, records, report)
            except Exception as e:
                report.failed += 1
                logger.error(f"Reveal failed for {key}: {e}")
        return report

    def _resolve(self, key: str, listed: Dict[str, QueryAccount]) -> Optional[QueryAccount]:
        query = listed.get(key)
        if query is None:
            query = self.registry.fetch_query(key)
        return query

    def _reveal(
        self,
        key: str,
        listed: Dict[str, QueryAccount],
        records: CommitmentMap,
        report: ScanReport,
    ) -> None:
        record = records[key]
        query = self._resolve(key, listed)
        if query is None:
            logger.warning(f"Query {key} no longer exists, dropping commitment")
            del records[key]
            report.expired += 1
            return

        if query.reveal_deadline_passed(self.clock(), self.reveal_safety_buffer):
            logger.warning(f"Reveal window for {query.unique_event_id} closed, dropping commitment")
            del records[key]
            report.expired += 1
            return

        if query.phase is not QueryPhase.REVEAL_OPEN:
            return

        accounts = derive_reveal_accounts(self.identity.public_key, query.address, self.program_id)
        try:
            signature = self.executor.execute(
                lambda: self.registry.submit_reveal(
                    self.identity, accounts, record.answer, record.salt
                ),
                name=f"reveal {query.unique_event_id}",
            )
        except RegistryError as e:
            if e.kind is ErrorKind.ALREADY_REVEALED:
                logger.info(f"{query.unique_event_id} already revealed")
                del records[key]
                report.revealed += 1
            elif not e.recoverable:
                logger.error(f"Reveal of {query.unique_event_id} rejected ({e.kind.value}), dropping")
                del records[key]
                report.failed += 1
            else:
                logger.warning(f"Reveal of {query.unique_event_id} will be retried next cycle: {e}")
                report.failed += 1
            return

        del records[key]
        report.revealed += 1
        logger.info(f"Revealed {query.unique_event_id} -> {record.answer!r} (tx {signature})")
