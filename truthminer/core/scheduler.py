"""
Scheduler - the agent's polling loop.

Each cycle:
1. Read the congestion signal; above the ceiling, skip submissions
2. List queries, run the commit scan, then the reveal scan
3. Save the Salt Cache (always, even if a scan raised)

Cycles repeat every poll_interval seconds until the stop event is set.
"""

import signal
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from truthminer.core.config import AgentConfig
from truthminer.core.identity import load_or_create
from truthminer.core.registry.client import RegistryClient
from truthminer.core.retry import RetryExecutor
from truthminer.core.scanner import PhaseScanner, ScanReport
from truthminer.core.sources import JsonFileDataSource
from truthminer.core.storage.salt_cache import CommitmentMap, SaltCache
from truthminer.utils.logger import get_logger

logger = get_logger("scheduler")


@dataclass
class CycleReport:
    """What one cycle did."""
    priority_fee: int
    congested: bool = False
    commit: ScanReport = field(default_factory=ScanReport)
    reveal: ScanReport = field(default_factory=ScanReport)


class Scheduler:
    """Runs scan cycles with congestion guarding and cache persistence."""

    def __init__(
        self,
        scanner: PhaseScanner,
        registry,
        salt_cache: SaltCache,
        config: AgentConfig,
        stop_event: Optional[threading.Event] = None,
    ):
        self.scanner = scanner
        self.registry = registry
        self.salt_cache = salt_cache
        self.config = config
        self.stop_event = stop_event or threading.Event()

    @classmethod
    def from_config(cls, config: AgentConfig, stop_event: Optional[threading.Event] = None) -> "Scheduler":
        """
        Wire up a scheduler from configuration.

        Raises:
            CorruptIdentity: the identity file exists but is unreadable
        """
        stop_event = stop_event or threading.Event()
        identity = load_or_create(config.wallet_path)
        registry = RegistryClient(
            config.rpc_url,
            config.program_id,
            timeout=config.rpc_timeout,
            confirm_timeout=config.confirm_timeout,
        )
        scanner = PhaseScanner(
            registry=registry,
            identity=identity,
            data_source=JsonFileDataSource(config.data_source_path),
            categories=config.categories,
            executor=RetryExecutor(stop_event=stop_event),
            program_id=registry.program_id,
            reveal_safety_buffer=config.reveal_safety_buffer,
            seal_salt=config.seal_salt,
            stop_event=stop_event,
        )
        return cls(scanner, registry, SaltCache(config.salt_cache_path), config, stop_event)

    def run_cycle(self, records: CommitmentMap) -> CycleReport:
        """Run one commit/reveal cycle over records (mutated in place)."""
        fee = self.registry.get_priority_fee()
        if fee > self.config.max_priority_fee:
            logger.warning(
                f"Network congested (priority fee {fee} > {self.config.max_priority_fee}), skipping cycle"
            )
            return CycleReport(priority_fee=fee, congested=True)

        report = CycleReport(priority_fee=fee)
        try:
            queries = self.scanner.list_queries()
            logger.debug(f"{len(queries)} queries listed")
            report.commit = self.scanner.commit_scan(queries, records)
            report.reveal = self.scanner.reveal_scan(queries, records)
        finally:
            self.salt_cache.save(records)

        logger.info(f"Cycle done: commit[{report.commit}] reveal[{report.reveal}]")
        return report

    def run_once(self) -> CycleReport:
        """Load the cache and run a single cycle."""
        records = self.salt_cache.load()
        return self.run_cycle(records)

    def run_forever(self) -> None:
        """Poll until the stop event is set, then flush the cache."""
        records = self.salt_cache.load()
        logger.info(
            f"Agent started: {len(records)} pending commitments, "
            f"polling every {self.config.poll_interval:.0f}s"
        )
        try:
            while not self.stop_event.is_set():
                started = time.monotonic()
                try:
                    self.run_cycle(records)
                except Exception as e:
                    logger.error(f"Cycle failed: {e}")
                logger.debug(f"Cycle took {time.monotonic() - started:.1f}s")
                if self.stop_event.wait(self.config.poll_interval):
                    break
        finally:
            self.salt_cache.save(records)
            logger.info(f"Agent stopped, {len(records)} pending commitments saved")


def install_signal_handlers(stop_event: threading.Event) -> None:
    """SIGINT/SIGTERM request a graceful stop (main thread only)."""

    def _handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, stopping after current step")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
