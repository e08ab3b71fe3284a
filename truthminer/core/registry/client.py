"""
Registry Client - JSON-RPC access to the truth_pool program.

Reads:
- list_queries():   getProgramAccounts filtered by the QueryAccount discriminator
- fetch_query():    getAccountInfo on a single query address
- get_priority_fee(): getRecentPrioritizationFees (congestion signal)

Writes (signed, submitted and confirmed):
- submit_commit():  commit_vote(vote_hash, encrypted_salt)
- submit_reveal():  reveal_vote(value, salt)

Every failure leaves this module as a RegistryError tagged with a closed
ErrorKind, so callers match on kinds instead of searching error text.
"""

import base64
import itertools
import re
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from truthminer.crypto import KeyPair, as_pubkey, from_base58, to_base58, AddressLike
from truthminer.core.errors import ErrorKind, RegistryError
from truthminer.core.derivation import CommitAccounts, RevealAccounts
from truthminer.core.registry.accounts import (
    QueryAccount,
    VoterRecord,
    QUERY_ACCOUNT_DISCRIMINATOR,
)
from truthminer.core.registry.transaction import (
    build_commit_instruction,
    build_reveal_instruction,
    build_transaction,
)
from truthminer.utils.logger import get_logger

logger = get_logger("registry")


# =============================================================================
# Error Classification
# =============================================================================

# truth_pool CustomError variants, in declaration order (code = 6000 + index)
PROGRAM_ERROR_NAMES = [
    "PhaseClosed",
    "HashMismatch",
    "NotFinalized",
    "WrongVote",
    "AlreadyClaimed",
    "MinerWasHonest",
    "InsufficientFreeCapital",
    "SettlementLocked",
    "MinerBanned",
    "SentinelCapReached",
    "FormatMismatch",
    "AppealWindowClosed",
    "QueryAlreadyResolved",
    "TooManyOptions",
    "Unauthorized",
    "RevealWindowOpen",
    "MaxSentinelsReached",
]
PROGRAM_ERROR_OFFSET = 6000

# Anchor framework error codes the agent can hit
FRAMEWORK_ERROR_NAMES = {
    2001: "ConstraintHasOne",
    2006: "ConstraintSeeds",
    3012: "AccountNotInitialized",
}

ERROR_NAME_KINDS = {
    "PhaseClosed": ErrorKind.PHASE_CLOSED,
    "HashMismatch": ErrorKind.HASH_MISMATCH,
    "WrongPhase": ErrorKind.WRONG_PHASE,
    "NotFinalized": ErrorKind.WRONG_PHASE,
    "RevealWindowOpen": ErrorKind.WRONG_PHASE,
    "AlreadyClaimed": ErrorKind.ALREADY_CLAIMED,
    "AlreadyRevealed": ErrorKind.ALREADY_REVEALED,
    "NotCommitted": ErrorKind.NOT_COMMITTED,
    "AccountNotInitialized": ErrorKind.NOT_COMMITTED,
    "InsufficientFreeCapital": ErrorKind.INSUFFICIENT_FUNDS,
    "Unauthorized": ErrorKind.UNAUTHORIZED,
    "MinerBanned": ErrorKind.UNAUTHORIZED,
    "ConstraintHasOne": ErrorKind.UNAUTHORIZED,
    "ConstraintSeeds": ErrorKind.UNAUTHORIZED,
}

# Transaction-level errors reported as plain strings or single-key objects
TRANSACTION_ERROR_KINDS = {
    "InsufficientFundsForFee": ErrorKind.INSUFFICIENT_FUNDS,
    "InsufficientFundsForRent": ErrorKind.INSUFFICIENT_FUNDS,
    "AccountNotFound": ErrorKind.INSUFFICIENT_FUNDS,
    "BlockhashNotFound": ErrorKind.BLOCKHASH_EXPIRED,
}

# JSON-RPC error codes signalling an overloaded or lagging node
CONGESTION_RPC_CODES = {-32005, 429}

_ERROR_CODE_LOG = re.compile(r"Error Code: (\w+)")


def error_name_for_code(code: int) -> Optional[str]:
    """Map a custom program error number to its variant name."""
    index = code - PROGRAM_ERROR_OFFSET
    if 0 <= index < len(PROGRAM_ERROR_NAMES):
        return PROGRAM_ERROR_NAMES[index]
    return FRAMEWORK_ERROR_NAMES.get(code)


def _kind_from_logs(logs: Sequence[str]) -> Optional[ErrorKind]:
    for line in logs:
        match = _ERROR_CODE_LOG.search(line)
        if match and match.group(1) in ERROR_NAME_KINDS:
            return ERROR_NAME_KINDS[match.group(1)]
    return None


def _kind_from_transaction_error(err: Any) -> Optional[ErrorKind]:
    if isinstance(err, str):
        return TRANSACTION_ERROR_KINDS.get(err)
    if not isinstance(err, dict):
        return None

    instruction_error = err.get("InstructionError")
    if isinstance(instruction_error, list) and len(instruction_error) == 2:
        detail = instruction_error[1]
        if isinstance(detail, dict) and "Custom" in detail:
            name = error_name_for_code(int(detail["Custom"]))
            return ERROR_NAME_KINDS.get(name) if name else None
        return None

    for key in err:
        if key in TRANSACTION_ERROR_KINDS:
            return TRANSACTION_ERROR_KINDS[key]
    return None


def classify_transaction_error(err: Any, logs: Sequence[str] = ()) -> RegistryError:
    """
    Classify an on-chain transaction error.

    Args:
        err: The node's `err` value (string or tagged object)
        logs: Program log lines, if available

    Returns:
        RegistryError with the matching kind (UNKNOWN when unrecognised)
    """
    kind = _kind_from_transaction_error(err) or _kind_from_logs(logs) or ErrorKind.UNKNOWN
    return RegistryError(kind, f"transaction failed: {err}", logs=logs)


def classify_rpc_error(error: Dict[str, Any]) -> RegistryError:
    """Classify a JSON-RPC error object."""
    code = error.get("code")
    message = error.get("message", "")
    data = error.get("data") or {}

    if code in CONGESTION_RPC_CODES:
        return RegistryError(ErrorKind.CONGESTION, message)

    if isinstance(data, dict) and ("err" in data or "logs" in data):
        logs = data.get("logs") or []
        classified = classify_transaction_error(data.get("err"), logs)
        return RegistryError(classified.kind, message, logs=logs)

    if "Blockhash not found" in message:
        return RegistryError(ErrorKind.BLOCKHASH_EXPIRED, message)

    return RegistryError(ErrorKind.UNKNOWN, f"rpc error {code}: {message}")


# =============================================================================
# Client
# =============================================================================


class RegistryClient:
    """
    JSON-RPC client for the registry program.

    Every HTTP call carries a timeout; confirmation polling is bounded by
    confirm_timeout.
    """

    def __init__(
        self,
        rpc_url: str,
        program_id: AddressLike,
        timeout: float = 30.0,
        confirm_timeout: float = 60.0,
        commitment: str = "confirmed",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], Any] = time.sleep,
        poll_interval: float = 1.0,
    ):
        self.rpc_url = rpc_url
        self.program_id = as_pubkey(program_id)
        self.timeout = timeout
        self.confirm_timeout = confirm_timeout
        self.commitment = commitment
        self.session = session or requests.Session()
        self._sleep = sleep
        self._poll_interval = poll_interval
        self._ids = itertools.count(1)

    @property
    def program_address(self) -> str:
        return to_base58(self.program_id)

    # =========================================================================
    # Transport
    # =========================================================================

    def _rpc(self, method: str, params: Optional[list] = None) -> Any:
        """
        Perform one JSON-RPC call.

        Raises:
            RegistryError: transport failure or RPC error (classified)
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise RegistryError(ErrorKind.TIMEOUT, f"{method} timed out") from e
        except requests.ConnectionError as e:
            raise RegistryError(ErrorKind.NETWORK, f"{method}: {e}") from e
        except requests.RequestException as e:
            raise RegistryError(ErrorKind.UNKNOWN, f"{method}: {e}") from e

        if response.status_code == 429:
            raise RegistryError(ErrorKind.CONGESTION, f"{method}: rate limited (HTTP 429)")
        if response.status_code >= 500:
            raise RegistryError(ErrorKind.NETWORK, f"{method}: HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise RegistryError(ErrorKind.UNKNOWN, f"{method}: invalid JSON response") from e

        if not isinstance(body, dict):
            raise RegistryError(ErrorKind.UNKNOWN, f"{method}: unexpected response shape")
        if body.get("error"):
            raise classify_rpc_error(body["error"])

        return body.get("result")

    @staticmethod
    def _account_data(account: Dict[str, Any]) -> bytes:
        data = account.get("data")
        if isinstance(data, list) and len(data) == 2 and data[1] == "base64":
            return base64.b64decode(data[0])
        raise ValueError("Account data is not base64 encoded")

    # =========================================================================
    # Reads
    # =========================================================================

    def list_queries(self) -> List[QueryAccount]:
        """Fetch every QueryAccount owned by the program."""
        result = self._rpc("getProgramAccounts", [
            self.program_address,
            {
                "encoding": "base64",
                "commitment": self.commitment,
                "filters": [
                    {"memcmp": {"offset": 0, "bytes": to_base58(QUERY_ACCOUNT_DISCRIMINATOR)}},
                ],
            },
        ])
        if isinstance(result, dict):
            result = result.get("value", [])

        queries = []
        for entry in result or []:
            pubkey = entry.get("pubkey", "?")
            try:
                queries.append(QueryAccount.from_bytes(
                    from_base58(pubkey), self._account_data(entry["account"])
                ))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping undecodable query account {pubkey}: {e}")

        logger.debug(f"Listed {len(queries)} queries")
        return queries

    def _get_account(self, address: AddressLike) -> Optional[Dict[str, Any]]:
        result = self._rpc("getAccountInfo", [
            to_base58(as_pubkey(address)),
            {"encoding": "base64", "commitment": self.commitment},
        ])
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            return None
        if value.get("owner") and value["owner"] != self.program_address:
            logger.warning(f"Account {to_base58(as_pubkey(address))} not owned by the registry")
            return None
        return value

    def fetch_query(self, address: AddressLike) -> Optional[QueryAccount]:
        """Fetch a single query by address (None if it does not exist)."""
        account = self._get_account(address)
        if account is None:
            return None
        try:
            return QueryAccount.from_bytes(as_pubkey(address), self._account_data(account))
        except ValueError as e:
            logger.warning(f"Query account {to_base58(as_pubkey(address))} undecodable: {e}")
            return None

    def fetch_voter_record(self, address: AddressLike) -> Optional[VoterRecord]:
        """Fetch the agent's voter record (None if never committed)."""
        account = self._get_account(address)
        if account is None:
            return None
        try:
            return VoterRecord.from_bytes(self._account_data(account))
        except ValueError as e:
            logger.warning(f"Voter record {to_base58(as_pubkey(address))} undecodable: {e}")
            return None

    def get_priority_fee(self) -> int:
        """
        Most recent prioritization fee (micro-lamports per compute unit).

        Returns 0 when the node reports no recent fees.
        """
        result = self._rpc("getRecentPrioritizationFees", [])
        if not result:
            return 0
        return int(result[-1].get("prioritizationFee", 0))

    def get_latest_blockhash(self) -> bytes:
        result = self._rpc("getLatestBlockhash", [{"commitment": self.commitment}])
        return from_base58(result["value"]["blockhash"])

    # =========================================================================
    # Writes
    # =========================================================================

    def send_transaction(self, raw: bytes) -> str:
        """Submit a signed transaction, returning its base58 signature."""
        return self._rpc("sendTransaction", [
            base64.b64encode(raw).decode("ascii"),
            {"encoding": "base64", "preflightCommitment": self.commitment},
        ])

    def confirm_transaction(self, signature: str) -> None:
        """
        Poll until the transaction is confirmed.

        Raises:
            RegistryError: the transaction failed on chain (classified), or
                confirmation did not arrive within confirm_timeout (TIMEOUT)
        """
        deadline = time.monotonic() + self.confirm_timeout
        while True:
            result = self._rpc("getSignatureStatuses", [[signature]])
            statuses = (result or {}).get("value") or [None]
            status = statuses[0]
            if status is not None:
                if status.get("err") is not None:
                    raise classify_transaction_error(status["err"])
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return
            if time.monotonic() >= deadline:
                raise RegistryError(
                    ErrorKind.TIMEOUT, f"transaction {signature} not confirmed in {self.confirm_timeout}s"
                )
            self._sleep(self._poll_interval)

    def _submit(self, signer: KeyPair, instruction) -> str:
        blockhash = self.get_latest_blockhash()
        tx = build_transaction(signer, instruction, blockhash)
        signature = self.send_transaction(tx.to_bytes())
        self.confirm_transaction(signature)
        return signature

    def submit_commit(
        self,
        signer: KeyPair,
        accounts: CommitAccounts,
        vote_hash: bytes,
        encrypted_salt: bytes = b"",
    ) -> str:
        """
        Submit and confirm commit_vote.

        The voter record is checked first: the program accepts a second
        commit to an initialized record, which would lock the bond twice.
        A record already holding this vote_hash means an earlier attempt
        landed, so nothing is sent and an empty signature is returned.

        Raises:
            RegistryError(ALREADY_COMMITTED): the record holds a different vote
        """
        record = self.fetch_voter_record(accounts.voter_record)
        if record is not None and record.has_committed:
            if record.vote_hash == vote_hash:
                logger.info(f"Commit to {to_base58(accounts.query)} already on chain")
                return ""
            raise RegistryError(ErrorKind.ALREADY_COMMITTED, "voter record holds another vote")

        instruction = build_commit_instruction(self.program_id, accounts, vote_hash, encrypted_salt)
        signature = self._submit(signer, instruction)
        logger.debug(f"commit_vote confirmed: {signature}")
        return signature

    def submit_reveal(
        self,
        signer: KeyPair,
        accounts: RevealAccounts,
        answer: str,
        salt: str,
    ) -> str:
        """
        Submit and confirm reveal_vote.

        The voter record is checked first: the program itself does not
        reject a second reveal, so a repeated reveal would double count.

        Raises:
            RegistryError(NOT_COMMITTED): no voter record exists
            RegistryError(ALREADY_REVEALED): the vote is already revealed
        """
        record = self.fetch_voter_record(accounts.voter_record)
        if record is None or not record.has_committed:
            raise RegistryError(ErrorKind.NOT_COMMITTED, "no commitment on chain")
        if record.has_revealed:
            raise RegistryError(ErrorKind.ALREADY_REVEALED, "vote already revealed")

        instruction = build_reveal_instruction(self.program_id, accounts, answer, salt)
        signature = self._submit(signer, instruction)
        logger.debug(f"reveal_vote confirmed: {signature}")
        return signature
