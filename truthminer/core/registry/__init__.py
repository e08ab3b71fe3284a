"""
Registry - the on-chain truth_pool program as seen by the agent.

Accounts are decoded in accounts.py, transactions assembled in
transaction.py, and the JSON-RPC boundary lives in client.py.
"""

from truthminer.core.registry.accounts import (
    QueryAccount,
    QueryPhase,
    QueryStatus,
    ResponseFormat,
    VoterRecord,
    account_discriminator,
    instruction_discriminator,
)
from truthminer.core.registry.transaction import (
    AccountMeta,
    Instruction,
    Message,
    Transaction,
    build_commit_instruction,
    build_reveal_instruction,
    build_transaction,
)
from truthminer.core.registry.client import (
    RegistryClient,
    classify_rpc_error,
    classify_transaction_error,
    error_name_for_code,
)

__all__ = [
    "QueryAccount",
    "QueryPhase",
    "QueryStatus",
    "ResponseFormat",
    "VoterRecord",
    "account_discriminator",
    "instruction_discriminator",
    "AccountMeta",
    "Instruction",
    "Message",
    "Transaction",
    "build_commit_instruction",
    "build_reveal_instruction",
    "build_transaction",
    "RegistryClient",
    "classify_rpc_error",
    "classify_transaction_error",
    "error_name_for_code",
]
