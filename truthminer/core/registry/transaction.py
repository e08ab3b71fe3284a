"""
Transaction - signed ledger transactions for registry writes.

Wire format (legacy message):

    transaction = compact_len(signatures) || signature(64)* || message
    message     = header(3) || compact_len(keys) || key(32)* || recent_blockhash(32)
                  || compact_len(instructions) || instruction*
    header      = num_required_signatures || num_readonly_signed || num_readonly_unsigned
    instruction = program_index(1) || compact_len(accounts) || index(1)* || compact_len(data) || data

Account keys are ordered: writable signers, readonly signers, writable
non-signers, readonly non-signers. The fee payer is always the first key.

compact_len is the ledger's "compact-u16": 7 bits per byte, low bits first,
high bit set on every byte except the last.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from truthminer.crypto import KeyPair, SIGNATURE_SIZE, PUBLIC_KEY_SIZE, verify
from truthminer.core.registry.accounts import BorshWriter, instruction_discriminator
from truthminer.core.derivation import CommitAccounts, RevealAccounts, SYSTEM_PROGRAM_ID


# =============================================================================
# Constants
# =============================================================================

# Hard limit on a serialized transaction (one network packet)
MAX_TRANSACTION_SIZE = 1232
MAX_COMPACT_U16 = 0xFFFF

COMMIT_VOTE = "commit_vote"
REVEAL_VOTE = "reveal_vote"


# =============================================================================
# Compact-u16
# =============================================================================


def encode_length(n: int) -> bytes:
    """Encode a length as compact-u16."""
    if n < 0 or n > MAX_COMPACT_U16:
        raise ValueError(f"Length {n} does not fit compact-u16")
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n == 0:
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


def decode_length(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a compact-u16.

    Returns:
        (value, bytes_consumed)
    """
    value = 0
    for i in range(3):
        byte = data[offset + i]
        value |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            return value, i + 1
    raise ValueError("compact-u16 longer than 3 bytes")


# =============================================================================
# Instructions
# =============================================================================


@dataclass(frozen=True)
class AccountMeta:
    """An account referenced by an instruction."""
    pubkey: bytes
    is_signer: bool
    is_writable: bool


@dataclass
class Instruction:
    """A single program invocation."""
    program_id: bytes
    accounts: List[AccountMeta]
    data: bytes


def build_commit_instruction(
    program_id: bytes,
    accounts: CommitAccounts,
    vote_hash: bytes,
    encrypted_salt: bytes = b"",
) -> Instruction:
    """
    commit_vote(vote_hash: [u8; 32], encrypted_salt: Vec<u8>)
    """
    if len(vote_hash) != 32:
        raise ValueError("vote_hash must be 32 bytes")
    data = (
        BorshWriter()
        .fixed(instruction_discriminator(COMMIT_VOTE))
        .fixed(vote_hash)
        .bytes_vec(encrypted_salt)
        .to_bytes()
    )
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(accounts.voter, is_signer=True, is_writable=True),
            AccountMeta(accounts.miner_profile, is_signer=False, is_writable=True),
            AccountMeta(accounts.query, is_signer=False, is_writable=True),
            AccountMeta(accounts.category_stats, is_signer=False, is_writable=True),
            AccountMeta(accounts.voter_record, is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=data,
    )


def build_reveal_instruction(
    program_id: bytes,
    accounts: RevealAccounts,
    answer: str,
    salt: str,
) -> Instruction:
    """
    reveal_vote(value: String, salt: String)
    """
    data = (
        BorshWriter()
        .fixed(instruction_discriminator(REVEAL_VOTE))
        .string(answer)
        .string(salt)
        .to_bytes()
    )
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(accounts.voter, is_signer=True, is_writable=True),
            AccountMeta(accounts.miner_profile, is_signer=False, is_writable=True),
            AccountMeta(accounts.query, is_signer=False, is_writable=True),
            AccountMeta(accounts.voter_record, is_signer=False, is_writable=True),
            AccountMeta(accounts.vote_stats, is_signer=False, is_writable=True),
        ],
        data=data,
    )


# =============================================================================
# Message
# =============================================================================


@dataclass
class Message:
    """A compiled legacy message."""
    num_required_signatures: int
    num_readonly_signed: int
    num_readonly_unsigned: int
    account_keys: List[bytes]
    recent_blockhash: bytes
    # (program_index, account_indices, data)
    instructions: List[Tuple[int, List[int], bytes]] = field(default_factory=list)

    @classmethod
    def compile(
        cls,
        payer: bytes,
        instructions: Sequence[Instruction],
        recent_blockhash: bytes,
    ) -> "Message":
        """Order account keys, merge flags and index instructions."""
        if len(recent_blockhash) != 32:
            raise ValueError("recent_blockhash must be 32 bytes")

        # pubkey -> [is_signer, is_writable], insertion ordered
        flags: Dict[bytes, List[bool]] = {payer: [True, True]}
        for ix in instructions:
            for meta in ix.accounts:
                entry = flags.setdefault(meta.pubkey, [False, False])
                entry[0] = entry[0] or meta.is_signer
                entry[1] = entry[1] or meta.is_writable
            flags.setdefault(ix.program_id, [False, False])

        groups = {
            (True, True): [],
            (True, False): [],
            (False, True): [],
            (False, False): [],
        }
        for key, (is_signer, is_writable) in flags.items():
            groups[(is_signer, is_writable)].append(key)

        keys = (
            groups[(True, True)]
            + groups[(True, False)]
            + groups[(False, True)]
            + groups[(False, False)]
        )
        index = {key: i for i, key in enumerate(keys)}

        compiled = [
            (index[ix.program_id], [index[m.pubkey] for m in ix.accounts], ix.data)
            for ix in instructions
        ]

        return cls(
            num_required_signatures=len(groups[(True, True)]) + len(groups[(True, False)]),
            num_readonly_signed=len(groups[(True, False)]),
            num_readonly_unsigned=len(groups[(False, False)]),
            account_keys=keys,
            recent_blockhash=bytes(recent_blockhash),
            instructions=compiled,
        )

    @property
    def signers(self) -> List[bytes]:
        return self.account_keys[:self.num_required_signatures]

    def to_bytes(self) -> bytes:
        """Serialize message (this is what signers sign)."""
        parts = [
            bytes([
                self.num_required_signatures,
                self.num_readonly_signed,
                self.num_readonly_unsigned,
            ]),
            encode_length(len(self.account_keys)),
            *self.account_keys,
            self.recent_blockhash,
            encode_length(len(self.instructions)),
        ]
        for program_index, account_indices, data in self.instructions:
            parts.append(bytes([program_index]))
            parts.append(encode_length(len(account_indices)))
            parts.append(bytes(account_indices))
            parts.append(encode_length(len(data)))
            parts.append(data)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Message":
        """Deserialize message."""
        offset = 0
        num_required, num_ro_signed, num_ro_unsigned = data[0], data[1], data[2]
        offset += 3

        num_keys, n = decode_length(data, offset)
        offset += n
        keys = []
        for _ in range(num_keys):
            keys.append(data[offset:offset + PUBLIC_KEY_SIZE])
            offset += PUBLIC_KEY_SIZE

        blockhash = data[offset:offset + 32]
        offset += 32

        num_ix, n = decode_length(data, offset)
        offset += n
        instructions = []
        for _ in range(num_ix):
            program_index = data[offset]
            offset += 1
            num_accounts, n = decode_length(data, offset)
            offset += n
            indices = list(data[offset:offset + num_accounts])
            offset += num_accounts
            data_len, n = decode_length(data, offset)
            offset += n
            instructions.append((program_index, indices, data[offset:offset + data_len]))
            offset += data_len

        return cls(num_required, num_ro_signed, num_ro_unsigned, keys, blockhash, instructions)


# =============================================================================
# Transaction
# =============================================================================


@dataclass
class Transaction:
    """A message plus one signature per required signer."""
    message: Message
    signatures: List[bytes] = field(default_factory=list)

    def sign(self, keypairs: Sequence[KeyPair]) -> None:
        """
        Sign with every required signer.

        Raises:
            ValueError: a required signer has no matching keypair
        """
        by_key = {kp.public_key: kp for kp in keypairs}
        payload = self.message.to_bytes()
        signatures = []
        for signer in self.message.signers:
            keypair = by_key.get(signer)
            if keypair is None:
                raise ValueError("Missing keypair for required signer")
            signatures.append(keypair.sign(payload))
        self.signatures = signatures

    def verify_signatures(self) -> bool:
        """Check every signature against its signer key."""
        signers = self.message.signers
        if len(self.signatures) != len(signers):
            return False
        payload = self.message.to_bytes()
        return all(verify(payload, sig, key) for sig, key in zip(self.signatures, signers))

    @property
    def signature(self) -> bytes:
        """Fee payer signature (the transaction id)."""
        if not self.signatures:
            raise ValueError("Transaction is not signed")
        return self.signatures[0]

    def to_bytes(self) -> bytes:
        """Serialize for sendTransaction."""
        if len(self.signatures) != self.message.num_required_signatures:
            raise ValueError("Transaction is not fully signed")
        for sig in self.signatures:
            if len(sig) != SIGNATURE_SIZE:
                raise ValueError("Invalid signature length")
        raw = encode_length(len(self.signatures)) + b"".join(self.signatures) + self.message.to_bytes()
        if len(raw) > MAX_TRANSACTION_SIZE:
            raise ValueError(f"Transaction too large: {len(raw)} > {MAX_TRANSACTION_SIZE} bytes")
        return raw


def build_transaction(
    signer: KeyPair,
    instruction: Instruction,
    recent_blockhash: bytes,
) -> Transaction:
    """Compile and sign a single-instruction transaction paid by signer."""
    message = Message.compile(signer.public_key, [instruction], recent_blockhash)
    tx = Transaction(message=message)
    tx.sign([signer])
    return tx
