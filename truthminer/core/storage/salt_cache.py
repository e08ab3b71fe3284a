"""
Salt Cache - durable map of in-flight commitments.

The cache file is the only durable copy of a commitment's salt. If it is
lost before the reveal, that vote can never be revealed; the query times out
on the registry side. That loss is bounded and accepted: load() never raises.

Document format:
    {
      "<query address>": {"salt": "...", "answer": "...", "committedAt": 1700000000},
      ...
    }
"""

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from truthminer.utils.logger import get_logger

logger = get_logger("storage.salt_cache")


class CommitmentRecord(BaseModel):
    """
    A commitment awaiting reveal.

    Frozen: a query committed with answer A must reveal exactly A.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    salt: str = Field(min_length=1)
    answer: str
    committed_at: int = Field(alias="committedAt", ge=0)

    @classmethod
    def create(cls, answer: str, salt: str, committed_at: float = None) -> "CommitmentRecord":
        """Build a record stamped with the current time."""
        stamp = time.time() if committed_at is None else committed_at
        return cls(salt=salt, answer=answer, committed_at=int(stamp))

    def __repr__(self) -> str:
        # Never leak the salt through logs or tracebacks
        return f"CommitmentRecord(answer={self.answer!r}, committed_at={self.committed_at})"

    __str__ = __repr__


CommitmentMap = Dict[str, CommitmentRecord]

_document = TypeAdapter(Dict[str, CommitmentRecord])


class SaltCache:
    """
    Loads and saves the commitment map as a single JSON document.

    The map itself is owned by the caller and threaded through each cycle;
    this class only moves it to and from disk.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> CommitmentMap:
        """
        Load all records.

        Returns an empty map if the file is missing, unreadable or invalid.
        """
        if not self.path.exists():
            logger.info(f"No salt cache at {self.path}, starting empty")
            return {}

        try:
            text = self.path.read_text(encoding="utf-8")
            records = _document.validate_json(text)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"Salt cache {self.path} unreadable ({type(e).__name__}), starting empty")
            return {}

        logger.info(f"Loaded {len(records)} pending commitment(s) from {self.path}")
        return dict(records)

    def save(self, records: CommitmentMap) -> None:
        """
        Persist all records, replacing the file atomically.

        Raises:
            OSError: the document could not be written
        """
        document = {
            key: record.model_dump(by_alias=True)
            for key, record in sorted(records.items())
        }
        payload = json.dumps(document, indent=2)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Saved {len(records)} pending commitment(s) to {self.path}")
