"""
Data sources - where raw answers come from.

The agent asks a DataSource for the raw answer to an event; None means
"no data yet" and the query is skipped this cycle.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from truthminer.core.errors import DataSourceError
from truthminer.utils.logger import get_logger

logger = get_logger("sources")


def _as_raw(event_id: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise DataSourceError(f"Answer for {event_id} is not a scalar value")
    return str(value)


class DataSource(ABC):
    """Answer provider for external events."""

    @abstractmethod
    def fetch(self, event_id: str) -> Optional[str]:
        """
        Get the raw answer for an event.

        Returns:
            Raw answer string, or None if unavailable
        """


class StaticDataSource(DataSource):
    """Answers from an in-memory mapping."""

    def __init__(self, answers: Optional[Mapping[str, Any]] = None):
        self.answers: Dict[str, Any] = dict(answers or {})

    def fetch(self, event_id: str) -> Optional[str]:
        return _as_raw(event_id, self.answers.get(event_id))


class JsonFileDataSource(DataSource):
    """
    Answers from an operator-maintained JSON file: {"event_id": raw_answer}.

    The file is re-read on every fetch so edits take effect without a
    restart. A missing or malformed file yields no data.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Data source {self.path} unreadable: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Data source {self.path} is not a JSON object")
            return {}
        return data

    def fetch(self, event_id: str) -> Optional[str]:
        return _as_raw(event_id, self._read().get(event_id))
