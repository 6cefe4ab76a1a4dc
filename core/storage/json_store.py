"""JSON file stores for scanner state.

Layout mirrors the JSON exports: a `metadata` block plus a `data` list keyed by
symbol. Writes go to a temp file that is then `os.replace`d over the target, so a
crash mid-write never leaves a truncated state file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generic, Sequence, TypeVar

from core.types import CooldownEntry, ExclusionEntry

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", ExclusionEntry, CooldownEntry)


class _JsonFileStore(Generic[EntryT]):
    entry_type: type

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[EntryT]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        rows = payload.get("data", []) if isinstance(payload, dict) else payload
        return [self.entry_type.from_dict(row) for row in rows]

    def save(self, entries: Sequence[EntryT]) -> None:
        output: dict[str, Any] = {
            "metadata": {
                "saved_at": datetime.now(timezone.utc).isoformat(),
                "row_count": len(entries),
            },
            "data": [entry.to_dict() for entry in sorted(entries, key=lambda e: e.symbol)],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(output, fh, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved {len(entries)} entries to {self.path}")


class JsonExclusionStore(_JsonFileStore[ExclusionEntry]):
    entry_type = ExclusionEntry


class JsonCooldownStore(_JsonFileStore[CooldownEntry]):
    entry_type = CooldownEntry
