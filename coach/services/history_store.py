"""Append-only chat history persistence with per-user-feature JSON files."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import ValidationError

from coach.config import settings
from coach.errors import PersistenceFailure
from coach.models import Feature, HistoryRecord

log = logging.getLogger(__name__)


class HistoryStore:
    """Stores turns keyed by (user id, feature), preserving insertion order."""

    def __init__(self, data_dir: Optional[str | Path] = None):
        self.data_dir = Path(data_dir or settings.DATA_DIR) / "history"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._health_check()

    def _health_check(self):
        """Verify the history directory is writable."""
        try:
            test_file = self.data_dir / ".health_check"
            test_file.write_text("ok")
            test_file.unlink()
            log.info(f"History store OK: {self.data_dir}")
        except OSError as e:
            raise PersistenceFailure(f"History store error: {e}") from e

    def _path(self, user_id: str, feature: Feature) -> Path:
        safe_user = re.sub(r"[^A-Za-z0-9_-]", "_", user_id)
        return self.data_dir / f"history_{safe_user}_{Feature(feature).value}.json"

    def _read(self, path: Path) -> list[dict]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFailure(f"Could not read {path.name}: {e}") from e
        if not isinstance(data, list):
            raise PersistenceFailure(f"Unexpected content in {path.name}")
        return data

    def _append_sync(self, record: HistoryRecord) -> None:
        path = self._path(record.user_id, record.feature)
        records = self._read(path)
        records.append(record.model_dump(mode="json"))
        try:
            path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise PersistenceFailure(f"Could not write {path.name}: {e}") from e

    def _list_sync(self, user_id: str, feature: Feature) -> list[HistoryRecord]:
        try:
            return [HistoryRecord(**r) for r in self._read(self._path(user_id, feature))]
        except (TypeError, ValidationError) as e:
            raise PersistenceFailure(f"Corrupted history for {user_id}/{feature}: {e}") from e

    async def append(
        self,
        user_id: str,
        feature: Feature,
        sender: Literal["user", "tutor"],
        text: str,
        timestamp: Optional[datetime] = None,
    ) -> HistoryRecord:
        """Persist one turn and return the stored record."""
        record = HistoryRecord(
            user_id=user_id,
            feature=feature,
            sender=sender,
            text=text,
            created_at=timestamp or datetime.now(timezone.utc),
        )
        async with self._lock:
            await asyncio.to_thread(self._append_sync, record)
        return record

    async def list_ordered(self, user_id: str, feature: Feature) -> list[HistoryRecord]:
        """All turns for (user, feature) in insertion order."""
        async with self._lock:
            return await asyncio.to_thread(self._list_sync, user_id, feature)

    def clear(self):
        """Remove every stored history file."""
        for history_file in self.data_dir.glob("history_*.json"):
            history_file.unlink()
