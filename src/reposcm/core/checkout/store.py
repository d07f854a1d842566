"""
Persistence of build records.

Each successful checkout appends a BuildRecord to
``<state_dir>/builds.json``; polling reads the newest snapshot for the
configured branch as its baseline.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from reposcm.core.manifest import ManifestSnapshot

from .models import BuildHistory, BuildRecord, BuildResult

logger = logging.getLogger(__name__)

BUILDS_FILENAME = "builds.json"


class RevisionStore:
    """
    JSON-file store of build records, newest last.

    Example:
        >>> store = RevisionStore(Path(".reposcm"), history_limit=50)
        >>> record = store.record(snapshot)
        >>> store.last_state(snapshot.branch) == snapshot
        True
    """

    def __init__(self, state_dir: Path, history_limit: int = 50):
        self.state_dir = Path(state_dir)
        self.history_limit = history_limit
        self.path = self.state_dir / BUILDS_FILENAME

    def load(self) -> list[BuildRecord]:
        """
        Read all records, oldest first.

        A missing file is an empty history; an unreadable one is logged and
        treated the same way so that a corrupt store forces a fresh build.
        """
        if not self.path.exists():
            return []
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
            return BuildHistory.model_validate(data).records
        except (json.JSONDecodeError, OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable build history %s: %s", self.path, e)
            return []

    def record(
        self,
        snapshot: ManifestSnapshot,
        result: BuildResult = BuildResult.SUCCESS,
    ) -> BuildRecord:
        """Append a record for ``snapshot`` and return it."""
        records = self.load()
        number = records[-1].number + 1 if records else 1
        record = BuildRecord(
            number=number,
            timestamp=datetime.now(timezone.utc),
            snapshot=snapshot,
            result=result,
        )
        records.append(record)
        self._write(records[-self.history_limit:])
        return record

    def last_state(self, branch: str | None) -> ManifestSnapshot | None:
        """
        Newest successful snapshot recorded for ``branch``.

        Records for other branches are skipped; ``None`` only matches
        ``None``.
        """
        for record in reversed(self.load()):
            if record.result is not BuildResult.SUCCESS:
                continue
            if record.snapshot.branch == branch:
                return record.snapshot
        return None

    def get(self, number: int) -> BuildRecord | None:
        for record in self.load():
            if record.number == number:
                return record
        return None

    def _write(self, records: list[BuildRecord]) -> None:
        """Write atomically (temp file + rename)."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        data = BuildHistory(records=records).model_dump(mode="json")
        temp_path = self.path.with_suffix(".json.tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_path.replace(self.path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise
